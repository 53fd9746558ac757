import logging
from enum import Enum

from src.ccat.domain.errors import InvalidTransitionError

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    NOT_STARTED = "not_started"  # No session loaded
    ACTIVE = "active"  # Answering questions, timer may be running
    PAUSED = "paused"  # Timer suspended, only RESUME/COMPLETE/EXIT accepted
    COMPLETED = "completed"  # Terminal, read-only


class SessionAction(str, Enum):
    START = "start"
    SELECT_ANSWER = "select_answer"
    NAVIGATE = "navigate"
    TICK = "tick"
    PAUSE = "pause"
    RESUME = "resume"
    COMPLETE = "complete"
    EXIT = "exit"


class SessionStateMachine:
    """
    Pure FSM Logic.
    Only cares about state transitions, not timers, storage or scoring.
    """

    def __init__(self, initial_state: SessionState = SessionState.NOT_STARTED):
        self._state = initial_state

    @property
    def current_state(self) -> SessionState:
        return self._state

    def can(self, action: SessionAction) -> bool:
        return self._next_state(action) is not None

    def transition(self, action: SessionAction) -> SessionState:
        """
        Applies the transition table.
        Raises InvalidTransitionError for anything the table does not allow.
        """
        previous = self._state
        next_state = self._next_state(action)

        if next_state is None:
            logger.error(f"⛔ INVALID TRANSITION: {previous.name} + {action.name}")
            raise InvalidTransitionError(action.value, previous.value)

        self._state = next_state
        if next_state != previous:
            logger.info(f"🔄 FSM: {previous.name} --[{action.name}]--> {next_state.name}")
        return next_state

    def _next_state(self, action: SessionAction) -> SessionState | None:
        match (self._state, action):
            # A new session supersedes whatever was loaded before
            case (_, SessionAction.START):
                return SessionState.ACTIVE

            # ACTIVE self-loops
            case (
                SessionState.ACTIVE,
                SessionAction.SELECT_ANSWER | SessionAction.NAVIGATE | SessionAction.TICK,
            ):
                return SessionState.ACTIVE

            # ACTIVE <-> PAUSED
            case (SessionState.ACTIVE, SessionAction.PAUSE):
                return SessionState.PAUSED
            case (SessionState.PAUSED, SessionAction.RESUME):
                return SessionState.ACTIVE
            case (SessionState.PAUSED, SessionAction.TICK):
                return SessionState.PAUSED

            # Completion (idempotent on COMPLETED)
            case (SessionState.ACTIVE | SessionState.PAUSED, SessionAction.COMPLETE):
                return SessionState.COMPLETED
            case (SessionState.COMPLETED, SessionAction.COMPLETE):
                return SessionState.COMPLETED

            # Abandon without scoring
            case (SessionState.ACTIVE | SessionState.PAUSED, SessionAction.EXIT):
                return SessionState.NOT_STARTED

            case _:
                return None
