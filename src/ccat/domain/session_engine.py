import threading
from collections.abc import Callable, Iterable
from datetime import datetime
from typing import Any

from src.ccat.domain import scoring
from src.ccat.domain.errors import ConfigurationError, InvalidOperationError
from src.ccat.domain.models import (
    Difficulty,
    Language,
    Level,
    PracticeResult,
    Question,
    QuestionType,
    ReviewData,
    SessionKind,
    TestResult,
    TestSession,
    TimeWarningLevel,
)
from src.ccat.domain.ports import ISessionStore, ITicker, SessionObserver
from src.config import ExamConfig
from src.fsm import SessionAction, SessionState, SessionStateMachine
from src.shared.telemetry import Telemetry, measure_time

SessionOutcome = TestResult | PracticeResult


def warning_level_for(remaining: int, limit: int) -> TimeWarningLevel:
    if limit <= 0:
        return TimeWarningLevel.NORMAL
    fraction = remaining / limit
    if fraction <= ExamConfig.CRITICAL_FRACTION:
        return TimeWarningLevel.CRITICAL
    if fraction <= ExamConfig.WARNING_FRACTION:
        return TimeWarningLevel.WARNING
    return TimeWarningLevel.NORMAL


class SessionEngine:
    """
    Owns the single in-flight exam session.

    Every public method runs under one re-entrant lock, so user actions and
    timer ticks never interleave. Each mutation is followed by a synchronous
    snapshot save; completion and exit remove the snapshot.

    Timer ticks arrive through `ITicker`. Each ticker start is tagged with a
    generation number, and callbacks from an older generation (or arriving
    after the session left ACTIVE) are dropped.
    """

    def __init__(
        self,
        store: ISessionStore | None = None,
        observers: Iterable[SessionObserver] = (),
        ticker: ITicker | None = None,
        clock: Callable[[], datetime] = datetime.now,
        auto_submit_on_timeout: bool = True,
        timer_warnings: bool = True,
    ) -> None:
        self.store = store
        self.observers = list(observers)
        self.ticker = ticker
        self.clock = clock
        self.auto_submit_on_timeout = auto_submit_on_timeout
        self.timer_warnings = timer_warnings
        self.telemetry = Telemetry("SessionEngine")

        self._lock = threading.RLock()
        self._fsm = SessionStateMachine()
        self._session: TestSession | None = None
        self._result: SessionOutcome | None = None
        self._tick_generation = 0
        self._warning_level = TimeWarningLevel.NORMAL

    # --- Read accessors ---

    @property
    def state(self) -> SessionState:
        return self._fsm.current_state

    @property
    def session(self) -> TestSession | None:
        return self._session

    @property
    def result(self) -> SessionOutcome | None:
        return self._result

    @property
    def current_question(self) -> Question | None:
        return self._session.current_question if self._session else None

    @property
    def selected_answer(self) -> int | None:
        return self._session.selected_answer if self._session else None

    @property
    def time_remaining(self) -> int:
        return self._session.time_remaining if self._session else 0

    @property
    def is_awaiting_submit(self) -> bool:
        return bool(self._session and self._session.time_expired and not self._session.is_completed)

    @property
    def warning_level(self) -> TimeWarningLevel:
        return self._warning_level

    def add_observer(self, observer: SessionObserver) -> None:
        self.observers.append(observer)

    def review(self) -> ReviewData:
        with self._lock:
            session = self._require_session("review")
            return scoring.build_review(session)

    # --- Lifecycle ---

    @measure_time("session_start")
    def start(
        self,
        questions: list[Question],
        kind: SessionKind,
        language: Language = Language.EN,
        level: Level = Level.LEVEL_12,
        time_limit_seconds: int = 0,
        practice_type: QuestionType | None = None,
        practice_sub_type: str | None = None,
        practice_difficulty: Difficulty | None = None,
    ) -> TestSession:
        if not questions:
            raise ConfigurationError("Cannot start a session without questions")
        if time_limit_seconds < 0:
            raise ConfigurationError(f"Negative time limit: {time_limit_seconds}")

        with self._lock:
            if self._session is not None and self.state in (
                SessionState.ACTIVE,
                SessionState.PAUSED,
            ):
                self.telemetry.log_info("Superseding session", old_id=self._session.id)
            self._stop_timer()

            self._fsm.transition(SessionAction.START)
            self._session = TestSession(
                questions=list(questions),
                kind=kind,
                language=language,
                level=level,
                start_time=self.clock(),
                time_limit_seconds=time_limit_seconds,
                time_remaining=time_limit_seconds,
                state=SessionState.ACTIVE,
                practice_type=practice_type,
                practice_sub_type=practice_sub_type,
                practice_difficulty=practice_difficulty,
            )
            self._result = None
            self._warning_level = TimeWarningLevel.NORMAL

            Telemetry.start_trace(self._session.id[:8])
            self.telemetry.log_info(
                "Session started",
                kind=kind.value,
                questions=len(questions),
                time_limit=time_limit_seconds,
            )
            self._persist()
            self._notify("on_state_changed", self._session)
            self._start_timer_if_needed()
            return self._session

    def resume_from(self, snapshot: TestSession) -> TestSession:
        """Loads a persisted, unfinished session (e.g. after a restart)."""
        if snapshot.is_completed:
            raise InvalidOperationError(
                "resume_from", snapshot.state.value, "snapshot is already completed"
            )
        if not snapshot.questions or not (
            0 <= snapshot.current_index < len(snapshot.questions)
        ):
            raise ConfigurationError("Snapshot has an invalid question index")

        with self._lock:
            self._stop_timer()
            restored_state = (
                SessionState.PAUSED if snapshot.is_paused else SessionState.ACTIVE
            )
            self._fsm = SessionStateMachine(initial_state=restored_state)
            self._session = snapshot
            self._session.state = restored_state
            self._result = None
            self._warning_level = warning_level_for(
                snapshot.time_remaining, snapshot.time_limit_seconds
            )

            Telemetry.start_trace(snapshot.id[:8])
            self.telemetry.log_info(
                "Session restored",
                index=snapshot.current_index,
                answered=len(snapshot.answers),
                state=restored_state.value,
            )
            self._notify("on_state_changed", self._session)
            self._start_timer_if_needed()
            return self._session

    def pause(self) -> None:
        with self._lock:
            self._transition(SessionAction.PAUSE)
            self._stop_timer()
            self._persist()
            self._notify("on_state_changed", self._session)

    def resume(self) -> None:
        with self._lock:
            self._transition(SessionAction.RESUME)
            self._persist()
            self._notify("on_state_changed", self._session)
            self._start_timer_if_needed()

    @measure_time("session_complete")
    def complete(self) -> SessionOutcome:
        """Idempotent: a completed session returns its cached result."""
        with self._lock:
            if self.state is SessionState.COMPLETED and self._result is not None:
                return self._result

            session = self._require_session("complete")
            self._transition(SessionAction.COMPLETE)
            self._stop_timer()
            session.end_time = self.clock()

            result = scoring.score_session(session)
            self._result = result
            self.telemetry.log_info(
                "Session completed",
                score=result.score,
                total=result.total_questions,
                percentage=round(result.percentage_score, 1),
            )
            self.telemetry.count("session_completed")
            self._clear_snapshot()
            self._notify("on_state_changed", session)
            self._notify("on_completed", session, result)
            return result

    def exit(self) -> None:
        """Abandons the session without producing a result."""
        with self._lock:
            session = self._require_session("exit")
            self._transition(SessionAction.EXIT)
            self._stop_timer()
            self._clear_snapshot()
            self._session = None
            self._result = None
            self.telemetry.log_info("Session abandoned", answered=len(session.answers))
            self.telemetry.count("session_abandoned")
            self._notify("on_state_changed", session)

    # --- Answers & Navigation ---

    def select_answer(self, question_id: str, option_index: int) -> None:
        with self._lock:
            self._transition(SessionAction.SELECT_ANSWER)
            session = self._require_session("select_answer")

            question = next((q for q in session.questions if q.id == question_id), None)
            if question is None:
                raise InvalidOperationError(
                    "select_answer", self.state.value, f"unknown question {question_id}"
                )
            if not 0 <= option_index < len(question.options):
                raise InvalidOperationError(
                    "select_answer", self.state.value, f"option {option_index} out of range"
                )

            if session.answers.get(question_id) == option_index:
                return

            session.answers[question_id] = option_index
            self._persist()
            self._notify("on_answer_recorded", session, question_id, option_index)

    def answer_current(self, option_index: int) -> None:
        with self._lock:
            question = self.current_question
            if question is None:
                raise InvalidOperationError("answer_current", self.state.value)
            self.select_answer(question.id, option_index)

    def advance(self) -> SessionOutcome | None:
        """Moves forward; on the last question this completes the session."""
        with self._lock:
            self._transition(SessionAction.NAVIGATE)
            session = self._require_session("advance")

            if session.is_last_question:
                return self.complete()

            session.current_index += 1
            self._persist()
            self._notify("on_state_changed", session)
            return None

    def retreat(self) -> None:
        with self._lock:
            self._transition(SessionAction.NAVIGATE)
            session = self._require_session("retreat")

            if not session.kind.allows_back_navigation:
                raise InvalidOperationError(
                    "retreat", self.state.value, f"{session.kind.value} is forward-only"
                )
            if session.current_index == 0:
                raise InvalidOperationError(
                    "retreat", self.state.value, "already at the first question"
                )

            session.current_index -= 1
            self._persist()
            self._notify("on_state_changed", session)

    def jump_to(self, index: int) -> None:
        with self._lock:
            self._transition(SessionAction.NAVIGATE)
            session = self._require_session("jump_to")

            if not 0 <= index < session.total_questions:
                raise InvalidOperationError(
                    "jump_to", self.state.value, f"index {index} out of range"
                )
            if index < session.current_index and not session.kind.allows_back_navigation:
                raise InvalidOperationError(
                    "jump_to", self.state.value, f"{session.kind.value} is forward-only"
                )
            if index == session.current_index:
                return

            session.current_index = index
            self._persist()
            self._notify("on_state_changed", session)

    # --- Timer ---

    def tick(self) -> SessionOutcome | None:
        """
        Counts one second down. At zero, either completes the session
        (auto-submit) or stops the clock and waits for a manual submit.
        """
        with self._lock:
            self._transition(SessionAction.TICK)
            session = self._require_session("tick")

            if self.state is SessionState.PAUSED:
                return None
            if not session.is_timed or session.time_expired or session.time_remaining <= 0:
                return None

            session.time_remaining -= 1
            self._check_time_warning(session)

            if session.time_remaining > 0:
                self._persist()
                return None

            self.telemetry.log_info(
                "Time expired", auto_submit=self.auto_submit_on_timeout
            )
            if self.auto_submit_on_timeout:
                return self.complete()

            session.time_expired = True
            self._stop_timer()
            self._persist()
            self._notify("on_state_changed", session)
            return None

    def _on_timer(self, generation: int) -> None:
        with self._lock:
            if generation != self._tick_generation or self.state is not SessionState.ACTIVE:
                self.telemetry.log_info("Dropped stale tick", generation=generation)
                return
            self.tick()

    def _start_timer_if_needed(self) -> None:
        session = self._session
        if (
            self.ticker is None
            or session is None
            or self.state is not SessionState.ACTIVE
            or not session.is_timed
            or session.time_expired
        ):
            return
        self._tick_generation += 1
        generation = self._tick_generation
        self.ticker.start(lambda: self._on_timer(generation))

    def _stop_timer(self) -> None:
        self._tick_generation += 1
        if self.ticker is not None:
            self.ticker.stop()

    def _check_time_warning(self, session: TestSession) -> None:
        level = warning_level_for(session.time_remaining, session.time_limit_seconds)
        if level == self._warning_level:
            return
        self._warning_level = level
        if self.timer_warnings and level is not TimeWarningLevel.NORMAL:
            self.telemetry.log_info("Time warning", level=level.value)
            self._notify("on_time_warning", session, level)

    # --- Internals ---

    def _transition(self, action: SessionAction) -> None:
        self._fsm.transition(action)
        if self._session is not None:
            self._session.state = self._fsm.current_state

    def _require_session(self, operation: str) -> TestSession:
        if self._session is None:
            raise InvalidOperationError(operation, self.state.value, "no session loaded")
        return self._session

    def _persist(self) -> None:
        if self.store is None or self._session is None:
            return
        try:
            self.store.save_session(self._session)
        except Exception as e:
            self.telemetry.log_error("Snapshot save failed", e)

    def _clear_snapshot(self) -> None:
        if self.store is None:
            return
        try:
            self.store.clear_session()
        except Exception as e:
            self.telemetry.log_error("Snapshot clear failed", e)

    def _notify(self, event: str, *args: Any) -> None:
        for observer in self.observers:
            try:
                getattr(observer, event)(*args)
            except Exception as e:
                self.telemetry.log_error(
                    f"Observer {observer.__class__.__name__}.{event} failed", e
                )
