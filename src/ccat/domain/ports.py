from abc import ABC, abstractmethod
from collections.abc import Callable

from src.ccat.domain.models import (
    PracticeResult,
    Question,
    TestResult,
    TestSession,
    TimeWarningLevel,
)


class IContentProvider(ABC):
    """Supplies the static question corpus. Called once per QuestionBank."""

    @abstractmethod
    def load_questions(self) -> list[Question]:
        pass


class IKeyValueStore(ABC):
    """Blob storage for settings, progress and the in-flight session."""

    @abstractmethod
    def save(self, key: str, value: str) -> None:
        pass

    @abstractmethod
    def load(self, key: str) -> str | None:
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        pass


class ISessionStore(ABC):
    """Snapshot storage for the single in-flight session."""

    @abstractmethod
    def save_session(self, session: TestSession) -> None:
        pass

    @abstractmethod
    def load_session(self) -> TestSession | None:
        pass

    @abstractmethod
    def clear_session(self) -> None:
        pass


class ITicker(ABC):
    """
    Periodic timer source. `start` replaces any running schedule;
    `stop` must prevent further callbacks from being scheduled.
    """

    @abstractmethod
    def start(self, callback: Callable[[], None]) -> None:
        pass

    @abstractmethod
    def stop(self) -> None:
        pass


class SessionObserver:
    """
    Receives engine events (presentation refresh, haptics, notifications).
    Override what you need; failures never affect the engine.
    """

    def on_state_changed(self, session: TestSession) -> None:
        pass

    def on_answer_recorded(
        self, session: TestSession, question_id: str, option_index: int
    ) -> None:
        pass

    def on_time_warning(self, session: TestSession, level: TimeWarningLevel) -> None:
        pass

    def on_completed(
        self, session: TestSession, result: TestResult | PracticeResult
    ) -> None:
        pass
