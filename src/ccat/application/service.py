import threading
from collections.abc import Callable
from datetime import date
from typing import Any

from src.config import ExamConfig
from src.ccat.adapters.persistence import PersistenceGateway
from src.ccat.domain import weak_areas
from src.ccat.domain.errors import ConfigurationError
from src.ccat.domain.models import (
    AppSettings,
    Difficulty,
    Language,
    Level,
    PracticeResult,
    QuestionType,
    ReviewData,
    SessionKind,
    TestConfiguration,
    TestResult,
    TestSession,
    UserProgress,
    WeakArea,
)
from src.ccat.domain.pool_selector import PoolSelector
from src.ccat.domain.ports import SessionObserver
from src.ccat.domain.progress_tracker import ProgressTracker
from src.ccat.domain.session_engine import SessionEngine, SessionOutcome
from src.shared.telemetry import Telemetry, measure_time


class _ProgressRecorder(SessionObserver):
    """Folds every completed session into progress, including timer auto-submits."""

    def __init__(self, service: "ExamService") -> None:
        self.service = service

    def on_completed(self, session: TestSession, result: SessionOutcome) -> None:
        self.service._record(result)


class ExamService:
    """
    Application facade for one user: picks questions, drives the engine,
    and keeps settings and progress persisted.
    """

    def __init__(
        self,
        selector: PoolSelector,
        engine: SessionEngine,
        gateway: PersistenceGateway,
        tracker: ProgressTracker | None = None,
        today: Callable[[], date] = date.today,
    ) -> None:
        self.selector = selector
        self.engine = engine
        self.gateway = gateway
        self.tracker = tracker or ProgressTracker()
        self.today = today
        self.telemetry = Telemetry("ExamService")
        # Progress is also written from the ticker thread on timed auto-submit
        self._progress_lock = threading.RLock()

        self._settings = gateway.load_settings()
        self._progress = gateway.load_progress()
        self._apply_engine_settings()
        self.engine.add_observer(_ProgressRecorder(self))

    # --- State ---

    @property
    def settings(self) -> AppSettings:
        return self._settings

    @property
    def progress(self) -> UserProgress:
        return self._progress

    @property
    def session(self) -> TestSession | None:
        return self.engine.session

    def recent_results(self) -> list[TestResult]:
        return self._progress.test_history[-ExamConfig.RECENT_HISTORY_SIZE :][::-1]

    # --- Starting sessions ---

    @measure_time("start_configured_test")
    def start_configured_test(
        self, config: TestConfiguration, language: Language | None = None
    ) -> TestSession:
        language = language or self._settings.language
        questions = self.selector.select(config, language)
        return self.engine.start(
            questions,
            kind=SessionKind.FULL_MOCK,
            language=language,
            level=config.level,
            time_limit_seconds=config.time_limit_seconds,
        )

    def start_full_mock(self, level: Level | None = None) -> TestSession:
        config = TestConfiguration(level=level or self._settings.selected_level)
        return self.start_configured_test(config)

    @measure_time("start_practice")
    def start_practice(
        self,
        question_type: QuestionType | None = None,
        count: int = ExamConfig.DEFAULT_PRACTICE_COUNT,
        sub_type: str | None = None,
        difficulty: Difficulty | None = None,
        language: Language | None = None,
        level: Level | None = None,
        timed: bool = False,
    ) -> TestSession:
        if count <= 0:
            raise ConfigurationError(f"Practice needs at least one question: {count}")

        language = language or self._settings.language
        level = level or self._settings.selected_level
        types = [question_type] if question_type is not None else None
        questions = self.selector.draw(level, count, types, sub_type, difficulty)

        kind = (
            SessionKind.for_type(question_type)
            if question_type is not None
            else SessionKind.PRACTICE
        )
        time_limit = len(questions) * ExamConfig.PRACTICE_SECONDS_PER_QUESTION if timed else 0

        return self.engine.start(
            questions,
            kind=kind,
            language=language,
            level=level,
            time_limit_seconds=time_limit,
            practice_type=question_type,
            practice_sub_type=sub_type,
            practice_difficulty=difficulty,
        )

    def resume_saved_session(self) -> TestSession | None:
        snapshot = self.gateway.load_session()
        if snapshot is None:
            return None
        if snapshot.is_completed:
            self.gateway.clear_session()
            return None
        try:
            return self.engine.resume_from(snapshot)
        except ConfigurationError as e:
            self.telemetry.log_error("Discarding unusable snapshot", e)
            self.gateway.clear_session()
            return None

    # --- In-session passthroughs ---

    def answer(self, option_index: int) -> None:
        self.engine.answer_current(option_index)

    def next_question(self) -> SessionOutcome | None:
        return self.engine.advance()

    def previous_question(self) -> None:
        self.engine.retreat()

    def pause(self) -> None:
        self.engine.pause()

    def resume(self) -> None:
        self.engine.resume()

    def finish(self) -> SessionOutcome:
        return self.engine.complete()

    def exit(self) -> None:
        self.engine.exit()

    def review(self) -> ReviewData:
        return self.engine.review()

    # --- Progress & Settings ---

    def weak_areas(self) -> list[WeakArea]:
        return weak_areas.analyze(
            self._progress.test_history, self._progress.practice_history
        )

    def update_settings(self, **changes: Any) -> AppSettings:
        self._settings = AppSettings.model_validate(
            {**self._settings.model_dump(), **changes}
        )
        self._apply_engine_settings()
        self.gateway.save_settings(self._settings)
        self.telemetry.log_info("Settings updated", fields=sorted(changes))
        return self._settings

    def update_weekly_goal(self, goal: int) -> None:
        if goal <= 0:
            raise ConfigurationError(f"Weekly goal must be positive: {goal}")
        with self._progress_lock:
            self._progress.weekly_goal = goal
            self.gateway.save_progress(self._progress)

    def reset_progress(self) -> None:
        with self._progress_lock:
            self._progress = UserProgress(weekly_goal=self._progress.weekly_goal)
            self.gateway.save_progress(self._progress)
        self.telemetry.log_info("Progress reset")

    # --- Internals ---

    def _apply_engine_settings(self) -> None:
        self.engine.auto_submit_on_timeout = self._settings.auto_submit_on_timeout
        self.engine.timer_warnings = self._settings.timer_warnings

    def _record(self, result: SessionOutcome) -> None:
        with self._progress_lock:
            if isinstance(result, PracticeResult):
                self.tracker.record_practice(self._progress, result, self.today())
            else:
                self.tracker.record_test(self._progress, result, self.today())
            self.gateway.save_progress(self._progress)
