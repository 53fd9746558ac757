# ==============================================================================
# ARCHITECTURE: FUNCTIONAL TEST (USER FLOWS)
# ------------------------------------------------------------------------------
# GOAL: Verify End-to-End exam scenarios via ExamService.
# CONSTRAINTS:
#   1. SERVICE: Real domain objects wired like the composition root.
#   2. I/O: In-memory key-value store, fake ticker, fixed clock and seed.
# ==============================================================================
import random
import threading
from datetime import date

import pytest

from src.ccat.adapters.content_providers import GeneratedContentProvider
from src.ccat.adapters.key_value_store import InMemoryKeyValueStore
from src.ccat.adapters.persistence import PersistenceGateway
from src.ccat.application.service import ExamService
from src.ccat.domain.errors import ConfigurationError
from src.ccat.domain.models import (
    Level,
    PracticeResult,
    QuestionType,
    SessionKind,
    Severity,
    TestConfiguration,
    TestKind,
    TestResult,
)
from src.ccat.domain.pool_selector import PoolSelector
from src.ccat.domain.question_bank import FallbackTier, QuestionBank
from src.ccat.domain.session_engine import SessionEngine
from src.fsm import SessionState
from tests.drivers.factories import FakeClock, FakeTicker
from tests.drivers.session_driver import SessionDriver

TODAY = date(2024, 3, 4)


@pytest.fixture(scope="module")
def bank():
    return QuestionBank(GeneratedContentProvider(min_per_type=0))


@pytest.fixture
def store():
    return InMemoryKeyValueStore()


def build_service(bank, store, ticker=None):
    gateway = PersistenceGateway(store)
    engine = SessionEngine(store=gateway, ticker=ticker or FakeTicker(), clock=FakeClock())
    return ExamService(
        PoolSelector(bank, random.Random(3)), engine, gateway, today=lambda: TODAY
    )


@pytest.fixture
def service(bank, store):
    return build_service(bank, store)


def test_full_mock_answered_perfectly(service):
    # Arrange
    config = TestConfiguration(test_kind=TestKind.FULL_MOCK, level=Level.LEVEL_12)

    # Act
    session = service.start_configured_test(config)
    SessionDriver(service.engine).answer_all_correctly()

    # Assert
    result = service.engine.result
    assert session.total_questions == 176
    assert session.time_limit_seconds == 75 * 60
    assert isinstance(result, TestResult)
    assert result.score == 176
    assert result.percentage_score == 100.0
    assert result.gifted_range is True
    assert service.progress.total_tests_taken == 1


def test_practice_with_skips(service):
    # Arrange
    service.start_practice(QuestionType.VERBAL, count=5)
    driver = SessionDriver(service.engine)

    # Act: answer only the first question, skip the rest
    driver.answer_correctly()
    result = service.finish()

    # Assert
    assert isinstance(result, PracticeResult)
    assert result.score == 1
    assert result.total_questions == 5
    assert len(service.session.answers) == 1
    assert service.session.kind is SessionKind.VERBAL_ONLY


def test_unknown_sub_type_still_gives_questions(bank):
    lookup = bank.lookup(Level.LEVEL_12, QuestionType.VERBAL, "nonexistent_tag")

    assert lookup.questions
    assert lookup.tier is FallbackTier.NO_SUB_TYPE


def test_timed_practice_auto_submits_and_records(bank, store):
    ticker = FakeTicker()
    service = build_service(bank, store, ticker)

    service.start_practice(QuestionType.QUANTITATIVE, count=2, timed=True)
    ticker.fire(120)

    assert service.engine.state is SessionState.COMPLETED
    assert len(service.progress.practice_history) == 1
    assert service.progress.last_active_date == TODAY


def test_manual_submit_setting_reaches_engine(bank, store):
    ticker = FakeTicker()
    service = build_service(bank, store, ticker)
    service.update_settings(auto_submit_on_timeout=False)

    service.start_practice(count=1, timed=True)
    ticker.fire(60)

    assert service.engine.is_awaiting_submit is True
    assert service.engine.state is SessionState.ACTIVE
    assert service.progress.practice_history == []


def test_resume_after_restart(bank, store):
    first = build_service(bank, store)
    session = first.start_practice(QuestionType.NON_VERBAL, count=4)
    first.answer(1)
    first.next_question()

    second = build_service(bank, store)
    restored = second.resume_saved_session()

    assert restored.id == session.id
    assert restored.current_index == 1
    assert restored.answers == {session.questions[0].id: 1}


def test_nothing_to_resume(service):
    assert service.resume_saved_session() is None


def test_exit_records_nothing(service):
    service.start_practice(count=3)
    service.answer(0)

    service.exit()

    assert service.progress.practice_history == []
    assert service.resume_saved_session() is None


def test_weak_areas_after_poor_practice(service):
    service.start_practice(QuestionType.VERBAL, count=3)
    SessionDriver(service.engine).answer_wrong().next().answer_wrong().next()
    service.finish()

    areas = service.weak_areas()

    assert areas[0].question_type is QuestionType.VERBAL
    assert areas[0].severity is Severity.CRITICAL


def test_progress_survives_restart(bank, store):
    first = build_service(bank, store)
    first.start_practice(count=2)
    first.finish()

    second = build_service(bank, store)

    assert len(second.progress.practice_history) == 1


def test_settings_and_goal_are_persisted(bank, store):
    first = build_service(bank, store)
    first.update_settings(selected_level=Level.LEVEL_10)
    first.update_weekly_goal(120)

    second = build_service(bank, store)

    assert second.settings.selected_level is Level.LEVEL_10
    assert second.progress.weekly_goal == 120


def test_practice_defaults_to_selected_level(service):
    service.update_settings(selected_level=Level.LEVEL_11)

    session = service.start_practice(count=5)

    assert session.level is Level.LEVEL_11
    assert all(q.level is Level.LEVEL_11 for q in session.questions)


def test_reset_progress_keeps_goal(service):
    service.update_weekly_goal(80)
    service.start_practice(count=1)
    service.finish()

    service.reset_progress()

    assert service.progress.practice_history == []
    assert service.progress.weekly_goal == 80


def test_invalid_requests_are_rejected(service):
    with pytest.raises(ConfigurationError):
        service.start_practice(count=0)
    with pytest.raises(ConfigurationError):
        service.update_weekly_goal(0)


def test_full_mock_shortcut_uses_level_shape(service):
    session = service.start_full_mock(Level.LEVEL_10)

    assert session.total_questions == 120
    assert session.time_limit_seconds == 45 * 60
    assert session.kind is SessionKind.FULL_MOCK
    assert service.recent_results() == []


def test_goal_update_waits_for_auto_submit_recording(bank, store):
    # Arrange: the ticker thread stalls while saving the auto-submitted result
    ticker = FakeTicker()
    service = build_service(bank, store, ticker)
    save_progress = service.gateway.save_progress
    saving = threading.Event()
    release = threading.Event()

    def slow_save(progress):
        if not saving.is_set():
            saving.set()
            release.wait(timeout=5)
        return save_progress(progress)

    service.gateway.save_progress = slow_save
    service.start_practice(count=1, timed=True)

    # Act
    timer = threading.Thread(target=ticker.fire, args=(60,))
    timer.start()
    assert saving.wait(timeout=5)
    goal = threading.Thread(target=service.update_weekly_goal, args=(150,))
    goal.start()
    goal.join(timeout=0.2)
    blocked = goal.is_alive()
    release.set()
    timer.join(timeout=5)
    goal.join(timeout=5)

    # Assert
    assert blocked is True
    assert len(service.progress.practice_history) == 1
    assert service.progress.weekly_goal == 150
    stored = PersistenceGateway(store).load_progress()
    assert len(stored.practice_history) == 1
    assert stored.weekly_goal == 150
