# ==============================================================================
# ARCHITECTURE: UNIT TEST (CORE LOGIC)
# ------------------------------------------------------------------------------
# GOAL: Verify pure business logic, state transitions, and algorithms.
# CONSTRAINTS:
#   1. EXECUTION: FAST (< 50ms per test).
#   2. I/O: FORBIDDEN. No Database, No Network, No File System.
#   3. MOCKS: Mandatory for Repositories and External Services.
# ==============================================================================
from datetime import datetime

import pytest
from pydantic import ValidationError

from src.ccat.domain.models import (
    Language,
    Level,
    Question,
    QuestionType,
    SessionKind,
    TestConfiguration,
    TestKind,
    TestResult,
    TestSession,
    UserProgress,
    question_type_for_sub_type,
)
from tests.drivers.factories import make_question


def _result(percentage, verbal=(0, 0), quantitative=(0, 0), non_verbal=(0, 0)):
    return TestResult(
        id="r1",
        session_kind=SessionKind.FULL_MOCK,
        language=Language.EN,
        level=Level.LEVEL_12,
        score=0,
        total_questions=10,
        percentage_score=percentage,
        time_taken_seconds=60.0,
        date=datetime(2024, 3, 4),
        verbal_score=verbal[0],
        verbal_total=verbal[1],
        quantitative_score=quantitative[0],
        quantitative_total=quantitative[1],
        non_verbal_score=non_verbal[0],
        non_verbal_total=non_verbal[1],
    )


class TestLevel:
    @pytest.mark.parametrize(
        "level, count, minutes",
        [
            (Level.LEVEL_10, 120, 45),
            (Level.LEVEL_11, 150, 60),
            (Level.LEVEL_12, 176, 75),
        ],
    )
    def test_full_mock_shape(self, level, count, minutes):
        assert level.question_count == count
        assert level.time_limit_minutes == minutes


class TestQuestion:
    def test_needs_two_options(self):
        with pytest.raises(ValidationError):
            Question(
                id="q",
                type=QuestionType.VERBAL,
                sub_type="analogies",
                level=Level.LEVEL_12,
                stem="?",
                options=["only"],
                correct_index=0,
            )

    def test_correct_index_must_be_in_range(self):
        with pytest.raises(ValidationError):
            make_question("q", correct_index=4)

    def test_localized_text_falls_back_to_english(self):
        question = make_question("q")

        assert question.localized_stem(Language.FR) == "Question q"
        assert question.localized_options(Language.FR) == ["A", "B", "C", "D"]

    def test_is_correct(self):
        question = make_question("q", correct_index=2)

        assert question.is_correct(2) is True
        assert question.is_correct(1) is False
        assert question.is_correct(None) is False


class TestConfigurationDefaults:
    def test_missing_count_uses_kind_default(self):
        config = TestConfiguration(test_kind=TestKind.QUICK, level=Level.LEVEL_11)

        assert config.question_count == 25
        assert config.time_limit_minutes == 20

    def test_non_positive_count_uses_default(self):
        config = TestConfiguration(test_kind=TestKind.FULL_MOCK, question_count=0)

        assert config.question_count == 176
        assert config.time_limit_seconds == 75 * 60

    def test_untimed_has_zero_seconds(self):
        config = TestConfiguration(question_count=10, time_limit_minutes=5, is_timed=False)

        assert config.time_limit_seconds == 0
        assert config.display_description() == "10 questions • Untimed"

    def test_empty_type_list_is_rejected(self):
        with pytest.raises(ValidationError):
            TestConfiguration(question_types=[])

    def test_covers_all_types(self):
        assert TestConfiguration().covers_all_types is True
        assert (
            TestConfiguration(question_types=[QuestionType.VERBAL]).covers_all_types
            is False
        )


class TestSessionProperties:
    def test_navigation_helpers(self):
        session = TestSession(
            questions=[make_question("a"), make_question("b")],
            kind=SessionKind.PRACTICE,
        )

        assert session.question_number == 1
        assert session.can_go_back is False
        session.current_index = 1
        assert session.is_last_question is True
        assert session.can_go_back is True
        assert session.progress == 1.0

    def test_full_mock_never_goes_back(self):
        session = TestSession(
            questions=[make_question("a"), make_question("b")],
            kind=SessionKind.FULL_MOCK,
            current_index=1,
        )

        assert session.can_go_back is False

    def test_formatted_time(self):
        session = TestSession(
            questions=[make_question("a")],
            kind=SessionKind.FULL_MOCK,
            time_limit_seconds=600,
            time_remaining=125,
        )

        assert session.formatted_time_remaining() == "2:05"

    def test_snapshot_round_trips_through_json(self):
        session = TestSession(
            questions=[make_question("a")], kind=SessionKind.VERBAL_ONLY, answers={"a": 1}
        )

        restored = TestSession.model_validate_json(session.model_dump_json())

        assert restored == session


class TestResultDerivations:
    def test_percentile_is_capped(self):
        assert _result(100.0).percentile_rank == 99.0
        assert _result(42.5).percentile_rank == 42.5

    @pytest.mark.parametrize("percentage, gifted", [(85.0, True), (84.9, False)])
    def test_gifted_threshold(self, percentage, gifted):
        assert _result(percentage).gifted_range is gifted

    def test_category_percentage_skips_empty_categories(self):
        result = _result(50.0, verbal=(3, 4), quantitative=(0, 0))

        assert result.category_percentage(QuestionType.VERBAL) == 75.0
        assert result.category_percentage(QuestionType.QUANTITATIVE) is None


class TestUserProgress:
    def test_weekly_progress_is_capped(self):
        progress = UserProgress(questions_this_week=80, weekly_goal=50)

        assert progress.weekly_progress == 1.0

    def test_accuracy_without_answers(self):
        assert UserProgress().accuracy == 0.0


def test_sub_type_maps_to_its_type():
    assert question_type_for_sub_type("equation_building") is QuestionType.QUANTITATIVE
    assert question_type_for_sub_type("analogies") is QuestionType.VERBAL
    assert question_type_for_sub_type("unknown_tag") is QuestionType.NON_VERBAL
