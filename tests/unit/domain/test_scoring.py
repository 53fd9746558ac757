# ==============================================================================
# ARCHITECTURE: UNIT TEST (CORE LOGIC)
# ------------------------------------------------------------------------------
# GOAL: Verify result derivation from completed sessions.
# CONSTRAINTS:
#   1. EXECUTION: FAST (< 50ms per test).
#   2. I/O: FORBIDDEN. Sessions are built in memory.
# ==============================================================================
from datetime import datetime, timedelta

import pytest

from src.ccat.domain import scoring
from src.ccat.domain.errors import InvalidOperationError
from src.ccat.domain.models import (
    Difficulty,
    PracticeResult,
    QuestionType,
    SessionKind,
    TestResult,
    TestSession,
)
from src.fsm import SessionState
from tests.drivers.factories import make_question

START = datetime(2024, 3, 4, 9, 0, 0)


def _completed(questions, answers, kind=SessionKind.FULL_MOCK, **extra):
    return TestSession(
        questions=questions,
        kind=kind,
        answers=answers,
        start_time=START,
        end_time=START + timedelta(minutes=5),
        state=SessionState.COMPLETED,
        **extra,
    )


def _mixed_questions():
    return [
        make_question("v1", QuestionType.VERBAL, correct_index=0),
        make_question("v2", QuestionType.VERBAL, correct_index=1),
        make_question("q1", QuestionType.QUANTITATIVE, "number_analogies", correct_index=2),
        make_question("n1", QuestionType.NON_VERBAL, "figure_series", correct_index=3),
    ]


def test_percentage_of_empty_session_is_zero():
    assert scoring.percentage(0, 0) == 0.0


def test_scores_full_test_with_breakdown():
    # Arrange: v1 right, v2 wrong, q1 right, n1 skipped
    session = _completed(_mixed_questions(), {"v1": 0, "v2": 0, "q1": 2})

    # Act
    result = scoring.score_test(session)

    # Assert
    assert isinstance(result, TestResult)
    assert result.score == 2
    assert result.total_questions == 4
    assert result.percentage_score == 50.0
    assert result.category_breakdown(QuestionType.VERBAL) == (1, 2)
    assert result.category_breakdown(QuestionType.QUANTITATIVE) == (1, 1)
    assert result.category_breakdown(QuestionType.NON_VERBAL) == (0, 1)
    assert result.time_taken_seconds == 300.0


def test_score_never_exceeds_total():
    questions = _mixed_questions()
    answers = {q.id: q.correct_index for q in questions}

    result = scoring.score_test(_completed(questions, answers))

    assert 0 <= result.score <= result.total_questions
    assert 0.0 <= result.percentage_score <= 100.0


def test_scoring_is_deterministic():
    session = _completed(_mixed_questions(), {"v1": 0})

    assert scoring.score_session(session) == scoring.score_session(session)


def test_padded_repeat_counts_each_position():
    question = make_question("v1", correct_index=1)
    session = _completed([question, question], {"v1": 1})

    assert scoring.raw_score(session) == 2


def test_practice_result_for_practice_kinds():
    session = _completed(
        _mixed_questions(),
        {"v1": 0},
        kind=SessionKind.VERBAL_ONLY,
        practice_sub_type="analogies",
        practice_difficulty=Difficulty.HARD,
    )

    result = scoring.score_session(session)

    assert isinstance(result, PracticeResult)
    assert result.question_type is QuestionType.VERBAL
    assert result.sub_type == "analogies"
    assert result.difficulty is Difficulty.HARD
    assert result.percentage_score == 25.0


def test_untyped_practice_takes_most_common_type():
    session = _completed(_mixed_questions(), {}, kind=SessionKind.PRACTICE)

    assert scoring.score_practice(session).question_type is QuestionType.VERBAL


def test_unfinished_session_cannot_be_scored():
    session = TestSession(questions=_mixed_questions(), kind=SessionKind.FULL_MOCK)

    with pytest.raises(InvalidOperationError):
        scoring.score_session(session)


@pytest.mark.parametrize("kind", [SessionKind.FULL_MOCK, SessionKind.PRACTICE])
def test_completed_session_without_end_time_is_refused(kind):
    session = _completed(_mixed_questions(), {}, kind=kind)
    session.end_time = None

    with pytest.raises(InvalidOperationError):
        scoring.score_session(session)


def test_review_counts_and_flags():
    session = _completed(_mixed_questions(), {"v1": 0, "v2": 0, "q1": 2})

    review = scoring.build_review(session)

    assert (review.correct_count, review.incorrect_count, review.skipped_count) == (
        2,
        1,
        1,
    )
    assert review.items[3].was_skipped is True
    assert review.items[1].is_correct is False
    assert review.items[0].display_question_number == 1
    assert review.accuracy == pytest.approx(200 / 3)
