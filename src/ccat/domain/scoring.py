"""
Result derivation for completed sessions.

Every function here is pure: the same completed session always yields an
equal result, which is what makes repeated completion idempotent.
"""

from collections import Counter
from datetime import datetime

from src.ccat.domain.errors import InvalidOperationError
from src.ccat.domain.models import (
    PracticeResult,
    QuestionType,
    ReviewData,
    ReviewItem,
    TestResult,
    TestSession,
)


def percentage(score: int, total: int) -> float:
    if total == 0:
        return 0.0
    return score / total * 100


def raw_score(session: TestSession) -> int:
    """Counts list positions, so a padded repeat answered correctly counts twice."""
    return sum(1 for q in session.questions if q.is_correct(session.answers.get(q.id)))


def category_counts(
    session: TestSession,
) -> dict[QuestionType, tuple[int, int]]:
    """(correct, total) per question type, zero totals included."""
    counts = {question_type: (0, 0) for question_type in QuestionType}
    for q in session.questions:
        correct, total = counts[q.type]
        hit = 1 if q.is_correct(session.answers.get(q.id)) else 0
        counts[q.type] = (correct + hit, total + 1)
    return counts


def _require_completed(session: TestSession, operation: str) -> datetime:
    """Returns the end time of a completed session."""
    end_time = session.end_time
    if not session.is_completed or end_time is None:
        raise InvalidOperationError(
            operation, session.state.value, "session must be completed first"
        )
    return end_time


def _elapsed_seconds(session: TestSession, end_time: datetime) -> float:
    return max((end_time - session.start_time).total_seconds(), 0.0)


def score_test(session: TestSession) -> TestResult:
    end_time = _require_completed(session, "score")

    counts = category_counts(session)
    score = sum(correct for correct, _ in counts.values())
    verbal = counts[QuestionType.VERBAL]
    quantitative = counts[QuestionType.QUANTITATIVE]
    non_verbal = counts[QuestionType.NON_VERBAL]

    return TestResult(
        id=session.id,
        session_kind=session.kind,
        language=session.language,
        level=session.level,
        score=score,
        total_questions=session.total_questions,
        percentage_score=percentage(score, session.total_questions),
        time_taken_seconds=_elapsed_seconds(session, end_time),
        date=end_time,
        verbal_score=verbal[0],
        verbal_total=verbal[1],
        quantitative_score=quantitative[0],
        quantitative_total=quantitative[1],
        non_verbal_score=non_verbal[0],
        non_verbal_total=non_verbal[1],
        answers=dict(session.answers),
    )


def _dominant_type(session: TestSession) -> QuestionType:
    if session.practice_type is not None:
        return session.practice_type
    if session.kind.restricted_type is not None:
        return session.kind.restricted_type
    if not session.questions:
        return QuestionType.VERBAL
    tally = Counter(q.type for q in session.questions)
    # Ties resolve in QuestionType declaration order
    return max(QuestionType, key=lambda t: tally.get(t, 0))


def score_practice(session: TestSession) -> PracticeResult:
    end_time = _require_completed(session, "score")

    score = raw_score(session)
    return PracticeResult(
        id=session.id,
        question_type=_dominant_type(session),
        sub_type=session.practice_sub_type,
        difficulty=session.practice_difficulty,
        language=session.language,
        level=session.level,
        score=score,
        total_questions=session.total_questions,
        percentage_score=percentage(score, session.total_questions),
        time_spent_seconds=_elapsed_seconds(session, end_time),
        date=end_time,
    )


def score_session(session: TestSession) -> TestResult | PracticeResult:
    if session.kind.is_practice:
        return score_practice(session)
    return score_test(session)


def build_review(session: TestSession) -> ReviewData:
    items = []
    correct = incorrect = skipped = 0

    for index, question in enumerate(session.questions):
        answer = session.answers.get(question.id)
        is_correct = question.is_correct(answer)
        was_skipped = answer is None

        if was_skipped:
            skipped += 1
        elif is_correct:
            correct += 1
        else:
            incorrect += 1

        items.append(
            ReviewItem(
                question_index=index,
                question=question,
                user_answer=answer,
                is_correct=is_correct,
                was_skipped=was_skipped,
            )
        )

    return ReviewData(
        items=items,
        correct_count=correct,
        incorrect_count=incorrect,
        skipped_count=skipped,
        total_count=len(session.questions),
    )
