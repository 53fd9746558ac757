from collections.abc import Sequence

from src.config import ExamConfig
from src.ccat.domain.models import (
    Difficulty,
    PracticeResult,
    QuestionType,
    Severity,
    TestResult,
    WeakArea,
    question_type_for_sub_type,
)

_TYPE_DESCRIPTIONS = {
    QuestionType.VERBAL: "Practice vocabulary, word relationships and sentence logic.",
    QuestionType.QUANTITATIVE: "Review number patterns, ratios and building equations.",
    QuestionType.NON_VERBAL: "Work on spotting rotations, sequences and shape rules.",
}

_SUB_TYPE_DESCRIPTIONS = {
    "analogies": "Identify the relationship in the first pair before looking at options.",
    "sentence_completion": "Read the whole sentence and look for contrast or cause words.",
    "classification": "Find the property every item but one has in common.",
    "number_analogies": "Check whether each pair is linked by adding or multiplying.",
    "quantitative_analogies": "Compare how the quantities change from one side to the other.",
    "equation_building": "Try the operations in order and check the total each time.",
}

_GENERAL_DESCRIPTION = "Keep practising this question style to build accuracy."


def severity_for(score: float) -> Severity:
    if score < ExamConfig.CRITICAL_BELOW:
        return Severity.CRITICAL
    if score < ExamConfig.MODERATE_BELOW:
        return Severity.MODERATE
    return Severity.MINOR


def _mean(scores: list[float]) -> float:
    return sum(scores) / len(scores)


def format_sub_type(sub_type: str) -> str:
    return sub_type.replace("_", " ").title()


def _type_area(
    question_type: QuestionType,
    test_history: Sequence[TestResult],
    practice_history: Sequence[PracticeResult],
) -> WeakArea | None:
    scores: list[float] = []
    for test in test_history:
        category_score = test.category_percentage(question_type)
        if category_score is not None:
            scores.append(category_score)
    for practice in practice_history:
        if practice.question_type is question_type:
            scores.append(practice.percentage_score)

    if not scores:
        return None
    average = _mean(scores)
    if average >= ExamConfig.TYPE_WEAK_CUTOFF:
        return None

    return WeakArea(
        question_type=question_type,
        title=question_type.label,
        description=_TYPE_DESCRIPTIONS[question_type],
        average_score=average,
        total_attempts=len(scores),
        severity=severity_for(average),
    )


def _sub_type_areas(practice_history: Sequence[PracticeResult]) -> list[WeakArea]:
    by_sub_type: dict[str, list[float]] = {}
    for practice in practice_history:
        if practice.sub_type:
            by_sub_type.setdefault(practice.sub_type, []).append(practice.percentage_score)

    areas = []
    for sub_type, scores in by_sub_type.items():
        if len(scores) < ExamConfig.SUB_TYPE_MIN_ATTEMPTS:
            continue
        average = _mean(scores)
        if average >= ExamConfig.SUB_TYPE_WEAK_CUTOFF:
            continue
        areas.append(
            WeakArea(
                question_type=question_type_for_sub_type(sub_type),
                sub_type=sub_type,
                title=format_sub_type(sub_type),
                description=_SUB_TYPE_DESCRIPTIONS.get(sub_type, _GENERAL_DESCRIPTION),
                average_score=average,
                total_attempts=len(scores),
                severity=severity_for(average),
            )
        )
    return areas


def _difficulty_areas(practice_history: Sequence[PracticeResult]) -> list[WeakArea]:
    by_difficulty: dict[Difficulty, list[float]] = {}
    for practice in practice_history:
        if practice.difficulty is not None:
            by_difficulty.setdefault(practice.difficulty, []).append(
                practice.percentage_score
            )

    areas = []
    for difficulty in Difficulty:
        scores = by_difficulty.get(difficulty, [])
        if len(scores) < ExamConfig.DIFFICULTY_MIN_ATTEMPTS:
            continue
        average = _mean(scores)
        if average >= ExamConfig.DIFFICULTY_WEAK_CUTOFF:
            continue
        areas.append(
            WeakArea(
                question_type=None,
                difficulty=difficulty,
                title=f"{difficulty.label} Difficulty Questions",
                description=(
                    f"Scores drop on {difficulty.label.lower()} questions. "
                    "Slow down and eliminate options one at a time."
                ),
                average_score=average,
                total_attempts=len(scores),
                severity=severity_for(average),
            )
        )
    return areas


def analyze(
    test_history: Sequence[TestResult], practice_history: Sequence[PracticeResult]
) -> list[WeakArea]:
    """
    Ranks weak areas, most severe first, then lowest average first.

    Per-type averages use the per-category breakdown of full tests plus
    matching practice sessions. Sub-type and difficulty areas come from
    practice history only and need a minimum number of attempts.
    This is an advisory heuristic over small samples.
    """
    areas: list[WeakArea] = []
    for question_type in QuestionType:
        area = _type_area(question_type, test_history, practice_history)
        if area is not None:
            areas.append(area)

    areas.extend(_sub_type_areas(practice_history))
    areas.extend(_difficulty_areas(practice_history))

    # sorted() is stable, so ties keep the order above
    return sorted(areas, key=lambda a: (a.severity.rank, a.average_score))
