import uuid
from datetime import date, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from src.config import ExamConfig
from src.fsm import SessionState


# --- Enums ---
class QuestionType(str, Enum):
    VERBAL = "verbal"
    QUANTITATIVE = "quantitative"
    NON_VERBAL = "non_verbal"

    @property
    def label(self) -> str:
        return self.value.replace("_", "-").title()


class VerbalSubType(str, Enum):
    ANALOGIES = "analogies"
    SENTENCE_COMPLETION = "sentence_completion"
    CLASSIFICATION = "classification"


class QuantitativeSubType(str, Enum):
    NUMBER_ANALOGIES = "number_analogies"
    QUANTITATIVE_ANALOGIES = "quantitative_analogies"
    EQUATION_BUILDING = "equation_building"


class NonVerbalSubType(str, Enum):
    FIGURE_MATRICES = "figure_matrices"
    FIGURE_CLASSIFICATION = "figure_classification"
    FIGURE_SERIES = "figure_series"


SUB_TYPES: dict[QuestionType, list[str]] = {
    QuestionType.VERBAL: [s.value for s in VerbalSubType],
    QuestionType.QUANTITATIVE: [s.value for s in QuantitativeSubType],
    QuestionType.NON_VERBAL: [s.value for s in NonVerbalSubType],
}


def question_type_for_sub_type(sub_type: str) -> QuestionType:
    """Unknown tags are treated as non-verbal."""
    for question_type, tags in SUB_TYPES.items():
        if sub_type in tags:
            return question_type
    return QuestionType.NON_VERBAL


class Difficulty(int, Enum):
    EASY = 1
    MEDIUM = 2
    HARD = 3

    @property
    def label(self) -> str:
        return self.name.title()


class Level(int, Enum):
    LEVEL_10 = 10  # Grades 2-3
    LEVEL_11 = 11  # Grades 4-5
    LEVEL_12 = 12  # Grade 6 (gifted program)

    @property
    def question_count(self) -> int:
        """Length of a full mock test at this level."""
        return {10: 120, 11: 150, 12: 176}[self.value]

    @property
    def time_limit_minutes(self) -> int:
        return {10: 45, 11: 60, 12: 75}[self.value]

    @property
    def default_difficulty(self) -> Difficulty:
        return {
            10: Difficulty.EASY,
            11: Difficulty.MEDIUM,
            12: Difficulty.HARD,
        }[self.value]


class Language(str, Enum):
    EN = "en"
    FR = "fr"


class TestKind(str, Enum):
    QUICK = "quick_assessment"
    STANDARD = "standard_practice"
    FULL_MOCK = "full_mock"
    CUSTOM = "custom_test"

    def question_count_range(self, level: Level) -> tuple[int, int]:
        if self is TestKind.FULL_MOCK:
            return level.question_count, level.question_count
        return _COUNT_RANGES[self][level]

    def default_question_count(self, level: Level) -> int:
        if self in (TestKind.FULL_MOCK, TestKind.CUSTOM):
            return level.question_count
        return _DEFAULT_COUNTS[self][level]

    def time_range(self, level: Level) -> tuple[int, int]:
        """Allowed time limits in minutes."""
        if self is TestKind.FULL_MOCK:
            return level.time_limit_minutes, level.time_limit_minutes
        return _TIME_RANGES[self][level]

    def default_time(self, level: Level) -> int:
        if self in (TestKind.FULL_MOCK, TestKind.CUSTOM):
            return level.time_limit_minutes
        return _DEFAULT_TIMES[self][level]


_L10, _L11, _L12 = Level.LEVEL_10, Level.LEVEL_11, Level.LEVEL_12

_COUNT_RANGES: dict[TestKind, dict[Level, tuple[int, int]]] = {
    TestKind.QUICK: {_L10: (15, 25), _L11: (20, 30), _L12: (25, 35)},
    TestKind.STANDARD: {_L10: (40, 60), _L11: (60, 80), _L12: (80, 100)},
    TestKind.CUSTOM: {_L10: (10, 120), _L11: (10, 150), _L12: (10, 176)},
}
_DEFAULT_COUNTS: dict[TestKind, dict[Level, int]] = {
    TestKind.QUICK: {_L10: 20, _L11: 25, _L12: 30},
    TestKind.STANDARD: {_L10: 50, _L11: 70, _L12: 90},
}
_TIME_RANGES: dict[TestKind, dict[Level, tuple[int, int]]] = {
    TestKind.QUICK: {_L10: (10, 20), _L11: (15, 25), _L12: (20, 30)},
    TestKind.STANDARD: {_L10: (25, 40), _L11: (35, 50), _L12: (45, 60)},
    TestKind.CUSTOM: {_L10: (5, 60), _L11: (5, 75), _L12: (5, 90)},
}
_DEFAULT_TIMES: dict[TestKind, dict[Level, int]] = {
    TestKind.QUICK: {_L10: 15, _L11: 20, _L12: 25},
    TestKind.STANDARD: {_L10: 30, _L11: 40, _L12: 50},
}


class SessionKind(str, Enum):
    FULL_MOCK = "full_mock"
    PRACTICE = "practice"
    VERBAL_ONLY = "verbal_only"
    QUANTITATIVE_ONLY = "quantitative_only"
    NON_VERBAL_ONLY = "non_verbal_only"

    @property
    def allows_back_navigation(self) -> bool:
        return self is not SessionKind.FULL_MOCK

    @property
    def is_practice(self) -> bool:
        return self is not SessionKind.FULL_MOCK

    @property
    def restricted_type(self) -> QuestionType | None:
        return {
            SessionKind.VERBAL_ONLY: QuestionType.VERBAL,
            SessionKind.QUANTITATIVE_ONLY: QuestionType.QUANTITATIVE,
            SessionKind.NON_VERBAL_ONLY: QuestionType.NON_VERBAL,
        }.get(self)

    @classmethod
    def for_type(cls, question_type: QuestionType) -> "SessionKind":
        return {
            QuestionType.VERBAL: cls.VERBAL_ONLY,
            QuestionType.QUANTITATIVE: cls.QUANTITATIVE_ONLY,
            QuestionType.NON_VERBAL: cls.NON_VERBAL_ONLY,
        }[question_type]


class TimeWarningLevel(str, Enum):
    NORMAL = "normal"
    WARNING = "warning"
    CRITICAL = "critical"


class Severity(str, Enum):
    CRITICAL = "critical"  # < 50%
    MODERATE = "moderate"  # 50-70%
    MINOR = "minor"  # 70-80%

    @property
    def rank(self) -> int:
        return {"critical": 0, "moderate": 1, "minor": 2}[self.value]


# --- Entities ---
class Question(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    type: QuestionType
    sub_type: str
    level: Level
    difficulty: Difficulty = Difficulty.MEDIUM
    stem: str
    stem_fr: str = ""
    options: list[str]
    options_fr: list[str] = []
    correct_index: int
    explanation: str = ""
    explanation_fr: str = ""
    image_name: str | None = None

    @model_validator(mode="after")
    def _check_options(self) -> "Question":
        if len(self.options) < 2:
            raise ValueError("a question needs at least two options")
        if not 0 <= self.correct_index < len(self.options):
            raise ValueError(
                f"correct_index {self.correct_index} outside 0..{len(self.options) - 1}"
            )
        if self.options_fr and len(self.options_fr) != len(self.options):
            raise ValueError("localized options must match the option count")
        return self

    def is_correct(self, option_index: int | None) -> bool:
        return option_index is not None and option_index == self.correct_index

    def localized_stem(self, language: Language) -> str:
        if language is Language.FR and self.stem_fr:
            return self.stem_fr
        return self.stem

    def localized_options(self, language: Language) -> list[str]:
        if language is Language.FR and self.options_fr:
            return list(self.options_fr)
        return list(self.options)

    def localized_explanation(self, language: Language) -> str:
        if language is Language.FR and self.explanation_fr:
            return self.explanation_fr
        return self.explanation


class TestConfiguration(BaseModel):
    """
    What the user asked for. Missing or non-positive counts and missing time
    limits are replaced by the test kind's defaults for the level.
    """

    model_config = ConfigDict(frozen=True)

    test_kind: TestKind = TestKind.FULL_MOCK
    level: Level = Level.LEVEL_12
    question_count: int
    time_limit_minutes: int
    is_timed: bool = True
    question_types: list[QuestionType] = Field(
        default_factory=lambda: list(QuestionType)
    )

    @model_validator(mode="before")
    @classmethod
    def _apply_defaults(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        kind = TestKind(data.get("test_kind", TestKind.FULL_MOCK))
        level = Level(data.get("level", Level.LEVEL_12))

        count = data.get("question_count")
        if count is None or count <= 0:
            data["question_count"] = kind.default_question_count(level)
        if data.get("time_limit_minutes") is None:
            data["time_limit_minutes"] = kind.default_time(level)
        return data

    @model_validator(mode="after")
    def _check_types(self) -> "TestConfiguration":
        if not self.question_types:
            raise ValueError("at least one question type must be selected")
        if self.time_limit_minutes < 0:
            raise ValueError("time limit cannot be negative")
        return self

    @property
    def time_limit_seconds(self) -> int:
        return self.time_limit_minutes * 60 if self.is_timed else 0

    @property
    def covers_all_types(self) -> bool:
        return set(self.question_types) == set(QuestionType)

    def display_description(self) -> str:
        time_text = f"{self.time_limit_minutes} minutes" if self.is_timed else "Untimed"
        return f"{self.question_count} questions • {time_text}"


class TestSession(BaseModel):
    """
    Mutable runtime state of one exam. Only SessionEngine mutates it.
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    questions: list[Question]
    kind: SessionKind
    language: Language = Language.EN
    level: Level = Level.LEVEL_12
    start_time: datetime = Field(default_factory=datetime.now)
    end_time: datetime | None = None
    current_index: int = 0
    answers: dict[str, int] = Field(default_factory=dict)
    time_limit_seconds: int = 0
    time_remaining: int = 0
    time_expired: bool = False
    state: SessionState = SessionState.ACTIVE

    # Practice focus, used to label the PracticeResult
    practice_type: QuestionType | None = None
    practice_sub_type: str | None = None
    practice_difficulty: Difficulty | None = None

    @property
    def is_completed(self) -> bool:
        return self.state is SessionState.COMPLETED

    @property
    def is_paused(self) -> bool:
        return self.state is SessionState.PAUSED

    @property
    def is_timed(self) -> bool:
        return self.time_limit_seconds > 0

    @property
    def total_questions(self) -> int:
        return len(self.questions)

    @property
    def current_question(self) -> Question | None:
        if 0 <= self.current_index < len(self.questions):
            return self.questions[self.current_index]
        return None

    @property
    def question_number(self) -> int:
        return self.current_index + 1

    @property
    def progress(self) -> float:
        if not self.questions:
            return 0.0
        return (self.current_index + 1) / len(self.questions)

    @property
    def is_last_question(self) -> bool:
        return self.current_index >= len(self.questions) - 1

    @property
    def can_go_back(self) -> bool:
        return self.kind.allows_back_navigation and self.current_index > 0

    @property
    def selected_answer(self) -> int | None:
        question = self.current_question
        return self.answers.get(question.id) if question else None

    @property
    def answered_count(self) -> int:
        return sum(1 for q in self.questions if q.id in self.answers)

    def formatted_time_remaining(self) -> str:
        minutes, seconds = divmod(max(self.time_remaining, 0), 60)
        return f"{minutes}:{seconds:02d}"


# --- Results ---
class TestResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    session_kind: SessionKind
    language: Language
    level: Level
    score: int
    total_questions: int
    percentage_score: float
    time_taken_seconds: float
    date: datetime
    verbal_score: int = 0
    verbal_total: int = 0
    quantitative_score: int = 0
    quantitative_total: int = 0
    non_verbal_score: int = 0
    non_verbal_total: int = 0
    answers: dict[str, int] = Field(default_factory=dict)

    @property
    def percentile_rank(self) -> float:
        """
        min(99, percentage). A simplification, not a norm-referenced percentile.
        """
        return min(ExamConfig.PERCENTILE_CAP, self.percentage_score)

    @property
    def gifted_range(self) -> bool:
        return self.percentage_score >= ExamConfig.GIFTED_THRESHOLD

    def category_breakdown(self, question_type: QuestionType) -> tuple[int, int]:
        """(correct, total) for one question type."""
        return {
            QuestionType.VERBAL: (self.verbal_score, self.verbal_total),
            QuestionType.QUANTITATIVE: (self.quantitative_score, self.quantitative_total),
            QuestionType.NON_VERBAL: (self.non_verbal_score, self.non_verbal_total),
        }[question_type]

    def category_percentage(self, question_type: QuestionType) -> float | None:
        """None when the session contained no questions of this type."""
        correct, total = self.category_breakdown(question_type)
        if total == 0:
            return None
        return correct / total * 100


class PracticeResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    question_type: QuestionType
    sub_type: str | None = None
    difficulty: Difficulty | None = None
    language: Language = Language.EN
    level: Level = Level.LEVEL_12
    score: int
    total_questions: int
    percentage_score: float
    time_spent_seconds: float
    date: datetime


class ReviewItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    question_index: int
    question: Question
    user_answer: int | None
    is_correct: bool
    was_skipped: bool

    @property
    def display_question_number(self) -> int:
        return self.question_index + 1


class ReviewData(BaseModel):
    model_config = ConfigDict(frozen=True)

    items: list[ReviewItem]
    correct_count: int
    incorrect_count: int
    skipped_count: int
    total_count: int

    @property
    def accuracy(self) -> float:
        """Accuracy over attempted questions only."""
        attempted = self.total_count - self.skipped_count
        if attempted <= 0:
            return 0.0
        return self.correct_count / attempted * 100


class WeakArea(BaseModel):
    model_config = ConfigDict(frozen=True)

    question_type: QuestionType | None  # None marks a cross-type area
    sub_type: str | None = None
    difficulty: Difficulty | None = None
    title: str
    description: str
    average_score: float
    total_attempts: int
    severity: Severity


# --- User State ---
class UserProgress(BaseModel):
    total_tests_taken: int = 0
    total_questions_answered: int = 0
    total_correct_answers: int = 0
    best_score: float = 0.0
    current_streak: int = 0
    longest_streak: int = 0
    last_active_date: date | None = None
    questions_this_week: int = 0
    weekly_goal: int = ExamConfig.DEFAULT_WEEKLY_GOAL
    preferred_language: Language = Language.EN
    test_history: list[TestResult] = []
    practice_history: list[PracticeResult] = []

    @property
    def accuracy(self) -> float:
        if self.total_questions_answered == 0:
            return 0.0
        return self.total_correct_answers / self.total_questions_answered * 100

    @property
    def average_score(self) -> float:
        if not self.test_history:
            return 0.0
        return sum(r.percentage_score for r in self.test_history) / len(
            self.test_history
        )

    @property
    def weekly_progress(self) -> float:
        if self.weekly_goal <= 0:
            return 0.0
        return min(self.questions_this_week / self.weekly_goal, 1.0)


class AppSettings(BaseModel):
    language: Language = Language.EN
    is_haptics_enabled: bool = True
    is_sound_enabled: bool = True
    timer_warnings: bool = True
    auto_submit_on_timeout: bool = True
    selected_level: Level = Level.LEVEL_12
