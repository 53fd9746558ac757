from dataclasses import dataclass
from enum import Enum
from typing import Any

from src.config import ExamConfig
from src.ccat.domain.errors import ConfigurationError
from src.ccat.domain.models import SUB_TYPES, Difficulty, Level, Question, QuestionType
from src.ccat.domain.ports import IContentProvider
from src.shared.telemetry import Telemetry, measure_time


class FallbackTier(str, Enum):
    EXACT = "exact"
    NO_DIFFICULTY = "no_difficulty"
    NO_SUB_TYPE = "no_sub_type"
    LEVEL_ONLY = "level_only"
    SYNTHESIZED = "synthesized"


@dataclass(frozen=True)
class QuestionLookup:
    questions: list[Question]
    tier: FallbackTier


_PLACEHOLDER_TEMPLATES: dict[QuestionType, dict[str, Any]] = {
    QuestionType.VERBAL: {
        "stem": "Choose the word that best completes the analogy: "
        "Cat is to kitten as dog is to:",
        "stem_fr": "Choisissez le mot qui complète le mieux l'analogie: "
        "Chat est à chaton comme chien est à:",
        "options": ["puppy", "bark", "tail", "house"],
        "options_fr": ["chiot", "aboiement", "queue", "maison"],
        "correct_index": 0,
        "explanation": "A kitten is a baby cat, and a puppy is a baby dog.",
        "explanation_fr": "Un chaton est un bébé chat, et un chiot est un bébé chien.",
    },
    QuestionType.QUANTITATIVE: {
        "stem": "If 2 + 4 = 6, then 6 + 8 = ?",
        "stem_fr": "Si 2 + 4 = 6, alors 6 + 8 = ?",
        "options": ["12", "14", "16", "18"],
        "options_fr": ["12", "14", "16", "18"],
        "correct_index": 1,
        "explanation": "Following the pattern, 6 + 8 = 14.",
        "explanation_fr": "En suivant le modèle, 6 + 8 = 14.",
    },
    QuestionType.NON_VERBAL: {
        "stem": "Which figure comes next in the pattern?",
        "stem_fr": "Quelle figure vient ensuite dans le modèle?",
        "options": ["Circle", "Square", "Triangle", "Star"],
        "options_fr": ["Cercle", "Carré", "Triangle", "Étoile"],
        "correct_index": 2,
        "explanation": "The pattern follows geometric shapes in sequence.",
        "explanation_fr": "Le modèle suit les formes géométriques en séquence.",
    },
}


def synthesize_placeholders(
    level: Level,
    question_type: QuestionType | None = None,
    sub_type: str | None = None,
    difficulty: Difficulty | None = None,
    count: int = ExamConfig.PLACEHOLDER_COUNT,
) -> list[Question]:
    """
    Last-resort questions for a level with no content at all.
    Without a requested type the three types are cycled.
    """
    placeholders = []
    all_types = list(QuestionType)
    for i in range(count):
        q_type = question_type or all_types[i % len(all_types)]
        template = _PLACEHOLDER_TEMPLATES[q_type]
        placeholders.append(
            Question(
                id=f"placeholder-{level.value}-{q_type.value}-{i}",
                type=q_type,
                sub_type=sub_type or SUB_TYPES[q_type][0],
                level=level,
                difficulty=difficulty or level.default_difficulty,
                **template,
            )
        )
    return placeholders


class QuestionBank:
    """
    Read-only question repository, loaded once from a content provider.
    Lookups never come back empty: filters are dropped one tier at a time,
    and placeholders are synthesized when a level has no content.
    """

    def __init__(self, provider: IContentProvider) -> None:
        self.telemetry = Telemetry("QuestionBank")
        questions = provider.load_questions()

        self._by_id: dict[str, Question] = {}
        self._by_level: dict[Level, list[Question]] = {level: [] for level in Level}
        for q in questions:
            if q.id in self._by_id:
                continue
            self._by_id[q.id] = q
            self._by_level[q.level].append(q)

        self.telemetry.log_info(
            "Question bank loaded",
            total=len(self._by_id),
            per_level={lvl.value: len(qs) for lvl, qs in self._by_level.items()},
        )

    def count(self, level: Level | None = None) -> int:
        if level is None:
            return len(self._by_id)
        return len(self._by_level[self._check_level(level)])

    def get_by_ids(self, question_ids: list[str]) -> list[Question]:
        """Unknown ids are skipped; order follows the request."""
        return [self._by_id[qid] for qid in question_ids if qid in self._by_id]

    def get_questions(
        self,
        level: Level,
        question_type: QuestionType | None = None,
        sub_type: str | None = None,
        difficulty: Difficulty | None = None,
    ) -> list[Question]:
        return self.lookup(level, question_type, sub_type, difficulty).questions

    @measure_time("bank_lookup")
    def lookup(
        self,
        level: Level,
        question_type: QuestionType | None = None,
        sub_type: str | None = None,
        difficulty: Difficulty | None = None,
    ) -> QuestionLookup:
        level = self._check_level(level)
        question_type = self._check_type(question_type)
        if difficulty is not None:
            difficulty = self._check_difficulty(difficulty)

        pool = self._by_level[level]
        if question_type is not None:
            typed = [q for q in pool if q.type is question_type]
        else:
            typed = list(pool)

        if sub_type is not None:
            by_sub_type = [q for q in typed if q.sub_type == sub_type]
        else:
            by_sub_type = typed

        # 1. All filters
        if difficulty is not None:
            exact = [q for q in by_sub_type if q.difficulty is difficulty]
        else:
            exact = by_sub_type
        if exact:
            return QuestionLookup(exact, FallbackTier.EXACT)

        # 2. Drop difficulty
        if difficulty is not None and by_sub_type:
            return self._fallback(by_sub_type, FallbackTier.NO_DIFFICULTY, level)

        # 3. Drop sub-type
        if sub_type is not None and typed:
            return self._fallback(typed, FallbackTier.NO_SUB_TYPE, level)

        # 4. Drop type
        if pool:
            return self._fallback(list(pool), FallbackTier.LEVEL_ONLY, level)

        # 5. Nothing at this level
        synthetic = synthesize_placeholders(level, question_type, sub_type, difficulty)
        return self._fallback(synthetic, FallbackTier.SYNTHESIZED, level)

    def _fallback(
        self, questions: list[Question], tier: FallbackTier, level: Level
    ) -> QuestionLookup:
        self.telemetry.log_info(
            "Lookup broadened", tier=tier.value, level=level.value, found=len(questions)
        )
        self.telemetry.count(f"fallback_{tier.value}")
        return QuestionLookup(questions, tier)

    @staticmethod
    def _check_level(level: Any) -> Level:
        try:
            return Level(level)
        except ValueError as e:
            raise ConfigurationError(f"Unknown level: {level!r}") from e

    @staticmethod
    def _check_type(question_type: Any) -> QuestionType | None:
        if question_type is None:
            return None
        try:
            return QuestionType(question_type)
        except ValueError as e:
            raise ConfigurationError(f"Unknown question type: {question_type!r}") from e

    @staticmethod
    def _check_difficulty(difficulty: Any) -> Difficulty:
        try:
            return Difficulty(difficulty)
        except ValueError as e:
            raise ConfigurationError(f"Unknown difficulty: {difficulty!r}") from e
