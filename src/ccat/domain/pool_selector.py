import random
from collections.abc import Sequence

from src.ccat.domain.errors import ConfigurationError
from src.ccat.domain.models import (
    Difficulty,
    Language,
    Level,
    Question,
    QuestionType,
    TestConfiguration,
)
from src.ccat.domain.question_bank import FallbackTier, QuestionBank
from src.shared.telemetry import Telemetry, measure_time

# Lookup tiers that no longer honour the requested type
_TYPE_DROPPED = frozenset({FallbackTier.LEVEL_ONLY, FallbackTier.SYNTHESIZED})


class PoolSelector:
    """
    Turns a request into an ordered question list of exactly the requested length.

    When the candidate pool is smaller than the request, reshuffled copies of
    the pool are appended until the length is reached. Repeats are expected
    in that case.
    """

    def __init__(self, bank: QuestionBank, rng: random.Random | None = None) -> None:
        self.bank = bank
        self.rng = rng or random.SystemRandom()
        self.telemetry = Telemetry("PoolSelector")

    @measure_time("select_pool")
    def select(
        self, config: TestConfiguration, language: Language = Language.EN
    ) -> list[Question]:
        self.telemetry.log_info(
            "Selecting pool",
            kind=config.test_kind.value,
            level=config.level.value,
            count=config.question_count,
            types=[t.value for t in config.question_types],
            language=language.value,
        )
        types = None if config.covers_all_types else config.question_types
        return self.draw(config.level, config.question_count, types)

    def draw(
        self,
        level: Level,
        count: int,
        question_types: Sequence[QuestionType] | None = None,
        sub_type: str | None = None,
        difficulty: Difficulty | None = None,
    ) -> list[Question]:
        if count < 0:
            raise ConfigurationError(f"Question count cannot be negative: {count}")
        if count == 0:
            return []

        candidates = self._candidates(level, question_types, sub_type, difficulty)
        return self._fill(candidates, count)

    def _candidates(
        self,
        level: Level,
        question_types: Sequence[QuestionType] | None,
        sub_type: str | None,
        difficulty: Difficulty | None,
    ) -> list[Question]:
        if not question_types:
            return self.bank.get_questions(level, None, sub_type, difficulty)

        seen: set[str] = set()
        candidates: list[Question] = []
        for question_type in dict.fromkeys(question_types):
            lookup = self.bank.lookup(level, question_type, sub_type, difficulty)
            # A type missing at this level must not pull in the whole level
            if lookup.tier in _TYPE_DROPPED:
                continue
            for q in lookup.questions:
                if q.id not in seen:
                    seen.add(q.id)
                    candidates.append(q)

        if candidates:
            return candidates

        self.telemetry.log_info(
            "Selected types empty at level, widening to all types",
            level=level.value,
            types=[t.value for t in question_types],
        )
        return self.bank.get_questions(level, None, sub_type, difficulty)

    def _fill(self, candidates: list[Question], count: int) -> list[Question]:
        pool = list(candidates)
        self.rng.shuffle(pool)

        if len(pool) >= count:
            return pool[:count]

        selection = list(pool)
        while len(selection) < count:
            repeat = list(candidates)
            self.rng.shuffle(repeat)
            selection.extend(repeat)

        self.telemetry.log_info(
            "Pool padded with repeats", distinct=len(candidates), requested=count
        )
        self.telemetry.count("pool_padded")
        return selection[:count]
