# ==============================================================================
# ARCHITECTURE: UNIT TEST (CORE LOGIC)
# ------------------------------------------------------------------------------
# GOAL: Verify lookup filters and the fallback ladder.
# CONSTRAINTS:
#   1. EXECUTION: FAST (< 50ms per test).
#   2. I/O: FORBIDDEN. Content comes from an in-memory provider.
# ==============================================================================
from unittest.mock import Mock

import pytest

from src.ccat.domain.errors import ConfigurationError
from src.ccat.domain.models import Difficulty, Level, QuestionType
from src.ccat.domain.question_bank import FallbackTier, QuestionBank, synthesize_placeholders
from tests.drivers.factories import StaticProvider, make_question


@pytest.fixture
def bank():
    return QuestionBank(
        StaticProvider(
            [
                make_question("v-easy", sub_type="analogies", difficulty=Difficulty.EASY),
                make_question("v-hard", sub_type="analogies", difficulty=Difficulty.HARD),
                make_question(
                    "v-class", sub_type="classification", difficulty=Difficulty.HARD
                ),
                make_question(
                    "q-1",
                    question_type=QuestionType.QUANTITATIVE,
                    sub_type="number_analogies",
                ),
                make_question("l10-v", level=Level.LEVEL_10),
            ]
        )
    )


def test_provider_is_read_once():
    provider = Mock()
    provider.load_questions.return_value = [make_question("a")]

    bank = QuestionBank(provider)
    bank.get_questions(Level.LEVEL_12)
    bank.get_questions(Level.LEVEL_12, QuestionType.VERBAL)

    provider.load_questions.assert_called_once()


def test_duplicate_ids_are_indexed_once():
    bank = QuestionBank(StaticProvider([make_question("a"), make_question("a")]))

    assert bank.count() == 1


def test_exact_match(bank):
    lookup = bank.lookup(
        Level.LEVEL_12, QuestionType.VERBAL, "analogies", Difficulty.EASY
    )

    assert lookup.tier is FallbackTier.EXACT
    assert [q.id for q in lookup.questions] == ["v-easy"]


def test_type_filter_only_returns_that_type(bank):
    questions = bank.get_questions(Level.LEVEL_12, QuestionType.VERBAL)

    assert {q.type for q in questions} == {QuestionType.VERBAL}
    assert {q.id for q in questions} == {"v-easy", "v-hard", "v-class"}


def test_drops_difficulty_first(bank):
    lookup = bank.lookup(
        Level.LEVEL_12, QuestionType.VERBAL, "classification", Difficulty.EASY
    )

    assert lookup.tier is FallbackTier.NO_DIFFICULTY
    assert [q.id for q in lookup.questions] == ["v-class"]


def test_unknown_sub_type_broadens_to_type(bank):
    # Arrange: no question carries this tag anywhere

    # Act
    lookup = bank.lookup(Level.LEVEL_12, QuestionType.VERBAL, "nonexistent_tag")

    # Assert
    assert lookup.tier is FallbackTier.NO_SUB_TYPE
    assert lookup.questions
    assert {q.type for q in lookup.questions} == {QuestionType.VERBAL}


def test_missing_type_broadens_to_level(bank):
    lookup = bank.lookup(Level.LEVEL_10, QuestionType.NON_VERBAL)

    assert lookup.tier is FallbackTier.LEVEL_ONLY
    assert [q.id for q in lookup.questions] == ["l10-v"]


def test_empty_level_synthesizes_placeholders(bank):
    lookup = bank.lookup(Level.LEVEL_11, QuestionType.QUANTITATIVE)

    assert lookup.tier is FallbackTier.SYNTHESIZED
    assert lookup.questions
    assert all(q.level is Level.LEVEL_11 for q in lookup.questions)
    assert all(q.type is QuestionType.QUANTITATIVE for q in lookup.questions)


def test_empty_corpus_never_returns_empty():
    bank = QuestionBank(StaticProvider([]))

    for level in Level:
        assert bank.get_questions(level, QuestionType.VERBAL, "nonexistent_tag")


def test_unknown_level_is_a_configuration_error(bank):
    with pytest.raises(ConfigurationError):
        bank.get_questions(13)


def test_unknown_type_is_a_configuration_error(bank):
    with pytest.raises(ConfigurationError):
        bank.get_questions(Level.LEVEL_12, "spatial")


def test_get_by_ids_keeps_request_order_and_skips_unknown(bank):
    questions = bank.get_by_ids(["q-1", "missing", "v-easy"])

    assert [q.id for q in questions] == ["q-1", "v-easy"]


def test_placeholders_cycle_types_without_request():
    placeholders = synthesize_placeholders(Level.LEVEL_10, count=6)

    assert [q.type for q in placeholders[:3]] == list(QuestionType)
    assert len({q.id for q in placeholders}) == 6
