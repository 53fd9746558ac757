import random

import pytest

from src.ccat.adapters.key_value_store import InMemoryKeyValueStore
from src.ccat.adapters.persistence import PersistenceGateway
from src.ccat.domain.models import QuestionType
from src.ccat.domain.session_engine import SessionEngine
from tests.drivers.factories import FakeClock, FakeTicker, make_question


@pytest.fixture
def rng():
    return random.Random(42)


@pytest.fixture
def sample_questions():
    """Four questions per type at level 12, correct option rotating."""
    questions = []
    for question_type, sub_type in (
        (QuestionType.VERBAL, "analogies"),
        (QuestionType.QUANTITATIVE, "number_analogies"),
        (QuestionType.NON_VERBAL, "figure_series"),
    ):
        for i in range(4):
            questions.append(
                make_question(
                    f"{question_type.value}-{i}",
                    question_type=question_type,
                    sub_type=sub_type,
                    correct_index=i % 4,
                )
            )
    return questions


@pytest.fixture
def kv_store():
    return InMemoryKeyValueStore()


@pytest.fixture
def gateway(kv_store):
    return PersistenceGateway(kv_store)


@pytest.fixture
def fake_ticker():
    return FakeTicker()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def engine(gateway, fake_ticker, clock):
    return SessionEngine(store=gateway, ticker=fake_ticker, clock=clock)
