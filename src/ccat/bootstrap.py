import random

from src.config import ExamConfig
from src.ccat.adapters.content_providers import GeneratedContentProvider
from src.ccat.adapters.db_manager import DatabaseManager
from src.ccat.adapters.key_value_store import SQLiteKeyValueStore
from src.ccat.adapters.persistence import PersistenceGateway
from src.ccat.adapters.ticker import ThreadingTicker
from src.ccat.application.service import ExamService
from src.ccat.domain.ports import IContentProvider, ITicker
from src.ccat.domain.pool_selector import PoolSelector
from src.ccat.domain.question_bank import QuestionBank
from src.ccat.domain.session_engine import SessionEngine
from src.shared.observability import configure_observability
from src.shared.telemetry import Telemetry


def build_exam_service(
    db_path: str = ExamConfig.DB_PATH,
    provider: IContentProvider | None = None,
    rng: random.Random | None = None,
    ticker: ITicker | None = None,
    observability: bool = True,
) -> ExamService:
    """
    Composition root: SQLite-backed persistence, generated content and a
    threaded one-second ticker unless overridden.
    """
    if observability:
        configure_observability()

    telemetry = Telemetry("Bootstrap")
    telemetry.start_trace()

    gateway = PersistenceGateway(SQLiteKeyValueStore(DatabaseManager(db_path)))
    bank = QuestionBank(provider or GeneratedContentProvider())
    engine = SessionEngine(store=gateway, ticker=ticker or ThreadingTicker())
    service = ExamService(PoolSelector(bank, rng), engine, gateway)

    telemetry.log_info("Exam service ready", db_path=db_path, questions=bank.count())
    return service
