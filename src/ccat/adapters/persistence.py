from typing import TypeVar

from pydantic import BaseModel, ValidationError

from src.config import ExamConfig
from src.ccat.domain.errors import PersistenceError
from src.ccat.domain.models import AppSettings, TestSession, UserProgress
from src.ccat.domain.ports import IKeyValueStore, ISessionStore
from src.shared.telemetry import Telemetry

M = TypeVar("M", bound=BaseModel)


class PersistenceGateway(ISessionStore):
    """
    Maps the three persisted blobs (settings, progress, in-flight session)
    to pydantic JSON in a key-value store.

    Loads never raise: a missing or corrupt blob yields the default.
    Saves never raise either; failures are logged and reported as False.
    """

    def __init__(self, store: IKeyValueStore) -> None:
        self.store = store
        self.telemetry = Telemetry("PersistenceGateway")

    # --- Settings ---
    def load_settings(self) -> AppSettings:
        return self._load(ExamConfig.SETTINGS_KEY, AppSettings) or AppSettings()

    def save_settings(self, settings: AppSettings) -> bool:
        return self._save(ExamConfig.SETTINGS_KEY, settings)

    # --- Progress ---
    def load_progress(self) -> UserProgress:
        return self._load(ExamConfig.PROGRESS_KEY, UserProgress) or UserProgress()

    def save_progress(self, progress: UserProgress) -> bool:
        return self._save(ExamConfig.PROGRESS_KEY, progress)

    # --- ISessionStore ---
    def save_session(self, session: TestSession) -> None:
        self._save(ExamConfig.SESSION_KEY, session)

    def load_session(self) -> TestSession | None:
        return self._load(ExamConfig.SESSION_KEY, TestSession)

    def clear_session(self) -> None:
        try:
            self.store.delete(ExamConfig.SESSION_KEY)
        except PersistenceError as e:
            self.telemetry.log_error("Session clear failed", e)

    # --- Internals ---
    def _load(self, key: str, model: type[M]) -> M | None:
        try:
            raw = self.store.load(key)
        except PersistenceError as e:
            self.telemetry.log_error("Load failed, using defaults", e, key=key)
            return None

        if raw is None:
            return None

        try:
            return model.model_validate_json(raw)
        except ValidationError as e:
            self.telemetry.log_error("Corrupt blob, using defaults", e, key=key)
            self.telemetry.count("corrupt_blob")
            return None

    def _save(self, key: str, value: BaseModel) -> bool:
        try:
            self.store.save(key, value.model_dump_json())
            return True
        except PersistenceError as e:
            self.telemetry.log_error("Save failed", e, key=key)
            self.telemetry.count("save_failed")
            return False
