from typing import Final


class ExamConfig:
    # --- Infrastructure ---
    DB_PATH: Final[str] = "data/ccat.db"
    SEED_FILE: Final[str] = "data/seed_questions.json"
    METRICS_PORT: Final[int] = 8000
    SERVICE_NAME: Final[str] = "ccat-exam-engine"

    # --- Persistence Keys ---
    SETTINGS_KEY: Final[str] = "AppSettings"
    PROGRESS_KEY: Final[str] = "UserProgress"
    SESSION_KEY: Final[str] = "CurrentTestSession"

    # --- Scoring ---
    GIFTED_THRESHOLD: Final[float] = 85.0
    PERCENTILE_CAP: Final[float] = 99.0

    # --- Weak Area Analysis ---
    TYPE_WEAK_CUTOFF: Final[float] = 80.0
    SUB_TYPE_WEAK_CUTOFF: Final[float] = 75.0
    SUB_TYPE_MIN_ATTEMPTS: Final[int] = 2
    DIFFICULTY_WEAK_CUTOFF: Final[float] = 70.0
    DIFFICULTY_MIN_ATTEMPTS: Final[int] = 3
    CRITICAL_BELOW: Final[float] = 50.0
    MODERATE_BELOW: Final[float] = 70.0

    # --- Timer ---
    TICK_SECONDS: Final[float] = 1.0
    WARNING_FRACTION: Final[float] = 0.25
    CRITICAL_FRACTION: Final[float] = 0.10
    PRACTICE_SECONDS_PER_QUESTION: Final[int] = 60

    # --- Question Supply ---
    PLACEHOLDER_COUNT: Final[int] = 12
    MIN_QUESTIONS_PER_TYPE: Final[int] = 200
    DEFAULT_PRACTICE_COUNT: Final[int] = 50

    # --- Progress ---
    DEFAULT_WEEKLY_GOAL: Final[int] = 50
    RECENT_HISTORY_SIZE: Final[int] = 5
