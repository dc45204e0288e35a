from typing import Literal, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    # Storage Configuration
    # "memory" keeps everything in-process, "sql" goes through DATABASE_URL
    STORAGE_BACKEND: Literal["memory", "sql"] = "memory"
    DATABASE_URL: str = "sqlite:///./troubleshooting.db"

    # Fixed keys in the key-value store
    HISTORY_STORAGE_KEY: str = "troubleshoot-step-history"
    BOOKMARKS_STORAGE_KEY: str = "troubleshoot-bookmarks"
    SESSION_STORAGE_PREFIX: str = "troubleshoot-session:"

    # Workflow Configuration
    DEFAULT_ENTRY_STEP: str = "analyze"
    VALIDATION_TIMEOUT_SECONDS: Optional[float] = 10.0  # None disables the timeout
    TIMER_POLL_INTERVAL_SECONDS: float = 1.0

    # Export / Import
    SNAPSHOT_VERSION: str = "1.0"
    SNAPSHOT_EXPORTED_BY: str = "User"

    # Analytics & Notifications
    METRICS_TIME_RANGE_DAYS: int = 7
    NOTIFICATION_LIMIT: int = 10
    MAX_LIVE_SESSIONS: int = 256  # engines kept in memory by the session service

    LOG_LEVEL: str = "INFO"

    # Loads from a .env file in the root directory
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

# Singleton instance
settings = Settings()
