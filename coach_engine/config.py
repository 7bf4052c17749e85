"""
Runtime configuration.

Values are read from the environment (or a local .env file) using the
COACH_ prefix, e.g. COACH_DATABASE_URL=sqlite:///coach.db.
"""

from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Coach engine settings."""

    database_url: str = Field(
        default="sqlite:///coach_engine.db",
        validation_alias="COACH_DATABASE_URL",
        description="SQLAlchemy database URL",
    )
    log_level: str = Field(
        default="INFO",
        validation_alias="COACH_LOG_LEVEL",
        description="Log level (DEBUG, INFO, WARNING, ERROR)",
    )
    log_file: Optional[str] = Field(
        default=None,
        validation_alias="COACH_LOG_FILE",
        description="Optional log file path",
    )
    default_timezone: str = Field(
        default="UTC",
        validation_alias="COACH_DEFAULT_TIMEZONE",
        description="Timezone used when an athlete has none on file",
    )
    ramp_threshold_percent: float = Field(
        default=15.0,
        validation_alias="COACH_RAMP_THRESHOLD",
        description="Maximum safe week-over-week load increase (%)",
    )
    max_hard_sessions_per_week: int = Field(
        default=2,
        validation_alias="COACH_MAX_HARD_SESSIONS",
        description="Hard sessions allowed per week before warnings",
    )
    cors_origins: List[str] = Field(
        default=[
            "http://localhost:3000",  # React dev server
            "http://localhost:5173",  # Vite dev server
            "http://127.0.0.1:3000",
            "http://127.0.0.1:5173",
        ],
        validation_alias="COACH_CORS_ORIGINS",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


settings = Settings()
