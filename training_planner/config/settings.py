import os
from pathlib import Path

from loguru import logger
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def get_database_url() -> str:
    """Get database URL, using absolute path for SQLite to avoid path resolution issues."""
    db_url = os.getenv("DATABASE_URL", "")
    if db_url:
        logger.info(f"Using DATABASE_URL from environment: {db_url}")
        return db_url

    db_path = Path(__file__).parent.parent.parent / "training_planner.db"
    db_url = f"sqlite:///{db_path.resolve()}"
    logger.info(f"Using default database path: {db_url}")
    return db_url


class Settings(BaseSettings):
    database_url: str = Field(
        default_factory=get_database_url,
        validation_alias="DATABASE_URL",
    )
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    default_timezone: str = Field(
        default="Europe/London",
        validation_alias="DEFAULT_TIMEZONE",
        description="Time zone used to compute the reference date when the user has none",
    )
    preview_ttl_minutes: int = Field(
        default=30,
        validation_alias="PREVIEW_TTL_MINUTES",
        description="Lifetime of a previewed batch of edits before approval fails closed",
    )
    session_idle_minutes: int = Field(
        default=120,
        validation_alias="SESSION_IDLE_MINUTES",
        description="Chat sessions unused for this long are dropped from memory",
    )
    transcript_tail_size: int = Field(
        default=10,
        validation_alias="TRANSCRIPT_TAIL_SIZE",
        description="Number of transcript entries sent to the planner as context",
    )
    max_message_length: int = Field(
        default=1000,
        validation_alias="MAX_MESSAGE_LENGTH",
        description="Transcript entries longer than this are truncated in the context view",
    )
    planner_url: str = Field(
        default="http://localhost:8100/plan",
        validation_alias="PLANNER_URL",
        description="Modification planner endpoint",
    )
    planner_timeout_seconds: float = Field(
        default=60.0,
        validation_alias="PLANNER_TIMEOUT_SECONDS",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        """Validate that log level is one of the standard logging levels."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper_value = value.upper()
        if upper_value not in valid_levels:
            logger.warning(f"Invalid LOG_LEVEL '{value}'. Valid levels are: {', '.join(valid_levels)}. Defaulting to INFO.")
            return "INFO"
        return upper_value

    @field_validator("preview_ttl_minutes", "session_idle_minutes", "transcript_tail_size", "max_message_length")
    @classmethod
    def validate_positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("must be a positive integer")
        return value

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        populate_by_name=True,
    )


settings = Settings()
