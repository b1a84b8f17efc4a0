"""
Application configuration settings.
"""

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Literal, Self

from libs.domain_types import QuizMode


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "Daily Quiz Composer"
    APP_VERSION: str = "0.1.0"
    ENV: str = "development"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: str = "sqlite:///./dailyquiz.db"
    DB_POOL_PRE_PING: bool = True

    # Composition defaults
    COMPOSER_TARGET_QUESTION_COUNT: int = Field(default=6, ge=1, le=50)
    COMPOSER_DEFAULT_MODE: QuizMode = QuizMode.MIX
    # Strict-level overexposure cap: questions shown more often than this are
    # skipped at relaxation level 0
    COMPOSER_MAX_EXPOSURE_COUNT: int = Field(default=10, ge=0)
    # Anti-repeat day thresholds indexed by relaxation level (30→21→14→10→7).
    # Levels beyond the end of the schedule have no day threshold.
    COMPOSER_RELAXATION_SCHEDULE: List[int] = [30, 21, 14, 10, 7]

    # Pool health minimums per difficulty
    HEALTH_MIN_EASY: int = 10
    HEALTH_MIN_MEDIUM: int = 6
    HEALTH_MIN_HARD: int = 3
    HEALTH_RECENT_DAYS: int = 7
    STATS_LOOKBACK_DAYS: int = 30

    # Drop scheduling: a random minute inside [start, end) local time
    DROP_TIMEZONE: str = "America/Toronto"
    DROP_WINDOW_START_HOUR: int = Field(default=17, ge=0, le=23)
    DROP_WINDOW_END_HOUR: int = Field(default=20, ge=1, le=24)

    # Jobs
    RETRY_LOOKBACK_HOURS: int = Field(default=24, ge=0)
    JOB_MAX_WORKERS: int = Field(default=2, ge=1, le=16)

    # Artifact publishing
    PUBLISHER_BACKEND: Literal["http", "local"] = "local"
    OBJECT_STORE_URL: str = Field(
        default="",
        description="Base URL of the bearer-authenticated object store or upload gateway",
    )
    OBJECT_STORE_TOKEN: str = Field(
        default="",
        repr=False,
        description="Bearer token for the object store (leave empty for unsigned endpoints)",
    )
    CDN_BASE_URL: str = "https://cdn.example.com"
    PUBLISH_TIMEOUT_SECONDS: float = Field(default=10.0, gt=0)
    LOCAL_PUBLISH_DIR: str = "./published"

    # Sentry Error Tracking
    SENTRY_DSN: str = Field(
        default="",
        description="Sentry DSN for error tracking (leave empty to disable)",
    )

    # OpenTelemetry metrics (no-op unless an SDK meter provider is installed)
    OTEL_METRICS_ENABLED: bool = False

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",  # Ignore extra fields from .env not defined in Settings
    )

    @model_validator(mode="after")
    def validate_relaxation_schedule(self) -> Self:
        """Schedule must be non-empty, positive and strictly decreasing."""
        schedule = self.COMPOSER_RELAXATION_SCHEDULE
        if not schedule:
            raise ValueError("COMPOSER_RELAXATION_SCHEDULE must not be empty")
        if any(days <= 0 for days in schedule):
            raise ValueError(
                f"COMPOSER_RELAXATION_SCHEDULE thresholds must be positive, got {schedule}"
            )
        if any(a <= b for a, b in zip(schedule, schedule[1:])):
            raise ValueError(
                f"COMPOSER_RELAXATION_SCHEDULE must be strictly decreasing, got {schedule}"
            )
        return self

    @model_validator(mode="after")
    def validate_drop_window(self) -> Self:
        """Drop window must span at least one hour."""
        if self.DROP_WINDOW_START_HOUR >= self.DROP_WINDOW_END_HOUR:
            raise ValueError(
                "DROP_WINDOW_START_HOUR must be before DROP_WINDOW_END_HOUR, "
                f"got {self.DROP_WINDOW_START_HOUR}-{self.DROP_WINDOW_END_HOUR}"
            )
        return self

    @model_validator(mode="after")
    def validate_publisher_config(self) -> Self:
        """The HTTP publisher needs an endpoint to upload to."""
        if self.PUBLISHER_BACKEND == "http" and not self.OBJECT_STORE_URL:
            raise ValueError(
                "OBJECT_STORE_URL must be set when PUBLISHER_BACKEND='http'"
            )
        return self


settings = Settings()
