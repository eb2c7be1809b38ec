"""
Configuration settings for the Reef scheduler.
Loads environment variables and provides application settings.
"""
import logging
from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

# settings.py is at reef_scheduler/config/settings.py → 3 levels up
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent

CHECK_INTERVAL_MIN_SECONDS = 10
CHECK_INTERVAL_MAX_SECONDS = 3600
DEFAULT_CHECK_INTERVAL_SECONDS = 60


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Database - use absolute path to avoid working directory issues
    database_url: str = f"sqlite:///{_PROJECT_ROOT}/data/reef.db"

    # Server
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    log_level: str = "INFO"

    # Scheduler loop
    scheduler_enabled: bool = True  # Start the loop inside the API process
    scheduler_check_interval_seconds: int = DEFAULT_CHECK_INTERVAL_SECONDS
    scheduler_release_stale_on_startup: bool = True  # Clear IsRunning flags left by a crashed process

    # Celery / Redis (transport for the profile execution task)
    celery_broker_url: str = "redis://localhost:6379/0"
    celery_result_backend: str = "redis://localhost:6379/1"
    celery_timezone: str = "UTC"

    # Profile execution collaborator
    profile_execution_task_name: str = "reef.execute_profile"
    profile_execution_queue: str = "profile_execution"
    profile_execution_timeout_seconds: int = 3600
    profile_execution_rate_limit: float = 0.0  # dispatches per second, <= 0 disables throttling
    profile_execution_burst: float = 0.0  # bucket capacity, <= 0 means same as rate

    @field_validator("scheduler_check_interval_seconds", mode="before")
    @classmethod
    def _clamp_check_interval(cls, value):
        if value is None or value == "":
            return DEFAULT_CHECK_INTERVAL_SECONDS
        try:
            seconds = int(value)
        except (TypeError, ValueError):
            logger.warning(
                "scheduler_check_interval_seconds (%r) is not an integer, using default: %d",
                value,
                DEFAULT_CHECK_INTERVAL_SECONDS,
            )
            return DEFAULT_CHECK_INTERVAL_SECONDS
        if seconds < CHECK_INTERVAL_MIN_SECONDS or seconds > CHECK_INTERVAL_MAX_SECONDS:
            logger.warning(
                "scheduler_check_interval_seconds (%d) out of recommended range (%d-%d seconds), "
                "using default: %d",
                seconds,
                CHECK_INTERVAL_MIN_SECONDS,
                CHECK_INTERVAL_MAX_SECONDS,
                DEFAULT_CHECK_INTERVAL_SECONDS,
            )
            return DEFAULT_CHECK_INTERVAL_SECONDS
        return seconds

    @property
    def profile_execution_throttled(self) -> bool:
        """Whether dispatches go through a token bucket."""
        return self.profile_execution_rate_limit > 0


# Global settings instance
settings = Settings()
