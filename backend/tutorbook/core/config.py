# backend/tutorbook/core/config.py
import logging
import os
from pathlib import Path
import re
from typing import Literal, Optional

from dotenv import load_dotenv
from pydantic import Field, ValidationInfo, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

HHMM_PATTERN = re.compile(r"^([0-1]?[0-9]|2[0-3]):[0-5][0-9]$")

logger = logging.getLogger(__name__)


def is_running_tests() -> bool:
    """
    Detect if code is running under pytest.

    PYTEST_CURRENT_TEST is set automatically by pytest during test runs, and is
    not expected to be present in production environments.
    """
    return os.getenv("PYTEST_CURRENT_TEST") is not None


# Load .env file only if not in CI
if not os.getenv("CI"):
    env_path = Path(__file__).parent.parent.parent / ".env"  # Goes up to backend/.env
    logger.debug("[CONFIG] Looking for .env at: %s (exists=%s)", env_path, env_path.exists())
    load_dotenv(env_path)


def _hhmm_to_minutes(value: str) -> int:
    hour, minute = value.split(":")
    return int(hour) * 60 + int(minute)


class Settings(BaseSettings):
    environment: Literal["development", "test", "staging", "production"] = Field(
        default="development",
        description="Deployment environment name",
    )
    is_testing: bool = Field(default=False, description="Set by the test suite")
    log_level: str = Field(default="INFO", description="Root log level")

    # Persistence
    database_url: str = Field(
        default="sqlite+pysqlite:///./tutorbook.db",
        description="SQLAlchemy URL of the authoritative booking store",
    )
    sql_echo: bool = Field(default=False, description="Echo SQL statements to the log")
    db_pool_size: int = Field(default=10, ge=1)
    db_max_overflow: int = Field(default=5, ge=0)
    db_pool_timeout: int = Field(default=10, ge=1, description="Seconds to wait for a connection")

    # Per-teacher serialization
    redis_url: Optional[str] = Field(
        default=None,
        description="Redis URL for the cross-process teacher lock (in-process lock only when unset)",
    )
    teacher_lock_timeout_seconds: float = Field(
        default=5.0,
        gt=0,
        description="How long a request waits for the teacher lock before giving up",
    )
    teacher_lock_ttl_seconds: int = Field(
        default=30,
        ge=1,
        description="Expiry of the Redis teacher lock if its holder dies",
    )

    # Availability window (platform policy, per-deployment)
    working_day_start: str = Field(default="09:00", description="First bookable minute, HH:MM")
    working_day_end: str = Field(default="21:00", description="End of the working window, HH:MM")
    slot_length_minutes: int = Field(default=60, ge=5, le=240)

    # Booking rules
    min_booking_duration_minutes: int = Field(default=30, ge=1)
    max_booking_duration_minutes: int = Field(default=240, ge=1)

    model_config = SettingsConfigDict(
        env_file=".env" if not os.getenv("CI") else None,
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("working_day_start", "working_day_end")
    @classmethod
    def _validate_hhmm(cls, value: str, info: ValidationInfo) -> str:
        """Working window bounds must be 24-hour HH:MM strings."""
        candidate = value.strip()
        if not HHMM_PATTERN.fullmatch(candidate):
            raise ValueError(f"{info.field_name} must be HH:MM on a 24-hour clock, got {value!r}")
        return candidate

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        return value.strip().upper()

    @model_validator(mode="after")
    def _validate_windows(self) -> "Settings":
        if self.working_day_start_minutes >= self.working_day_end_minutes:
            raise ValueError("working_day_start must be before working_day_end")
        if self.min_booking_duration_minutes > self.max_booking_duration_minutes:
            raise ValueError(
                "min_booking_duration_minutes cannot exceed max_booking_duration_minutes"
            )
        return self

    @property
    def working_day_start_minutes(self) -> int:
        return _hhmm_to_minutes(self.working_day_start)

    @property
    def working_day_end_minutes(self) -> int:
        return _hhmm_to_minutes(self.working_day_end)

    def get_database_url(self) -> str:
        """Get the database URL, refusing obviously wrong targets while testing."""
        if (self.is_testing or is_running_tests()) and self.environment == "production":
            raise RuntimeError("Refusing to run tests against a production configuration")
        return self.database_url


settings = Settings()
