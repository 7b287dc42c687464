"""
Engine configuration.

Values come from DOCKET_* environment variables (or a .env file).
The holiday calendar lives here too: DOCKET_HOLIDAYS='["2024-07-04","2024-12-25"]'.
"""

import logging
from datetime import date, time
from functools import lru_cache
from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from docket_models import WorkingHours

logger = logging.getLogger(__name__)


class SchedulerSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="DOCKET_",
        env_file=".env",
        extra="ignore",
    )

    # Recurrence expansion stops after this many occurrences, whatever the pattern says
    max_occurrences: int = Field(default=10_000, ge=1)

    # Check-then-reserve attempts before a version race is reported as a conflict
    max_reserve_attempts: int = Field(default=3, ge=1)

    tentative_is_blocking: bool = Field(default=True, description="Tentative holds make a subject busy")
    count_pending_toward_capacity: bool = Field(
        default=True,
        description="Pending (awaiting approval) bookings hold resource capacity"
    )

    default_working_start: time = Field(default=time(9, 0))
    default_working_end: time = Field(default=time(17, 0))
    default_slot_minutes: int = Field(default=60, ge=1)

    holidays: List[date] = Field(default_factory=list, description="Court holiday calendar")

    log_level: str = Field(default="INFO")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level: {v}")
        return level

    @property
    def default_working_hours(self) -> WorkingHours:
        return WorkingHours(start=self.default_working_start, end=self.default_working_end)

    @property
    def holiday_set(self) -> frozenset:
        return frozenset(self.holidays)


@lru_cache()
def get_settings() -> SchedulerSettings:
    settings = SchedulerSettings()
    logger.debug(f"Loaded scheduler settings ({len(settings.holidays)} holidays configured)")
    return settings
