"""
Admin Models - Request/response bodies of the operator endpoints.
"""

import re
from typing import List
from pydantic import BaseModel, Field, field_validator

_DAILY_TIME_RE = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


class DailyTimeUpdate(BaseModel):
    """New daily invite time, HH:MM in UTC."""
    daily_time: str = Field(..., examples=["08:00"])

    @field_validator("daily_time")
    @classmethod
    def validate_daily_time(cls, value: str) -> str:
        value = value.strip()
        if not _DAILY_TIME_RE.match(value):
            raise ValueError("daily_time must be HH:MM (00:00-23:59)")
        return value


class SettingsView(BaseModel):
    """Current scheduling settings."""
    daily_time: str
    signup_window_minutes: float
    close_interval_seconds: float
    test_mode: bool


class CloseRunSummary(BaseModel):
    """Sessions closed by a manual closer tick."""
    closed_session_ids: List[int] = Field(default_factory=list)
