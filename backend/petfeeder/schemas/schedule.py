# backend/petfeeder/schemas/schedule.py

import re
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator

_TIME_RE = re.compile(r"^([0-1]?[0-9]|2[0-3]):([0-5][0-9])$")


class PortionSize(str, Enum):
    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"


def normalize_feeding_time(value: str) -> str:
    """'7:30' -> '07:30'. Raises ValueError on anything that is not H:MM / HH:MM."""
    match = _TIME_RE.match(value.strip())
    if not match:
        raise ValueError("Invalid time format. Use HH:MM")
    return f"{int(match.group(1)):02d}:{match.group(2)}"


class ScheduleBase(BaseModel):
    feeding_time: str = Field(..., example="07:30")
    portion_size: PortionSize = PortionSize.MEDIUM
    repeat_daily: bool = True

    @field_validator("feeding_time")
    @classmethod
    def _check_time(cls, v: str) -> str:
        return normalize_feeding_time(v)


class ScheduleCreate(ScheduleBase):
    user_id: str = Field(..., example="user-1")


class ScheduleUpdate(BaseModel):
    feeding_time: Optional[str] = None
    portion_size: Optional[PortionSize] = None
    repeat_daily: Optional[bool] = None
    is_active: Optional[bool] = None

    @field_validator("feeding_time")
    @classmethod
    def _check_time(cls, v: Optional[str]) -> Optional[str]:
        return normalize_feeding_time(v) if v is not None else v


class ScheduleOut(BaseModel):
    """
    Schedule as read back from storage.

    portion_size stays a plain string here: rows written before validation
    existed may hold anything, and the command encoder falls back to medium.
    """
    id: int
    user_id: str
    feeding_time: str
    portion_size: Optional[str] = None
    is_active: bool = True
    repeat_daily: bool = True
    last_triggered: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
