# backend/petfeeder/schemas/feeding_log.py

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from petfeeder.schemas.schedule import PortionSize


class LogStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"


class TriggerType(str, Enum):
    MANUAL = "manual"
    SCHEDULED = "scheduled"


class FeedingLogCreate(BaseModel):
    user_id: str
    schedule_id: Optional[int] = None
    action: str = Field(..., example="Scheduled Feed")
    status: LogStatus = LogStatus.SUCCESS
    portion_size: Optional[str] = None
    servo_angle: Optional[int] = None
    trigger_type: TriggerType = TriggerType.MANUAL
    error_message: Optional[str] = None
    timestamp: datetime


class FeedingLogOut(FeedingLogCreate):
    id: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class FeedRequest(BaseModel):
    user_id: str = Field(..., example="user-1")
    portion_size: Optional[PortionSize] = None
    schedule_id: Optional[int] = None


class StopRequest(BaseModel):
    user_id: str = Field(..., example="user-1")


class FeedResponse(BaseModel):
    success: bool
    delivered: bool
    message: str
    data: Optional[FeedingLogOut] = None
