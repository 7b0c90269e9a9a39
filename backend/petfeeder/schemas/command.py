# backend/petfeeder/schemas/command.py

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class CommandAction(str, Enum):
    FEED = "feed"
    STOP = "stop"


class Command(BaseModel):
    """
    Servo command as published on the command topic.

    Wire keys are camelCase (scheduleId, logId); duration is left out for stop.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    action: CommandAction
    angle: int
    duration: Optional[int] = None
    schedule_id: Optional[str] = Field(None, alias="scheduleId")
    log_id: Optional[str] = Field(None, alias="logId")
    timestamp: datetime


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    OFFLINE = "offline"


class ConnectionSnapshot(BaseModel):
    connected: bool
    state: ConnectionState
    broker_address: str
    command_topic: str
    response_topic: str
