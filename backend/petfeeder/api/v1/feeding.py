# backend/petfeeder/api/v1/feeding.py

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from petfeeder.api.deps import get_channel, get_config, get_db
from petfeeder.core.config import Settings
from petfeeder.mqtt.client import DeviceChannel
from petfeeder.schemas.command import CommandAction, ConnectionSnapshot
from petfeeder.schemas.feeding_log import (
    FeedingLogCreate,
    FeedingLogOut,
    FeedRequest,
    FeedResponse,
    LogStatus,
    StopRequest,
    TriggerType,
)
from petfeeder.schemas.schedule import PortionSize
from petfeeder.services import feeding_logs_service
from petfeeder.services.command_encoder import build_command

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/feeding", tags=["feeding"])

DEVICE_ERROR = "Failed to send command to device"


# ===== manual feed =====

@router.post("/activate", response_model=FeedResponse)
def activate_feeding(
    req: FeedRequest,
    db: Session = Depends(get_db),
    channel: DeviceChannel = Depends(get_channel),
    cfg: Settings = Depends(get_config),
):
    """
    Manual feed. Publishes first, then logs the outcome.

    - delivered=False means the device is probably offline; the request itself
      still succeeds and the failed log is returned.
    - If the log cannot be written, a "System Error" log is attempted and the
      request answers 500 with success=False.
    """
    portion = req.portion_size or PortionSize.MEDIUM
    command = build_command(
        CommandAction.FEED,
        portion,
        schedule_id=req.schedule_id,
        angle=cfg.SERVO_MANUAL_ANGLE,
        config=cfg,
    )

    logger.info("manual feed for user %s: %s/%sms", req.user_id, command.angle, command.duration)
    delivered = channel.publish(command)

    try:
        log = feeding_logs_service.create_log(
            db,
            FeedingLogCreate(
                user_id=req.user_id,
                schedule_id=req.schedule_id,
                action="Food Dispensed",
                status=LogStatus.SUCCESS if delivered else LogStatus.FAILED,
                portion_size=portion.value,
                servo_angle=command.angle,
                trigger_type=TriggerType.SCHEDULED if req.schedule_id else TriggerType.MANUAL,
                error_message=None if delivered else DEVICE_ERROR,
                timestamp=datetime.now(timezone.utc),
            ),
        )
    except SQLAlchemyError as e:
        logger.error("feeding activation error for user %s: %s", req.user_id, e)
        db.rollback()
        _log_system_error(db, req.user_id, e)
        body = FeedResponse(
            success=False,
            delivered=delivered,
            message="Server error during feeding activation",
        )
        return JSONResponse(status_code=500, content=body.model_dump(mode="json"))

    return FeedResponse(
        success=True,
        delivered=delivered,
        message=(
            "Feeding activated successfully"
            if delivered
            else "Command sent but device may be offline"
        ),
        data=FeedingLogOut.model_validate(log),
    )


def _log_system_error(db: Session, user_id: str, error: Exception) -> None:
    try:
        feeding_logs_service.create_log(
            db,
            FeedingLogCreate(
                user_id=user_id,
                action="System Error",
                status=LogStatus.FAILED,
                trigger_type=TriggerType.MANUAL,
                error_message=str(error)[:255],
                timestamp=datetime.now(timezone.utc),
            ),
        )
    except SQLAlchemyError as log_error:
        db.rollback()
        logger.error("error logging feeding error: %s", log_error)


@router.post("/stop", response_model=FeedResponse)
def stop_feeding(
    req: StopRequest,
    db: Session = Depends(get_db),
    channel: DeviceChannel = Depends(get_channel),
    cfg: Settings = Depends(get_config),
):
    command = build_command(CommandAction.STOP, config=cfg)
    delivered = channel.publish(command)

    log = feeding_logs_service.create_log(
        db,
        FeedingLogCreate(
            user_id=req.user_id,
            action="Feed Stopped",
            status=LogStatus.SUCCESS if delivered else LogStatus.FAILED,
            trigger_type=TriggerType.MANUAL,
            error_message=None if delivered else DEVICE_ERROR,
            timestamp=datetime.now(timezone.utc),
        ),
    )

    return FeedResponse(
        success=True,
        delivered=delivered,
        message=(
            "Feeding stopped successfully"
            if delivered
            else "Stop command sent but device may be offline"
        ),
        data=FeedingLogOut.model_validate(log),
    )


# ===== history / device =====

@router.get("/logs", response_model=List[FeedingLogOut])
def list_feeding_logs(
    user_id: Optional[str] = None,
    limit: int = 50,
    db: Session = Depends(get_db),
):
    return feeding_logs_service.list_logs(db, user_id=user_id, limit=limit)


@router.get("/status", response_model=ConnectionSnapshot)
def device_status(channel: DeviceChannel = Depends(get_channel)):
    return channel.status()
