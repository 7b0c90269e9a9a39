# backend/petfeeder/services/command_encoder.py

import logging
from datetime import datetime, timezone
from typing import NamedTuple, Optional, Union

from pydantic import ValidationError

from petfeeder.core.config import Settings, settings as default_settings
from petfeeder.core.exceptions import EncodingError
from petfeeder.schemas.command import Command, CommandAction
from petfeeder.schemas.schedule import PortionSize

logger = logging.getLogger(__name__)


class PortionSetting(NamedTuple):
    angle: int
    duration: int  # ms the servo stays open


# servo open time per portion; the angle is shared
PORTION_DURATIONS_MS = {
    PortionSize.SMALL: 2000,
    PortionSize.MEDIUM: 4000,
    PortionSize.LARGE: 6000,
}


def portion_settings(
    portion_size: Union[PortionSize, str, None],
    angle: Optional[int] = None,
    config: Optional[Settings] = None,
) -> PortionSetting:
    """
    small -> 2000ms, medium -> 4000ms, large -> 6000ms.
    Unknown or missing portion falls back to medium instead of failing.
    ``angle`` overrides the configured SERVO_FEED_ANGLE.
    """
    if angle is None:
        angle = (config or default_settings).SERVO_FEED_ANGLE

    try:
        portion = PortionSize(portion_size)
    except ValueError:
        if portion_size is not None:
            logger.warning("unknown portion size %r, using medium", portion_size)
        portion = PortionSize.MEDIUM

    return PortionSetting(angle=angle, duration=PORTION_DURATIONS_MS[portion])


def build_command(
    action: Union[CommandAction, str],
    portion_size: Union[PortionSize, str, None] = None,
    schedule_id=None,
    log_id=None,
    now: Optional[datetime] = None,
    angle: Optional[int] = None,
    config: Optional[Settings] = None,
) -> Command:
    cfg = config or default_settings
    try:
        action = CommandAction(action)
    except ValueError as e:
        raise EncodingError(f"unsupported action: {action!r}") from e

    if now is None:
        now = datetime.now(timezone.utc)

    if action is CommandAction.STOP:
        return Command(
            action=action,
            angle=cfg.SERVO_REST_ANGLE,
            timestamp=now,
        )

    portion = portion_settings(portion_size, angle=angle, config=cfg)
    return Command(
        action=action,
        angle=portion.angle,
        duration=portion.duration,
        schedule_id=str(schedule_id) if schedule_id is not None else None,
        log_id=str(log_id) if log_id is not None else None,
        timestamp=now,
    )


def encode(command: Command) -> bytes:
    return command.model_dump_json(by_alias=True, exclude_none=True).encode("utf-8")


def decode(payload: Union[bytes, str]) -> Command:
    try:
        return Command.model_validate_json(payload)
    except ValidationError as e:
        raise EncodingError(f"invalid command payload: {e}") from e
