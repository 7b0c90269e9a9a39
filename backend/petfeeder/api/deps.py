# backend/petfeeder/api/deps.py

from typing import Generator

from fastapi import Request
from sqlalchemy.orm import Session

from petfeeder.core.config import Settings
from petfeeder.mqtt.client import DeviceChannel


def get_db(request: Request) -> Generator[Session, None, None]:
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()


def get_channel(request: Request) -> DeviceChannel:
    return request.app.state.channel


def get_config(request: Request) -> Settings:
    return request.app.state.settings
