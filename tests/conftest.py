"""Shared pytest fixtures and fakes for the petfeeder backend tests."""

from __future__ import annotations

import os

# module-level engine/app in petfeeder must not touch a real database file
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SCHEDULER_ENABLED", "false")

from datetime import datetime
from typing import Any, Dict, List, Optional

import paho.mqtt.client as mqtt
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from petfeeder.core.config import Settings
from petfeeder.core.exceptions import RepositoryError
from petfeeder.db.session import Base
from petfeeder.db import models  # noqa: F401
from petfeeder.schemas.command import (
    Command,
    ConnectionSnapshot,
    ConnectionState,
)
from petfeeder.schemas.feeding_log import FeedingLogCreate, LogStatus
from petfeeder.schemas.schedule import ScheduleOut


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        _env_file=None,
        DATABASE_URL="sqlite://",
        MQTT_BROKER_HOST="broker.test",
        MQTT_BROKER_PORT=1883,
        MQTT_PUBLISH_TIMEOUT=0.1,
        MQTT_RECONNECT_INTERVAL=5,
        SERVO_FEED_ANGLE=90,
        SCHEDULER_ENABLED=False,
        SCHEDULER_QUERY_TIMEOUT=0.5,
    )


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest.fixture
def db_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(bind=db_engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


# ---------------------------------------------------------------------------
# Collaborator fakes
# ---------------------------------------------------------------------------


class FakeChannel:
    """Stands in for DeviceChannel; publish() succeeds only while connected."""

    def __init__(self, connected: bool = True) -> None:
        self.connected = connected
        self.published: List[Command] = []
        self.attempts: List[Command] = []
        self.raise_on_publish: Optional[Exception] = None
        self.started = False

    def start(self) -> None:
        self.started = True

    def stop(self) -> None:
        self.started = False

    def publish(self, command: Command) -> bool:
        self.attempts.append(command)
        if self.raise_on_publish is not None:
            raise self.raise_on_publish
        if not self.connected:
            return False
        self.published.append(command)
        return True

    def status(self) -> ConnectionSnapshot:
        return ConnectionSnapshot(
            connected=self.connected,
            state=ConnectionState.CONNECTED if self.connected else ConnectionState.DISCONNECTED,
            broker_address="broker.test:1883",
            command_topic="petfeeder/servo",
            response_topic="petfeeder/servo/response",
        )


class InMemoryScheduleRepository:
    def __init__(self, schedules: Optional[List[ScheduleOut]] = None) -> None:
        self.schedules: List[ScheduleOut] = list(schedules or [])
        self.triggered: Dict[Any, datetime] = {}
        self.fail_queries = False

    def add(self, **kwargs: Any) -> ScheduleOut:
        data = {
            "id": len(self.schedules) + 1,
            "user_id": "user-1",
            "feeding_time": "07:30",
            "portion_size": "small",
            "is_active": True,
        }
        data.update(kwargs)
        schedule = ScheduleOut(**data)
        self.schedules.append(schedule)
        return schedule

    def list_active(self, at_time: str) -> List[ScheduleOut]:
        if self.fail_queries:
            raise RepositoryError("store unreachable")
        return [s for s in self.schedules if s.is_active and s.feeding_time == at_time]

    def mark_triggered(self, schedule_id: Any, when: datetime) -> None:
        self.triggered[schedule_id] = when


class InMemoryLogSink:
    def __init__(self) -> None:
        self.logs: Dict[int, Dict[str, Any]] = {}
        self.fail_appends = False

    def append(self, entry: FeedingLogCreate) -> int:
        if self.fail_appends:
            raise RepositoryError("log store unreachable")
        log_id = len(self.logs) + 1
        self.logs[log_id] = entry.model_dump()
        return log_id

    def mark_failed(self, log_id: int, error_message: str) -> None:
        self.logs[log_id]["status"] = LogStatus.FAILED
        self.logs[log_id]["error_message"] = error_message


@pytest.fixture
def fake_channel() -> FakeChannel:
    return FakeChannel(connected=True)


@pytest.fixture
def schedule_repo() -> InMemoryScheduleRepository:
    return InMemoryScheduleRepository()


@pytest.fixture
def log_sink() -> InMemoryLogSink:
    return InMemoryLogSink()


# ---------------------------------------------------------------------------
# paho client fake
# ---------------------------------------------------------------------------


class FakeMessageInfo:
    def __init__(self, rc: int = mqtt.MQTT_ERR_SUCCESS, published: bool = True, mid: int = 1) -> None:
        self.rc = rc
        self.mid = mid
        self._published = published
        self.wait_timeout: Optional[float] = None

    def wait_for_publish(self, timeout: Optional[float] = None) -> None:
        self.wait_timeout = timeout

    def is_published(self) -> bool:
        return self._published


class FakeMqttClient:
    """Records what DeviceChannel asks of paho; no sockets, no threads."""

    def __init__(self) -> None:
        self.on_pre_connect = None
        self.on_connect = None
        self.on_connect_fail = None
        self.on_disconnect = None
        self.on_message = None

        self.connect_timeout: Optional[float] = None
        self.reconnect_delay: Optional[tuple] = None
        self.connect_args: Optional[tuple] = None
        self.loop_started = False
        self.disconnected = False
        self.subscriptions: List[tuple] = []
        self.published: List[tuple] = []
        self.next_info = FakeMessageInfo()
        self.publish_error: Optional[Exception] = None

    def reconnect_delay_set(self, min_delay: int = 1, max_delay: int = 120) -> None:
        self.reconnect_delay = (min_delay, max_delay)

    def connect_async(self, host: str, port: int = 1883, keepalive: int = 60) -> None:
        if not host:
            raise ValueError("Invalid host.")
        self.connect_args = (host, port, keepalive)

    def loop_start(self) -> int:
        self.loop_started = True
        return mqtt.MQTT_ERR_SUCCESS

    def loop_stop(self) -> int:
        self.loop_started = False
        return mqtt.MQTT_ERR_SUCCESS

    def disconnect(self) -> int:
        self.disconnected = True
        if self.on_disconnect is not None:
            self.on_disconnect(self, None, None, 0, None)
        return mqtt.MQTT_ERR_SUCCESS

    def subscribe(self, topic: str, qos: int = 0):
        self.subscriptions.append((topic, qos))
        return (mqtt.MQTT_ERR_SUCCESS, 1)

    def publish(self, topic: str, payload: bytes, qos: int = 0, retain: bool = False) -> FakeMessageInfo:
        if self.publish_error is not None:
            raise self.publish_error
        self.published.append((topic, payload, qos, retain))
        return self.next_info

    # helpers driving the callbacks like paho's loop thread would

    def simulate_connect(self, reason_code: int = 0) -> None:
        if self.on_pre_connect is not None:
            self.on_pre_connect(self, None)
        self.on_connect(self, None, {}, reason_code, None)

    def simulate_disconnect(self, reason_code: int = 7) -> None:
        self.on_disconnect(self, None, None, reason_code, None)


class FakeMqttMessage:
    def __init__(self, topic: str, payload: bytes) -> None:
        self.topic = topic
        self.payload = payload


@pytest.fixture
def fake_mqtt() -> FakeMqttClient:
    return FakeMqttClient()
