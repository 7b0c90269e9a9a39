# backend/petfeeder/main.py

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from petfeeder.core.config import Settings, settings as default_settings
from petfeeder.core.logging_setup import setup_logging
from petfeeder.db.init_db import init as init_db
from petfeeder.db.session import engine as default_engine

from petfeeder.api.v1 import feeding as feeding_router
from petfeeder.api.v1 import schedules as schedules_router

from petfeeder.mqtt.client import DeviceChannel
from petfeeder.scheduler.engine import TriggerEngine
from petfeeder.services.feeding_logs_service import SqlLogSink
from petfeeder.services.schedules_service import SqlScheduleRepository

logger = logging.getLogger(__name__)

SHUTDOWN_TIMEOUT = 15.0


def create_app(
    config: Optional[Settings] = None,
    db_engine: Optional[Engine] = None,
    channel: Optional[DeviceChannel] = None,
    enable_scheduler: Optional[bool] = None,
) -> FastAPI:
    cfg = config or default_settings
    setup_logging(cfg.LOG_LEVEL, cfg.LOG_FORMAT)

    db_engine = db_engine or default_engine
    session_factory = sessionmaker(bind=db_engine, autocommit=False, autoflush=False)
    channel = channel or DeviceChannel(cfg)
    if enable_scheduler is None:
        enable_scheduler = cfg.SCHEDULER_ENABLED

    trigger_engine = TriggerEngine(
        channel,
        SqlScheduleRepository(session_factory),
        SqlLogSink(session_factory),
        config=cfg,
    )

    app = FastAPI(title=cfg.APP_NAME)
    app.state.settings = cfg
    app.state.session_factory = session_factory
    app.state.channel = channel
    app.state.trigger_engine = trigger_engine

    # tables are created before anything can query them; a dead DB is fatal here
    init_db(db_engine)

    origins = [
        origin.strip()
        for origin in cfg.BACKEND_CORS_ORIGINS.split(",")
        if origin.strip()
    ]
    if origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.include_router(feeding_router.router, prefix="/api/v1")
    app.include_router(schedules_router.router, prefix="/api/v1")

    @app.get("/health")
    def health():
        return {
            "status": "ok",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "scheduler": trigger_engine.is_running,
            "mqtt": channel.status().model_dump(mode="json"),
        }

    @app.on_event("startup")
    def on_startup():
        # MQTT loop runs on paho's own thread
        channel.start()
        if enable_scheduler:
            trigger_engine.start()

    @app.on_event("shutdown")
    def on_shutdown():
        # no new ticks, let the running one finish, then drop the broker
        trigger_engine.stop(timeout=SHUTDOWN_TIMEOUT)
        channel.stop()

    return app


app = create_app()
