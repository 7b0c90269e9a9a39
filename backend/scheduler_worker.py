# backend/scheduler_worker.py
#
# Runs the MQTT channel and the feeding scheduler without the HTTP API.
# Only one of these (or one API process with SCHEDULER_ENABLED) may run per
# database: the dedup store is per process.

import logging
import signal
import threading

from petfeeder.core.config import settings
from petfeeder.core.logging_setup import setup_logging
from petfeeder.db.init_db import init as init_db
from petfeeder.mqtt.client import DeviceChannel
from petfeeder.scheduler.engine import TriggerEngine
from petfeeder.services.feeding_logs_service import SqlLogSink
from petfeeder.services.schedules_service import SqlScheduleRepository

logger = logging.getLogger("petfeeder.worker")


def main() -> None:
    setup_logging(settings.LOG_LEVEL, settings.LOG_FORMAT)

    init_db()

    channel = DeviceChannel(settings)
    trigger_engine = TriggerEngine(channel, SqlScheduleRepository(), SqlLogSink(), config=settings)

    stop_event = threading.Event()

    def _handle_signal(signum, frame):
        logger.info("[worker] signal %s, shutting down", signum)
        stop_event.set()

    signal.signal(signal.SIGINT, _handle_signal)
    signal.signal(signal.SIGTERM, _handle_signal)

    channel.start()
    trigger_engine.start()
    logger.info("[worker] running, broker=%s", channel.status().broker_address)

    stop_event.wait()

    trigger_engine.stop(timeout=15.0)
    channel.stop()
    logger.info("[worker] bye")


if __name__ == "__main__":
    main()
