# backend/petfeeder/scheduler/engine.py

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, List, Optional, Protocol
from zoneinfo import ZoneInfo

from petfeeder.core.config import Settings, settings as default_settings
from petfeeder.core.exceptions import RepositoryError
from petfeeder.schemas.command import Command, CommandAction, ConnectionSnapshot
from petfeeder.schemas.feeding_log import FeedingLogCreate, LogStatus, TriggerType
from petfeeder.schemas.schedule import ScheduleOut
from petfeeder.scheduler.ticker import DailyTicker, IntervalTicker
from petfeeder.services.command_encoder import build_command, portion_settings
from petfeeder.services.dedup_store import TriggerDedupStore

logger = logging.getLogger(__name__)

SCHEDULED_FEED_ACTION = "Scheduled Feed"
OFFLINE_ERROR = "Device offline: MQTT not connected"
SEND_ERROR = "Failed to send command to device"


class ScheduleRepository(Protocol):
    def list_active(self, at_time: str) -> List[ScheduleOut]: ...

    def mark_triggered(self, schedule_id: Any, when: datetime) -> None: ...


class LogSink(Protocol):
    def append(self, entry: FeedingLogCreate) -> Any: ...

    def mark_failed(self, log_id: Any, error_message: str) -> None: ...


class CommandChannel(Protocol):
    def publish(self, command: Command) -> bool: ...

    def status(self) -> ConnectionSnapshot: ...


@dataclass
class TickReport:
    current_time: str
    current_date: str
    ran: bool = True
    matched: int = 0
    fired: List[Any] = field(default_factory=list)
    failed: List[Any] = field(default_factory=list)
    skipped: List[Any] = field(default_factory=list)
    error: Optional[str] = None


class TriggerEngine:
    """Turns wall-clock minutes into feed commands, once per schedule per day.

    A feed that fails to publish is logged as failed and NOT marked fired.
    Because feeding_time matches only one minute a day, that feed is not
    retried until tomorrow.
    """

    def __init__(
        self,
        channel: CommandChannel,
        schedules: ScheduleRepository,
        logs: LogSink,
        dedup: Optional[TriggerDedupStore] = None,
        config: Optional[Settings] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        cfg = config or default_settings
        self.channel = channel
        self.schedules = schedules
        self.logs = logs
        self.config = cfg
        self.dedup = dedup if dedup is not None else TriggerDedupStore()

        self.tz = ZoneInfo(cfg.SCHEDULER_TIMEZONE) if cfg.SCHEDULER_TIMEZONE else None
        self._clock = clock or self.now
        self._query_timeout = cfg.SCHEDULER_QUERY_TIMEOUT

        self._tick_lock = threading.Lock()
        self._executor: Optional[ThreadPoolExecutor] = None
        self._ticker = IntervalTicker(cfg.SCHEDULER_TICK_SECONDS, self.tick, name="feeding-tick")
        self._daily = DailyTicker(self.reset_day, tz=self.tz, name="dedup-reset")

    def now(self) -> datetime:
        if self.tz is not None:
            return datetime.now(self.tz)
        return datetime.now().astimezone()

    # ========== lifecycle ==========

    def start(self) -> None:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="sched-repo")
        self._ticker.start()
        self._daily.start()
        logger.info("[SCHED] Feeding scheduler initialized (tz=%s)", self.tz or "local")

    def stop(self, timeout: Optional[float] = None) -> None:
        """No new ticks; waits up to ``timeout`` for the in-flight tick."""
        self._ticker.stop(timeout)
        self._daily.stop(timeout)
        if self._executor is not None:
            self._executor.shutdown(wait=False, cancel_futures=True)
            self._executor = None
        logger.info("[SCHED] Feeding scheduler stopped")

    @property
    def is_running(self) -> bool:
        return self._ticker.is_running

    # ========== jobs ==========

    def reset_day(self) -> int:
        cleared = self.dedup.reset_all()
        logger.info("[SCHED] Triggered schedules cleared for new day (%d entries)", cleared)
        return cleared

    def tick(self, now: Optional[datetime] = None) -> TickReport:
        if now is None:
            now = self._clock()
        current_time = now.strftime("%H:%M")
        current_date = now.date().isoformat()

        if not self._tick_lock.acquire(blocking=False):
            logger.warning("[SCHED] previous tick still running, skipping %s", current_time)
            return TickReport(current_time, current_date, ran=False)
        try:
            return self._run_tick(now, current_time, current_date)
        finally:
            self._tick_lock.release()

    def _run_tick(self, now: datetime, current_time: str, current_date: str) -> TickReport:
        report = TickReport(current_time, current_date)

        try:
            schedules = self._call_repo(self.schedules.list_active, current_time)
        except Exception as e:
            logger.error("[SCHED] Scheduler error: %s", e)
            report.error = str(e)
            return report

        report.matched = len(schedules)
        for schedule in schedules:
            if self.dedup.has_fired(schedule.id, current_date):
                report.skipped.append(schedule.id)
                continue
            try:
                delivered = self._trigger(schedule, now, current_date)
            except Exception:
                logger.exception("[SCHED] schedule %s failed", schedule.id)
                delivered = False
            if delivered:
                report.fired.append(schedule.id)
            else:
                report.failed.append(schedule.id)

        if report.matched:
            logger.info(
                "[SCHED] tick %s %s: matched=%d fired=%d failed=%d skipped=%d",
                current_date, current_time, report.matched,
                len(report.fired), len(report.failed), len(report.skipped),
            )
        return report

    def _trigger(self, schedule: ScheduleOut, now: datetime, current_date: str) -> bool:
        logger.info(
            "[SCHED] Triggering scheduled feeding for user %s (schedule %s, %s)",
            schedule.user_id, schedule.id, schedule.portion_size,
        )
        portion = portion_settings(schedule.portion_size, config=self.config)

        log_id = None
        try:
            log_id = self._call_repo(
                self.logs.append,
                FeedingLogCreate(
                    user_id=schedule.user_id,
                    schedule_id=schedule.id,
                    action=SCHEDULED_FEED_ACTION,
                    status=LogStatus.SUCCESS,
                    portion_size=schedule.portion_size,
                    servo_angle=portion.angle,
                    trigger_type=TriggerType.SCHEDULED,
                    timestamp=now,
                ),
            )
        except Exception as e:
            # still feed; the command just goes out without a logId
            logger.error("[SCHED] feeding log for schedule %s not written: %s", schedule.id, e)

        command = build_command(
            CommandAction.FEED,
            schedule.portion_size,
            schedule_id=schedule.id,
            log_id=log_id,
            now=now,
            config=self.config,
        )

        error = None
        try:
            delivered = self.channel.publish(command)
        except Exception as e:
            delivered = False
            error = f"publish error: {e}"

        if delivered:
            self.dedup.mark_fired(schedule.id, current_date)
            try:
                self._call_repo(self.schedules.mark_triggered, schedule.id, now)
            except Exception as e:
                logger.error("[SCHED] last_triggered for schedule %s not saved: %s", schedule.id, e)
            logger.info("[SCHED] Scheduled feeding completed for schedule %s", schedule.id)
            return True

        if error is None:
            error = SEND_ERROR if self.channel.status().connected else OFFLINE_ERROR
        logger.error("[SCHED] Servo activation failed for schedule %s: %s", schedule.id, error)

        if log_id is not None:
            try:
                self._call_repo(self.logs.mark_failed, log_id, error)
            except Exception as e:
                logger.error("[SCHED] feeding log %s not marked failed: %s", log_id, e)
        return False

    def _call_repo(self, fn: Callable[..., Any], *args: Any) -> Any:
        """Run a repository/sink call with the query timeout.

        Without a running executor (engine not started, e.g. direct tick()
        calls) the call runs inline.
        """
        executor = self._executor
        if executor is None:
            return fn(*args)

        future = executor.submit(fn, *args)
        try:
            return future.result(timeout=self._query_timeout)
        except FutureTimeout as e:
            future.cancel()
            name = getattr(fn, "__name__", repr(fn))
            raise RepositoryError(f"{name} timed out after {self._query_timeout}s") from e
