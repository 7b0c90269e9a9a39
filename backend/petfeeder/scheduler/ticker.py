"""
Periodic jobs for the scheduler.

IntervalTicker fires on wall-clock boundaries of its interval (every minute on
the minute for the trigger engine). DailyTicker fires at local midnight.

Both run their callback on one dedicated thread, so a slow callback can never
overlap the next run: intervals that pass while the callback is still running
are skipped, not queued. stop() is the cancellation handle.
"""

import logging
import threading
import time
from datetime import datetime, timedelta, tzinfo
from typing import Callable, Optional

logger = logging.getLogger(__name__)


def seconds_until_next_midnight(now: datetime) -> float:
    """Seconds from ``now`` until the next local 00:00 in now's zone."""
    tomorrow = (now + timedelta(days=1)).date()
    midnight = datetime(tomorrow.year, tomorrow.month, tomorrow.day, tzinfo=now.tzinfo)
    # timestamp() honours the UTC offset on both sides, so DST days come out right
    return max(0.0, midnight.timestamp() - now.timestamp())


class _TickerThread:
    def __init__(self, callback: Callable[[], None], name: str) -> None:
        self.callback = callback
        self.name = name

        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.execution_count = 0
        self.skipped_count = 0

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.is_running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name=self.name, daemon=True)
        self._thread.start()
        logger.info("[SCHED] %s started", self.name)

    def stop(self, timeout: Optional[float] = None) -> bool:
        """Signal the thread and wait for a running callback to finish.

        Returns False if the thread was still busy after ``timeout``.
        """
        self._stop_event.set()
        thread = self._thread
        if thread is None:
            return True
        thread.join(timeout)
        if thread.is_alive():
            logger.warning("[SCHED] %s still running after %ss", self.name, timeout)
            return False
        self._thread = None
        logger.info("[SCHED] %s stopped", self.name)
        return True

    def _next_delay(self) -> float:
        raise NotImplementedError

    def _run(self) -> None:
        while not self._stop_event.is_set():
            if self._stop_event.wait(self._next_delay()):
                break
            try:
                self.callback()
                self.execution_count += 1
            except Exception:
                logger.exception("[SCHED] %s callback error", self.name)


class IntervalTicker(_TickerThread):
    def __init__(
        self,
        interval_seconds: float,
        callback: Callable[[], None],
        name: str = "interval-ticker",
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError(f"interval_seconds must be positive, got {interval_seconds}")
        super().__init__(callback, name)
        self.interval = interval_seconds
        self._next_run: Optional[float] = None

    def _next_delay(self) -> float:
        now = time.time()
        if self._next_run is None:
            # align the first run to the next interval boundary
            self._next_run = ((now // self.interval) + 1) * self.interval
        else:
            self._next_run += self.interval
            skipped = 0
            while self._next_run <= now:
                self._next_run += self.interval
                skipped += 1
            if skipped:
                self.skipped_count += skipped
                logger.warning("[SCHED] %s skipped %d interval(s)", self.name, skipped)
        return max(0.0, self._next_run - now)


class DailyTicker(_TickerThread):
    def __init__(
        self,
        callback: Callable[[], None],
        tz: Optional[tzinfo] = None,
        name: str = "daily-ticker",
    ) -> None:
        super().__init__(callback, name)
        self.tz = tz

    def _next_delay(self) -> float:
        now = datetime.now(self.tz) if self.tz is not None else datetime.now()
        # +1s so the wakeup lands after midnight even with coarse timers
        return seconds_until_next_midnight(now) + 1.0
