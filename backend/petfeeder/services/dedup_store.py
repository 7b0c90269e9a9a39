# backend/petfeeder/services/dedup_store.py

from __future__ import annotations

import threading
from typing import Any, NamedTuple, Set


class TriggerKey(NamedTuple):
    schedule_id: str
    date: str  # local calendar day, YYYY-MM-DD


class TriggerDedupStore:
    """(schedule, day) pairs that already fired.

    - In-memory only: lost on restart and not shared between processes, so two
      engines against the same database will both fire.
    - Entries only go away through reset_all(), called at local midnight.
    """

    def __init__(self) -> None:
        self._fired: Set[TriggerKey] = set()
        self._lock = threading.Lock()

    @staticmethod
    def _key(schedule_id: Any, date: str) -> TriggerKey:
        return TriggerKey(str(schedule_id), date)

    def has_fired(self, schedule_id: Any, date: str) -> bool:
        with self._lock:
            return self._key(schedule_id, date) in self._fired

    def mark_fired(self, schedule_id: Any, date: str) -> None:
        with self._lock:
            self._fired.add(self._key(schedule_id, date))

    def reset_all(self) -> int:
        with self._lock:
            cleared = len(self._fired)
            self._fired.clear()
        return cleared

    def __len__(self) -> int:
        with self._lock:
            return len(self._fired)
