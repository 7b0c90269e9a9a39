"""Tests for services/dedup_store.py."""

from __future__ import annotations

import threading

from petfeeder.services.dedup_store import TriggerDedupStore


def test_mark_and_check() -> None:
    store = TriggerDedupStore()
    assert not store.has_fired(1, "2026-10-19")
    store.mark_fired(1, "2026-10-19")
    assert store.has_fired(1, "2026-10-19")
    assert store.has_fired("1", "2026-10-19")
    assert not store.has_fired(1, "2026-10-20")
    assert not store.has_fired(2, "2026-10-19")


def test_reset_all_clears_everything() -> None:
    store = TriggerDedupStore()
    store.mark_fired(1, "2026-10-19")
    store.mark_fired(2, "2026-10-19")
    assert store.reset_all() == 2
    assert len(store) == 0
    assert not store.has_fired(1, "2026-10-19")


def test_concurrent_marks_are_all_recorded() -> None:
    store = TriggerDedupStore()
    barrier = threading.Barrier(8)

    def worker(schedule_id: int) -> None:
        barrier.wait()
        store.mark_fired(schedule_id, "2026-10-19")
        store.mark_fired(schedule_id, "2026-10-19")

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert len(store) == 8
