"""Unit tests for the background refresh job and the periodic scheduler."""
import asyncio

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from data.fetcher import FieldMissing, HttpStatusError, MalformedPayload, NetworkFailure, NoTimestamp
from data.worker import PeriodicScheduler, network_available, refresh_cached_value, run_tick, schedule_refresh_worker


class FakeFetcher:
    url = "https://example.test/latest.json"

    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.calls = 0

    def fetch(self):
        self.calls += 1
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class MemoryStore:
    def __init__(self, data=None):
        self.data = dict(data or {})

    def get(self, key, default=None):
        return self.data.get(key, default)

    def set(self, key, value):
        self.data[key] = value


def test_success_stores_reading():
    store = MemoryStore()
    assert refresh_cached_value(FakeFetcher([47]), store) == "success"
    assert store.data == {"lastCbbiValue": "47"}


def test_endpoint_problems_retry_and_keep_cache():
    for error in (HttpStatusError(503), FieldMissing(), NoTimestamp()):
        store = MemoryStore({"lastCbbiValue": "80"})
        assert refresh_cached_value(FakeFetcher([error]), store) == "retry"
        assert store.data == {"lastCbbiValue": "80"}


def test_hard_failures_do_not_retry():
    for error in (NetworkFailure("timeout"), MalformedPayload("not json")):
        store = MemoryStore()
        assert refresh_cached_value(FakeFetcher([error]), store) == "failure"
        assert store.data == {}


def test_run_tick_retries_until_success():
    store = MemoryStore()
    fetcher = FakeFetcher([HttpStatusError(500), NoTimestamp(), 33])

    async def go():
        loop = asyncio.get_running_loop()
        return await run_tick(lambda: refresh_cached_value(fetcher, store), loop.time() + 5, 0.01)

    assert asyncio.run(go()) == "success"
    assert fetcher.calls == 3
    assert store.get("lastCbbiValue") == "33"


def test_run_tick_stops_retrying_at_deadline():
    fetcher = FakeFetcher([HttpStatusError(500)])

    async def go():
        loop = asyncio.get_running_loop()
        return await run_tick(lambda: refresh_cached_value(fetcher, MemoryStore()), loop.time() + 0.05, 0.02)

    assert asyncio.run(go()) == "retry"
    assert 1 <= fetcher.calls <= 3


def test_run_tick_failure_is_not_retried():
    fetcher = FakeFetcher([NetworkFailure("dns")])

    async def go():
        loop = asyncio.get_running_loop()
        return await run_tick(lambda: refresh_cached_value(fetcher, MemoryStore()), loop.time() + 5, 0.01)

    assert asyncio.run(go()) == "failure"
    assert fetcher.calls == 1


def test_run_tick_waits_for_network():
    checks = iter([False, False, True])
    fetcher = FakeFetcher([12])

    async def go():
        loop = asyncio.get_running_loop()
        return await run_tick(
            lambda: refresh_cached_value(fetcher, MemoryStore()),
            loop.time() + 5,
            0.01,
            connectivity=lambda: next(checks),
        )

    assert asyncio.run(go()) == "success"
    assert fetcher.calls == 1


def test_run_tick_skips_without_network():
    async def go():
        loop = asyncio.get_running_loop()
        return await run_tick(lambda: 1 / 0, loop.time() + 0.03, 0.01, connectivity=lambda: False)

    assert asyncio.run(go()) is None


def test_run_tick_survives_job_exception():
    async def go():
        loop = asyncio.get_running_loop()
        return await run_tick(lambda: 1 / 0, loop.time() + 5, 0.01)

    assert asyncio.run(go()) == "failure"


def test_unique_periodic_keep_does_not_duplicate():
    runs = []

    async def go():
        scheduler = PeriodicScheduler()
        first = scheduler.enqueue_unique_periodic("job", lambda: runs.append("a") or "success", 0.05)
        second = scheduler.enqueue_unique_periodic("job", lambda: runs.append("b") or "success", 0.05)
        await asyncio.sleep(0.12)
        scheduler.cancel_all()
        return first, second

    first, second = asyncio.run(go())
    assert first is second
    assert runs and set(runs) == {"a"}
    assert len(runs) >= 2


def test_unique_periodic_replace_cancels_old():
    runs = []

    async def go():
        scheduler = PeriodicScheduler()
        first = scheduler.enqueue_unique_periodic("job", lambda: runs.append("a") or "success", 10)
        await asyncio.sleep(0.1)
        second = scheduler.enqueue_unique_periodic(
            "job", lambda: runs.append("b") or "success", 10, policy="replace"
        )
        await asyncio.sleep(0.1)
        cancelled = first.cancelled()
        scheduled = scheduler.is_scheduled("job")
        scheduler.cancel_all()
        return first is second, cancelled, scheduled

    same, cancelled, scheduled = asyncio.run(go())
    assert not same
    assert cancelled
    assert scheduled
    assert runs == ["a", "b"]


def test_schedule_refresh_worker_uses_config():
    store = MemoryStore()
    fetcher = FakeFetcher([64])
    config = {
        "worker": {"name": "CbbiPeriodicWorker", "interval_hours": 4, "require_network": False},
        "storage": {"key": "lastCbbiValue"},
    }

    async def go():
        scheduler = PeriodicScheduler()
        task = schedule_refresh_worker(scheduler, fetcher, store, config)
        again = schedule_refresh_worker(scheduler, fetcher, store, config)
        await asyncio.sleep(0.1)
        scheduled = scheduler.is_scheduled("CbbiPeriodicWorker")
        scheduler.cancel_all()
        return task is again, scheduled

    same, scheduled = asyncio.run(go())
    assert same
    assert scheduled
    assert store.get("lastCbbiValue") == "64"
    assert fetcher.calls == 1


def test_network_available_rejects_bad_url():
    assert network_available("not a url") is False
