"""
Background refresh: the periodic worker job and a small asyncio scheduler for it.
The job only touches the persisted store, never the screen.
"""
from __future__ import annotations

import asyncio
import socket
from typing import Callable, Literal, Optional
from urllib.parse import urlparse

from loguru import logger

from storage import KEY_LAST_CBBI_VALUE, KeyValueStore

from .fetcher import FieldMissing, FetchError, HttpStatusError, IndicatorFetcher, NoTimestamp

WorkResult = Literal["success", "retry", "failure"]
Policy = Literal["keep", "replace"]

WORKER_NAME = "CbbiPeriodicWorker"
DEFAULT_INTERVAL_HOURS = 4
DEFAULT_RETRY_DELAY_SECONDS = 30.0

# Endpoint answered but had nothing usable: try again later in this tick
_RETRYABLE = (HttpStatusError, FieldMissing, NoTimestamp)


def refresh_cached_value(
    fetcher: IndicatorFetcher,
    store: KeyValueStore,
    key: str = KEY_LAST_CBBI_VALUE,
) -> WorkResult:
    """Fetch once and store the reading. Maps fetch errors to retry / failure."""
    try:
        reading = fetcher.fetch()
    except _RETRYABLE as e:
        logger.warning(f"Background refresh will retry: {type(e).__name__}: {e}")
        return "retry"
    except FetchError as e:
        logger.error(f"Background refresh failed: {type(e).__name__}: {e}")
        return "failure"
    store.set(key, str(reading))
    logger.info(f"Background refresh stored CBBI {reading}")
    return "success"


def network_available(url: str, timeout: float = 3.0) -> bool:
    """True if a TCP connection to the URL's host can be opened."""
    parsed = urlparse(url)
    host = parsed.hostname
    if not host:
        return False
    port = parsed.port or (443 if parsed.scheme == "https" else 80)
    try:
        with socket.create_connection((host, port), timeout=timeout):
            return True
    except OSError:
        return False


class PeriodicScheduler:
    """Run named jobs every interval; one live schedule per name."""

    def __init__(self):
        self._tasks: dict[str, asyncio.Task] = {}

    def enqueue_unique_periodic(
        self,
        name: str,
        job: Callable[[], WorkResult],
        interval_seconds: float,
        retry_delay_seconds: float = DEFAULT_RETRY_DELAY_SECONDS,
        connectivity: Optional[Callable[[], bool]] = None,
        policy: Policy = "keep",
    ) -> asyncio.Task:
        """
        Schedule job on the running loop. With policy "keep" an existing live schedule
        under the same name is returned untouched; "replace" cancels it first.
        connectivity, when set, must return True before each attempt.
        """
        existing = self._tasks.get(name)
        if existing is not None and not existing.done():
            if policy == "keep":
                logger.info(f"Periodic work '{name}' already scheduled; keeping it")
                return existing
            logger.info(f"Replacing periodic work '{name}'")
            existing.cancel()
        task = asyncio.create_task(
            self._run_periodic(name, job, interval_seconds, retry_delay_seconds, connectivity),
            name=name,
        )
        self._tasks[name] = task
        logger.info(f"Scheduled periodic work '{name}' every {interval_seconds / 3600:.2f}h")
        return task

    def is_scheduled(self, name: str) -> bool:
        task = self._tasks.get(name)
        return task is not None and not task.done()

    def cancel(self, name: str) -> None:
        task = self._tasks.pop(name, None)
        if task is not None:
            task.cancel()

    def cancel_all(self) -> None:
        for name in list(self._tasks):
            self.cancel(name)

    async def _run_periodic(
        self,
        name: str,
        job: Callable[[], WorkResult],
        interval_seconds: float,
        retry_delay_seconds: float,
        connectivity: Optional[Callable[[], bool]],
    ) -> None:
        loop = asyncio.get_running_loop()
        while True:
            next_tick = loop.time() + interval_seconds
            result = await run_tick(job, next_tick, retry_delay_seconds, connectivity)
            logger.info(f"Periodic work '{name}' finished: {result}")
            await asyncio.sleep(max(0.0, next_tick - loop.time()))


async def run_tick(
    job: Callable[[], WorkResult],
    deadline: float,
    retry_delay_seconds: float,
    connectivity: Optional[Callable[[], bool]] = None,
) -> Optional[WorkResult]:
    """
    One scheduled execution. Waits for connectivity, runs job off the loop and re-runs it
    after retry_delay_seconds while it asks to retry. Gives up at deadline (loop time);
    returns None if the job never ran.
    """
    loop = asyncio.get_running_loop()
    result: Optional[WorkResult] = None
    while True:
        if connectivity is not None and not await asyncio.to_thread(connectivity):
            if loop.time() + retry_delay_seconds >= deadline:
                logger.warning("No network before next tick; skipping this run")
                return result
            logger.info(f"Waiting for network ({retry_delay_seconds}s)")
            await asyncio.sleep(retry_delay_seconds)
            continue
        try:
            result = await asyncio.to_thread(job)
        except Exception as e:
            logger.exception(f"Periodic job error: {e}")
            return "failure"
        if result != "retry":
            return result
        if loop.time() + retry_delay_seconds >= deadline:
            logger.warning("Retry would pass the next tick; giving up for this run")
            return result
        await asyncio.sleep(retry_delay_seconds)


def schedule_refresh_worker(
    scheduler: PeriodicScheduler,
    fetcher: IndicatorFetcher,
    store: KeyValueStore,
    config: dict,
) -> asyncio.Task:
    """Register the CBBI refresh job from config (deduplicated by worker name)."""
    worker_cfg = config.get("worker", {})
    key = config.get("storage", {}).get("key", KEY_LAST_CBBI_VALUE)
    connectivity = None
    if worker_cfg.get("require_network", True):
        connectivity = lambda: network_available(fetcher.url)  # noqa: E731
    return scheduler.enqueue_unique_periodic(
        name=worker_cfg.get("name", WORKER_NAME),
        job=lambda: refresh_cached_value(fetcher, store, key),
        interval_seconds=float(worker_cfg.get("interval_hours", DEFAULT_INTERVAL_HOURS)) * 3600,
        retry_delay_seconds=float(worker_cfg.get("retry_delay_seconds", DEFAULT_RETRY_DELAY_SECONDS)),
        connectivity=connectivity,
        policy="keep",
    )
