"""
Single-screen controller: show the cached reading on every on-visible event,
refresh on demand. The fetch runs off the event loop; rendering happens on it.
"""
from __future__ import annotations

import asyncio
from typing import Callable

from loguru import logger

from data.fetcher import FetchError, FieldMissing, HttpStatusError, IndicatorFetcher, NoTimestamp
from storage import KEY_LAST_CBBI_VALUE, KeyValueStore

from .formatting import (
    HIGH_THRESHOLD,
    LOW_THRESHOLD,
    STATUS_FAILURE,
    STATUS_LOADING,
    STATUS_NOT_AVAILABLE,
    STATUS_UPDATING,
    DisplayState,
    state_for_text,
    status_error_with_code,
)

Renderer = Callable[[DisplayState], None]


def status_for_error(error: FetchError) -> str:
    """Short status text shown in place of the reading."""
    if isinstance(error, HttpStatusError):
        return status_error_with_code(error.status_code)
    if isinstance(error, (FieldMissing, NoTimestamp)):
        return STATUS_NOT_AVAILABLE
    return STATUS_FAILURE


class IndicatorScreen:
    def __init__(
        self,
        fetcher: IndicatorFetcher,
        store: KeyValueStore,
        render: Renderer,
        key: str = KEY_LAST_CBBI_VALUE,
        high_threshold: float = HIGH_THRESHOLD,
        low_threshold: float = LOW_THRESHOLD,
    ):
        self.fetcher = fetcher
        self.store = store
        self.render = render
        self.key = key
        self.high_threshold = high_threshold
        self.low_threshold = low_threshold

    def _show(self, text: str) -> DisplayState:
        state = state_for_text(text, self.high_threshold, self.low_threshold)
        self.render(state)
        return state

    def on_visible(self) -> DisplayState:
        """Render the last saved reading (placeholder when nothing is cached yet)."""
        cached = self.store.get(self.key)
        return self._show(cached if cached is not None else STATUS_LOADING)

    async def refresh(self) -> DisplayState:
        """Manual refresh. Errors become status text; the cache only takes real readings."""
        self._show(STATUS_UPDATING)
        try:
            reading = await asyncio.to_thread(self.fetcher.fetch)
        except FetchError as e:
            logger.warning(f"Manual refresh failed: {type(e).__name__}: {e}")
            return self._show(status_for_error(e))
        text = str(reading)
        self.store.set(self.key, text)
        logger.info(f"CBBI updated: {text}")
        return self._show(text)
