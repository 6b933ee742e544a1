"""
CBBI indicator fetcher.
GET the latest.json payload, pick the newest "Confidence" sample and turn it into a 0-100 reading.
"""
from __future__ import annotations

import json
import math
import re
from typing import Any

import pandas as pd
import requests

from loguru import logger

from .http import HTTPConfig, HttpTransport, RequestsTransport

DEFAULT_URL = "https://colintalkscrypto.com/cbbi/data/latest.json"
DEFAULT_TIMEOUT_MS = 8000
CONFIDENCE_FIELD = "Confidence"

_INT_KEY = re.compile(r"[+-]?[0-9]+")
_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1


class FetchError(Exception):
    """Base class for every way a fetch can fail."""


class NetworkFailure(FetchError):
    """Connection, DNS, timeout or I/O error while talking to the endpoint."""


class HttpStatusError(FetchError):
    def __init__(self, status_code: int):
        super().__init__(f"HTTP {status_code}")
        self.status_code = status_code


class FieldMissing(FetchError):
    def __init__(self, field: str = CONFIDENCE_FIELD):
        super().__init__(f"'{field}' not found in payload")
        self.field = field


class NoTimestamp(FetchError):
    def __init__(self):
        super().__init__(f"'{CONFIDENCE_FIELD}' has no integer timestamp key")


class MalformedPayload(FetchError):
    """Body is not the expected JSON shape (not JSON, not an object, non-numeric sample)."""


def _parse_timestamp(key: str) -> int | None:
    """Integer timestamp for a key, or None when the key is not a plain 64-bit integer."""
    if not _INT_KEY.fullmatch(key):
        return None
    ts = int(key)
    if ts < _INT64_MIN or ts > _INT64_MAX:
        return None
    return ts


def _as_number(value: Any) -> Any:
    # bools are ints in Python but never a valid sample
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        return None
    if isinstance(value, int):
        try:
            return float(value)
        except OverflowError:
            return math.copysign(math.inf, value)
    return value


def parse_confidence_series(payload: Any) -> pd.Series:
    """
    Return the "Confidence" samples as a float Series indexed by integer timestamp (ascending).
    Keys that are not integers are skipped. Non-numeric samples become NaN.
    """
    if not isinstance(payload, dict):
        raise MalformedPayload("top-level JSON value is not an object")
    if CONFIDENCE_FIELD not in payload:
        raise FieldMissing()
    confidence = payload[CONFIDENCE_FIELD]
    if not isinstance(confidence, dict):
        raise MalformedPayload(f"'{CONFIDENCE_FIELD}' is not an object")

    samples: dict[int, Any] = {}
    for key, value in confidence.items():
        ts = _parse_timestamp(key)
        if ts is None:
            continue
        # "0100" and "100" collide; the canonical spelling owns the timestamp
        if ts in samples and key != str(ts):
            continue
        samples[ts] = _as_number(value)
    if not samples:
        raise NoTimestamp()

    series = pd.Series(list(samples.values()), index=list(samples.keys()), dtype=object)
    try:
        series = pd.to_numeric(series, errors="coerce").astype(float)
    except (OverflowError, TypeError, ValueError) as e:
        raise MalformedPayload(f"'{CONFIDENCE_FIELD}' samples are not numbers: {e}") from e
    series.index = series.index.astype("int64")
    series.index.name = "timestamp"
    series.name = CONFIDENCE_FIELD
    return series.sort_index()


def latest_reading(payload: Any) -> int:
    """Reading (0-100) for the sample with the largest timestamp."""
    series = parse_confidence_series(payload)
    latest_ts = int(series.index[-1])
    value = series.iloc[-1]
    if math.isnan(value):
        raise MalformedPayload(f"sample at {latest_ts} is not a number")
    sample = min(1.0, max(0.0, float(value)))
    if sample != value:
        logger.warning(f"CBBI sample {value} at {latest_ts} outside [0, 1]; clamped to {sample}")
    # round() is half-to-even
    return round(sample * 100)


class IndicatorFetcher:
    """Fetch the latest CBBI confidence reading from a JSON endpoint."""

    def __init__(
        self,
        url: str = DEFAULT_URL,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        transport: HttpTransport | None = None,
    ):
        self.url = url
        self.timeout_ms = timeout_ms
        self.transport = transport or RequestsTransport(HTTPConfig(timeout_ms=timeout_ms))

    def fetch(self) -> int:
        """
        Return the latest reading as an int in [0, 100].
        Raises a FetchError subclass on failure; never retries.
        """
        try:
            r = self.transport.get(self.url)
            if r.status_code != 200:
                raise HttpStatusError(r.status_code)
            body = r.text
        except requests.RequestException as e:
            raise NetworkFailure(str(e)) from e

        try:
            payload = json.loads(body)
        except ValueError as e:
            raise MalformedPayload(f"invalid JSON: {e}") from e

        reading = latest_reading(payload)
        logger.debug(f"CBBI reading {reading} from {self.url}")
        return reading


def get_fetcher(config: dict) -> IndicatorFetcher:
    """Build IndicatorFetcher from config."""
    cbbi_cfg = config.get("cbbi", {})
    return IndicatorFetcher(
        url=cbbi_cfg.get("url", DEFAULT_URL),
        timeout_ms=int(cbbi_cfg.get("timeout_ms", DEFAULT_TIMEOUT_MS)),
    )
