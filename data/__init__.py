"""Indicator fetching and background refresh."""
from .fetcher import (
    FetchError,
    FieldMissing,
    HttpStatusError,
    IndicatorFetcher,
    MalformedPayload,
    NetworkFailure,
    NoTimestamp,
    get_fetcher,
)

__all__ = [
    "FetchError",
    "FieldMissing",
    "HttpStatusError",
    "IndicatorFetcher",
    "MalformedPayload",
    "NetworkFailure",
    "NoTimestamp",
    "get_fetcher",
]
