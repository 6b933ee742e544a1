"""HTTP transport for the indicator endpoint (requests session, no retries)."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional, Protocol

import requests


class HttpTransport(Protocol):
    def get(self, url: str, headers: Optional[Dict[str, str]] = None) -> requests.Response: ...


@dataclass(frozen=True)
class HTTPConfig:
    timeout_ms: int = 8000
    headers: Optional[Dict[str, str]] = None

    @property
    def timeout(self) -> tuple[float, float]:
        """(connect, read) timeout in seconds; both phases share the same bound."""
        seconds = self.timeout_ms / 1000.0
        return (seconds, seconds)


class RequestsTransport:
    def __init__(self, cfg: HTTPConfig | None = None):
        self.cfg = cfg or HTTPConfig()
        self.session = requests.Session()

    def get(self, url: str, headers: Optional[Dict[str, str]] = None) -> requests.Response:
        h = headers or self.cfg.headers
        return self.session.get(url, headers=h, timeout=self.cfg.timeout)
