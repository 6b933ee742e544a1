"""
Persisted key-value store for the last reading (one JSON file per namespace).
Writes are last-writer-wins: no locking and no versioning.
"""
from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Dict, Optional, Protocol

from loguru import logger

PREFS_NAMESPACE = "CbbiAppPrefs"
KEY_LAST_CBBI_VALUE = "lastCbbiValue"


class KeyValueStore(Protocol):
    def get(self, key: str, default: Optional[str] = None) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...


class JsonPreferences:
    """String preferences stored in <base_dir>/<namespace>.json."""

    def __init__(self, base_dir: str, namespace: str = PREFS_NAMESPACE):
        self.base_dir = os.path.expanduser(base_dir)
        self.namespace = namespace
        self.path = Path(self.base_dir) / f"{namespace}.json"

    def _load(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable preferences file {self.path}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Ignoring preferences file {self.path}: not a JSON object")
            return {}
        return {str(k): str(v) for k, v in data.items()}

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        return self._load().get(key, default)

    def set(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = value
        self.path.parent.mkdir(parents=True, exist_ok=True)
        # one temp file per write so concurrent writers never share it
        fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix=f"{self.path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
            os.replace(tmp_path, self.path)
        except BaseException:
            os.unlink(tmp_path)
            raise


def get_store(config: dict) -> JsonPreferences:
    """Build the preferences store from config."""
    storage_cfg = config.get("storage", {})
    return JsonPreferences(
        base_dir=storage_cfg.get("dir", "~/.cbbi"),
        namespace=storage_cfg.get("namespace", PREFS_NAMESPACE),
    )


def cache_key(config: dict) -> str:
    return config.get("storage", {}).get("key", KEY_LAST_CBBI_VALUE)
