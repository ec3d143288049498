"""In-memory backend — used by tests and by `--store memory` one-off runs.

Values are stored as JSON text, so callers never share mutable state with the
backend and anything that would not survive a real backend fails here too.
"""

from __future__ import annotations

import json
import threading
from typing import Any

from reviewchain_store.base import KeyValueBackend


class MemoryBackend(KeyValueBackend):
    """Process-local dict of JSON strings guarded by a lock."""

    def __init__(self, initial: dict[str, Any] | None = None):
        self._data: dict[str, str] = {}
        self._lock = threading.Lock()
        for key, value in (initial or {}).items():
            self.set(key, value)

    def get(self, key: str) -> Any | None:
        with self._lock:
            raw = self._data.get(key)
        return json.loads(raw) if raw is not None else None

    def set(self, key: str, value: Any) -> None:
        encoded = json.dumps(value)
        with self._lock:
            self._data[key] = encoded

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def keys(self, prefix: str = "") -> list[str]:
        with self._lock:
            return sorted(k for k in self._data if k.startswith(prefix))
