"""Abstract key-value backend interface.

The configuration document, per-run step results and displayed results are
all stored as JSON values under string keys. reviewchain_core only needs
get/set/delete, so any backend (memory, SQLite, Gist, ...) is swappable
without touching the pipeline.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class StoreError(Exception):
    """Raised by a backend when it cannot complete a read or write."""


class KeyValueBackend(ABC):
    """Pluggable persistence for JSON-serializable values.

    A single set() must be atomic from the caller's point of view: readers see
    either the old value or the new one, never a partial write. No guarantee
    is made across several keys.
    """

    @abstractmethod
    def get(self, key: str) -> Any | None:
        """Return the value stored under ``key``, or None if absent."""

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        """Store ``value`` under ``key``, replacing any previous value."""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove ``key``. Deleting a missing key is not an error."""

    def keys(self, prefix: str = "") -> list[str]:
        """Return the stored keys starting with ``prefix``.

        Optional — backends that cannot enumerate return an empty list.
        """
        return []

    def close(self) -> None:
        """Release any resources held by the backend (connections, file handles).

        Optional — subclasses that need cleanup should override this.
        Default is a no-op so callers can always call close() safely.
        """
