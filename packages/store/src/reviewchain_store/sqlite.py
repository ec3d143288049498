"""SQLiteBackend — local file-based store, the CLI default.

Why SQLite as the local store:
- Batteries included: ships with Python, no extra dependencies.
- Each set() is one INSERT OR REPLACE inside its own transaction, so a
  single key is never observed half-written.
- The same file can be shared between CLI invocations to keep configuration
  and past review results around.

Schema:
  kv  — one row per key, value stored as JSON text.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
from typing import Any

from reviewchain_store.base import KeyValueBackend, StoreError

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS kv (
    key         TEXT PRIMARY KEY,
    value_json  TEXT NOT NULL,
    updated_at  TEXT DEFAULT CURRENT_TIMESTAMP
);
"""


class SQLiteBackend(KeyValueBackend):
    """Stores JSON values in a local SQLite database file.

    The database file path defaults to `.reviewchain.db` in the current
    working directory. Configure via .reviewchain.yml: `store_path: /path/to/db`.
    """

    def __init__(self, db_path: str = ".reviewchain.db"):
        # Pipeline runs may execute on worker threads; access is serialized below.
        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.executescript(_SCHEMA)
        self._conn.commit()
        self._lock = threading.Lock()

    def get(self, key: str) -> Any | None:
        try:
            with self._lock:
                row = self._conn.execute("SELECT value_json FROM kv WHERE key=?", (key,)).fetchone()
        except sqlite3.Error as e:
            raise StoreError(f"SQLite read of {key!r} failed: {e}") from e
        return json.loads(row["value_json"]) if row is not None else None

    def set(self, key: str, value: Any) -> None:
        encoded = json.dumps(value)
        try:
            with self._lock, self._conn:
                self._conn.execute(
                    "INSERT OR REPLACE INTO kv (key, value_json, updated_at) VALUES (?, ?, CURRENT_TIMESTAMP)",
                    (key, encoded),
                )
        except sqlite3.Error as e:
            raise StoreError(f"SQLite write of {key!r} failed: {e}") from e

    def delete(self, key: str) -> None:
        try:
            with self._lock, self._conn:
                self._conn.execute("DELETE FROM kv WHERE key=?", (key,))
        except sqlite3.Error as e:
            raise StoreError(f"SQLite delete of {key!r} failed: {e}") from e

    def keys(self, prefix: str = "") -> list[str]:
        with self._lock:
            rows = self._conn.execute(
                "SELECT key FROM kv WHERE substr(key, 1, ?) = ? ORDER BY key",
                (len(prefix), prefix),
            ).fetchall()
        return [r["key"] for r in rows]

    def close(self) -> None:
        self._conn.close()
