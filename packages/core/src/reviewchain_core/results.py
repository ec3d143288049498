"""Per-run persistence of step results and the displayed result."""

from __future__ import annotations

import logging
import threading

from reviewchain_core.errors import PersistenceError
from reviewchain_core.models import DisplayedResult, ReviewResult

logger = logging.getLogger(__name__)


def results_key(run_id: str) -> str:
    return f"reviewResults:{run_id}"


def displayed_key(run_id: str) -> str:
    return f"displayedResult:{run_id}"


class ResultStore:
    """Stores one ReviewResult per step id per run, plus one DisplayedResult per run.

    Writes raise PersistenceError; the pipeline decides whether that matters.
    Reads of missing keys return empty values.
    """

    def __init__(self, backend):
        self._backend = backend
        # Upsert is read-modify-write on a single key.
        self._lock = threading.Lock()

    def get_results(self, run_id: str) -> list[ReviewResult]:
        raw = self._read(results_key(run_id)) or []
        return [ReviewResult.from_dict(r) for r in raw]

    def save_result(self, run_id: str, result: ReviewResult) -> None:
        """Insert ``result`` or replace the entry with the same step id, keeping its position."""
        key = results_key(run_id)
        with self._lock:
            existing = self._read(key) or []
            entry = result.to_dict()
            for i, current in enumerate(existing):
                if current.get("stepId") == result.step_id:
                    existing[i] = entry
                    break
            else:
                existing.append(entry)
            self._write(key, existing)

    def clear_results(self, run_id: str) -> None:
        self._delete(results_key(run_id))

    def get_displayed(self, run_id: str) -> DisplayedResult | None:
        raw = self._read(displayed_key(run_id))
        return DisplayedResult.from_dict(raw) if raw else None

    def save_displayed(self, run_id: str, content: str) -> DisplayedResult:
        displayed = DisplayedResult(content=content)
        self._write(displayed_key(run_id), displayed.to_dict())
        return displayed

    def clear_displayed(self, run_id: str) -> None:
        self._delete(displayed_key(run_id))

    # ------------------------------------------------------------------ #

    def _read(self, key: str):
        try:
            return self._backend.get(key)
        except Exception as e:
            raise PersistenceError(f"Could not read {key}: {e}") from e

    def _write(self, key: str, value) -> None:
        try:
            self._backend.set(key, value)
        except Exception as e:
            raise PersistenceError(f"Could not write {key}: {e}") from e

    def _delete(self, key: str) -> None:
        try:
            self._backend.delete(key)
        except Exception as e:
            raise PersistenceError(f"Could not delete {key}: {e}") from e
