"""Tests for reviewchain-store key-value backends."""

from __future__ import annotations

import json
from unittest.mock import MagicMock

import pytest

from reviewchain_store.base import StoreError
from reviewchain_store.gist import GistBackend
from reviewchain_store.memory import MemoryBackend
from reviewchain_store.sqlite import SQLiteBackend

CONFIG_DOC = {
    "selectedProvider": "claude",
    "providers": {"claude": {"apiKey": "ant", "model": "claude-sonnet-4-20250514"}},
    "reviewSteps": [{"id": "step1", "name": "Scan", "order": 1, "enabled": True, "prompt": "p"}],
}


# ---------------------------------------------------------------------------
# MemoryBackend
# ---------------------------------------------------------------------------


class TestMemoryBackend:
    def test_missing_key_returns_none(self):
        assert MemoryBackend().get("config") is None

    def test_set_and_get(self):
        backend = MemoryBackend()
        backend.set("config", CONFIG_DOC)
        assert backend.get("config") == CONFIG_DOC

    def test_returned_value_is_a_copy(self):
        backend = MemoryBackend()
        backend.set("reviewResults:o-r-1", [{"stepId": "s1"}])
        value = backend.get("reviewResults:o-r-1")
        value.append({"stepId": "s2"})
        assert backend.get("reviewResults:o-r-1") == [{"stepId": "s1"}]

    def test_initial_values(self):
        backend = MemoryBackend(initial={"config": CONFIG_DOC})
        assert backend.get("config")["selectedProvider"] == "claude"

    def test_delete_missing_key_is_noop(self):
        backend = MemoryBackend()
        backend.delete("nope")  # must not raise

    def test_keys_by_prefix(self):
        backend = MemoryBackend()
        backend.set("reviewResults:b", [])
        backend.set("reviewResults:a", [])
        backend.set("displayedResult:a", {})
        assert backend.keys("reviewResults:") == ["reviewResults:a", "reviewResults:b"]

    def test_unserializable_value_raises(self):
        with pytest.raises(TypeError):
            MemoryBackend().set("config", {"x": object()})


# ---------------------------------------------------------------------------
# SQLiteBackend
# ---------------------------------------------------------------------------


class TestSQLiteBackend:
    def test_set_and_get(self, tmp_path):
        backend = SQLiteBackend(db_path=str(tmp_path / "test.db"))
        backend.set("config", CONFIG_DOC)
        assert backend.get("config") == CONFIG_DOC
        backend.close()

    def test_set_replaces(self, tmp_path):
        backend = SQLiteBackend(db_path=str(tmp_path / "test.db"))
        backend.set("displayedResult:o-r-1", {"content": "old"})
        backend.set("displayedResult:o-r-1", {"content": "new"})
        assert backend.get("displayedResult:o-r-1") == {"content": "new"}
        assert backend.keys() == ["displayedResult:o-r-1"]
        backend.close()

    def test_delete(self, tmp_path):
        backend = SQLiteBackend(db_path=str(tmp_path / "test.db"))
        backend.set("reviewResults:o-r-1", [])
        backend.delete("reviewResults:o-r-1")
        backend.delete("reviewResults:o-r-1")
        assert backend.get("reviewResults:o-r-1") is None
        backend.close()

    def test_keys_by_prefix(self, tmp_path):
        backend = SQLiteBackend(db_path=str(tmp_path / "test.db"))
        backend.set("reviewResults:o-r-2", [])
        backend.set("reviewResults:o-r-1", [])
        backend.set("config", {})
        assert backend.keys("reviewResults:") == ["reviewResults:o-r-1", "reviewResults:o-r-2"]
        assert len(backend.keys()) == 3
        backend.close()

    def test_persists_across_connections(self, tmp_path):
        """Data written by one SQLiteBackend instance must be readable by another."""
        db_path = str(tmp_path / "test.db")
        first = SQLiteBackend(db_path=db_path)
        first.set("config", CONFIG_DOC)
        first.close()

        second = SQLiteBackend(db_path=db_path)
        assert second.get("config") == CONFIG_DOC
        second.close()

    def test_closed_connection_raises_store_error(self, tmp_path):
        backend = SQLiteBackend(db_path=str(tmp_path / "test.db"))
        backend.close()
        with pytest.raises(StoreError):
            backend.set("config", {})


# ---------------------------------------------------------------------------
# GistBackend
# ---------------------------------------------------------------------------


def _make_gist_mock(state: dict | None = None):
    """Return a mock Gist object with reviewchain_state.json pre-populated."""
    gist = MagicMock()
    if state is None:
        gist.files = {}
    else:
        file_mock = MagicMock()
        file_mock.content = json.dumps(state)
        gist.files = {"reviewchain_state.json": file_mock}
    return gist


def _make_gist_backend():
    """Return a GistBackend with a mocked Github client."""
    # Github is a local import inside __init__, so bypass it entirely
    # by constructing the object and injecting the mock client directly.
    backend = object.__new__(GistBackend)
    backend._gist_id = "abc123"
    backend._gh = MagicMock()
    return backend


def _written_state(gist) -> dict:
    return json.loads(gist.edit.call_args[1]["files"]["reviewchain_state.json"]["content"])


class TestGistBackend:
    def test_get_from_empty_gist(self):
        backend = _make_gist_backend()
        backend._gh.get_gist.return_value = _make_gist_mock()
        assert backend.get("config") is None

    def test_get_existing_key(self):
        backend = _make_gist_backend()
        backend._gh.get_gist.return_value = _make_gist_mock({"config": CONFIG_DOC})
        assert backend.get("config") == CONFIG_DOC

    def test_set_keeps_other_keys(self):
        backend = _make_gist_backend()
        gist = _make_gist_mock({"config": CONFIG_DOC})
        backend._gh.get_gist.return_value = gist

        backend.set("displayedResult:o-r-1", {"content": "done"})

        gist.edit.assert_called_once()
        state = _written_state(gist)
        assert state["config"] == CONFIG_DOC
        assert state["displayedResult:o-r-1"] == {"content": "done"}

    def test_delete_removes_key(self):
        backend = _make_gist_backend()
        gist = _make_gist_mock({"config": CONFIG_DOC, "reviewResults:o-r-1": []})
        backend._gh.get_gist.return_value = gist

        backend.delete("reviewResults:o-r-1")

        assert _written_state(gist) == {"config": CONFIG_DOC}

    def test_unreadable_state_is_treated_as_empty(self):
        backend = _make_gist_backend()
        gist = MagicMock()
        file_mock = MagicMock()
        file_mock.content = "{not json"
        gist.files = {"reviewchain_state.json": file_mock}
        backend._gh.get_gist.return_value = gist

        assert backend.get("config") is None

    def test_write_failure_raises_store_error(self):
        backend = _make_gist_backend()
        backend._gh.get_gist.side_effect = Exception("network error")

        with pytest.raises(StoreError, match="network error"):
            backend.set("config", CONFIG_DOC)

    def test_read_failure_raises_store_error(self):
        backend = _make_gist_backend()
        backend._gh.get_gist.side_effect = Exception("rate limited")

        with pytest.raises(StoreError):
            backend.get("config")

    def test_keys_returns_empty_on_error(self):
        backend = _make_gist_backend()
        backend._gh.get_gist.side_effect = Exception("network error")
        assert backend.keys() == []
