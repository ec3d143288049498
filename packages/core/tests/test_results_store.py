"""Tests for ResultStore upsert semantics and displayed-result handling."""

import pytest

from reviewchain_core.errors import PersistenceError
from reviewchain_core.models import ReviewResult
from reviewchain_core.results import ResultStore, displayed_key, results_key


class DictBackend:
    def __init__(self):
        self.data = {}

    def get(self, key):
        return self.data.get(key)

    def set(self, key, value):
        self.data[key] = value

    def delete(self, key):
        self.data.pop(key, None)


@pytest.fixture
def store():
    return ResultStore(DictBackend())


def _result(step_id, content, timestamp="2025-01-01T00:00:00+00:00"):
    return ReviewResult(step_id=step_id, step_name=step_id.title(), content=content, timestamp=timestamp)


def test_keys():
    assert results_key("o-r-1") == "reviewResults:o-r-1"
    assert displayed_key("o-r-1") == "displayedResult:o-r-1"


def test_missing_run_is_empty(store):
    assert store.get_results("o-r-1") == []
    assert store.get_displayed("o-r-1") is None


def test_save_appends_in_order(store):
    store.save_result("o-r-1", _result("s1", "A"))
    store.save_result("o-r-1", _result("s2", "B"))
    assert [r.step_id for r in store.get_results("o-r-1")] == ["s1", "s2"]


def test_same_step_is_replaced_in_place(store):
    store.save_result("o-r-1", _result("s1", "A"))
    store.save_result("o-r-1", _result("s2", "B"))
    store.save_result("o-r-1", _result("s1", "A2", timestamp="2025-01-02T00:00:00+00:00"))

    results = store.get_results("o-r-1")
    assert [r.step_id for r in results] == ["s1", "s2"]
    assert results[0].content == "A2"
    assert results[0].timestamp.startswith("2025-01-02")


def test_runs_are_isolated(store):
    store.save_result("o-r-1", _result("s1", "one"))
    store.save_result("o-r-2", _result("s1", "two"))
    assert store.get_results("o-r-1")[0].content == "one"
    assert store.get_results("o-r-2")[0].content == "two"


def test_persisted_as_camel_case(store):
    store.save_result("o-r-1", _result("s1", "A"))
    raw = store._backend.data["reviewResults:o-r-1"]
    assert raw == [
        {"stepId": "s1", "stepName": "S1", "content": "A", "timestamp": "2025-01-01T00:00:00+00:00"}
    ]


def test_clear_results(store):
    store.save_result("o-r-1", _result("s1", "A"))
    store.clear_results("o-r-1")
    assert store.get_results("o-r-1") == []


def test_displayed_round_trip(store):
    saved = store.save_displayed("o-r-1", "final text")
    loaded = store.get_displayed("o-r-1")
    assert loaded.content == "final text"
    assert loaded.timestamp == saved.timestamp
    assert "+00:00" in loaded.timestamp

    store.clear_displayed("o-r-1")
    assert store.get_displayed("o-r-1") is None


def test_read_failure_raises_persistence_error():
    class Broken(DictBackend):
        def get(self, key):
            raise OSError("locked")

    with pytest.raises(PersistenceError, match="reviewResults:o-r-1"):
        ResultStore(Broken()).get_results("o-r-1")
