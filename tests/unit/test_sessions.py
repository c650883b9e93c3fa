from __future__ import annotations

import pytest
from fastapi import HTTPException

from apps.api.sessions import SessionStore


class Job:
    def __init__(self, name, done=False):
        self.name = name
        self.done = done
        self.closed = False


def test_unknown_id_is_404_with_kind():
    store = SessionStore("audit")
    with pytest.raises(HTTPException) as e:
        store.get("nope")
    assert e.value.status_code == 404
    assert e.value.detail == "audit_not_found"


def test_cap_evicts_least_recently_used():
    store = SessionStore("job", max_sessions=2)
    store.add(Job("a"), "a")
    store.add(Job("b"), "b")
    store.get("a")
    store.add(Job("c"), "c")
    assert len(store) == 2
    assert "b" not in store
    assert "a" in store and "c" in store


def test_finished_sessions_are_evicted_first():
    evicted = []
    store = SessionStore(
        "job",
        max_sessions=3,
        is_finished=lambda j: j.done,
        on_evict=lambda j: evicted.append(j.name),
    )
    store.add(Job("old"), "old")
    store.add(Job("done", done=True), "done")
    store.add(Job("new"), "new")
    store.add(Job("newer"), "newer")
    assert evicted == ["done"]
    assert "old" in store
    assert len(store) == 3


def test_evict_callback_runs_for_unfinished_fallback():
    store = SessionStore("job", max_sessions=1, on_evict=lambda j: setattr(j, "closed", True))
    first = Job("a")
    store.add(first)
    store.add(Job("b"))
    assert first.closed is True
    assert len(store) == 1


def test_pop_removes_without_evict_callback():
    evicted = []
    store = SessionStore("job", on_evict=evicted.append)
    sid = store.add(Job("a"))
    assert store.pop(sid).name == "a"
    assert len(store) == 0
    assert evicted == []


def test_cap_must_be_positive():
    with pytest.raises(ValueError):
        SessionStore("job", max_sessions=0)
