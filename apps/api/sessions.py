from __future__ import annotations

import logging
from collections import OrderedDict
from contextlib import contextmanager
from typing import Callable, Generic, Iterator, Optional, TypeVar
from uuid import uuid4

from fastapi import HTTPException

from services.workflow.sequencer import WorkflowError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_SESSIONS = 256


class SessionStore(Generic[T]):
    """
    In-process registry of live workflow instances; gone on restart.

    Holds at most max_sessions entries. Opening one more evicts the least
    recently used finished session, or the least recently used one when
    none is finished. on_evict gets each evicted object.
    """

    def __init__(
        self,
        kind: str,
        *,
        max_sessions: int = DEFAULT_MAX_SESSIONS,
        is_finished: Optional[Callable[[T], bool]] = None,
        on_evict: Optional[Callable[[T], None]] = None,
    ) -> None:
        if max_sessions < 1:
            raise ValueError(f"max_sessions must be at least 1, got {max_sessions}")
        self.kind = kind
        self.max_sessions = max_sessions
        self.is_finished = is_finished
        self.on_evict = on_evict
        self._items: "OrderedDict[str, T]" = OrderedDict()

    def add(self, obj: T, session_id: str = "") -> str:
        sid = session_id or uuid4().hex
        self._items.pop(sid, None)
        while len(self._items) >= self.max_sessions:
            self._evict_one()
        self._items[sid] = obj
        logger.debug("%s session opened: %s", self.kind, sid)
        return sid

    def get(self, session_id: str) -> T:
        obj = self._items.get(session_id)
        if obj is None:
            raise HTTPException(status_code=404, detail=f"{self.kind}_not_found")
        self._items.move_to_end(session_id)
        return obj

    def pop(self, session_id: str) -> T:
        obj = self.get(session_id)
        del self._items[session_id]
        return obj

    def _evict_one(self) -> None:
        victim = next(iter(self._items))
        if self.is_finished is not None:
            victim = next((sid for sid, obj in self._items.items() if self.is_finished(obj)), victim)
        obj = self._items.pop(victim)
        logger.info("%s session evicted: %s", self.kind, victim)
        if self.on_evict is not None:
            self.on_evict(obj)

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._items


@contextmanager
def http_errors() -> Iterator[None]:
    try:
        yield
    except WorkflowError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
