#!/usr/bin/env python3
"""Session registry.

Thread-safe map of session id -> live session object. This is the only state
shared between concurrent streams, so every mutation happens under one lock and
each operation is atomic on its own (no check-then-act across calls).
"""

from __future__ import annotations

import threading
from typing import Dict, Generic, List, Optional, Tuple, TypeVar

T = TypeVar("T")


class SessionRegistry(Generic[T]):
    def __init__(self):
        self._sessions: Dict[str, T] = {}
        self._lock = threading.Lock()

    def insert_if_absent(self, session_id: str, session: T) -> bool:
        with self._lock:
            if session_id in self._sessions:
                return False
            self._sessions[session_id] = session
            return True

    def replace(self, session_id: str, session: T) -> Optional[T]:
        """Register session, returning whatever was registered before."""
        with self._lock:
            previous = self._sessions.get(session_id)
            self._sessions[session_id] = session
            return previous

    def get(self, session_id: str) -> Optional[T]:
        with self._lock:
            return self._sessions.get(session_id)

    def remove(self, session_id: str, session: Optional[T] = None) -> Optional[T]:
        """Remove and return the entry if present.

        When session is given, the entry is only removed if it is that exact
        object, so a finished stream cannot evict a newer one under the same id.
        """
        with self._lock:
            current = self._sessions.get(session_id)
            if current is None or (session is not None and current is not session):
                return None
            return self._sessions.pop(session_id)

    def pop_all(self) -> List[Tuple[str, T]]:
        with self._lock:
            items = list(self._sessions.items())
            self._sessions.clear()
            return items

    def snapshot(self) -> List[Tuple[str, T]]:
        with self._lock:
            return list(self._sessions.items())

    def __contains__(self, session_id: str) -> bool:
        with self._lock:
            return session_id in self._sessions

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
