#!/usr/bin/env python3
"""Session lifecycle event bus (publish/subscribe) + in-memory event buffer.

Controllers publish lifecycle events (session.started, session.stopped, ...).
Subscribers get them synchronously; the server wires one that relays them over
Socket.IO. A bounded buffer keeps recent events so clients can poll them.

Also home to the SSE wire formatting used by the streaming responses.
"""

from __future__ import annotations

from collections import deque
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
import logging
import threading
import uuid
from typing import Any, Callable, Deque, Dict, List, Optional

logger = logging.getLogger(__name__)


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def new_event_id(prefix: str = "evt") -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


def format_sse(text: str) -> str:
    """Frame text as one server-sent event.

    Multi-line text becomes several data: fields of the same event.
    """
    lines = text.splitlines() or [""]
    return "".join(f"data: {line}\n" for line in lines) + "\n"


@dataclass(frozen=True)
class SessionEvent:
    id: str
    ts: str
    type: str
    session_id: str
    target: str
    data: Dict[str, Any]


Subscriber = Callable[[SessionEvent], None]


class EventBus:
    def __init__(self, *, max_events: int = 500):
        self._events: Deque[SessionEvent] = deque(maxlen=max(1, int(max_events)))
        self._subscribers: List[Subscriber] = []
        self._lock = threading.Lock()

    def subscribe(self, fn: Subscriber) -> None:
        with self._lock:
            self._subscribers.append(fn)

    def publish(
        self,
        *,
        event_type: str,
        session_id: str,
        target: str = "",
        data: Optional[Dict[str, Any]] = None,
    ) -> SessionEvent:
        ev = SessionEvent(
            id=new_event_id(),
            ts=utc_now_iso(),
            type=str(event_type),
            session_id=str(session_id),
            target=str(target or ""),
            data=dict(data or {}),
        )

        with self._lock:
            self._events.append(ev)
            subs = list(self._subscribers)

        for fn in subs:
            try:
                fn(ev)
            except Exception:
                # A broken subscriber must not take the stream down with it.
                logger.exception("Event subscriber failed for %s", ev.type)
        return ev

    def list_events(self, *, limit: int = 200) -> List[Dict[str, Any]]:
        lim = max(1, int(limit))
        with self._lock:
            items = list(self._events)[-lim:]
        return [asdict(ev) for ev in items]
