#!/usr/bin/env python3
"""Streaming session controllers.

PingStreamController ties one continuous ping process to one SSE response:
every stdout line is pushed to the client and fed to the stats accumulator in
the same step, stderr is pushed as "Error: ..." events, and the process is
killed as soon as the client goes away or a stop request arrives.

    STARTING -> STREAMING -> STOPPED    (stop request, summary returned)
                          -> COMPLETED  (process exited on its own)
                          -> ERRORED    (client disconnected / spawn failed)

TracerouteStreamController is the same loop without stats; it ends with a
"Traceroute completed" event and is cancelled with its connection.

Terminal states are sticky: whichever of stop/exit/disconnect lands first wins
and the others become no-ops, which is what keeps the kill single-shot.
"""

from __future__ import annotations

import logging
import threading
import uuid
from typing import Any, Callable, Dict, Iterator, List, Optional

from config import ping_stream_command, traceroute_command
from models import PingSummary, SessionState
from streaming.events import EventBus, format_sse, utc_now_iso
from streaming.framer import LineFramer, text_decoder
from streaming.process import EXIT, STDERR, STDOUT, ProcessOutput, spawn_probe
from streaming.registry import SessionRegistry
from streaming.stats import Classifier, StatsAccumulator, classify_ping_line

logger = logging.getLogger(__name__)

ERROR_PREFIX = "Error: "
TRACEROUTE_COMPLETED = "Traceroute completed"
STOPPED_BY_SERVER = "stopped"

Spawner = Callable[[List[str]], Any]
CommandBuilder = Callable[[str], List[str]]


class MissingParameterError(ValueError):
    """A required request parameter was not supplied."""


class ProbeSession:
    """One spawned probe process and its lifecycle state."""

    def __init__(self, session_id: str, target: str, process: Any = None, *, error: Optional[str] = None):
        self.session_id = session_id
        self.target = target
        self.process = process
        self.error = error
        self.state = SessionState.STARTING
        self.end_reason: Optional[str] = None
        self.started_at = utc_now_iso()
        self._killed = False
        self._pumping = False
        self._lock = threading.Lock()

    def transition(self, state: SessionState, reason: Optional[str] = None) -> bool:
        """Move to state unless already terminal. Returns whether it moved."""
        with self._lock:
            if self.state.is_terminal:
                return False
            self.state = state
            if state.is_terminal:
                self.end_reason = reason
            return True

    def begin_streaming(self) -> Optional[ProcessOutput]:
        """STARTING -> STREAMING and start the output pump, or None if already ended.

        From here on the pump owns reaping the process and draining its pipes.
        """
        with self._lock:
            if self.state.is_terminal:
                return None
            self.state = SessionState.STREAMING
            self._pumping = True
        return ProcessOutput(self.process).start()

    def kill(self) -> bool:
        """Kill the process at most once; a no-op if it already exited."""
        with self._lock:
            if self._killed or self.process is None:
                return False
            self._killed = True
        signalled = False
        if self.process.poll() is None:
            try:
                self.process.kill()
                signalled = True
            except ProcessLookupError:
                pass
        self._release()
        return signalled

    def _release(self) -> None:
        # Only reached after a terminal transition, so no pump can start later.
        with self._lock:
            if self._pumping:
                return
        self.process.wait()
        for stream in (self.process.stdout, self.process.stderr):
            if stream is not None:
                stream.close()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.session_id,
            "target": self.target,
            "state": self.state.value,
            "started_at": self.started_at,
            "pid": getattr(self.process, "pid", None),
        }


class PingSession(ProbeSession):
    def __init__(self, session_id: str, target: str, process: Any, stats: StatsAccumulator, **kwargs):
        super().__init__(session_id, target, process, **kwargs)
        self.stats = stats

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["stats"] = self.stats.summarize().to_dict()
        return data


def _required(value: Optional[str]) -> str:
    return str(value or "").strip()


class PingStreamController:
    def __init__(
        self,
        registry: Optional[SessionRegistry] = None,
        bus: Optional[EventBus] = None,
        *,
        spawn: Spawner = spawn_probe,
        command: CommandBuilder = ping_stream_command,
        classifier: Classifier = classify_ping_line,
    ):
        self.registry: SessionRegistry[PingSession] = registry if registry is not None else SessionRegistry()
        self.bus = bus
        self._spawn = spawn
        self._command = command
        self.classifier = classifier

    def _publish(self, event_type: str, session: ProbeSession, **data) -> None:
        if self.bus is not None:
            self.bus.publish(event_type=event_type, session_id=session.session_id, target=session.target, data=data)

    def start(self, target: Optional[str], session_id: Optional[str]) -> PingSession:
        target, session_id = _required(target), _required(session_id)
        if not target or not session_id:
            raise MissingParameterError("IP and ID are required")

        stats = StatsAccumulator(self.classifier)
        try:
            process = self._spawn(self._command(target))
        except OSError as exc:
            logger.warning("Could not start ping for %s (session %s): %s", target, session_id, exc)
            session = PingSession(session_id, target, None, stats, error=str(exc))
            session.transition(SessionState.ERRORED)
            self._publish("session.failed", session, error=str(exc))
            return session

        session = PingSession(session_id, target, process, stats)
        previous = self.registry.replace(session_id, session)
        if previous is not None:
            logger.info("Session %s restarted; stopping previous ping to %s", session_id, previous.target)
            if previous.transition(SessionState.STOPPED):
                previous.kill()
                self._publish("session.stopped", previous, reason="replaced")
        logger.info("Ping session %s started for %s", session_id, target)
        self._publish("session.started", session, pid=getattr(process, "pid", None))
        return session

    def stream(self, session: PingSession) -> Iterator[str]:
        """SSE frames for the session until exit, stop, or disconnect."""
        if session.error is not None:
            yield format_sse(f"{ERROR_PREFIX}{session.error}")
            return
        output = session.begin_streaming()
        if output is None:
            return

        framer, stderr_decoder = LineFramer(), text_decoder()
        try:
            for item in output:
                if session.state.is_terminal:
                    break
                if item.source == STDOUT:
                    for line in framer.feed(item.data):
                        session.stats.classify_and_record(line)
                        yield format_sse(line)
                elif item.source == STDERR:
                    text = stderr_decoder.decode(item.data).strip()
                    if text:
                        yield format_sse(f"{ERROR_PREFIX}{text}")
                elif item.source == EXIT:
                    framer.close()
                    self._complete(session, item.returncode)
        finally:
            self.disconnect(session)

    def _complete(self, session: PingSession, returncode: Optional[int]) -> None:
        if not session.transition(SessionState.COMPLETED):
            return
        self.registry.remove(session.session_id, session)
        logger.info("Ping session %s exited (rc=%s)", session.session_id, returncode)
        self._publish("session.completed", session, returncode=returncode, summary=session.stats.summarize().to_dict())

    def disconnect(self, session: PingSession) -> bool:
        """Client went away: kill and forget the session if still live."""
        if not session.transition(SessionState.ERRORED):
            return False
        session.kill()
        self.registry.remove(session.session_id, session)
        logger.info("Ping session %s: client disconnected", session.session_id)
        self._publish("session.disconnected", session)
        return True

    def stop(self, session_id: Optional[str]) -> Optional[PingSummary]:
        """Stop a running session and return its summary, or None if unknown."""
        session = self.registry.remove(_required(session_id))
        if session is None:
            return None
        session.transition(SessionState.STOPPED)
        session.kill()
        summary = session.stats.summarize()
        logger.info("Ping session %s stopped: %s sent, %s received", session.session_id, summary.sent, summary.received)
        self._publish("session.stopped", session, reason="requested", summary=summary.to_dict())
        return summary

    def active_sessions(self) -> List[Dict[str, Any]]:
        return [session.to_dict() for _, session in self.registry.snapshot()]


class TracerouteStreamController:
    """Per-connection traceroute streams (no stats, no client-supplied id)."""

    def __init__(
        self,
        bus: Optional[EventBus] = None,
        *,
        spawn: Spawner = spawn_probe,
        command: CommandBuilder = traceroute_command,
    ):
        self.registry: SessionRegistry[ProbeSession] = SessionRegistry()
        self.bus = bus
        self._spawn = spawn
        self._command = command

    def _publish(self, event_type: str, session: ProbeSession, **data) -> None:
        if self.bus is not None:
            self.bus.publish(event_type=event_type, session_id=session.session_id, target=session.target, data=data)

    def start(self, target: Optional[str]) -> ProbeSession:
        target = _required(target)
        if not target:
            raise MissingParameterError("IP is required")

        session_id = f"trace-{uuid.uuid4().hex[:12]}"
        try:
            process = self._spawn(self._command(target))
        except OSError as exc:
            logger.warning("Could not start traceroute to %s: %s", target, exc)
            return ProbeSession(session_id, target, None, error=str(exc))

        session = ProbeSession(session_id, target, process)
        self.registry.insert_if_absent(session_id, session)
        logger.info("Traceroute %s started for %s", session_id, target)
        self._publish("traceroute.started", session, pid=getattr(process, "pid", None))
        return session

    def stream(self, session: ProbeSession) -> Iterator[str]:
        if session.error is not None:
            session.transition(SessionState.TERMINATED)
            yield format_sse(f"{ERROR_PREFIX}{session.error}")
            yield format_sse(TRACEROUTE_COMPLETED)
            return
        output = session.begin_streaming()
        if output is None:
            if session.end_reason == STOPPED_BY_SERVER:
                yield format_sse(TRACEROUTE_COMPLETED)
            return

        framer, stderr_decoder = LineFramer(), text_decoder()
        try:
            for item in output:
                if session.state.is_terminal:
                    # A server-side stop still ends like a finished trace; a disconnect gets nothing.
                    if session.end_reason == STOPPED_BY_SERVER:
                        yield format_sse(TRACEROUTE_COMPLETED)
                    break
                if item.source == STDOUT:
                    for line in framer.feed(item.data):
                        yield format_sse(line)
                elif item.source == STDERR:
                    text = stderr_decoder.decode(item.data).strip()
                    if text:
                        yield format_sse(f"{ERROR_PREFIX}{text}")
                elif item.source == EXIT:
                    framer.close()
                    if session.transition(SessionState.TERMINATED):
                        self.registry.remove(session.session_id, session)
                        logger.info("Traceroute %s finished (rc=%s)", session.session_id, item.returncode)
                        self._publish("traceroute.completed", session, returncode=item.returncode)
                        yield format_sse(TRACEROUTE_COMPLETED)
        finally:
            self.disconnect(session)

    def disconnect(self, session: ProbeSession) -> bool:
        if not session.transition(SessionState.TERMINATED):
            return False
        session.kill()
        self.registry.remove(session.session_id, session)
        logger.info("Traceroute %s: client disconnected", session.session_id)
        self._publish("traceroute.disconnected", session)
        return True

    def stop_all(self) -> int:
        """Best-effort stop of every running traceroute. Returns how many."""
        stopped = 0
        for _, session in self.registry.pop_all():
            if session.transition(SessionState.TERMINATED, reason=STOPPED_BY_SERVER):
                session.kill()
                stopped += 1
                self._publish("traceroute.stopped", session)
        if stopped:
            logger.info("Stopped %d traceroute(s)", stopped)
        return stopped

    def active_count(self) -> int:
        return len(self.registry)
