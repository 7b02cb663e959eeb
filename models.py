"""
PingStream data models.
Dataclasses for line events, ping summaries, and port check results.
"""

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Optional


class LineKind(str, Enum):
    """Classification tag of a single line of probe output."""

    REPLY = "reply"
    TIMEOUT = "timeout"
    INFO = "info"
    ERROR = "error"


class SessionState(str, Enum):
    STARTING = "starting"
    STREAMING = "streaming"
    STOPPED = "stopped"
    COMPLETED = "completed"
    ERRORED = "errored"
    TERMINATED = "terminated"  # traceroute only

    @property
    def is_terminal(self) -> bool:
        return self not in (SessionState.STARTING, SessionState.STREAMING)


@dataclass(frozen=True)
class LineEvent:
    """One classified line. latency_ms is set only for replies."""

    kind: LineKind
    latency_ms: Optional[int] = None


@dataclass(frozen=True)
class PingSummary:
    """Final statistics for a ping session."""

    sent: int
    received: int
    lost: int
    loss_rate: str  # percent, 2 decimals
    min: int
    max: int
    average: str  # ms, 2 decimals

    def to_dict(self) -> dict:
        return asdict(self)

    def render(self) -> str:
        return (
            "\nPing statistics:\n"
            f"  Packets: Sent = {self.sent}, Received = {self.received}, "
            f"Lost = {self.lost} ({self.loss_rate}% loss),\n"
            f"  Minimum = {self.min}ms, Maximum = {self.max}ms, Average = {self.average}ms"
        )


@dataclass
class PortCheckResult:
    """Result of a single port probe."""

    ip: str
    port: int
    protocol: str  # tcp, udp
    status: str  # open, closed, closed (timeout), closed (error)

    def to_dict(self) -> dict:
        return asdict(self)
