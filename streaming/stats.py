#!/usr/bin/env python3
"""Ping statistics: line classification + per-session accumulation.

Statistics come from pattern-matching the human-readable output of the system
ping tool. The classifier is a plain function (line -> LineEvent) handed to the
accumulator, so another probe tool only needs its own classifier.
"""

from __future__ import annotations

import re
import threading
from typing import Callable, List

from models import LineEvent, LineKind, PingSummary

# Windows "time=12ms" / "time<1ms", Linux and macOS "time=12.3 ms".
REPLY_RE = re.compile(r"time\s*[=<]\s*(\d+(?:\.\d+)?)\s*ms", re.IGNORECASE)
TIMEOUT_RE = re.compile(
    r"request timed out"  # windows
    r"|request timeout for icmp_seq"  # macos
    r"|no answer yet for icmp_seq"  # linux -O
    r"|destination (?:host|net) unreachable",
    re.IGNORECASE,
)

Classifier = Callable[[str], LineEvent]


def classify_ping_line(line: str) -> LineEvent:
    # Unreachable replies can carry a time= field on some platforms; they are still losses.
    if TIMEOUT_RE.search(line):
        return LineEvent(LineKind.TIMEOUT)
    m = REPLY_RE.search(line)
    if m:
        return LineEvent(LineKind.REPLY, latency_ms=int(round(float(m.group(1)))))
    return LineEvent(LineKind.INFO)


class StatsAccumulator:
    """Sent/received counters and RTT samples for one session."""

    def __init__(self, classifier: Classifier = classify_ping_line):
        self.classifier = classifier
        self.sent = 0
        self.received = 0
        self.samples: List[int] = []
        self._lock = threading.Lock()

    def classify_and_record(self, line: str) -> None:
        self.record(self.classifier(line))

    def record(self, event: LineEvent) -> None:
        with self._lock:
            if event.kind == LineKind.REPLY:
                self.sent += 1
                self.received += 1
                if event.latency_ms is not None:
                    self.samples.append(max(0, int(event.latency_ms)))
            elif event.kind == LineKind.TIMEOUT:
                self.sent += 1

    def summarize(self) -> PingSummary:
        with self._lock:
            sent, received, samples = self.sent, self.received, list(self.samples)
        lost = sent - received
        loss_rate = (lost / sent) * 100 if sent else 0.0
        # No samples: min/max/average are reported as 0.
        average = sum(samples) / len(samples) if samples else 0.0
        return PingSummary(
            sent=sent,
            received=received,
            lost=lost,
            loss_rate=f"{loss_rate:.2f}",
            min=min(samples) if samples else 0,
            max=max(samples) if samples else 0,
            average=f"{average:.2f}",
        )
