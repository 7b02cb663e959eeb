#!/usr/bin/env python3
"""Probe process spawning and output pumping.

A probe writes to two pipes. One daemon thread per pipe reads whatever chunk is
available and drops it on a shared queue; once both pipes hit EOF the process
is reaped and a final exit item is queued. The consumer (a streaming response
generator) simply iterates the queue, so it sees stdout chunks in order and
never blocks on one pipe while the other has data.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
import queue
import subprocess
import threading
from typing import Any, Iterator, List, Optional

logger = logging.getLogger(__name__)

STDOUT = "stdout"
STDERR = "stderr"
EXIT = "exit"

CHUNK_SIZE = 4096


@dataclass(frozen=True)
class OutputItem:
    source: str  # stdout, stderr, exit
    data: bytes = b""
    returncode: Optional[int] = None


def spawn_probe(argv: List[str]) -> subprocess.Popen:
    """Start a probe process with both output pipes captured (raises OSError)."""
    logger.debug("Spawning probe: %s", " ".join(argv))
    return subprocess.Popen(
        argv,
        stdin=subprocess.DEVNULL,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
    )


class ProcessOutput:
    """Merged, ordered view of a running process's output."""

    def __init__(self, process: Any, *, chunk_size: int = CHUNK_SIZE):
        self.process = process
        self.chunk_size = max(1, int(chunk_size))
        self._queue: "queue.Queue[OutputItem]" = queue.Queue()
        self._lock = threading.Lock()
        self._open_streams = 0
        self._started = False

    def start(self) -> "ProcessOutput":
        streams = [
            (source, stream)
            for source, stream in ((STDOUT, self.process.stdout), (STDERR, self.process.stderr))
            if stream is not None
        ]
        with self._lock:
            if self._started:
                return self
            self._started = True
            self._open_streams = len(streams)
        if not streams:
            self._finish()
        for source, stream in streams:
            thread = threading.Thread(
                target=self._pump,
                args=(source, stream),
                name=f"probe-{source}-{getattr(self.process, 'pid', '?')}",
                daemon=True,
            )
            thread.start()
        return self

    def _pump(self, source: str, stream: Any) -> None:
        try:
            for chunk in iter(lambda: stream.read1(self.chunk_size), b""):
                self._queue.put(OutputItem(source, chunk))
        except (OSError, ValueError) as exc:
            # Pipe torn down underneath us after a kill.
            logger.debug("%s pipe closed: %s", source, exc)
        finally:
            with self._lock:
                self._open_streams -= 1
                last = self._open_streams == 0
            if last:
                self._finish()

    def _finish(self) -> None:
        returncode = self.process.wait()
        self._queue.put(OutputItem(EXIT, returncode=returncode))

    def __iter__(self) -> Iterator[OutputItem]:
        while True:
            item = self._queue.get()
            yield item
            if item.source == EXIT:
                return
