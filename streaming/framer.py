#!/usr/bin/env python3
"""Line framing for probe process output.

Pipes hand us arbitrary byte chunks; a line may be split across any number of
them (and a multi-byte character across two). The framer buffers the
incomplete tail and only ever emits complete, trimmed, non-empty lines.

A trailing fragment without a newline when the stream ends is dropped, the same
way line-oriented tools ignore an unterminated last line.
"""

from __future__ import annotations

import codecs
import logging
from typing import Iterable, Iterator, List

logger = logging.getLogger(__name__)


def text_decoder(encoding: str = "utf-8") -> codecs.IncrementalDecoder:
    """Decoder that holds back a multi-byte character split across chunks."""
    return codecs.getincrementaldecoder(encoding)(errors="replace")


class LineFramer:
    def __init__(self, encoding: str = "utf-8"):
        self.encoding = encoding
        self._decoder = text_decoder(encoding)
        self._buffer = ""

    def feed(self, chunk: bytes) -> List[str]:
        """Consume one chunk and return every line it completes."""
        self._buffer += self._decoder.decode(chunk)
        if "\n" not in self._buffer:
            return []
        *complete, self._buffer = self._buffer.split("\n")
        return [line for line in (raw.strip() for raw in complete) if line]

    def close(self) -> str:
        """End of stream. Returns (and discards) any unterminated fragment."""
        leftover = (self._buffer + self._decoder.decode(b"", final=True)).strip()
        self.reset()
        if leftover:
            logger.debug("Discarding unterminated output fragment: %r", leftover)
        return leftover

    def reset(self) -> None:
        self._decoder.reset()
        self._buffer = ""


def frame_lines(chunks: Iterable[bytes], encoding: str = "utf-8") -> Iterator[str]:
    """Lazily frame an iterable of byte chunks into lines."""
    framer = LineFramer(encoding)
    for chunk in chunks:
        yield from framer.feed(chunk)
    framer.close()
