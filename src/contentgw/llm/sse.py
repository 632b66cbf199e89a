"""Incremental decoder for ``data: <json>`` event-stream bodies.

The decoder is a small state machine: bytes are accumulated into a text
buffer, complete lines are split off and classified, and the incomplete tail
is carried until more bytes arrive or ``flush()`` is called at end of stream.
"""

from __future__ import annotations

import codecs
import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterator

logger = logging.getLogger(__name__)

DATA_PREFIX = "data: "
DONE_SENTINEL = "[DONE]"


class LineKind(str, Enum):
    PAYLOAD = "payload"
    DONE = "done"
    IGNORED = "ignored"


@dataclass
class StreamLine:
    kind: LineKind
    data: str = ""


def classify_line(line: str, allow_bare: bool = False) -> StreamLine:
    """Classify one complete line.

    ``allow_bare`` accepts a payload without the ``data: `` prefix, which is
    how a trailing remainder is given its last parse attempt.
    """
    line = line.rstrip("\r")
    if line.startswith(DATA_PREFIX):
        data = line[len(DATA_PREFIX):]
    elif allow_bare and line.strip():
        data = line.strip()
    else:
        return StreamLine(LineKind.IGNORED)
    if data.strip() == DONE_SENTINEL:
        return StreamLine(LineKind.DONE)
    return StreamLine(LineKind.PAYLOAD, data)


def parse_payload(data: str) -> dict[str, Any] | None:
    """Parse one payload; malformed JSON is logged and yields None."""
    try:
        parsed = json.loads(data)
    except json.JSONDecodeError as e:
        logger.error("Error parsing streaming response line: %s", e)
        return None
    if not isinstance(parsed, dict):
        logger.error("Streaming payload is not an object: %r", data[:200])
        return None
    return parsed


class LineDecoder:
    """Accumulates bytes and hands back complete lines."""

    def __init__(self, encoding: str = "utf-8"):
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self._buffer = ""
        self._closed = False

    @property
    def pending(self) -> str:
        return self._buffer

    def feed(self, chunk: bytes) -> list[str]:
        if self._closed:
            raise RuntimeError("decoder already flushed")
        self._buffer += self._decoder.decode(chunk)
        *lines, self._buffer = self._buffer.split("\n")
        return lines

    def flush(self) -> str:
        """Close the decoder and return the unterminated remainder, once."""
        if self._closed:
            return ""
        self._closed = True
        remainder = self._buffer + self._decoder.decode(b"", final=True)
        self._buffer = ""
        return remainder


def iter_payloads(lines: list[str], allow_bare: bool = False) -> Iterator[dict[str, Any]]:
    """Yield parsed payloads for ``lines``, skipping sentinels and bad JSON."""
    for line in lines:
        parsed_line = classify_line(line, allow_bare=allow_bare)
        if parsed_line.kind is not LineKind.PAYLOAD:
            continue
        payload = parse_payload(parsed_line.data)
        if payload is not None:
            yield payload
