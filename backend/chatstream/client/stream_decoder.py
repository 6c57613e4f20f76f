"""Stream Decoder — incremental newline-delimited JSON parser for the chat stream.

Invariants:
    - Only complete lines are parsed; the trailing fragment is retained
    - Multi-byte UTF-8 characters split across reads are reassembled
    - Blank lines skipped; non-JSON or non-object lines logged and skipped
    - close() flushes a final unterminated fragment exactly once
"""

import codecs
import json
import logging
from typing import AsyncIterable, AsyncIterator

logger = logging.getLogger(__name__)


class StreamDecoder:
    """Feed raw bytes, get parsed event dicts back."""

    def __init__(self):
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""

    def feed(self, data: bytes) -> list[dict]:
        self._buffer += self._decoder.decode(data)
        *lines, self._buffer = self._buffer.split("\n")
        return [e for e in (_parse_line(line) for line in lines) if e is not None]

    def close(self) -> list[dict]:
        self._buffer += self._decoder.decode(b"", final=True)
        tail, self._buffer = self._buffer, ""
        event = _parse_line(tail)
        return [event] if event is not None else []


def _parse_line(line: str) -> dict | None:
    line = line.strip()
    if not line:
        return None
    try:
        event = json.loads(line)
    except ValueError:
        logger.warning("Skipping malformed stream line: %.200s", line)
        return None
    if not isinstance(event, dict):
        logger.warning("Skipping non-object stream line: %.200s", line)
        return None
    return event


async def iter_events(chunks: AsyncIterable[bytes]) -> AsyncIterator[dict]:
    """Decode an async byte stream into events, flushing the tail at the end."""
    decoder = StreamDecoder()
    async for chunk in chunks:
        for event in decoder.feed(chunk):
            yield event
    for event in decoder.close():
        yield event
