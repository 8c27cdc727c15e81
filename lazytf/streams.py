"""Turn a child process pipe into ``OutputLine`` events."""

from __future__ import annotations

import asyncio
import logging
from typing import List

from .events import EventChannel

logger = logging.getLogger(__name__)

# Longest line kept; anything longer is replaced by TRUNCATED_MARKER.
STREAM_LIMIT = 1024 * 1024
READ_CHUNK = 64 * 1024

TRUNCATED_MARKER = "[lazytf: line too long, truncated]"


def decode_line(raw: bytes) -> str:
    """Decode one raw line, replacing invalid bytes and dropping the line ending."""
    text = raw.decode("utf-8", errors="replace")
    if text.endswith("\n"):
        text = text[:-1]
    if text.endswith("\r"):
        text = text[:-1]
    return text


async def pump_lines(
    reader: asyncio.StreamReader, channel: EventChannel, name: str = "stdout", limit: int = STREAM_LIMIT
) -> int:
    """Forward every line of ``reader`` to ``channel`` in order; return the line count."""
    count = 0
    pending = bytearray()
    # set while discarding the rest of a line that outgrew ``limit``
    overflow = False

    def emit(text: str) -> None:
        nonlocal count
        channel.line(text)
        count += 1

    while True:
        chunk = await reader.read(READ_CHUNK)
        if not chunk:
            break
        pending.extend(chunk)
        while True:
            end = pending.find(b"\n")
            if end == -1:
                break
            raw = bytes(pending[: end + 1])
            del pending[: end + 1]
            if overflow:
                overflow = False
            elif end > limit:
                emit(TRUNCATED_MARKER)
            else:
                emit(decode_line(raw))
        if len(pending) > limit:
            if not overflow:
                logger.debug("%s: line longer than %d bytes truncated", name, limit)
                emit(TRUNCATED_MARKER)
                overflow = True
            pending.clear()

    if pending and not overflow:
        emit(decode_line(bytes(pending)))
    logger.debug("%s: stream closed after %d lines", name, count)
    return count


def split_output(data: bytes) -> List[str]:
    """Split captured output the same way ``pump_lines`` splits a stream."""
    if not data:
        return []
    lines = data.split(b"\n")
    if lines[-1] == b"":
        lines.pop()
    return [decode_line(raw) for raw in lines]
