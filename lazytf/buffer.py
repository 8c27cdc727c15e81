"""Bounded output buffer backing the Output pane."""

from __future__ import annotations

from collections import deque
from typing import Deque, Iterable, Iterator, List

OUTPUT_BUFFER_LIMIT = 4_000


class OutputBuffer:
    """Append-only line buffer that evicts the oldest lines past ``limit``."""

    def __init__(self, limit: int = OUTPUT_BUFFER_LIMIT, lines: Iterable[str] = ()) -> None:
        if limit < 1:
            raise ValueError("output buffer limit must be positive")
        self._limit = limit
        self._lines: Deque[str] = deque(lines, maxlen=limit)

    @property
    def limit(self) -> int:
        return self._limit

    def append(self, line: str) -> None:
        self._lines.append(line)

    def extend(self, lines: Iterable[str]) -> None:
        self._lines.extend(lines)

    def clear(self) -> None:
        self._lines.clear()

    def tail(self, count: int, skip_from_bottom: int = 0) -> List[str]:
        """Return up to ``count`` lines ending ``skip_from_bottom`` lines above the newest."""
        if count <= 0:
            return []
        end = max(0, len(self._lines) - skip_from_bottom)
        start = max(0, end - count)
        return [self._lines[i] for i in range(start, end)]

    def __len__(self) -> int:
        return len(self._lines)

    def __iter__(self) -> Iterator[str]:
        return iter(self._lines)

    def __getitem__(self, index: int) -> str:
        return self._lines[index]

    def __repr__(self) -> str:
        return f"OutputBuffer(len={len(self._lines)}, limit={self._limit})"
