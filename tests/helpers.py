"""Shared helpers for the lazytf test-suite."""

import asyncio
import os
import sys
from typing import Callable, Iterable, List

import pytest

from lazytf.events import EventChannel, OutputLine, WorkerEvent

posix_only = pytest.mark.skipif(os.name != "posix", reason="needs POSIX signals and shell scripts")


def python_command(script: str) -> List[str]:
    return [sys.executable, "-c", script]


async def collect_until(
    channel: EventChannel, predicate: Callable[[str], bool], seen: List[str], timeout: float = 10.0
) -> None:
    """Read output lines from ``channel`` into ``seen`` until one matches ``predicate``."""

    async def _read() -> None:
        while True:
            event = await channel.get()
            if isinstance(event, OutputLine):
                seen.append(event.line)
                if predicate(event.line):
                    return

    await asyncio.wait_for(_read(), timeout)


def lines_of(events: Iterable[WorkerEvent]) -> List[str]:
    return [event.line for event in events if isinstance(event, OutputLine)]
