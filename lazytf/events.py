"""Worker events and the channel that carries them to the reconciler.

Every cross-task result travels as one of the immutable ``WorkerEvent``
values below. Producers are the probe tasks, operation tasks and stream
pumps; the only consumer is ``AppState.apply`` via ``Controller.tick``.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import List, Tuple, Union

from .models import AuthStatus, OperationKind

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OutputLine:
    line: str


@dataclass(frozen=True)
class AccountAuthUpdate:
    account_idx: int
    status: AuthStatus
    message: str


@dataclass(frozen=True)
class WorkspacesLoaded:
    account_idx: int
    workspaces: Tuple[str, ...]


@dataclass(frozen=True)
class OperationFinished:
    kind: OperationKind
    account_idx: int
    success: bool
    cancelled: bool
    message: str


WorkerEvent = Union[OutputLine, AccountAuthUpdate, WorkspacesLoaded, OperationFinished]


class EventChannel:
    """Unbounded multi-producer, single-consumer queue of ``WorkerEvent``."""

    def __init__(self) -> None:
        self._queue: "asyncio.Queue[WorkerEvent]" = asyncio.Queue()
        self._closed = False

    def send(self, event: WorkerEvent) -> None:
        """Enqueue ``event``. Never blocks; dropped silently once closed."""
        if self._closed:
            logger.debug("dropping event on closed channel: %r", event)
            return
        self._queue.put_nowait(event)

    def line(self, text: str) -> None:
        self.send(OutputLine(text))

    def drain(self) -> List[WorkerEvent]:
        """Return every queued event without waiting for new ones."""
        events: List[WorkerEvent] = []
        while True:
            try:
                events.append(self._queue.get_nowait())
            except asyncio.QueueEmpty:
                return events

    async def get(self) -> WorkerEvent:
        return await self._queue.get()

    def close(self) -> None:
        self._closed = True

    @property
    def closed(self) -> bool:
        return self._closed

    def __len__(self) -> int:
        return self._queue.qsize()
