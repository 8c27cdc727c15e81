"""Broadcast cell carrying the cancellation signal to a running command."""

from __future__ import annotations

import asyncio

from .models import CancelSignal


class CancelWatch:
    """Sender side: holds the latest value and wakes every receiver on change."""

    def __init__(self, initial: CancelSignal = CancelSignal.NONE) -> None:
        self._value = initial
        self._version = 0
        self._changed = asyncio.Event()

    @property
    def value(self) -> CancelSignal:
        return self._value

    @property
    def version(self) -> int:
        return self._version

    def send(self, value: CancelSignal) -> None:
        self._value = value
        self._version += 1
        changed, self._changed = self._changed, asyncio.Event()
        changed.set()

    def subscribe(self) -> "CancelReceiver":
        return CancelReceiver(self)

    async def _wait_past(self, version: int) -> None:
        while self._version == version:
            await self._changed.wait()


class CancelReceiver:
    """Receiver side: observes values without consuming them."""

    def __init__(self, watch: CancelWatch) -> None:
        self._watch = watch
        self._seen = watch.version

    def borrow(self) -> CancelSignal:
        return self._watch.value

    def has_changed(self) -> bool:
        return self._watch.version != self._seen

    async def changed(self) -> CancelSignal:
        """Wait for a value newer than the last one observed and return it."""
        await self._watch._wait_past(self._seen)
        self._seen = self._watch.version
        return self._watch.value
