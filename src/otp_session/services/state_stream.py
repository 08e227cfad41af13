"""Latest-value state stream for observers of the auth engine."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from typing import Generic, TypeVar

T = TypeVar("T")


class StateStream(Generic[T]):
    """Holds the current value and notifies subscribers of changes.

    Subscribers are conflated: a slow reader skips intermediate values and
    always sees the newest one next.  Publishing a value equal to the
    current one is ignored.
    """

    def __init__(self, initial: T) -> None:
        self._value = initial
        self._version = 0
        self._changed = asyncio.Event()
        self._closed = False

    @property
    def value(self) -> T:
        return self._value

    @property
    def closed(self) -> bool:
        return self._closed

    def publish(self, value: T) -> bool:
        """Replace the current value; return ``True`` if it changed."""
        if self._closed or value == self._value:
            return False
        self._value = value
        self._version += 1
        self._wake()
        return True

    def close(self) -> None:
        """End every active subscription."""
        if self._closed:
            return
        self._closed = True
        self._wake()

    async def subscribe(self) -> AsyncIterator[T]:
        """Yield the current value, then each newer value as it arrives."""
        seen = -1
        while True:
            if seen != self._version:
                seen = self._version
                yield self._value
                continue
            if self._closed:
                return
            await self._changed.wait()

    def _wake(self) -> None:
        self._changed.set()
        self._changed = asyncio.Event()
