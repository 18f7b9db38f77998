from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Generic, TypeVar

T = TypeVar("T")


class SingleFlight(Generic[T]):
    """Share one in-flight call per key between concurrent callers.

    The check and the registration of the shared task happen before the first await,
    so under asyncio no second call for the same key can slip in between them.
    """

    def __init__(self) -> None:
        self._in_flight: dict[str, asyncio.Task[T]] = {}

    def __contains__(self, key: str) -> bool:
        return key in self._in_flight

    def __len__(self) -> int:
        return len(self._in_flight)

    async def do(self, key: str, fn: Callable[[], Awaitable[T]]) -> T:
        task = self._in_flight.get(key)
        if task is None:
            task = asyncio.ensure_future(fn())
            self._in_flight[key] = task
            task.add_done_callback(lambda done, key=key: self._forget(key, done))
        # One waiter being cancelled must not cancel the shared call.
        return await asyncio.shield(task)

    def _forget(self, key: str, task: asyncio.Task[T]) -> None:
        if self._in_flight.get(key) is task:
            del self._in_flight[key]
