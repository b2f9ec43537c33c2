"""Explicit, cycle-scoped memoisation for async lookups."""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Generic, Hashable, TypeVar

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


class AsyncCache(Generic[K, V]):
    """Memoise awaited results by key.

    Concurrent callers for the same key share one in-flight task. Failed
    lookups are not cached, so a later call retries. Instances are meant to be
    created per cycle and dropped afterwards.
    """

    def __init__(self) -> None:
        self._tasks: dict[K, asyncio.Task] = {}

    def __contains__(self, key: K) -> bool:
        task = self._tasks.get(key)
        if task is None or not task.done() or task.cancelled():
            return False
        return task.exception() is None

    def __len__(self) -> int:
        return len(self._tasks)

    async def fetch(self, key: K, loader: Callable[[], Awaitable[V]]) -> V:
        task = self._tasks.get(key)
        if task is None:
            task = asyncio.ensure_future(loader())
            self._tasks[key] = task
        try:
            return await asyncio.shield(task)
        except Exception:
            if self._tasks.get(key) is task:
                del self._tasks[key]
            raise

    def clear(self) -> None:
        self._tasks.clear()
