"""Debounced request coalescing."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Generic, TypeVar

K = TypeVar("K")
V = TypeVar("V")


class BatchCoalescer(Generic[K, V]):
    """Queue plus single-shot timer that turns many lookups into one dispatch.

    The first enqueue after an idle period arms a timer; every key enqueued
    before it fires joins the same dispatch. Enqueuing a key that is already
    queued or being dispatched returns the existing future.

    Example:
        coalescer = BatchCoalescer(fetch_photos, delay=0.05, missing="")
        photo_a, photo_b = await asyncio.gather(
            coalescer.enqueue("a"), coalescer.enqueue("b")
        )
    """

    def __init__(
        self,
        dispatch: Callable[[list[K]], Awaitable[dict[K, V]]],
        delay: float,
        missing: V,
    ) -> None:
        """Initialize coalescer.

        Args:
            dispatch: Coroutine resolving a list of keys to a key-value map.
            delay: Seconds to wait after the first enqueue before dispatching.
            missing: Value for keys the dispatch result does not contain.
        """
        self._dispatch = dispatch
        self._delay = delay
        self._missing = missing
        self._queued: dict[K, asyncio.Future[V]] = {}
        self._dispatching: dict[K, asyncio.Future[V]] = {}
        self._timer: asyncio.Task[None] | None = None

    @property
    def queued_keys(self) -> list[K]:
        """Keys waiting for the next dispatch."""
        return list(self._queued)

    def enqueue(self, key: K) -> asyncio.Future[V]:
        """Queue a key for the next dispatch.

        Args:
            key: Key to resolve.

        Returns:
            Future resolved with the key's value when its dispatch completes.
        """
        existing = self._queued.get(key) or self._dispatching.get(key)
        if existing is not None:
            return existing

        future: asyncio.Future[V] = asyncio.get_running_loop().create_future()
        self._queued[key] = future
        if self._timer is None:
            self._timer = asyncio.create_task(self._fire_after_delay())
        return future

    async def flush(self) -> None:
        """Dispatch everything queued now instead of waiting for the timer."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        await self._drain()

    async def _fire_after_delay(self) -> None:
        await asyncio.sleep(self._delay)
        self._timer = None
        await self._drain()

    async def _drain(self) -> None:
        batch = self._queued
        if not batch:
            return
        self._queued = {}
        self._dispatching.update(batch)
        try:
            results = await self._dispatch(list(batch))
        except Exception as e:
            for future in batch.values():
                if not future.done():
                    future.set_exception(e)
        else:
            for key, future in batch.items():
                if not future.done():
                    future.set_result(results.get(key, self._missing))
        finally:
            for key in batch:
                self._dispatching.pop(key, None)
