"""Owned TTL cache with get-or-fetch semantics."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Generic, TypeVar

from waiting_lens.core.clock import Clock, utc_now

T = TypeVar("T")

NEVER = datetime.max.replace(tzinfo=UTC)


@dataclass
class CacheEntry(Generic[T]):
    """A cached value with its absolute expiry.

    Attributes:
        data: Cached value. May legitimately be None or empty.
        cached_at: When the value was stored.
        expires_at: First instant at which the entry counts as absent.
    """

    data: T
    cached_at: datetime
    expires_at: datetime

    def is_fresh(self, now: datetime) -> bool:
        """Check whether the entry is still valid at now."""
        return now < self.expires_at


class TTLCache(Generic[T]):
    """Key-value cache whose entries expire after a fixed TTL.

    Expired entries are treated as absent. Concurrent get_or_fetch calls for
    the same missing key share one fetch.

    Example:
        cache: TTLCache[list[Team]] = TTLCache(ttl=timedelta(minutes=5))
        teams = await cache.get_or_fetch("teams", load_teams)
    """

    def __init__(self, ttl: timedelta | None, clock: Clock | None = None) -> None:
        """Initialize cache.

        Args:
            ttl: Lifetime of each entry. None keeps entries until invalidated.
            clock: Time source (default: current UTC time).
        """
        self._ttl = ttl
        self._clock = clock or utc_now
        self._entries: dict[str, CacheEntry[T]] = {}
        self._in_flight: dict[str, asyncio.Task[T]] = {}

    def get_entry(self, key: str) -> CacheEntry[T] | None:
        """Get the entry for key if it exists and has not expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if not entry.is_fresh(self._clock()):
            del self._entries[key]
            return None
        return entry

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.get_entry(key) is not None

    def __len__(self) -> int:
        return len(self._entries)

    def set(self, key: str, value: T) -> CacheEntry[T]:
        """Store value under key, replacing any previous entry."""
        now = self._clock()
        expires_at = NEVER if self._ttl is None else now + self._ttl
        entry = CacheEntry(data=value, cached_at=now, expires_at=expires_at)
        self._entries[key] = entry
        return entry

    async def get_or_fetch(self, key: str, fetch: Callable[[], Awaitable[T]]) -> T:
        """Return the cached value for key, fetching and caching it if absent.

        Args:
            key: Cache slot.
            fetch: Coroutine factory producing the value. Its result is cached
                even if it is None or empty.

        Returns:
            The cached or freshly fetched value.
        """
        entry = self.get_entry(key)
        if entry is not None:
            return entry.data

        pending = self._in_flight.get(key)
        if pending is not None:
            return await asyncio.shield(pending)

        task: asyncio.Task[T] = asyncio.ensure_future(fetch())
        self._in_flight[key] = task
        try:
            value = await asyncio.shield(task)
        finally:
            if self._in_flight.get(key) is task:
                del self._in_flight[key]
        self.set(key, value)
        return value

    def invalidate(self, key: str) -> None:
        """Drop a single entry."""
        self._entries.pop(key, None)

    def invalidate_all(self) -> None:
        """Drop every entry."""
        self._entries.clear()
