"""Batched, cached avatar lookups."""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from typing import TYPE_CHECKING

import httpx
import structlog

from waiting_lens.integrations.graph.client import GraphApiError
from waiting_lens.integrations.graph.models import BatchRequest
from waiting_lens.services.coalescer import BatchCoalescer
from waiting_lens.services.ttl_cache import TTLCache

if TYPE_CHECKING:
    from waiting_lens.core.clock import Clock
    from waiting_lens.integrations.graph.client import GraphClient

logger = structlog.get_logger(__name__)

# Cached for users without a photo so they are never fetched again
NO_PHOTO = ""

DEFAULT_DEBOUNCE_SECONDS = 0.05


class AvatarCache:
    """Avatar images keyed by user ID, served as data URLs.

    Requests arriving within the debounce window are sent as one batch (up
    to batch_size photos per $batch call). A missing photo or any failure is
    cached as NO_PHOTO, so each user is fetched at most once.
    """

    def __init__(
        self,
        client: GraphClient,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
        batch_size: int = 20,
        clock: Clock | None = None,
    ) -> None:
        """Initialize avatar cache.

        Args:
            client: Graph API client.
            debounce_seconds: Coalescing window for get_photo_url calls.
            batch_size: Photos per $batch call (max 20).
            clock: Time source for cache entries.
        """
        self._client = client
        self._batch_size = batch_size
        self._cache: TTLCache[str] = TTLCache(ttl=None, clock=clock)
        self._coalescer: BatchCoalescer[str, str] = BatchCoalescer(
            self._fetch_photos, delay=debounce_seconds, missing=NO_PHOTO
        )

    async def get_photo_url(self, user_id: str) -> str | None:
        """Get a user's avatar as a data URL.

        Args:
            user_id: Directory user ID.

        Returns:
            Data URL, or None if the user has no photo or the lookup failed.
        """
        if not user_id:
            return None
        entry = self._cache.get_entry(user_id)
        if entry is not None:
            return entry.data or None
        photo = await self._coalescer.enqueue(user_id)
        return photo or None

    async def prefetch(self, user_ids: Iterable[str]) -> None:
        """Fetch every uncached avatar now, without waiting for the debounce."""
        futures = [
            self._coalescer.enqueue(user_id)
            for user_id in dict.fromkeys(user_ids)
            if user_id and user_id not in self._cache
        ]
        if not futures:
            return
        await self._coalescer.flush()
        await asyncio.gather(*futures)

    async def _fetch_photos(self, user_ids: list[str]) -> dict[str, str]:
        photos: dict[str, str] = {}
        for start in range(0, len(user_ids), self._batch_size):
            chunk = user_ids[start : start + self._batch_size]
            photos.update(await self._fetch_photo_batch(chunk))
        for user_id, photo in photos.items():
            self._cache.set(user_id, photo)
        return photos

    async def _fetch_photo_batch(self, user_ids: list[str]) -> dict[str, str]:
        photos = dict.fromkeys(user_ids, NO_PHOTO)
        requests = [
            BatchRequest(id=str(index), url=f"/users/{user_id}/photo/$value")
            for index, user_id in enumerate(user_ids)
        ]
        try:
            responses = await self._client.batch(requests)
        except (GraphApiError, httpx.HTTPError) as e:
            await logger.awarning("avatar_batch_failed", size=len(user_ids), error=str(e))
            return photos

        for response in responses:
            if not response.id.isdigit() or int(response.id) >= len(user_ids):
                continue
            if response.ok and isinstance(response.body, str) and response.body:
                photos[user_ids[int(response.id)]] = f"data:image/jpeg;base64,{response.body}"
        return photos
