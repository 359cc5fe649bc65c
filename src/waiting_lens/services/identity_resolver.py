"""Email address to directory user ID resolution."""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from typing import TYPE_CHECKING

import httpx
import structlog

from waiting_lens.integrations.graph.client import GraphApiError
from waiting_lens.integrations.graph.models import BatchRequest, BatchResponse
from waiting_lens.services.ttl_cache import TTLCache

if TYPE_CHECKING:
    from waiting_lens.core.clock import Clock
    from waiting_lens.integrations.graph.client import GraphClient

logger = structlog.get_logger(__name__)

# Cached for addresses that do not map to a directory user
UNRESOLVED = ""


def normalize_email(email: str) -> str:
    """Lower-case and trim an email address."""
    return email.strip().lower()


def email_domain(email: str) -> str:
    """Domain part of an email address, lower-cased ("" if there is none)."""
    _, at, domain = normalize_email(email).partition("@")
    return domain if at else ""


def is_external_email(email: str, org_domain: str) -> bool:
    """Check whether an address belongs to a domain other than org_domain.

    An unknown organization domain makes nothing external.
    """
    if not org_domain or not email:
        return False
    return email_domain(email) != org_domain.lower()


def _chunks(items: list[str], size: int) -> Iterable[list[str]]:
    for start in range(0, len(items), size):
        yield items[start : start + size]


class IdentityResolver:
    """Maps sender email addresses to directory user IDs.

    Mail senders arrive as addresses only, but relationship matching works
    on user IDs. Results (including misses) are cached for the lifetime of
    the resolver. Concurrent lookups of the same address share one request,
    and addresses outside the organization are never sent to the API.
    """

    def __init__(
        self,
        client: GraphClient,
        org_domain: str,
        batch_size: int = 20,
        clock: Clock | None = None,
    ) -> None:
        """Initialize resolver.

        Args:
            client: Graph API client.
            org_domain: Domain of the signed-in user's email.
            batch_size: Lookups per $batch call (max 20).
            clock: Time source for cache entries.
        """
        self._client = client
        self.org_domain = org_domain.lower()
        self._batch_size = batch_size
        self._cache: TTLCache[str] = TTLCache(ttl=None, clock=clock)
        self._in_flight: dict[str, asyncio.Future[str | None]] = {}

    def is_external(self, email: str) -> bool:
        """Check whether an address is outside the organization."""
        return is_external_email(email, self.org_domain)

    async def resolve(self, email: str) -> str | None:
        """Resolve one address to a user ID.

        Args:
            email: Sender address (any case).

        Returns:
            Directory user ID, or None for external or unknown senders.
        """
        key = normalize_email(email)
        if not key:
            return None

        entry = self._cache.get_entry(key)
        if entry is not None:
            return entry.data or None

        pending = self._in_flight.get(key)
        if pending is not None:
            return await pending

        if self.is_external(key):
            self._cache.set(key, UNRESOLVED)
            return None

        future: asyncio.Future[str | None] = asyncio.get_running_loop().create_future()
        self._in_flight[key] = future
        try:
            user_id = await self._fetch_user_id(key)
            self._cache.set(key, user_id or UNRESOLVED)
            future.set_result(user_id)
            return user_id
        finally:
            del self._in_flight[key]
            if not future.done():
                future.cancel()

    async def resolve_many(self, emails: Iterable[str]) -> dict[str, str | None]:
        """Resolve many addresses, batching the uncached ones.

        Args:
            emails: Sender addresses. Duplicates and case variants collapse.

        Returns:
            Mapping of lower-cased address to user ID (None if unresolvable).
        """
        results: dict[str, str | None] = {}
        waiting: dict[str, asyncio.Future[str | None]] = {}
        to_fetch: list[str] = []

        for email in emails:
            key = normalize_email(email)
            if not key or key in results or key in waiting or key in to_fetch:
                continue
            entry = self._cache.get_entry(key)
            if entry is not None:
                results[key] = entry.data or None
            elif key in self._in_flight:
                waiting[key] = self._in_flight[key]
            elif self.is_external(key):
                self._cache.set(key, UNRESOLVED)
                results[key] = None
            else:
                to_fetch.append(key)

        loop = asyncio.get_running_loop()
        futures = {key: loop.create_future() for key in to_fetch}
        self._in_flight.update(futures)
        try:
            for chunk in _chunks(to_fetch, self._batch_size):
                resolved = await self._resolve_chunk(chunk)
                for key in chunk:
                    user_id = resolved.get(key)
                    self._cache.set(key, user_id or UNRESOLVED)
                    results[key] = user_id
                    futures[key].set_result(user_id)
        finally:
            for key, future in futures.items():
                self._in_flight.pop(key, None)
                if not future.done():
                    future.cancel()

        for key, future in waiting.items():
            results[key] = await future

        if to_fetch:
            await logger.adebug(
                "identities_resolved",
                requested=len(to_fetch),
                resolved=sum(1 for key in to_fetch if results.get(key)),
            )
        return results

    async def _fetch_user_id(self, email: str) -> str | None:
        """Single lookup. Failures count as unresolvable."""
        try:
            return await self._client.find_user_id_by_email(email)
        except (GraphApiError, httpx.HTTPError) as e:
            await logger.awarning("identity_lookup_failed", email=email, error=str(e))
            return None

    async def _resolve_chunk(self, emails: list[str]) -> dict[str, str | None]:
        """Resolve up to one batch of addresses.

        Falls back to sequential single lookups for this chunk only if the
        batch call fails.
        """
        requests = [
            BatchRequest(id=str(index), url=self._client.user_lookup_url(email))
            for index, email in enumerate(emails)
        ]
        try:
            responses = await self._client.batch(requests)
        except (GraphApiError, httpx.HTTPError) as e:
            await logger.awarning("identity_batch_failed", size=len(emails), error=str(e))
            return {email: await self._fetch_user_id(email) for email in emails}

        results: dict[str, str | None] = dict.fromkeys(emails)
        for response in responses:
            email = _email_for(response, emails)
            if email is not None:
                results[email] = _user_id_from(response)
        return results


def _email_for(response: BatchResponse, emails: list[str]) -> str | None:
    try:
        index = int(response.id)
    except ValueError:
        return None
    if 0 <= index < len(emails):
        return emails[index]
    return None


def _user_id_from(response: BatchResponse) -> str | None:
    if not response.ok or not isinstance(response.body, dict):
        return None
    users = response.body.get("value") or []
    if users and isinstance(users[0], dict) and users[0].get("id"):
        return str(users[0]["id"])
    return None
