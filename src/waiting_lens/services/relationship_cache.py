"""Cached organizational context: manager, reports, collaborators, teams."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import timedelta
from typing import TYPE_CHECKING, Any

import httpx
import structlog

from waiting_lens.integrations.graph.client import GraphApiError
from waiting_lens.integrations.graph.parser import user_email
from waiting_lens.schemas.conversation import Person, PersonRelationship, Team
from waiting_lens.services.identity_resolver import is_external_email
from waiting_lens.services.ttl_cache import TTLCache

if TYPE_CHECKING:
    from waiting_lens.core.clock import Clock
    from waiting_lens.integrations.graph.client import GraphClient

logger = structlog.get_logger(__name__)

DEFAULT_TTL = timedelta(minutes=5)

MANAGER_KEY = "manager"
DIRECT_REPORTS_KEY = "direct_reports"
FREQUENT_COLLABORATORS_KEY = "frequent_collaborators"
JOINED_TEAMS_KEY = "joined_teams"


@dataclass
class RelationshipContext:
    """Snapshot of who the user works with, used to classify senders.

    Attributes:
        org_domain: Domain of the user's own email.
        manager_id: Manager's user ID, if the user has a manager.
        direct_report_ids: User IDs of direct reports.
        frequent_collaborator_ids: User IDs of top collaborators.
        teams: Joined teams keyed by team ID.
    """

    org_domain: str = ""
    manager_id: str | None = None
    direct_report_ids: set[str] = field(default_factory=set)
    frequent_collaborator_ids: set[str] = field(default_factory=set)
    teams: dict[str, Team] = field(default_factory=dict)

    def classify(self, person: Person) -> PersonRelationship:
        """Classify a sender.

        Priority: manager, direct report, frequent collaborator, then
        external (email domain differs from the organization's), else other.
        """
        sender_id = person.id
        if sender_id:
            if sender_id == self.manager_id:
                return PersonRelationship.MANAGER
            if sender_id in self.direct_report_ids:
                return PersonRelationship.DIRECT_REPORT
            if sender_id in self.frequent_collaborator_ids:
                return PersonRelationship.FREQUENT
        if is_external_email(person.email, self.org_domain):
            return PersonRelationship.EXTERNAL
        return PersonRelationship.OTHER


def _person(raw: dict[str, Any], relationship: PersonRelationship, email: str = "") -> Person:
    return Person(
        id=str(raw.get("id") or ""),
        display_name=str(raw.get("displayName") or "Unknown"),
        email=email or user_email(raw),
        relationship=relationship,
    )


class RelationshipCache:
    """TTL-cached organizational lookups.

    Each of the four lookups has its own slot. A lookup that fails or finds
    nothing (e.g. no manager) is cached like any other result so it is not
    retried until the slot expires.
    """

    def __init__(
        self,
        client: GraphClient,
        ttl: timedelta = DEFAULT_TTL,
        clock: Clock | None = None,
    ) -> None:
        """Initialize cache.

        Args:
            client: Graph API client.
            ttl: Lifetime of each slot (default: 5 minutes).
            clock: Time source.
        """
        self._client = client
        self._cache: TTLCache[Any] = TTLCache(ttl=ttl, clock=clock)

    async def get_manager(self) -> Person | None:
        """Get the user's manager, or None."""
        manager: Person | None = await self._cache.get_or_fetch(MANAGER_KEY, self._fetch_manager)
        return manager

    async def get_direct_reports(self) -> list[Person]:
        """Get the user's direct reports."""
        reports: list[Person] = await self._cache.get_or_fetch(
            DIRECT_REPORTS_KEY, self._fetch_direct_reports
        )
        return reports

    async def get_frequent_collaborators(self) -> list[Person]:
        """Get the user's most frequent collaborators."""
        people: list[Person] = await self._cache.get_or_fetch(
            FREQUENT_COLLABORATORS_KEY, self._fetch_frequent_collaborators
        )
        return people

    async def get_joined_teams(self) -> list[Team]:
        """Get the teams the user has joined."""
        teams: list[Team] = await self._cache.get_or_fetch(
            JOINED_TEAMS_KEY, self._fetch_joined_teams
        )
        return teams

    async def load_context(self, org_domain: str) -> RelationshipContext:
        """Load all four lookups concurrently into a classification context.

        Args:
            org_domain: Domain of the user's own email.

        Returns:
            Relationship context for this refresh.
        """
        manager, reports, collaborators, teams = await asyncio.gather(
            self.get_manager(),
            self.get_direct_reports(),
            self.get_frequent_collaborators(),
            self.get_joined_teams(),
        )
        return RelationshipContext(
            org_domain=org_domain.lower(),
            manager_id=manager.id if manager and manager.id else None,
            direct_report_ids={p.id for p in reports if p.id},
            frequent_collaborator_ids={p.id for p in collaborators if p.id},
            teams={t.id: t for t in teams},
        )

    def invalidate_all(self) -> None:
        """Drop every cached lookup."""
        self._cache.invalidate_all()

    async def _fetch_manager(self) -> Person | None:
        try:
            raw = await self._client.get_manager()
        except (GraphApiError, httpx.HTTPError) as e:
            await logger.awarning("relationship_lookup_failed", slot=MANAGER_KEY, error=str(e))
            return None
        if not raw:
            return None
        return _person(raw, PersonRelationship.MANAGER)

    async def _fetch_direct_reports(self) -> list[Person]:
        try:
            rows = await self._client.list_direct_reports()
        except (GraphApiError, httpx.HTTPError) as e:
            await logger.awarning(
                "relationship_lookup_failed", slot=DIRECT_REPORTS_KEY, error=str(e)
            )
            return []
        return [_person(r, PersonRelationship.DIRECT_REPORT) for r in rows]

    async def _fetch_frequent_collaborators(self) -> list[Person]:
        try:
            rows = await self._client.list_people()
        except (GraphApiError, httpx.HTTPError) as e:
            await logger.awarning(
                "relationship_lookup_failed", slot=FREQUENT_COLLABORATORS_KEY, error=str(e)
            )
            return []
        people = []
        for row in rows:
            addresses = row.get("scoredEmailAddresses") or []
            email = ""
            if addresses and isinstance(addresses[0], dict):
                email = str(addresses[0].get("address") or "")
            people.append(_person(row, PersonRelationship.FREQUENT, email=email))
        return people

    async def _fetch_joined_teams(self) -> list[Team]:
        try:
            rows = await self._client.list_joined_teams()
        except (GraphApiError, httpx.HTTPError) as e:
            await logger.awarning(
                "relationship_lookup_failed", slot=JOINED_TEAMS_KEY, error=str(e)
            )
            return []
        return [
            Team(
                id=str(row.get("id") or ""),
                display_name=str(row.get("displayName") or ""),
                web_url=str(row.get("webUrl") or ""),
                type="team",
            )
            for row in rows
            if row.get("id")
        ]
