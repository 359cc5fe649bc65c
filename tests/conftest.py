"""Shared test fixtures for waiting-lens."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Any
from unittest.mock import AsyncMock

import pytest

from waiting_lens.integrations.graph.client import GraphClient
from waiting_lens.integrations.graph.models import CurrentUser
from waiting_lens.schemas.conversation import (
    Conversation,
    ConversationType,
    Person,
    PersonRelationship,
)
from waiting_lens.sources.base import ConversationSource, SourceContext

NOW = datetime(2024, 6, 12, 12, 0, tzinfo=UTC)  # a Wednesday


def make_person(
    person_id: str = "u-alice",
    name: str = "Alice",
    email: str = "alice@contoso.com",
    relationship: PersonRelationship = PersonRelationship.OTHER,
) -> Person:
    """Build a Person with sensible defaults."""
    return Person(id=person_id, display_name=name, email=email, relationship=relationship)


def make_conversation(
    conversation_id: str = "c1",
    sender: Person | None = None,
    hours: int = 60,
    conversation_type: ConversationType = ConversationType.EMAIL,
    urgency_score: int = 5,
    **overrides: Any,
) -> Conversation:
    """Build a Conversation received `hours` before NOW."""
    fields: dict[str, Any] = {
        "id": conversation_id,
        "conversation_type": conversation_type,
        "subject": f"Subject {conversation_id}",
        "preview": "preview",
        "sender": sender or make_person(),
        "received_at": NOW - timedelta(hours=hours),
        "stale_duration_hours": hours,
        "urgency_score": urgency_score,
        "web_url": f"https://example.com/{conversation_id}",
    }
    fields.update(overrides)
    return Conversation(**fields)


def graph_timestamp(hours_ago: float) -> str:
    """Graph-style timestamp (7 fractional digits, Z suffix) relative to NOW."""
    value = NOW - timedelta(hours=hours_ago)
    return value.strftime("%Y-%m-%dT%H:%M:%S.0000000Z")


@pytest.fixture
def now() -> datetime:
    """Fixed reference time."""
    return NOW


@pytest.fixture
def clock() -> Any:
    """Clock returning the fixed reference time."""
    return lambda: NOW


@pytest.fixture
def current_user() -> CurrentUser:
    """Signed-in user in the contoso.com organization."""
    return CurrentUser(id="u-me", email="me@contoso.com", display_name="Me")


@pytest.fixture
def graph_client(current_user: CurrentUser) -> AsyncMock:
    """Graph client mock with empty results for every read."""
    client = AsyncMock(spec=GraphClient)
    client.get_me.return_value = current_user
    client.get_manager.return_value = None
    client.list_direct_reports.return_value = []
    client.list_people.return_value = []
    client.list_joined_teams.return_value = []
    client.list_messages.return_value = []
    client.list_sent_conversation_ids.return_value = set()
    client.list_chats.return_value = []
    client.list_chat_messages.return_value = []
    client.list_channels.return_value = []
    client.list_channel_messages.return_value = []
    client.find_user_id_by_email.return_value = None
    client.batch.return_value = []
    client.user_lookup_url.side_effect = GraphClient.user_lookup_url
    return client


class MovableClock:
    """Clock whose time tests can advance."""

    def __init__(self, start: datetime = NOW) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> None:
        """Move time forward by a timedelta(**delta)."""
        self.now += timedelta(**delta)


class FakeSource(ConversationSource):
    """Source returning a fixed list and recording its contexts."""

    name = "fake"

    def __init__(self, conversations: list[Conversation] | None = None) -> None:
        super().__init__(AsyncMock())
        self.conversations = conversations or []
        self.contexts: list[SourceContext] = []

    async def fetch(self, context: SourceContext) -> list[Conversation]:
        self.contexts.append(context)
        return list(self.conversations)
