"""Common interface for conversation sources."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any, ClassVar

import structlog

from waiting_lens.core.text_analysis import (
    detect_deadline,
    detect_question,
    make_preview,
    strip_html,
)
from waiting_lens.integrations.graph.parser import mentions_user, parse_graph_datetime, sender_id

if TYPE_CHECKING:
    from waiting_lens.integrations.graph.client import GraphClient
    from waiting_lens.integrations.graph.models import CurrentUser
    from waiting_lens.schemas.conversation import Conversation, Team

logger = structlog.get_logger(__name__)


@dataclass
class SourceContext:
    """Everything a source needs to know about the current refresh.

    Attributes:
        current_user: The signed-in user.
        now: Reference time for staleness.
        threshold: Messages at or before this time count as stale.
        teams: Joined teams keyed by team ID.
    """

    current_user: CurrentUser
    now: datetime
    threshold: datetime
    teams: dict[str, Team] = field(default_factory=dict)


@dataclass
class ContentSignals:
    """Preview and detection flags derived from a message body."""

    preview: str
    is_question: bool
    has_deadline_mention: bool

    @classmethod
    def from_text(cls, text: str) -> ContentSignals:
        """Analyze plain text."""
        return cls(
            preview=make_preview(text),
            is_question=detect_question(text),
            has_deadline_mention=detect_deadline(text),
        )

    @classmethod
    def from_html(cls, html: str) -> ContentSignals:
        """Analyze an HTML body."""
        return cls.from_text(strip_html(html))


def is_stale_mention(message: dict[str, Any], context: SourceContext) -> bool:
    """Check that a chat/channel message is stale, from someone else and @mentions the user."""
    created = message.get("createdDateTime")
    if not created or parse_graph_datetime(str(created)) > context.threshold:
        return False
    user_id = context.current_user.id
    if sender_id(message) == user_id:
        return False
    return mentions_user(message, user_id)


class ConversationSource(ABC):
    """A source of conversations waiting on the user.

    Subclasses implement fetch(); callers use collect(), which never raises
    so one failing source cannot take the others down.
    """

    name: ClassVar[str]

    def __init__(self, client: GraphClient) -> None:
        """Initialize source.

        Args:
            client: Graph API client.
        """
        self._client = client

    @abstractmethod
    async def fetch(self, context: SourceContext) -> list[Conversation]:
        """Fetch and map conversations. May raise on API failure."""

    async def collect(self, context: SourceContext) -> list[Conversation]:
        """Fetch conversations, logging any failure and returning [] instead."""
        try:
            conversations = await self.fetch(context)
        except Exception as e:
            await logger.awarning("source_fetch_failed", source=self.name, error=str(e))
            return []
        await logger.adebug("source_fetched", source=self.name, count=len(conversations))
        return conversations
