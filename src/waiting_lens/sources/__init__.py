"""Conversation sources.

Each source independently fetches raw items from the Graph API and maps
them into Conversation records:

- StaleEmailSource: unanswered mail
- StaleChatSource: chats whose last message is from someone else
- StaleChannelMentionSource: channel messages that @mention the user
- MentionSource: chat messages that @mention the user
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from waiting_lens.sources.base import ContentSignals, ConversationSource, SourceContext
from waiting_lens.sources.channel import StaleChannelMentionSource
from waiting_lens.sources.chat import StaleChatSource
from waiting_lens.sources.email import StaleEmailSource
from waiting_lens.sources.mention import MentionSource

if TYPE_CHECKING:
    from waiting_lens.integrations.graph.client import GraphClient


@dataclass
class ConversationSources:
    """The four sources an aggregation fans out to."""

    email: ConversationSource
    chat: ConversationSource
    channel: ConversationSource
    mention: ConversationSource

    @classmethod
    def default(cls, client: GraphClient) -> ConversationSources:
        """Build the standard Graph-backed sources."""
        return cls(
            email=StaleEmailSource(client),
            chat=StaleChatSource(client),
            channel=StaleChannelMentionSource(client),
            mention=MentionSource(client),
        )


__all__ = [
    "ContentSignals",
    "ConversationSource",
    "ConversationSources",
    "MentionSource",
    "SourceContext",
    "StaleChannelMentionSource",
    "StaleChatSource",
    "StaleEmailSource",
]
