"""Chat messages that @mention the user."""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from waiting_lens.integrations.graph.client import GraphApiError
from waiting_lens.integrations.graph.parser import (
    body_content,
    chat_sender,
    parse_graph_datetime,
    stale_hours,
)
from waiting_lens.schemas.conversation import Conversation, ConversationType
from waiting_lens.sources.base import (
    ContentSignals,
    ConversationSource,
    SourceContext,
    is_stale_mention,
)

logger = structlog.get_logger(__name__)

MAX_CHATS = 50
MAX_MESSAGES = 30


class MentionSource(ConversationSource):
    """Stale @mentions of the user across all chats, one chat at a time."""

    name = "mentions"

    async def fetch(self, context: SourceContext) -> list[Conversation]:
        chats = await self._client.list_chats(top=MAX_CHATS)

        conversations: list[Conversation] = []
        for chat in chats:
            try:
                messages = await self._client.list_chat_messages(
                    str(chat["id"]), top=MAX_MESSAGES
                )
            except (GraphApiError, httpx.HTTPError) as e:
                await logger.awarning("chat_messages_failed", chat_id=chat.get("id"), error=str(e))
                continue

            conversations.extend(
                self._to_conversation(message, chat, context)
                for message in messages
                if is_stale_mention(message, context)
            )
        return conversations

    def _to_conversation(
        self, message: dict[str, Any], chat: dict[str, Any], context: SourceContext
    ) -> Conversation:
        received_at = parse_graph_datetime(str(message["createdDateTime"]))
        signals = ContentSignals.from_html(body_content(message))
        default_subject = "Group Chat @Mention" if chat.get("chatType") == "group" else "@Mention"
        return Conversation(
            id=str(message["id"]),
            conversation_type=ConversationType.TEAMS_CHAT,
            subject=chat.get("topic") or default_subject,
            preview=signals.preview,
            sender=chat_sender(message),
            received_at=received_at,
            stale_duration_hours=stale_hours(received_at, context.now),
            web_url=message.get("webUrl") or chat.get("webUrl") or "",
            chat_id=str(chat["id"]),
            reply_to_id=str(message["id"]),
            is_question=signals.is_question,
            has_deadline_mention=signals.has_deadline_mention,
            is_mention=True,
        )
