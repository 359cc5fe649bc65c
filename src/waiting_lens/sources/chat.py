"""Unanswered Teams chat source."""

from __future__ import annotations

from typing import Any

from waiting_lens.integrations.graph.parser import (
    body_content,
    chat_sender,
    parse_graph_datetime,
    sender_id,
    stale_hours,
)
from waiting_lens.schemas.conversation import Conversation, ConversationType
from waiting_lens.sources.base import ContentSignals, ConversationSource, SourceContext

MAX_CHATS = 50
TEAMS_CHAT_URL = "https://teams.microsoft.com/l/chat/{chat_id}"


class StaleChatSource(ConversationSource):
    """Chats whose last message is from someone else and older than the threshold."""

    name = "teams-chat"

    async def fetch(self, context: SourceContext) -> list[Conversation]:
        chats = await self._client.list_chats(top=MAX_CHATS, expand_last_message=True)

        conversations = []
        for chat in chats:
            last = chat.get("lastMessagePreview")
            if not isinstance(last, dict) or not last.get("createdDateTime"):
                continue
            if parse_graph_datetime(str(last["createdDateTime"])) > context.threshold:
                continue
            if sender_id(last) == context.current_user.id:
                continue
            conversations.append(self._to_conversation(chat, last, context))
        return conversations

    def _to_conversation(
        self, chat: dict[str, Any], last: dict[str, Any], context: SourceContext
    ) -> Conversation:
        chat_id = str(chat["id"])
        received_at = parse_graph_datetime(str(last["createdDateTime"]))
        signals = ContentSignals.from_html(body_content(last))
        return Conversation(
            id=chat_id,
            conversation_type=ConversationType.TEAMS_CHAT,
            subject=chat.get("topic") or "Teams Chat",
            preview=signals.preview,
            sender=chat_sender(last),
            received_at=received_at,
            stale_duration_hours=stale_hours(received_at, context.now),
            web_url=chat.get("webUrl") or TEAMS_CHAT_URL.format(chat_id=chat_id),
            chat_id=chat_id,
            reply_to_id=str(last.get("id") or "") or None,
            is_question=signals.is_question,
            has_deadline_mention=signals.has_deadline_mention,
            is_mention=False,
        )
