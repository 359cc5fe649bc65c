"""Unanswered email source."""

from __future__ import annotations

import asyncio
from datetime import timedelta
from typing import Any

from waiting_lens.integrations.graph.parser import email_sender, parse_graph_datetime, stale_hours
from waiting_lens.schemas.conversation import Conversation, ConversationType
from waiting_lens.sources.base import ContentSignals, ConversationSource, SourceContext

LOOKBACK = timedelta(days=30)
MAX_MESSAGES = 100
MAX_SENT = 200


class StaleEmailSource(ConversationSource):
    """Received mail older than the threshold that the user has not replied to."""

    name = "email"

    async def fetch(self, context: SourceContext) -> list[Conversation]:
        window_start = context.threshold - LOOKBACK
        messages, replied = await asyncio.gather(
            self._client.list_messages(
                received_after=window_start,
                received_before=context.threshold,
                top=MAX_MESSAGES,
            ),
            self._client.list_sent_conversation_ids(sent_after=window_start, top=MAX_SENT),
        )

        own_email = context.current_user.email
        conversations = []
        for message in messages:
            sender = email_sender(message)
            if sender.email.lower() == own_email:
                continue
            if message.get("conversationId") in replied:
                continue
            conversations.append(self._to_conversation(message, context))
        return conversations

    def _to_conversation(self, message: dict[str, Any], context: SourceContext) -> Conversation:
        received_at = parse_graph_datetime(str(message["receivedDateTime"]))
        signals = ContentSignals.from_text(str(message.get("bodyPreview") or ""))
        return Conversation(
            id=str(message["id"]),
            conversation_type=ConversationType.EMAIL,
            subject=message.get("subject") or "(No subject)",
            preview=signals.preview,
            sender=email_sender(message),
            received_at=received_at,
            stale_duration_hours=stale_hours(received_at, context.now),
            web_url=str(message.get("webLink") or ""),
            is_question=signals.is_question,
            has_deadline_mention=signals.has_deadline_mention,
            is_mention=False,
        )
