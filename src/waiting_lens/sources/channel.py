"""Channel messages that @mention the user."""

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
from waiting_lens.schemas.conversation import Conversation, ConversationType, Team
from waiting_lens.sources.base import (
    ContentSignals,
    ConversationSource,
    SourceContext,
    is_stale_mention,
)

logger = structlog.get_logger(__name__)

MAX_CHANNELS = 10
MAX_MESSAGES = 20


class StaleChannelMentionSource(ConversationSource):
    """Stale channel messages in joined teams that @mention the user.

    Each team and each channel is fetched independently; a failure skips
    only that team or channel.
    """

    name = "teams-channel"

    async def fetch(self, context: SourceContext) -> list[Conversation]:
        conversations: list[Conversation] = []
        for team in context.teams.values():
            try:
                channels = await self._client.list_channels(team.id, top=MAX_CHANNELS)
            except (GraphApiError, httpx.HTTPError) as e:
                await logger.awarning("team_channels_failed", team_id=team.id, error=str(e))
                continue

            for channel in channels:
                try:
                    messages = await self._client.list_channel_messages(
                        team.id, str(channel["id"]), top=MAX_MESSAGES
                    )
                except (GraphApiError, httpx.HTTPError) as e:
                    await logger.awarning(
                        "channel_messages_failed",
                        team_id=team.id,
                        channel_id=channel.get("id"),
                        error=str(e),
                    )
                    continue

                conversations.extend(
                    self._to_conversation(message, team, channel, context)
                    for message in messages
                    if is_stale_mention(message, context)
                )
        return conversations

    def _to_conversation(
        self,
        message: dict[str, Any],
        team: Team,
        channel: dict[str, Any],
        context: SourceContext,
    ) -> Conversation:
        channel_id = str(channel["id"])
        channel_name = str(channel.get("displayName") or "")
        received_at = parse_graph_datetime(str(message["createdDateTime"]))
        signals = ContentSignals.from_html(body_content(message))
        return Conversation(
            id=str(message["id"]),
            conversation_type=ConversationType.TEAMS_CHANNEL,
            subject=f"#{channel_name}: {message.get('subject') or 'Message'}",
            preview=signals.preview,
            sender=chat_sender(message),
            received_at=received_at,
            stale_duration_hours=stale_hours(received_at, context.now),
            web_url=message.get("webUrl") or channel.get("webUrl") or "",
            chat_id=f"{team.id}:{channel_id}",
            reply_to_id=str(message["id"]),
            team_id=team.id,
            team_name=team.display_name,
            channel_id=channel_id,
            channel_name=channel_name,
            is_question=signals.is_question,
            has_deadline_mention=signals.has_deadline_mention,
            is_mention=True,
        )
