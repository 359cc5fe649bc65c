"""Aggregation of everything waiting on the signed-in user.

Fans out to the four conversation sources, merges their results, enriches
senders (identity, relationship, avatar), scores urgency, applies the
user's dismiss/snooze decisions and produces the grouped view.
"""

from __future__ import annotations

import asyncio
from datetime import timedelta
from typing import TYPE_CHECKING

import httpx
import structlog

from waiting_lens.core.clock import utc_now
from waiting_lens.core.exceptions import CurrentUserError
from waiting_lens.integrations.graph.client import GraphApiError
from waiting_lens.schemas.conversation import Conversation, ConversationType, Team
from waiting_lens.schemas.groups import GroupedWaitingData
from waiting_lens.schemas.preferences import DEFAULT_SLA_SETTINGS, WaitingFilter
from waiting_lens.services.avatar_cache import AvatarCache
from waiting_lens.services.grouping import GroupAggregator
from waiting_lens.services.identity_resolver import IdentityResolver
from waiting_lens.services.persistence import apply_persisted_state
from waiting_lens.services.relationship_cache import RelationshipCache, RelationshipContext
from waiting_lens.services.trend import TrendEstimator
from waiting_lens.services.urgency import apply_urgency
from waiting_lens.sources import ConversationSources, SourceContext

if TYPE_CHECKING:
    from collections.abc import Iterable

    from waiting_lens.core.clock import Clock
    from waiting_lens.integrations.graph.client import GraphClient
    from waiting_lens.integrations.graph.models import CurrentUser
    from waiting_lens.schemas.preferences import ResponseTimeSLA
    from waiting_lens.schemas.state import PersistedState
    from waiting_lens.schemas.trend import WaitingDebtTrend
    from waiting_lens.sources import ConversationSource

logger = structlog.get_logger(__name__)


def merge_conversations(
    primary: Iterable[Conversation],
    mentions: Iterable[Conversation],
) -> list[Conversation]:
    """Merge source results into one list keyed by conversation ID.

    Primary results (email, chat, channel) are inserted first, later ones
    replacing earlier ones with the same ID. Mentions are then folded in: a
    mention whose ID already exists only turns is_mention on for the
    existing record; otherwise it is added as a new conversation.

    Args:
        primary: Email, chat and channel conversations.
        mentions: Conversations from the mention source.

    Returns:
        Conversations with unique IDs, in first-seen order.
    """
    merged: dict[str, Conversation] = {}
    for conversation in primary:
        merged[conversation.id] = conversation

    for mention in mentions:
        existing = merged.get(mention.id)
        if existing is None:
            merged[mention.id] = mention
        elif not existing.is_mention:
            merged[mention.id] = existing.model_copy(update={"is_mention": True})
    return list(merged.values())


class WaitingOnYouService:
    """Builds the "waiting on you" view for one signed-in user.

    The service owns the relationship, identity and avatar caches for its
    session, so repeated refreshes reuse earlier lookups.

    Example:
        async with GraphClient(access_token=token) as client:
            service = WaitingOnYouService(client)
            grouped = await service.get_waiting_data(WaitingFilter(), store.state)
            for group in grouped.by_person:
                print(group.person.display_name, group.item_count)
    """

    def __init__(
        self,
        client: GraphClient,
        sources: ConversationSources | None = None,
        relationship_cache: RelationshipCache | None = None,
        avatar_cache: AvatarCache | None = None,
        identity_resolver: IdentityResolver | None = None,
        trend_estimator: TrendEstimator | None = None,
        sla_settings: Iterable[ResponseTimeSLA] = DEFAULT_SLA_SETTINGS,
        relationship_ttl: timedelta = timedelta(minutes=5),
        avatar_debounce_seconds: float = 0.05,
        batch_size: int = 20,
        clock: Clock | None = None,
    ) -> None:
        """Initialize service.

        Args:
            client: Graph API client.
            sources: Conversation sources (default: the Graph-backed four).
            relationship_cache: Organizational context cache.
            avatar_cache: Avatar cache.
            identity_resolver: Email to user ID resolver. Created from the
                user's domain on first use if not given.
            trend_estimator: Waiting-debt trend estimator.
            sla_settings: Per-relationship response-time targets.
            relationship_ttl: Lifetime of relationship lookups.
            avatar_debounce_seconds: Avatar coalescing window.
            batch_size: Sub-requests per $batch call.
            clock: Time source.
        """
        self._client = client
        self._clock = clock or utc_now
        self._batch_size = batch_size
        self.sources = sources or ConversationSources.default(client)
        self.relationship_cache = relationship_cache or RelationshipCache(
            client, ttl=relationship_ttl, clock=self._clock
        )
        self.avatar_cache = avatar_cache or AvatarCache(
            client,
            debounce_seconds=avatar_debounce_seconds,
            batch_size=batch_size,
            clock=self._clock,
        )
        self._identity_resolver = identity_resolver
        self.trend_estimator = trend_estimator or TrendEstimator(clock=self._clock)
        self.sla_settings = list(sla_settings)
        self._current_user: CurrentUser | None = None
        self._teams: dict[str, Team] = {}

    async def get_current_user(self) -> CurrentUser:
        """Get the signed-in user, fetching it once per session.

        Raises:
            CurrentUserError: If the user's identity cannot be determined.
        """
        if self._current_user is not None:
            return self._current_user

        try:
            user = await self._client.get_me()
        except (GraphApiError, httpx.HTTPError) as e:
            await logger.aerror("current_user_failed", error=str(e))
            raise CurrentUserError(f"Failed to get current user: {e}") from e

        if not user.id or not user.email:
            await logger.aerror("current_user_incomplete", user_id=user.id)
            raise CurrentUserError("Current user has no id or email")

        self._current_user = user
        return user

    def identity_resolver_for(self, user: CurrentUser) -> IdentityResolver:
        """Get the session's identity resolver, creating it for the user's domain."""
        if self._identity_resolver is None:
            self._identity_resolver = IdentityResolver(
                self._client, org_domain=user.domain, batch_size=self._batch_size, clock=self._clock
            )
        return self._identity_resolver

    async def get_waiting_data(
        self,
        waiting_filter: WaitingFilter | None = None,
        persisted_state: PersistedState | None = None,
    ) -> GroupedWaitingData:
        """Aggregate everything waiting on the user.

        Args:
            waiting_filter: Which sources to read and what to show.
            persisted_state: Dismissals and snoozes to apply.

        Returns:
            Grouped, scored and sorted conversations with summary totals.

        Raises:
            CurrentUserError: If the signed-in user cannot be determined.
        """
        waiting_filter = waiting_filter or WaitingFilter()
        now = self._clock()

        user = await self.get_current_user()
        context = await self.relationship_cache.load_context(user.domain)
        self._teams = context.teams

        source_context = SourceContext(
            current_user=user,
            now=now,
            threshold=now - timedelta(hours=waiting_filter.min_stale_duration_hours),
            teams=context.teams,
        )
        emails, chats, channels, mentions = await asyncio.gather(
            self._collect(self.sources.email, waiting_filter.include_email, source_context),
            self._collect(self.sources.chat, waiting_filter.include_teams_chats, source_context),
            self._collect(
                self.sources.channel, waiting_filter.include_channel_messages, source_context
            ),
            self._collect(self.sources.mention, waiting_filter.include_mentions, source_context),
        )
        conversations = merge_conversations([*emails, *chats, *channels], mentions)

        conversations = await self._resolve_senders(conversations, user)
        scored = [
            apply_urgency(self._classify(conversation, context), self.sla_settings)
            for conversation in conversations
        ]
        scored = [
            c for c in scored if waiting_filter.allows_relationship(c.sender.relationship)
        ]

        if persisted_state is not None:
            scored = apply_persisted_state(scored, persisted_state, waiting_filter, now)

        scored.sort(key=lambda c: c.urgency_score, reverse=True)
        visible = await self._attach_avatars(scored[: waiting_filter.max_results])

        grouped = GroupAggregator(context.teams).aggregate(visible)
        await logger.ainfo(
            "waiting_data_aggregated",
            fetched=len(conversations),
            visible=grouped.total_items,
            people=grouped.total_people_waiting,
            teams=grouped.total_teams_affected,
            critical=grouped.critical_count,
        )
        return grouped

    def group(self, conversations: list[Conversation]) -> GroupedWaitingData:
        """Regroup already-scored conversations with the last known teams."""
        return GroupAggregator(self._teams).aggregate(conversations)

    def get_waiting_debt_trend(self, days_back: int = 14) -> WaitingDebtTrend:
        """Estimate the waiting-debt trend over the last days_back days."""
        return self.trend_estimator.estimate(days_back)

    async def send_quick_reply(
        self,
        chat_id: str,
        reply_to_id: str | None,
        message: str,
        is_channel_message: bool = False,
    ) -> bool:
        """Reply to a conversation from the waiting view.

        Channel conversations carry a chat_id of the form "team:channel" and
        are answered in the thread of reply_to_id. Everything else is posted
        into the chat.

        Returns:
            True if the message was sent.
        """
        if not message.strip():
            return False

        try:
            if is_channel_message:
                team_id, _, channel_id = chat_id.partition(":")
                if not team_id or not channel_id or not reply_to_id:
                    await logger.awarning("quick_reply_invalid_target", chat_id=chat_id)
                    return False
                await self._client.reply_to_channel_message(
                    team_id, channel_id, reply_to_id, message
                )
            else:
                await self._client.send_chat_message(chat_id, message)
        except (GraphApiError, httpx.HTTPError) as e:
            await logger.awarning("quick_reply_failed", chat_id=chat_id, error=str(e))
            return False

        await logger.ainfo("quick_reply_sent", chat_id=chat_id, channel=is_channel_message)
        return True

    def invalidate_caches(self) -> None:
        """Forget the cached user and organizational context."""
        self._current_user = None
        self.relationship_cache.invalidate_all()

    async def _collect(
        self, source: ConversationSource, enabled: bool, context: SourceContext
    ) -> list[Conversation]:
        if not enabled:
            return []
        return await source.collect(context)

    async def _resolve_senders(
        self, conversations: list[Conversation], user: CurrentUser
    ) -> list[Conversation]:
        """Fill in user IDs for email senders known only by address."""
        unresolved = [
            c.sender.email
            for c in conversations
            if c.conversation_type == ConversationType.EMAIL
            and not c.sender.id
            and c.sender.email
        ]
        if not unresolved:
            return conversations

        user_ids = await self.identity_resolver_for(user).resolve_many(unresolved)

        resolved = []
        for conversation in conversations:
            sender = conversation.sender
            user_id = user_ids.get(sender.email.lower()) if not sender.id else None
            if user_id and conversation.conversation_type == ConversationType.EMAIL:
                conversation = conversation.model_copy(
                    update={"sender": sender.model_copy(update={"id": user_id})}
                )
            resolved.append(conversation)
        return resolved

    def _classify(self, conversation: Conversation, context: RelationshipContext) -> Conversation:
        sender = conversation.sender
        relationship = context.classify(sender)
        if relationship == sender.relationship:
            return conversation
        return conversation.model_copy(
            update={"sender": sender.model_copy(update={"relationship": relationship})}
        )

    async def _attach_avatars(self, conversations: list[Conversation]) -> list[Conversation]:
        sender_ids = list(dict.fromkeys(c.sender.id for c in conversations if c.sender.id))
        if not sender_ids:
            return conversations

        await self.avatar_cache.prefetch(sender_ids)
        photos = dict(
            zip(
                sender_ids,
                await asyncio.gather(*(self.avatar_cache.get_photo_url(i) for i in sender_ids)),
                strict=True,
            )
        )

        with_photos = []
        for conversation in conversations:
            photo = photos.get(conversation.sender.id)
            if photo:
                conversation = conversation.model_copy(
                    update={"sender": conversation.sender.model_copy(update={"photo_url": photo})}
                )
            with_photos.append(conversation)
        return with_photos
