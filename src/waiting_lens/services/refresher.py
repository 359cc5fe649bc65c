"""Refresh controller holding the latest waiting snapshot."""

from __future__ import annotations

import asyncio
import contextlib
import uuid
from typing import TYPE_CHECKING, Any

import structlog

from waiting_lens.core.clock import utc_now
from waiting_lens.core.logging import bind_refresh_context, clear_refresh_context
from waiting_lens.schemas.preferences import WaitingFilter

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime

    from waiting_lens.core.clock import Clock
    from waiting_lens.schemas.conversation import Conversation
    from waiting_lens.schemas.groups import GroupedWaitingData
    from waiting_lens.schemas.trend import WaitingDebtTrend
    from waiting_lens.services.persistence import PersistenceStore
    from waiting_lens.services.waiting_service import WaitingOnYouService

logger = structlog.get_logger(__name__)


class WaitingRefresher:
    """Keeps one session's waiting snapshot current.

    A refresh replaces the snapshot when it completes. If a newer refresh
    has already completed, an older one finishing late is discarded.
    Dismiss and snooze are applied to the snapshot immediately, without
    waiting for the next refresh.

    Example:
        refresher = WaitingRefresher(service, store, auto_refresh_interval_ms=300_000)
        await refresher.refresh()
        refresher.start()
        ...
        await refresher.stop()
    """

    def __init__(
        self,
        service: WaitingOnYouService,
        store: PersistenceStore,
        waiting_filter: WaitingFilter | None = None,
        auto_refresh_interval_ms: int = 5 * 60 * 1000,
        trend_days: int = 14,
        clock: Clock | None = None,
    ) -> None:
        """Initialize refresher.

        Args:
            service: Aggregation service.
            store: Dismiss/snooze persistence.
            waiting_filter: Initial filter.
            auto_refresh_interval_ms: Periodic refresh interval (0 disables).
            trend_days: Days covered by the trend estimate.
            clock: Time source.
        """
        self.service = service
        self.store = store
        self.waiting_filter = waiting_filter or WaitingFilter()
        self.auto_refresh_interval_ms = auto_refresh_interval_ms
        self.trend_days = trend_days
        self._clock = clock or utc_now

        self.data: GroupedWaitingData | None = None
        self.trend: WaitingDebtTrend | None = None
        self.last_refreshed: datetime | None = None
        self.error: Exception | None = None
        self.is_loading = False

        self._generation = 0
        self._applied_generation = 0
        self._task: asyncio.Task[None] | None = None

    @property
    def is_running(self) -> bool:
        """Check whether periodic refresh is active."""
        return self._task is not None and not self._task.done()

    async def refresh(self) -> GroupedWaitingData:
        """Run one aggregation and trend estimate and store the results.

        Returns:
            The new snapshot.

        Raises:
            CurrentUserError: If the signed-in user cannot be determined. The
                error is also kept in self.error.
        """
        self._generation += 1
        generation = self._generation
        bind_refresh_context(refresh_id=uuid.uuid4().hex[:12])
        self.is_loading = True
        try:
            data = await self.service.get_waiting_data(self.waiting_filter, self.store.state)
            trend = self.service.get_waiting_debt_trend(self.trend_days)
        except Exception as e:
            if generation > self._applied_generation:
                self.error = e
            await logger.aerror("refresh_failed", error=str(e))
            raise
        finally:
            self.is_loading = False
            clear_refresh_context()

        if generation < self._applied_generation:
            await logger.adebug("refresh_superseded", generation=generation)
            return self.data or data

        self._applied_generation = generation
        self.data = data
        self.trend = trend
        self.error = None
        self.last_refreshed = self._clock()
        return data

    def start(self) -> None:
        """Start periodic refresh. Does nothing if the interval is 0."""
        if self.auto_refresh_interval_ms <= 0 or self.is_running:
            return
        self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        """Stop periodic refresh."""
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None

    async def _run(self) -> None:
        interval = self.auto_refresh_interval_ms / 1000
        while True:
            await asyncio.sleep(interval)
            try:
                await self.refresh()
            except Exception as e:
                # Already recorded in self.error; keep the loop alive
                await logger.awarning("auto_refresh_failed", error=str(e))

    def update_filter(self, **changes: Any) -> WaitingFilter:
        """Change filter fields. Takes effect on the next refresh.

        Raises:
            pydantic.ValidationError: If a value is invalid.
        """
        self.waiting_filter = WaitingFilter.model_validate(
            {**self.waiting_filter.model_dump(), **changes}
        )
        return self.waiting_filter

    def dismiss(self, conversation_id: str) -> None:
        """Dismiss a conversation and drop it from the snapshot."""
        self.store.dismiss(conversation_id)
        self._rebuild(lambda c: None if c.id == conversation_id else c)

    def snooze(self, conversation_id: str, until: datetime, reason: str | None = None) -> None:
        """Snooze a conversation and mark or hide it in the snapshot."""
        self.store.snooze(conversation_id, until, reason)
        hide = self.waiting_filter.hide_snoozed

        def update(conversation: Conversation) -> Conversation | None:
            if conversation.id != conversation_id:
                return conversation
            if hide:
                return None
            return conversation.model_copy(update={"snoozed_until": until})

        self._rebuild(update)

    def unsnooze(self, conversation_id: str) -> bool:
        """Remove a snooze and clear its marker in the snapshot.

        A conversation hidden by hide_snoozed reappears on the next refresh.
        """
        removed = self.store.unsnooze(conversation_id)
        self._rebuild(
            lambda c: c.model_copy(update={"snoozed_until": None}) if c.id == conversation_id else c
        )
        return removed

    def _rebuild(self, update: Callable[[Conversation], Conversation | None]) -> None:
        if self.data is None:
            return
        conversations = []
        for conversation in self.data.all_conversations:
            updated = update(conversation)
            if updated is not None:
                conversations.append(updated)
        self.data = self.service.group(conversations)
