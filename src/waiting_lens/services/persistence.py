"""Dismiss/snooze state persisted as a single blob."""

from __future__ import annotations

import json
import os
import tempfile
from collections.abc import Iterable
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Protocol

import structlog
from pydantic import ValidationError

from waiting_lens.core.clock import Clock, utc_now
from waiting_lens.schemas.conversation import Conversation
from waiting_lens.schemas.preferences import WaitingFilter
from waiting_lens.schemas.state import DismissedItem, PersistedState, SnoozedItem

logger = structlog.get_logger(__name__)

STATE_KEY = "waiting_lens_state"
DEFAULT_DISMISS_TTL = timedelta(hours=24)


class KeyValueStore(Protocol):
    """String blob storage under fixed keys."""

    def get(self, key: str) -> str | None:
        """Return the value stored under key, or None."""
        ...

    def set(self, key: str, value: str) -> None:
        """Store value under key."""
        ...


class InMemoryKeyValueStore:
    """Process-local store, mostly for tests and one-shot runs."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._values = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        self._values[key] = value


class JsonFileKeyValueStore:
    """Keys and values kept in one JSON object on disk.

    Writes go to a temporary file that replaces the original, so a crash
    mid-write never leaves a truncated file behind.
    """

    def __init__(self, path: Path) -> None:
        """Initialize store.

        Args:
            path: JSON file to read and write. Created on first write.
        """
        self.path = path

    def _read_all(self) -> dict[str, str]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning("state_file_unreadable", path=str(self.path), error=str(e))
            return {}
        if not isinstance(data, dict):
            return {}
        return {str(k): v for k, v in data.items() if isinstance(v, str)}

    def get(self, key: str) -> str | None:
        return self._read_all().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._read_all()
        data[key] = value
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, suffix=".tmp")
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f)
        os.replace(tmp_path, self.path)


class PersistenceStore:
    """Durable dismiss and snooze decisions.

    Expired records are dropped whenever the state is read; there is no
    background cleanup. Every mutation is written through to the backend.

    Example:
        store = PersistenceStore(JsonFileKeyValueStore(Path("state.json")))
        store.dismiss("conv-1")
        store.snooze("conv-2", until=tomorrow_9am, reason="after standup")
    """

    def __init__(
        self,
        backend: KeyValueStore,
        dismiss_ttl: timedelta = DEFAULT_DISMISS_TTL,
        clock: Clock | None = None,
        key: str = STATE_KEY,
    ) -> None:
        """Initialize store and load the persisted blob.

        Args:
            backend: Where the blob lives.
            dismiss_ttl: How long a dismissal lasts (default: 24 hours).
            clock: Time source.
            key: Key the blob is stored under.
        """
        self._backend = backend
        self._dismiss_ttl = dismiss_ttl
        self._clock = clock or utc_now
        self._key = key
        self._state = self.load()

    def load(self) -> PersistedState:
        """Read the blob, dropping expired records.

        A missing or corrupt blob yields an empty state.
        """
        now = self._clock()
        raw = self._backend.get(self._key)
        if not raw:
            return PersistedState(last_cleanup=now)

        try:
            state = PersistedState.model_validate_json(raw)
        except ValidationError as e:
            logger.warning("persisted_state_corrupt", error_count=e.error_count())
            state = PersistedState(last_cleanup=now)
            self._write(state)
            return state

        cleaned = state.without_expired(now)
        if len(cleaned.dismissed) != len(state.dismissed) or len(cleaned.snoozed) != len(
            state.snoozed
        ):
            self._write(cleaned)
        return cleaned

    @property
    def state(self) -> PersistedState:
        """Current state with expired records removed."""
        self._state = self._state.without_expired(self._clock())
        return self._state

    def dismiss(self, conversation_id: str) -> DismissedItem:
        """Hide a conversation for the dismiss TTL, replacing any prior dismissal."""
        now = self._clock()
        item = DismissedItem(
            conversation_id=conversation_id,
            dismissed_at=now,
            expires_at=now + self._dismiss_ttl,
        )
        state = self.state
        dismissed = [d for d in state.dismissed if d.conversation_id != conversation_id]
        self._save(state.model_copy(update={"dismissed": [*dismissed, item]}))
        logger.info("conversation_dismissed", conversation_id=conversation_id)
        return item

    def snooze(
        self, conversation_id: str, until: datetime, reason: str | None = None
    ) -> SnoozedItem:
        """Snooze a conversation until a given time, replacing any prior snooze.

        A naive until is taken to be UTC.
        """
        if until.tzinfo is None:
            until = until.replace(tzinfo=UTC)
        item = SnoozedItem(
            conversation_id=conversation_id,
            snoozed_at=self._clock(),
            snoozed_until=until,
            reason=reason,
        )
        state = self.state
        snoozed = [s for s in state.snoozed if s.conversation_id != conversation_id]
        self._save(state.model_copy(update={"snoozed": [*snoozed, item]}))
        logger.info(
            "conversation_snoozed", conversation_id=conversation_id, until=until.isoformat()
        )
        return item

    def unsnooze(self, conversation_id: str) -> bool:
        """Remove a snooze.

        Returns:
            True if a live snooze was removed.
        """
        state = self.state
        snoozed = [s for s in state.snoozed if s.conversation_id != conversation_id]
        if len(snoozed) == len(state.snoozed):
            return False
        self._save(state.model_copy(update={"snoozed": snoozed}))
        logger.info("conversation_unsnoozed", conversation_id=conversation_id)
        return True

    def is_dismissed(self, conversation_id: str) -> bool:
        """Check for a live dismissal."""
        return any(d.conversation_id == conversation_id for d in self.state.dismissed)

    def is_snoozed(self, conversation_id: str) -> bool:
        """Check for a live snooze."""
        return self.get_snooze_info(conversation_id) is not None

    def get_snooze_info(self, conversation_id: str) -> SnoozedItem | None:
        """Get the live snooze for a conversation, if any."""
        return next(
            (s for s in self.state.snoozed if s.conversation_id == conversation_id), None
        )

    def clear_all(self) -> None:
        """Forget every dismissal and snooze."""
        self._save(PersistedState(last_cleanup=self._clock()))

    def _save(self, state: PersistedState) -> None:
        self._state = state
        self._write(state)

    def _write(self, state: PersistedState) -> None:
        self._backend.set(self._key, state.model_dump_json())


def apply_persisted_state(
    conversations: Iterable[Conversation],
    state: PersistedState,
    waiting_filter: WaitingFilter,
    now: datetime,
) -> list[Conversation]:
    """Apply dismissals and snoozes to a batch of conversations.

    Live dismissals always remove the conversation. Live snoozes attach
    snoozed_until; the conversation is only removed if the filter hides
    snoozed items.

    Args:
        conversations: Scored conversations.
        state: Persisted dismiss/snooze state.
        waiting_filter: Active filter (for hide_snoozed).
        now: Reference time for expiry checks.

    Returns:
        Visible conversations, in input order.
    """
    dismissed = {d.conversation_id for d in state.dismissed if d.expires_at > now}
    snoozed = {s.conversation_id: s for s in state.snoozed if s.snoozed_until > now}

    visible = []
    for conversation in conversations:
        if conversation.id in dismissed:
            continue
        snooze = snoozed.get(conversation.id)
        if snooze is not None:
            if waiting_filter.hide_snoozed:
                continue
            conversation = conversation.model_copy(update={"snoozed_until": snooze.snoozed_until})
        visible.append(conversation)
    return visible
