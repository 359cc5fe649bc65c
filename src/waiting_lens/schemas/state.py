"""Dismiss/snooze state that survives between sessions."""

from __future__ import annotations

from datetime import datetime

from pydantic import AwareDatetime, BaseModel, Field


class DismissedItem(BaseModel):
    """A conversation hidden for a fixed period."""

    conversation_id: str
    dismissed_at: AwareDatetime
    expires_at: AwareDatetime


class SnoozedItem(BaseModel):
    """A conversation snoozed until a caller-chosen time."""

    conversation_id: str
    snoozed_at: AwareDatetime
    snoozed_until: AwareDatetime
    reason: str | None = None


class PersistedState(BaseModel):
    """The full persisted blob.

    Holds at most one dismissal and one snooze per conversation ID.
    """

    dismissed: list[DismissedItem] = Field(default_factory=list)
    snoozed: list[SnoozedItem] = Field(default_factory=list)
    last_cleanup: AwareDatetime

    def without_expired(self, now: datetime) -> PersistedState:
        """Return a copy keeping only dismissals and snoozes still live at now."""
        return PersistedState(
            dismissed=[d for d in self.dismissed if d.expires_at > now],
            snoozed=[s for s in self.snoozed if s.snoozed_until > now],
            last_cleanup=now,
        )
