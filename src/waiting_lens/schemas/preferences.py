"""User-tunable filter and SLA schemas."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from waiting_lens.schemas.conversation import PersonRelationship


class ResponseTimeSLA(BaseModel):
    """Maximum acceptable wait for one relationship."""

    relationship: PersonRelationship
    max_hours: int = Field(..., ge=0)


DEFAULT_SLA_SETTINGS: list[ResponseTimeSLA] = [
    ResponseTimeSLA(relationship=PersonRelationship.MANAGER, max_hours=4),
    ResponseTimeSLA(relationship=PersonRelationship.DIRECT_REPORT, max_hours=24),
    ResponseTimeSLA(relationship=PersonRelationship.EXTERNAL, max_hours=24),
    ResponseTimeSLA(relationship=PersonRelationship.FREQUENT, max_hours=48),
    ResponseTimeSLA(relationship=PersonRelationship.SAME_TEAM, max_hours=48),
    ResponseTimeSLA(relationship=PersonRelationship.OTHER, max_hours=72),
]


class WaitingFilter(BaseModel):
    """Which conversations a refresh should surface."""

    min_stale_duration_hours: int = Field(48, ge=0, description="Minimum hours without reply")
    max_results: int = Field(50, ge=1, description="Cap on visible conversations")
    include_email: bool = True
    include_teams_chats: bool = True
    include_channel_messages: bool = True
    include_mentions: bool = True
    relationship_filter: list[PersonRelationship] | Literal["all"] = "all"
    hide_snoozed: bool = False

    def allows_relationship(self, relationship: PersonRelationship) -> bool:
        """Check whether a sender relationship passes the relationship filter."""
        if self.relationship_filter == "all":
            return True
        return relationship in self.relationship_filter
