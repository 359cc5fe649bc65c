"""Conversation, person and team schemas."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from waiting_lens.core.text_analysis import PREVIEW_LENGTH


class PersonRelationship(str, Enum):
    """How a sender relates to the signed-in user."""

    MANAGER = "manager"
    DIRECT_REPORT = "direct-report"
    FREQUENT = "frequent"
    SAME_TEAM = "same-team"
    EXTERNAL = "external"
    OTHER = "other"


class ConversationType(str, Enum):
    """Where a conversation came from."""

    EMAIL = "email"
    TEAMS_CHAT = "teams-chat"
    TEAMS_CHANNEL = "teams-channel"


class UrgencyFactorType(str, Enum):
    """Tag identifying one contribution to an urgency score."""

    WAIT_TIME_EXTREME = "wait-time-extreme"
    WAIT_TIME_HIGH = "wait-time-high"
    WAIT_TIME_MODERATE = "wait-time-moderate"
    SENDER_MANAGER = "sender-manager"
    SENDER_DIRECT = "sender-direct"
    SENDER_FREQUENT = "sender-frequent"
    SENDER_EXTERNAL = "sender-external"
    CONTENT_QUESTION = "content-question"
    CONTENT_DEADLINE = "content-deadline"
    CONTENT_MENTION = "content-mention"
    SLA_VIOLATION = "sla-violation"


class Person(BaseModel):
    """A conversation counterpart."""

    id: str = Field("", description="Directory user ID (empty if unresolved)")
    display_name: str = Field("Unknown", description="Display name")
    email: str = Field("", description="Email address if known")
    relationship: PersonRelationship = Field(
        PersonRelationship.OTHER, description="Relationship to the signed-in user"
    )
    photo_url: str | None = Field(None, description="Avatar as a data URL")

    @property
    def group_key(self) -> str:
        """Identity used for grouping: id, else email, else display name."""
        return self.id or self.email or self.display_name


class Team(BaseModel):
    """A team the signed-in user has joined."""

    id: str = Field(..., description="Team ID")
    display_name: str = Field(..., description="Team name")
    web_url: str = Field("", description="Link to the team")
    type: str = Field("team", description="Container type: team, site or group")


class UrgencyFactor(BaseModel):
    """One itemised contribution to an urgency score."""

    factor: UrgencyFactorType = Field(..., description="Factor tag")
    points: int = Field(..., description="Points added to the score")
    description: str = Field(..., description="Human-readable justification")


class Conversation(BaseModel):
    """A conversation that is waiting on a response from the user."""

    id: str = Field(..., description="Identifier, unique across all sources")
    conversation_type: ConversationType = Field(..., description="Source kind")
    subject: str = Field(..., description="Subject or chat topic")
    preview: str = Field("", max_length=PREVIEW_LENGTH, description="Body preview")
    sender: Person = Field(..., description="Who is waiting")
    received_at: datetime = Field(..., description="Time of the last inbound message")
    stale_duration_hours: int = Field(0, ge=0, description="Whole hours without a reply")
    urgency_score: int = Field(0, ge=0, le=10, description="Urgency score (5-10 once scored)")
    urgency_factors: list[UrgencyFactor] = Field(
        default_factory=list, description="Score explanation, in application order"
    )
    web_url: str = Field("", description="Permalink")

    # Needed to reply from the dashboard
    chat_id: str | None = Field(None, description="Chat ID, or 'team:channel' for channels")
    reply_to_id: str | None = Field(None, description="Message being replied to")

    team_id: str | None = Field(None, description="Owning team, for channel messages")
    team_name: str | None = Field(None, description="Owning team name")
    channel_id: str | None = Field(None, description="Channel ID")
    channel_name: str | None = Field(None, description="Channel name")

    is_question: bool = Field(False, description="Content asks something")
    has_deadline_mention: bool = Field(False, description="Content mentions a deadline")
    is_mention: bool = Field(False, description="The user was @mentioned")

    snoozed_until: datetime | None = Field(None, description="Active snooze expiry")
