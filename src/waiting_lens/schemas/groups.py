"""Grouped view schemas produced for the presentation layer."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from waiting_lens.schemas.conversation import Conversation, Person, Team


class PersonGroup(BaseModel):
    """Conversations waiting on the user from one person."""

    person: Person
    conversations: list[Conversation] = Field(default_factory=list)
    total_wait_hours: int = 0
    item_count: int = 0
    max_urgency: int = 0
    snoozed_count: int = 0
    oldest_item_date: datetime


class TeamGroup(BaseModel):
    """Conversations waiting on the user inside one team."""

    team: Team
    people: list[Person] = Field(default_factory=list)
    conversations: list[Conversation] = Field(default_factory=list)
    total_wait_hours: int = 0
    item_count: int = 0
    max_urgency: int = 0
    snoozed_count: int = 0
    oldest_item_date: datetime


class GroupedWaitingData(BaseModel):
    """Result of one aggregation cycle."""

    by_person: list[PersonGroup] = Field(default_factory=list)
    by_team: list[TeamGroup] = Field(default_factory=list)
    ungrouped_by_person: list[PersonGroup] = Field(
        default_factory=list, description="Person groups for conversations outside any team"
    )
    all_conversations: list[Conversation] = Field(default_factory=list)

    total_people_waiting: int = 0
    total_teams_affected: int = 0
    total_items: int = 0
    total_wait_hours: int = 0
    critical_count: int = Field(0, description="Conversations scoring 9 or more")
    snoozed_count: int = 0
