"""Person and team grouping of scored conversations."""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from waiting_lens.schemas.conversation import (
    Conversation,
    Person,
    PersonRelationship,
    Team,
)
from waiting_lens.schemas.groups import GroupedWaitingData, PersonGroup, TeamGroup
from waiting_lens.services.urgency import CRITICAL_THRESHOLD

_RELATIONSHIP_RANK = {
    PersonRelationship.MANAGER: 0,
    PersonRelationship.DIRECT_REPORT: 1,
}


def _person_group(conversations: list[Conversation], person: Person | None = None) -> PersonGroup:
    """Build a person group from a non-empty list of conversations."""
    return PersonGroup(
        person=person or conversations[0].sender,
        conversations=conversations,
        total_wait_hours=sum(c.stale_duration_hours for c in conversations),
        item_count=len(conversations),
        max_urgency=max(c.urgency_score for c in conversations),
        snoozed_count=sum(1 for c in conversations if c.snoozed_until is not None),
        oldest_item_date=min(c.received_at for c in conversations),
    )


def _team_group(team: Team, conversations: list[Conversation]) -> TeamGroup:
    """Build a team group from a non-empty list of conversations."""
    people = []
    seen_ids: set[str] = set()
    for conversation in conversations:
        if conversation.sender.id not in seen_ids:
            seen_ids.add(conversation.sender.id)
            people.append(conversation.sender)

    return TeamGroup(
        team=team,
        people=people,
        conversations=conversations,
        total_wait_hours=sum(c.stale_duration_hours for c in conversations),
        item_count=len(conversations),
        max_urgency=max(c.urgency_score for c in conversations),
        snoozed_count=sum(1 for c in conversations if c.snoozed_until is not None),
        oldest_item_date=min(c.received_at for c in conversations),
    )


def sort_person_groups(groups: Iterable[PersonGroup]) -> list[PersonGroup]:
    """Managers first, then direct reports, then by max urgency and total wait."""
    return sorted(
        groups,
        key=lambda g: (
            _RELATIONSHIP_RANK.get(g.person.relationship, 2),
            -g.max_urgency,
            -g.total_wait_hours,
        ),
    )


def sort_team_groups(groups: Iterable[TeamGroup]) -> list[TeamGroup]:
    """By max urgency, then number of people, then total wait, all descending."""
    return sorted(
        groups,
        key=lambda g: (-g.max_urgency, -len(g.people), -g.total_wait_hours),
    )


class GroupAggregator:
    """Groups conversations by person and by joined team.

    Example:
        aggregator = GroupAggregator(teams={"t1": Team(id="t1", display_name="Core")})
        grouped = aggregator.aggregate(conversations)
    """

    def __init__(self, teams: Mapping[str, Team] | None = None) -> None:
        """Initialize aggregator.

        Args:
            teams: Teams the user has joined, keyed by team ID.
        """
        self._teams = dict(teams or {})

    def group_by_person(self, conversations: Iterable[Conversation]) -> list[PersonGroup]:
        """Group conversations by sender identity (id, else email, else name)."""
        buckets: dict[str, list[Conversation]] = {}
        for conversation in conversations:
            buckets.setdefault(conversation.sender.group_key, []).append(conversation)
        return [_person_group(convs) for convs in buckets.values()]

    def group_by_team(
        self,
        conversations: Iterable[Conversation],
        person_groups: Iterable[PersonGroup],
    ) -> tuple[list[TeamGroup], list[PersonGroup]]:
        """Split conversations into team groups and the person groups left over.

        A conversation belongs to a team group only if its team ID is one of
        the user's joined teams. Person groups are rebuilt from whatever is
        not claimed by a team; groups left empty are dropped.

        Returns:
            Tuple of (team groups, ungrouped person groups).
        """
        buckets: dict[str, list[Conversation]] = {}
        claimed: set[str] = set()
        for conversation in conversations:
            if conversation.team_id and conversation.team_id in self._teams:
                buckets.setdefault(conversation.team_id, []).append(conversation)
                claimed.add(conversation.id)

        by_team = [_team_group(self._teams[team_id], convs) for team_id, convs in buckets.items()]

        ungrouped = []
        for group in person_groups:
            remaining = [c for c in group.conversations if c.id not in claimed]
            if remaining:
                ungrouped.append(_person_group(remaining, group.person))
        return by_team, ungrouped

    def aggregate(self, conversations: list[Conversation]) -> GroupedWaitingData:
        """Build the grouped view and summary statistics.

        Args:
            conversations: Filtered conversations, already sorted by urgency.

        Returns:
            Sorted person and team groups plus totals.
        """
        by_person = self.group_by_person(conversations)
        by_team, ungrouped = self.group_by_team(conversations, by_person)

        return GroupedWaitingData(
            by_person=sort_person_groups(by_person),
            by_team=sort_team_groups(by_team),
            ungrouped_by_person=sort_person_groups(ungrouped),
            all_conversations=list(conversations),
            total_people_waiting=len(by_person),
            total_teams_affected=len(by_team),
            total_items=len(conversations),
            total_wait_hours=sum(c.stale_duration_hours for c in conversations),
            critical_count=sum(1 for c in conversations if c.urgency_score >= CRITICAL_THRESHOLD),
            snoozed_count=sum(1 for c in conversations if c.snoozed_until is not None),
        )
