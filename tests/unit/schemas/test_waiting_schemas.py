"""Tests for waiting-lens schemas."""

from __future__ import annotations

from datetime import timedelta

import pytest
from conftest import NOW, make_conversation, make_person
from pydantic import ValidationError

from waiting_lens.schemas import (
    DEFAULT_SLA_SETTINGS,
    ConversationType,
    DismissedItem,
    Person,
    PersistedState,
    PersonRelationship,
    ResponseTimeSLA,
    SnoozedItem,
    WaitingFilter,
)


class TestEnums:
    """Tests for schema enums."""

    def test_relationship_values(self) -> None:
        """Test PersonRelationship wire values."""
        assert PersonRelationship.DIRECT_REPORT.value == "direct-report"
        assert PersonRelationship.SAME_TEAM.value == "same-team"

    def test_conversation_type_values(self) -> None:
        """Test ConversationType wire values."""
        assert [t.value for t in ConversationType] == ["email", "teams-chat", "teams-channel"]


class TestPerson:
    """Tests for Person."""

    def test_defaults(self) -> None:
        """Test an empty person."""
        person = Person()
        assert person.display_name == "Unknown"
        assert person.relationship == PersonRelationship.OTHER
        assert person.photo_url is None

    def test_group_key_fallbacks(self) -> None:
        """Test group_key prefers id, then email, then display name."""
        assert make_person("u-1", "A", "a@x.com").group_key == "u-1"
        assert make_person("", "A", "a@x.com").group_key == "a@x.com"
        assert make_person("", "A", "").group_key == "A"


class TestConversation:
    """Tests for Conversation."""

    def test_valid(self) -> None:
        """Test a minimal conversation."""
        conversation = make_conversation()
        assert conversation.is_mention is False
        assert conversation.snoozed_until is None
        assert conversation.urgency_factors == []

    def test_preview_too_long(self) -> None:
        """Test previews over 120 characters are rejected."""
        with pytest.raises(ValidationError):
            make_conversation(preview="x" * 121)

    def test_score_out_of_range(self) -> None:
        """Test scores above 10 are rejected."""
        with pytest.raises(ValidationError):
            make_conversation(urgency_score=11)

    def test_negative_wait(self) -> None:
        """Test negative stale durations are rejected."""
        with pytest.raises(ValidationError):
            make_conversation(hours=-1)


class TestWaitingFilter:
    """Tests for WaitingFilter."""

    def test_defaults(self) -> None:
        """Test the default filter reads everything."""
        waiting_filter = WaitingFilter()
        assert waiting_filter.min_stale_duration_hours == 48
        assert waiting_filter.max_results == 50
        assert waiting_filter.include_email is True
        assert waiting_filter.include_mentions is True
        assert waiting_filter.relationship_filter == "all"
        assert waiting_filter.hide_snoozed is False

    def test_all_relationships_allowed(self) -> None:
        """Test "all" passes every relationship."""
        assert all(WaitingFilter().allows_relationship(r) for r in PersonRelationship)

    def test_relationship_list(self) -> None:
        """Test a list only passes its members."""
        waiting_filter = WaitingFilter(
            relationship_filter=[PersonRelationship.MANAGER, PersonRelationship.EXTERNAL]
        )
        assert waiting_filter.allows_relationship(PersonRelationship.EXTERNAL)
        assert not waiting_filter.allows_relationship(PersonRelationship.OTHER)

    def test_relationship_values_parsed(self) -> None:
        """Test wire values are accepted in the list."""
        waiting_filter = WaitingFilter.model_validate({"relationship_filter": ["manager"]})
        assert waiting_filter.relationship_filter == [PersonRelationship.MANAGER]

    def test_invalid_values(self) -> None:
        """Test out-of-range values are rejected."""
        with pytest.raises(ValidationError):
            WaitingFilter(max_results=0)
        with pytest.raises(ValidationError):
            WaitingFilter(min_stale_duration_hours=-1)


class TestResponseTimeSLA:
    """Tests for SLA settings."""

    def test_defaults_cover_every_relationship(self) -> None:
        """Test each relationship has a default target."""
        targets = {s.relationship: s.max_hours for s in DEFAULT_SLA_SETTINGS}
        assert set(targets) == set(PersonRelationship)
        assert targets[PersonRelationship.MANAGER] == 4
        assert targets[PersonRelationship.OTHER] == 72

    def test_negative_hours(self) -> None:
        """Test negative targets are rejected."""
        with pytest.raises(ValidationError):
            ResponseTimeSLA(relationship=PersonRelationship.OTHER, max_hours=-1)


class TestPersistedState:
    """Tests for PersistedState."""

    def test_without_expired(self) -> None:
        """Test expired records are dropped and live ones kept."""
        state = PersistedState(
            dismissed=[
                DismissedItem(
                    conversation_id="old",
                    dismissed_at=NOW - timedelta(hours=30),
                    expires_at=NOW - timedelta(hours=6),
                ),
                DismissedItem(
                    conversation_id="live",
                    dismissed_at=NOW,
                    expires_at=NOW + timedelta(hours=24),
                ),
            ],
            snoozed=[
                SnoozedItem(conversation_id="due", snoozed_at=NOW, snoozed_until=NOW),
                SnoozedItem(
                    conversation_id="later",
                    snoozed_at=NOW,
                    snoozed_until=NOW + timedelta(hours=1),
                    reason="after lunch",
                ),
            ],
            last_cleanup=NOW - timedelta(days=1),
        )

        cleaned = state.without_expired(NOW)

        assert [d.conversation_id for d in cleaned.dismissed] == ["live"]
        assert [s.conversation_id for s in cleaned.snoozed] == ["later"]
        assert cleaned.last_cleanup == NOW

    def test_parse_blob(self) -> None:
        """Test a stored JSON blob is parsed."""
        blob = (
            '{"dismissed": [], "snoozed": [{"conversation_id": "c1",'
            ' "snoozed_at": "2024-06-12T12:00:00Z", "snoozed_until": "2024-06-13T09:00:00Z"}],'
            ' "last_cleanup": "2024-06-12T12:00:00Z"}'
        )

        state = PersistedState.model_validate_json(blob)

        assert state.snoozed[0].snoozed_until == NOW + timedelta(hours=21)
        assert state.snoozed[0].reason is None
