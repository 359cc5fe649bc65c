"""Tests for Graph payload helpers."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from waiting_lens.integrations.graph.parser import (
    body_content,
    chat_sender,
    email_sender,
    format_graph_datetime,
    mentions_user,
    parse_graph_datetime,
    sender_id,
    stale_hours,
    user_email,
)


class TestParseGraphDatetime:
    """Tests for parse_graph_datetime."""

    def test_seven_digit_fraction(self) -> None:
        """Test Graph's 7-digit fractional seconds."""
        parsed = parse_graph_datetime("2024-06-10T08:30:00.1234567Z")
        assert parsed == datetime(2024, 6, 10, 8, 30, 0, 123456, tzinfo=UTC)

    def test_offset_converted_to_utc(self) -> None:
        """Test offsets are normalized to UTC."""
        parsed = parse_graph_datetime("2024-06-10T10:30:00+02:00")
        assert parsed == datetime(2024, 6, 10, 8, 30, tzinfo=UTC)

    def test_naive_assumed_utc(self) -> None:
        """Test naive timestamps are treated as UTC."""
        assert parse_graph_datetime("2024-06-10T08:30:00").tzinfo == UTC

    def test_invalid(self) -> None:
        """Test garbage raises ValueError."""
        with pytest.raises(ValueError):
            parse_graph_datetime("yesterday")

    def test_format(self) -> None:
        """Test OData formatting."""
        assert format_graph_datetime(datetime(2024, 6, 10, 8, 30, 5, 999, tzinfo=UTC)) == (
            "2024-06-10T08:30:05Z"
        )


class TestStaleHours:
    """Tests for stale_hours."""

    def test_floors(self) -> None:
        """Test partial hours are floored."""
        now = datetime(2024, 6, 10, 12, 0, tzinfo=UTC)
        assert stale_hours(datetime(2024, 6, 8, 11, 1, tzinfo=UTC), now) == 48

    def test_future_is_zero(self) -> None:
        """Test clock skew never yields a negative duration."""
        now = datetime(2024, 6, 10, 12, 0, tzinfo=UTC)
        assert stale_hours(datetime(2024, 6, 10, 13, 0, tzinfo=UTC), now) == 0


class TestSenders:
    """Tests for sender extraction."""

    def test_email_sender(self) -> None:
        """Test mail senders carry address and name but no ID."""
        person = email_sender(
            {"from": {"emailAddress": {"name": "Bob", "address": "bob@contoso.com"}}}
        )
        assert person.id == ""
        assert person.display_name == "Bob"
        assert person.email == "bob@contoso.com"

    def test_email_sender_missing(self) -> None:
        """Test a missing from block gives an unknown sender."""
        person = email_sender({})
        assert person.display_name == "Unknown"
        assert person.email == ""

    def test_chat_sender(self) -> None:
        """Test chat senders carry the user ID."""
        message = {"from": {"user": {"id": "u-bob", "displayName": "Bob"}}}
        person = chat_sender(message)
        assert person.id == "u-bob"
        assert person.display_name == "Bob"
        assert sender_id(message) == "u-bob"

    def test_application_sender(self) -> None:
        """Test bot messages (from.user is null) have no sender ID."""
        message = {"from": {"user": None, "application": {"displayName": "Bot"}}}
        assert sender_id(message) == ""
        assert chat_sender(message).display_name == "Unknown"


class TestMentions:
    """Tests for mentions_user."""

    def test_mentioned(self) -> None:
        """Test a mention of the user is found."""
        message = {
            "mentions": [
                {"mentioned": {"user": {"id": "u-other"}}},
                {"mentioned": {"user": {"id": "u-me"}}},
            ]
        }
        assert mentions_user(message, "u-me") is True

    def test_not_mentioned(self) -> None:
        """Test other mentions and tag mentions are ignored."""
        message = {"mentions": [{"mentioned": {"tag": {"id": "t1"}}}]}
        assert mentions_user(message, "u-me") is False
        assert mentions_user({"mentions": None}, "u-me") is False


class TestMisc:
    """Tests for body_content and user_email."""

    def test_body_content(self) -> None:
        """Test the body content is extracted."""
        assert body_content({"body": {"content": "<p>hi</p>"}}) == "<p>hi</p>"
        assert body_content({}) == ""

    def test_user_email(self) -> None:
        """Test mail is preferred over UPN."""
        assert user_email({"mail": "a@x.com", "userPrincipalName": "b@x.com"}) == "a@x.com"
        assert user_email({"mail": None, "userPrincipalName": "b@x.com"}) == "b@x.com"
        assert user_email({}) == ""
