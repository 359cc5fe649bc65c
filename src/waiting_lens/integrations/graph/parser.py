"""Helpers for reading Graph API payloads."""

from __future__ import annotations

import math
import re
from datetime import UTC, datetime
from typing import Any

from waiting_lens.schemas.conversation import Person

# Graph emits up to 7 fractional digits, fromisoformat accepts at most 6
_FRACTION = re.compile(r"(\.\d{6})\d+")


def parse_graph_datetime(value: str) -> datetime:
    """Parse a Graph timestamp into an aware UTC datetime.

    Args:
        value: ISO-8601 timestamp such as "2024-01-01T10:00:00.1234567Z".

    Returns:
        Timezone-aware datetime in UTC.

    Raises:
        ValueError: If the value is not a valid timestamp.
    """
    text = _FRACTION.sub(r"\1", value.strip())
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def format_graph_datetime(value: datetime) -> str:
    """Format a datetime for use inside an OData $filter expression."""
    return value.astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")


def stale_hours(received_at: datetime, now: datetime) -> int:
    """Whole hours elapsed since received_at, never negative."""
    elapsed = (now - received_at).total_seconds() / 3600
    return max(0, math.floor(elapsed))


def _get_dict(data: Any, *path: str) -> dict[str, Any]:
    current = data
    for key in path:
        if not isinstance(current, dict):
            return {}
        current = current.get(key)
    return current if isinstance(current, dict) else {}


def email_sender(message: dict[str, Any]) -> Person:
    """Build the sender of a mail message. The user ID is resolved later."""
    address = _get_dict(message, "from", "emailAddress")
    return Person(
        id="",
        display_name=address.get("name") or "Unknown",
        email=address.get("address") or "",
    )


def chat_sender(message: dict[str, Any]) -> Person:
    """Build the sender of a chat or channel message."""
    user = _get_dict(message, "from", "user")
    return Person(
        id=user.get("id") or "",
        display_name=user.get("displayName") or "Unknown",
        email="",
    )


def sender_id(message: dict[str, Any]) -> str:
    """ID of the user who posted a chat or channel message, or empty."""
    return str(_get_dict(message, "from", "user").get("id") or "")


def mentions_user(message: dict[str, Any], user_id: str) -> bool:
    """Check whether a chat or channel message @mentions the given user."""
    mentions = message.get("mentions") or []
    return any(
        _get_dict(mention, "mentioned", "user").get("id") == user_id
        for mention in mentions
        if isinstance(mention, dict)
    )


def body_content(message: dict[str, Any]) -> str:
    """Raw body content of a chat or channel message."""
    return str(_get_dict(message, "body").get("content") or "")


def user_email(user: dict[str, Any]) -> str:
    """Best email for a directory user: mail, else userPrincipalName."""
    return str(user.get("mail") or user.get("userPrincipalName") or "")
