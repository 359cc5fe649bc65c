"""Snooze presets and snooze descriptions."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta
from enum import Enum

SNOOZE_HOUR = 9


class SnoozeOption(str, Enum):
    """Preset snooze durations."""

    TOMORROW = "tomorrow"
    MONDAY = "monday"
    NEXT_WEEK = "next_week"
    CUSTOM = "custom"


def _morning(day: date, now: datetime) -> datetime:
    return datetime.combine(day, time(hour=SNOOZE_HOUR), tzinfo=now.tzinfo)


def snooze_until(
    option: SnoozeOption,
    now: datetime,
    custom_date: date | None = None,
) -> datetime:
    """Resolve a snooze preset to a wake-up time (09:00 in now's timezone).

    Args:
        option: Preset to resolve.
        now: Current time.
        custom_date: Day to wake up on for SnoozeOption.CUSTOM.

    Returns:
        Wake-up time. CUSTOM without a date returns now.
    """
    today = now.date()
    if option is SnoozeOption.TOMORROW:
        return _morning(today + timedelta(days=1), now)
    if option is SnoozeOption.MONDAY:
        # Always the next Monday, a full week ahead if today is Monday
        days_until_monday = 7 - today.weekday()
        return _morning(today + timedelta(days=days_until_monday), now)
    if option is SnoozeOption.NEXT_WEEK:
        return _morning(today + timedelta(days=7), now)
    if custom_date is not None:
        return _morning(custom_date, now)
    return now


def _plural(count: int, unit: str) -> str:
    return f"{count} {unit}{'s' if count != 1 else ''}"


def describe_snoozed_until(until: datetime, now: datetime) -> str:
    """Human-readable remaining snooze time, e.g. "Snoozed for 2 days"."""
    remaining = until - now
    if remaining <= timedelta(0):
        return "Snooze expired"

    hours = int(remaining.total_seconds() // 3600)
    days = hours // 24
    if days > 0:
        return f"Snoozed for {_plural(days, 'day')}"
    if hours > 0:
        return f"Snoozed for {_plural(hours, 'hour')}"
    minutes = int(remaining.total_seconds() // 60)
    return f"Snoozed for {_plural(minutes, 'minute')}"
