"""CLI entry point for waiting-lens.

Usage:
    waiting-lens show                       # Refresh and print who is waiting
    waiting-lens show --hide-snoozed        # Leave snoozed items out
    waiting-lens trend --days 14            # Print the waiting-debt trend
    waiting-lens dismiss ID                 # Hide a conversation for 24 hours
    waiting-lens snooze ID --preset monday  # Snooze until Monday 09:00
    waiting-lens snooze ID --until 2024-06-01T09:00:00+00:00 --reason "after launch"
    waiting-lens unsnooze ID                # Remove a snooze
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from waiting_lens.core.clock import utc_now
from waiting_lens.core.config import WaitingLensSettings, get_settings
from waiting_lens.core.exceptions import ConfigurationError, WaitingLensError
from waiting_lens.core.logging import configure_logging
from waiting_lens.integrations.graph import GraphClient, RateLimiter
from waiting_lens.schemas.preferences import WaitingFilter
from waiting_lens.services.persistence import JsonFileKeyValueStore, PersistenceStore
from waiting_lens.services.snooze_options import (
    SnoozeOption,
    describe_snoozed_until,
    snooze_until,
)
from waiting_lens.services.trend import TrendEstimator
from waiting_lens.services.urgency import CRITICAL_THRESHOLD, HIGH_THRESHOLD
from waiting_lens.services.waiting_service import WaitingOnYouService

if TYPE_CHECKING:
    from waiting_lens.schemas.conversation import Conversation
    from waiting_lens.schemas.groups import GroupedWaitingData
    from waiting_lens.schemas.trend import WaitingDebtTrend


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp, treating a naive value as UTC."""
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="See who has been waiting on you for a reply",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    show_parser = subparsers.add_parser("show", help="Refresh and print waiting conversations")
    show_parser.add_argument(
        "--min-hours",
        type=int,
        default=None,
        help="Minimum hours without a reply (default: from settings)",
    )
    show_parser.add_argument(
        "--max-results",
        type=int,
        default=None,
        help="Maximum conversations shown (default: from settings)",
    )
    show_parser.add_argument("--no-email", action="store_true", help="Skip email")
    show_parser.add_argument("--no-chats", action="store_true", help="Skip Teams chats")
    show_parser.add_argument("--no-channels", action="store_true", help="Skip channel messages")
    show_parser.add_argument("--no-mentions", action="store_true", help="Skip @mentions")
    show_parser.add_argument(
        "--hide-snoozed",
        action="store_true",
        help="Leave snoozed conversations out",
    )
    show_parser.add_argument(
        "--by-team",
        action="store_true",
        help="Group by team instead of by person",
    )

    trend_parser = subparsers.add_parser("trend", help="Print the waiting-debt trend")
    trend_parser.add_argument(
        "--days",
        type=int,
        default=None,
        help="Days to cover (default: from settings)",
    )

    dismiss_parser = subparsers.add_parser("dismiss", help="Hide a conversation for a day")
    dismiss_parser.add_argument("conversation_id", help="Conversation ID")

    snooze_parser = subparsers.add_parser("snooze", help="Snooze a conversation")
    snooze_parser.add_argument("conversation_id", help="Conversation ID")
    when = snooze_parser.add_mutually_exclusive_group(required=True)
    when.add_argument(
        "--preset",
        choices=[o.value for o in SnoozeOption if o != SnoozeOption.CUSTOM],
        help="Snooze until a preset time (09:00)",
    )
    when.add_argument(
        "--until",
        type=parse_timestamp,
        metavar="ISO",
        help="Snooze until an ISO-8601 timestamp",
    )
    snooze_parser.add_argument("--reason", default=None, help="Why it is snoozed")

    unsnooze_parser = subparsers.add_parser("unsnooze", help="Remove a snooze")
    unsnooze_parser.add_argument("conversation_id", help="Conversation ID")

    return parser.parse_args(argv)


def build_store(settings: WaitingLensSettings) -> PersistenceStore:
    """Open the dismiss/snooze store configured in settings."""
    return PersistenceStore(
        JsonFileKeyValueStore(settings.state_file),
        dismiss_ttl=timedelta(hours=settings.dismiss_ttl_hours),
    )


def urgency_label(score: int) -> str:
    """Short label for an urgency score."""
    if score >= CRITICAL_THRESHOLD:
        return "CRITICAL"
    if score >= HIGH_THRESHOLD:
        return "HIGH"
    return "NORMAL"


def _format_conversation(conversation: Conversation, now: datetime) -> str:
    line = (
        f"    [{urgency_label(conversation.urgency_score):8}] "
        f"{conversation.urgency_score:>2}  {conversation.subject}  "
        f"({conversation.stale_duration_hours}h, {conversation.conversation_type.value})"
    )
    if conversation.snoozed_until is not None:
        line += f"  - {describe_snoozed_until(conversation.snoozed_until, now)}"
    return line


def format_grouped(data: GroupedWaitingData, by_team: bool = False) -> str:
    """Render the grouped view as plain text."""
    now = utc_now()
    lines = [
        "Waiting On You",
        "=" * 60,
        f"People waiting: {data.total_people_waiting}",
        f"Items: {data.total_items}  Critical: {data.critical_count}  "
        f"Snoozed: {data.snoozed_count}",
        f"Total wait: {data.total_wait_hours}h",
    ]

    if by_team:
        for team_group in data.by_team:
            names = ", ".join(p.display_name for p in team_group.people)
            lines.append(f"\n{team_group.team.display_name} ({names})")
            lines.extend(_format_conversation(c, now) for c in team_group.conversations)
        groups = data.ungrouped_by_person
        if groups:
            lines.append("\nOutside any team")
    else:
        groups = data.by_person

    for group in groups:
        lines.append(
            f"\n{group.person.display_name} [{group.person.relationship.value}] "
            f"- {group.item_count} item(s), {group.total_wait_hours}h"
        )
        lines.extend(_format_conversation(c, now) for c in group.conversations)

    if not data.total_items:
        lines.append("\nNobody is waiting on you.")
    return "\n".join(lines)


def format_trend(trend: WaitingDebtTrend) -> str:
    """Render the trend as plain text."""
    lines = [
        "Waiting Debt Trend",
        "=" * 60,
        f"Trend: {trend.trend.value}",
        f"Average people waiting: {trend.average_people_waiting:.1f}",
        f"Peak day: {trend.peak_day}",
        "",
    ]
    lines.extend(
        f"  {point.date}  {'#' * point.people_waiting} {point.people_waiting}"
        for point in trend.data_points
    )
    return "\n".join(lines)


def show(args: argparse.Namespace, settings: WaitingLensSettings) -> None:
    """Handle the show command."""
    if not settings.has_token:
        raise ConfigurationError("WAITING_LENS_ACCESS_TOKEN is not set")

    waiting_filter = WaitingFilter(
        min_stale_duration_hours=(
            args.min_hours if args.min_hours is not None else settings.min_stale_hours
        ),
        max_results=args.max_results if args.max_results is not None else settings.max_results,
        include_email=not args.no_email,
        include_teams_chats=not args.no_chats,
        include_channel_messages=not args.no_channels,
        include_mentions=not args.no_mentions,
        hide_snoozed=args.hide_snoozed,
    )
    store = build_store(settings)

    async def _run() -> GroupedWaitingData:  # pragma: no cover
        async with GraphClient(
            access_token=settings.access_token or "",
            base_url=settings.graph_base_url,
            rate_limiter=RateLimiter(requests_per_second=settings.requests_per_second),
            timeout=settings.request_timeout_seconds,
        ) as client:
            service = WaitingOnYouService(
                client,
                relationship_ttl=timedelta(seconds=settings.cache_ttl_seconds),
                avatar_debounce_seconds=settings.avatar_debounce_ms / 1000,
                batch_size=settings.batch_size,
            )
            return await service.get_waiting_data(waiting_filter, store.state)

    print(format_grouped(asyncio.run(_run()), by_team=args.by_team))


def trend(args: argparse.Namespace, settings: WaitingLensSettings) -> None:
    """Handle the trend command."""
    days = args.days if args.days is not None else settings.trend_days
    print(format_trend(TrendEstimator().estimate(days)))


def dismiss(args: argparse.Namespace, settings: WaitingLensSettings) -> None:
    """Handle the dismiss command."""
    item = build_store(settings).dismiss(args.conversation_id)
    print(f"Dismissed {item.conversation_id} until {item.expires_at.isoformat()}")


def snooze(args: argparse.Namespace, settings: WaitingLensSettings) -> None:
    """Handle the snooze command."""
    now = utc_now()
    until = args.until if args.preset is None else snooze_until(SnoozeOption(args.preset), now)
    if until <= now:
        raise WaitingLensError("Snooze time must be in the future")

    item = build_store(settings).snooze(args.conversation_id, until, args.reason)
    print(f"Snoozed {item.conversation_id} until {item.snoozed_until.isoformat()}")


def unsnooze(args: argparse.Namespace, settings: WaitingLensSettings) -> None:
    """Handle the unsnooze command."""
    if build_store(settings).unsnooze(args.conversation_id):
        print(f"Unsnoozed {args.conversation_id}")
    else:
        print(f"{args.conversation_id} was not snoozed")


COMMANDS = {
    "show": show,
    "trend": trend,
    "dismiss": dismiss,
    "snooze": snooze,
    "unsnooze": unsnooze,
}


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    args = parse_args(argv)
    settings = get_settings()
    configure_logging(json_format=settings.log_json, log_level=settings.log_level)

    handler = COMMANDS.get(args.command)
    if handler is None:
        print("Usage: waiting-lens {show|trend|dismiss|snooze|unsnooze}", file=sys.stderr)
        sys.exit(1)

    try:
        handler(args, settings)
    except WaitingLensError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
