"""Explainable urgency scoring."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from waiting_lens.schemas.conversation import (
    Conversation,
    PersonRelationship,
    UrgencyFactor,
    UrgencyFactorType,
)
from waiting_lens.schemas.preferences import ResponseTimeSLA

BASE_SCORE = 5
MAX_SCORE = 10
CRITICAL_THRESHOLD = 9
HIGH_THRESHOLD = 7
SLA_POINTS = 2

# Largest threshold first; the first bucket exceeded wins
WAIT_TIME_BUCKETS: list[tuple[int, UrgencyFactorType, int, str]] = [
    (168, UrgencyFactorType.WAIT_TIME_EXTREME, 3, "Waiting over 1 week"),
    (72, UrgencyFactorType.WAIT_TIME_HIGH, 2, "Waiting over 3 days"),
    (48, UrgencyFactorType.WAIT_TIME_MODERATE, 1, "Waiting over 2 days"),
]

RELATIONSHIP_FACTORS: dict[PersonRelationship, tuple[UrgencyFactorType, int, str]] = {
    PersonRelationship.MANAGER: (UrgencyFactorType.SENDER_MANAGER, 2, "From your manager"),
    PersonRelationship.DIRECT_REPORT: (
        UrgencyFactorType.SENDER_DIRECT,
        1,
        "From your direct report",
    ),
    PersonRelationship.FREQUENT: (UrgencyFactorType.SENDER_FREQUENT, 1, "Frequent collaborator"),
    PersonRelationship.EXTERNAL: (UrgencyFactorType.SENDER_EXTERNAL, 1, "External contact"),
}


@dataclass(frozen=True)
class UrgencyResult:
    """Score and the factors that produced it, in application order."""

    score: int
    factors: list[UrgencyFactor] = field(default_factory=list)


def score_urgency(
    conversation: Conversation,
    sla_settings: Iterable[ResponseTimeSLA] = (),
) -> UrgencyResult:
    """Score how urgently a conversation needs a reply.

    Starts from 5 and adds, in order: wait time, sender relationship,
    content signals (question, deadline, @mention) and SLA breach. The
    result is capped at 10.

    Args:
        conversation: Conversation with relationship already classified.
        sla_settings: Per-relationship maximum wait targets.

    Returns:
        Score in [5, 10] and the itemised factors.
    """
    factors: list[UrgencyFactor] = []
    hours = conversation.stale_duration_hours
    relationship = conversation.sender.relationship

    for threshold, factor, points, description in WAIT_TIME_BUCKETS:
        if hours > threshold:
            factors.append(UrgencyFactor(factor=factor, points=points, description=description))
            break

    if relationship in RELATIONSHIP_FACTORS:
        factor, points, description = RELATIONSHIP_FACTORS[relationship]
        factors.append(UrgencyFactor(factor=factor, points=points, description=description))

    if conversation.is_question:
        factors.append(
            UrgencyFactor(
                factor=UrgencyFactorType.CONTENT_QUESTION,
                points=1,
                description="Contains a question",
            )
        )
    if conversation.has_deadline_mention:
        factors.append(
            UrgencyFactor(
                factor=UrgencyFactorType.CONTENT_DEADLINE,
                points=2,
                description="Mentions a deadline",
            )
        )
    if conversation.is_mention:
        factors.append(
            UrgencyFactor(
                factor=UrgencyFactorType.CONTENT_MENTION,
                points=2,
                description="You were @mentioned",
            )
        )

    sla = next((s for s in sla_settings if s.relationship == relationship), None)
    if sla is not None and hours > sla.max_hours:
        factors.append(
            UrgencyFactor(
                factor=UrgencyFactorType.SLA_VIOLATION,
                points=SLA_POINTS,
                description=f"Exceeds your {sla.max_hours}h target for {relationship.value}",
            )
        )

    score = min(BASE_SCORE + sum(f.points for f in factors), MAX_SCORE)
    return UrgencyResult(score=score, factors=factors)


def apply_urgency(
    conversation: Conversation,
    sla_settings: Iterable[ResponseTimeSLA] = (),
) -> Conversation:
    """Return a copy of the conversation carrying its urgency score and factors."""
    result = score_urgency(conversation, sla_settings)
    return conversation.model_copy(
        update={"urgency_score": result.score, "urgency_factors": result.factors}
    )
