"""Tests for urgency scoring."""

from __future__ import annotations

import pytest
from conftest import make_conversation, make_person

from waiting_lens.schemas.conversation import PersonRelationship, UrgencyFactorType
from waiting_lens.schemas.preferences import DEFAULT_SLA_SETTINGS, ResponseTimeSLA
from waiting_lens.services.urgency import apply_urgency, score_urgency


def tags(result) -> list[str]:  # type: ignore[no-untyped-def]
    """Factor tags of a scoring result, in order."""
    return [f.factor.value for f in result.factors]


class TestWaitTime:
    """Tests for the wait-time buckets."""

    @pytest.mark.parametrize(
        ("hours", "expected_tag", "expected_score"),
        [
            (200, "wait-time-extreme", 8),
            (169, "wait-time-extreme", 8),
            (168, "wait-time-high", 7),
            (73, "wait-time-high", 7),
            (72, "wait-time-moderate", 6),
            (49, "wait-time-moderate", 6),
        ],
    )
    def test_buckets(self, hours: int, expected_tag: str, expected_score: int) -> None:
        """Test exactly one bucket applies, largest threshold first."""
        result = score_urgency(make_conversation(hours=hours))

        assert tags(result) == [expected_tag]
        assert result.score == expected_score

    def test_not_stale_enough(self) -> None:
        """Test 48 hours or less adds nothing."""
        result = score_urgency(make_conversation(hours=48))

        assert result.score == 5
        assert result.factors == []


class TestRelationship:
    """Tests for sender relationship factors."""

    @pytest.mark.parametrize(
        ("relationship", "points"),
        [
            (PersonRelationship.MANAGER, 2),
            (PersonRelationship.DIRECT_REPORT, 1),
            (PersonRelationship.FREQUENT, 1),
            (PersonRelationship.EXTERNAL, 1),
            (PersonRelationship.SAME_TEAM, 0),
            (PersonRelationship.OTHER, 0),
        ],
    )
    def test_points(self, relationship: PersonRelationship, points: int) -> None:
        """Test relationship points."""
        conversation = make_conversation(hours=10, sender=make_person(relationship=relationship))
        assert score_urgency(conversation).score == 5 + points


class TestContent:
    """Tests for content factors."""

    def test_all_content_factors(self) -> None:
        """Test question, deadline and mention are additive."""
        conversation = make_conversation(
            hours=10, is_question=True, has_deadline_mention=True, is_mention=True
        )
        result = score_urgency(conversation)

        assert tags(result) == ["content-question", "content-deadline", "content-mention"]
        assert [f.points for f in result.factors] == [1, 2, 2]
        assert result.score == 10


class TestSla:
    """Tests for the SLA factor."""

    def test_breach(self) -> None:
        """Test exceeding the relationship's target adds 2 points."""
        conversation = make_conversation(
            hours=30, sender=make_person(relationship=PersonRelationship.DIRECT_REPORT)
        )
        result = score_urgency(conversation, DEFAULT_SLA_SETTINGS)

        assert tags(result) == ["sender-direct", "sla-violation"]
        assert result.factors[-1].description == "Exceeds your 24h target for direct-report"
        assert result.score == 8

    def test_within_target(self) -> None:
        """Test waiting exactly the target is not a breach."""
        conversation = make_conversation(hours=72)
        result = score_urgency(conversation, DEFAULT_SLA_SETTINGS)

        assert "sla-violation" not in tags(result)

    def test_no_matching_target(self) -> None:
        """Test relationships without a target never breach."""
        sla = [ResponseTimeSLA(relationship=PersonRelationship.MANAGER, max_hours=1)]
        result = score_urgency(make_conversation(hours=500), sla)

        assert "sla-violation" not in tags(result)


class TestScore:
    """Tests for the combined score."""

    def test_manager_scenario(self) -> None:
        """Test a week-old manager question with a deadline scores 10 with four factors."""
        conversation = make_conversation(
            hours=200,
            sender=make_person(relationship=PersonRelationship.MANAGER),
            is_question=True,
            has_deadline_mention=True,
            is_mention=False,
        )
        result = score_urgency(conversation)

        assert result.score == 10
        assert [(f.factor, f.points) for f in result.factors] == [
            (UrgencyFactorType.WAIT_TIME_EXTREME, 3),
            (UrgencyFactorType.SENDER_MANAGER, 2),
            (UrgencyFactorType.CONTENT_QUESTION, 1),
            (UrgencyFactorType.CONTENT_DEADLINE, 2),
        ]

    def test_capped_at_ten(self) -> None:
        """Test the score never exceeds 10 even when factors sum higher."""
        conversation = make_conversation(
            hours=500,
            sender=make_person(relationship=PersonRelationship.MANAGER),
            is_question=True,
            has_deadline_mention=True,
            is_mention=True,
        )
        result = score_urgency(conversation, DEFAULT_SLA_SETTINGS)

        assert result.score == 10
        assert sum(f.points for f in result.factors) == 12

    def test_deterministic(self) -> None:
        """Test rescoring gives identical results."""
        conversation = make_conversation(hours=100, is_question=True)

        assert score_urgency(conversation) == score_urgency(conversation)

    def test_apply_urgency_copies(self) -> None:
        """Test apply_urgency returns a scored copy and is idempotent."""
        conversation = make_conversation(hours=100, urgency_score=0)

        scored = apply_urgency(conversation)
        rescored = apply_urgency(scored)

        assert conversation.urgency_score == 0
        assert scored.urgency_score == 7
        assert rescored.urgency_score == scored.urgency_score
        assert rescored.urgency_factors == scored.urgency_factors
