"""Pydantic schemas for waiting-lens."""

from waiting_lens.schemas.conversation import (
    Conversation,
    ConversationType,
    Person,
    PersonRelationship,
    Team,
    UrgencyFactor,
    UrgencyFactorType,
)
from waiting_lens.schemas.groups import GroupedWaitingData, PersonGroup, TeamGroup
from waiting_lens.schemas.preferences import (
    DEFAULT_SLA_SETTINGS,
    ResponseTimeSLA,
    WaitingFilter,
)
from waiting_lens.schemas.state import DismissedItem, PersistedState, SnoozedItem
from waiting_lens.schemas.trend import TrendDirection, WaitingDebtDataPoint, WaitingDebtTrend

__all__ = [
    # Conversations
    "Conversation",
    "ConversationType",
    "Person",
    "PersonRelationship",
    "Team",
    "UrgencyFactor",
    "UrgencyFactorType",
    # Groups
    "GroupedWaitingData",
    "PersonGroup",
    "TeamGroup",
    # Preferences
    "DEFAULT_SLA_SETTINGS",
    "ResponseTimeSLA",
    "WaitingFilter",
    # Persisted state
    "DismissedItem",
    "PersistedState",
    "SnoozedItem",
    # Trend
    "TrendDirection",
    "WaitingDebtDataPoint",
    "WaitingDebtTrend",
]
