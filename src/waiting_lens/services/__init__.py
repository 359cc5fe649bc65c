"""Service layer: caches, scoring, grouping, persistence and aggregation."""

from waiting_lens.services.avatar_cache import AvatarCache
from waiting_lens.services.coalescer import BatchCoalescer
from waiting_lens.services.grouping import GroupAggregator, sort_person_groups, sort_team_groups
from waiting_lens.services.identity_resolver import IdentityResolver, is_external_email
from waiting_lens.services.persistence import (
    InMemoryKeyValueStore,
    JsonFileKeyValueStore,
    KeyValueStore,
    PersistenceStore,
    apply_persisted_state,
)
from waiting_lens.services.refresher import WaitingRefresher
from waiting_lens.services.relationship_cache import RelationshipCache, RelationshipContext
from waiting_lens.services.snooze_options import (
    SnoozeOption,
    describe_snoozed_until,
    snooze_until,
)
from waiting_lens.services.trend import TrendEstimator, classify_trend
from waiting_lens.services.ttl_cache import CacheEntry, TTLCache
from waiting_lens.services.urgency import UrgencyResult, apply_urgency, score_urgency
from waiting_lens.services.waiting_service import WaitingOnYouService, merge_conversations

__all__ = [
    "AvatarCache",
    "BatchCoalescer",
    "CacheEntry",
    "GroupAggregator",
    "IdentityResolver",
    "InMemoryKeyValueStore",
    "JsonFileKeyValueStore",
    "KeyValueStore",
    "PersistenceStore",
    "RelationshipCache",
    "RelationshipContext",
    "SnoozeOption",
    "TTLCache",
    "TrendEstimator",
    "UrgencyResult",
    "WaitingOnYouService",
    "WaitingRefresher",
    "apply_persisted_state",
    "apply_urgency",
    "classify_trend",
    "describe_snoozed_until",
    "is_external_email",
    "merge_conversations",
    "score_urgency",
    "snooze_until",
    "sort_person_groups",
    "sort_team_groups",
]
