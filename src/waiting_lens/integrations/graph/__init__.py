"""Graph API integration."""

from waiting_lens.integrations.graph.client import GraphApiError, GraphClient
from waiting_lens.integrations.graph.models import BatchRequest, BatchResponse, CurrentUser
from waiting_lens.integrations.graph.rate_limiter import RateLimiter

__all__ = [
    "BatchRequest",
    "BatchResponse",
    "CurrentUser",
    "GraphApiError",
    "GraphClient",
    "RateLimiter",
]
