"""Core utilities for waiting-lens."""

from __future__ import annotations

from waiting_lens.core.clock import Clock, utc_now
from waiting_lens.core.config import WaitingLensSettings, get_settings
from waiting_lens.core.exceptions import (
    ConfigurationError,
    CurrentUserError,
    WaitingLensError,
)
from waiting_lens.core.logging import (
    bind_refresh_context,
    clear_refresh_context,
    configure_logging,
)

__all__ = [
    "Clock",
    "ConfigurationError",
    "CurrentUserError",
    "WaitingLensError",
    "WaitingLensSettings",
    "bind_refresh_context",
    "clear_refresh_context",
    "configure_logging",
    "get_settings",
    "utc_now",
]
