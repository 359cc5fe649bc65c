"""Exception hierarchy for waiting-lens."""

from __future__ import annotations


class WaitingLensError(Exception):
    """Base exception for all waiting-lens errors."""

    pass


class CurrentUserError(WaitingLensError):
    """Raised when the signed-in user's identity cannot be determined.

    Nothing downstream can run without the user's id and email, so this
    aborts the whole aggregation.
    """

    pass


class ConfigurationError(WaitingLensError):
    """Raised when required configuration is missing or invalid."""

    pass
