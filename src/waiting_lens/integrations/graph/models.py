"""Graph API data models."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass
class BatchRequest:
    """One tagged sub-request inside a $batch call.

    Attributes:
        id: Tag echoed back on the matching response.
        url: Path relative to the API version root (e.g. "/users/1/photo/$value").
        method: HTTP method.
    """

    id: str
    url: str
    method: str = "GET"

    def to_dict(self) -> dict[str, str]:
        """Serialize to the $batch wire shape."""
        return {"id": self.id, "method": self.method, "url": self.url}


@dataclass
class BatchResponse:
    """One sub-response of a $batch call.

    Attributes:
        id: Tag of the sub-request this answers.
        status: HTTP status of the sub-request.
        body: Decoded JSON body, a base64 string for binary content, or None.
    """

    id: str
    status: int
    body: Any = None

    @property
    def ok(self) -> bool:
        """Check whether the sub-request succeeded."""
        return 200 <= self.status < 300


@dataclass
class CurrentUser:
    """The signed-in user.

    Attributes:
        id: Directory user ID.
        email: Lower-cased organizational email.
        display_name: Display name.
    """

    id: str
    email: str
    display_name: str = ""

    @property
    def domain(self) -> str:
        """Organization domain, the part of the email after '@'."""
        return self.email.partition("@")[2].lower()

