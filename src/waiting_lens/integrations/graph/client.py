"""Graph API client for mail, chat, channel and directory reads."""

from __future__ import annotations

from datetime import datetime
from typing import Any

import httpx

from waiting_lens.integrations.graph.models import BatchRequest, BatchResponse, CurrentUser
from waiting_lens.integrations.graph.parser import format_graph_datetime, user_email
from waiting_lens.integrations.graph.rate_limiter import RateLimiter

DEFAULT_BASE_URL = "https://graph.microsoft.com/v1.0"
MAX_BATCH_REQUESTS = 20


class GraphApiError(Exception):
    """Exception raised for Graph API errors.

    Attributes:
        status_code: HTTP status code from the API.
        error_code: Error code from the Graph error body.
        message: Human-readable error message.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        error_code: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.error_code = error_code
        self.message = message


def _odata_quote(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


class GraphClient:
    """Client for the Graph endpoints waiting-lens reads from.

    Typical usage:
        async with GraphClient(access_token="...") as client:
            me = await client.get_me()
            chats = await client.list_chats(expand_last_message=True)
            responses = await client.batch([BatchRequest(id="0", url="/users/1/photo/$value")])

    Attributes:
        base_url: API root including the version segment.
    """

    def __init__(
        self,
        access_token: str,
        base_url: str = DEFAULT_BASE_URL,
        rate_limiter: RateLimiter | None = None,
        timeout: float = 30.0,
    ) -> None:
        """Initialize Graph client.

        Args:
            access_token: Valid OAuth2 bearer token.
            base_url: API root (default: Graph v1.0).
            rate_limiter: Optional limiter shared by every request.
            timeout: Request timeout in seconds.
        """
        self.base_url = base_url.rstrip("/")
        self.rate_limiter = rate_limiter or RateLimiter()
        self._client = httpx.AsyncClient(
            headers={"Authorization": f"Bearer {access_token}"},
            timeout=timeout,
        )

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> GraphClient:
        """Enter async context manager."""
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        """Exit async context manager."""
        await self.close()

    async def _request(
        self,
        method: str,
        path: str,
        params: dict[str, str] | None = None,
        json_body: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Make an API request with rate limiting.

        Args:
            method: HTTP method (GET, POST, etc.).
            path: API path relative to the base URL.
            params: OData query parameters.
            json_body: JSON body for POST requests.

        Returns:
            JSON response as dict (empty for empty bodies).

        Raises:
            GraphApiError: If the API returns an error.
        """
        await self.rate_limiter.acquire()

        url = f"{self.base_url}/{path.lstrip('/')}"
        response = await self._client.request(method, url, params=params, json=json_body)

        if response.status_code >= 400:
            try:
                error_data = response.json() if response.content else {}
            except ValueError:
                # Gateways answer with HTML or plain text
                error_data = {}
            error_info = error_data.get("error", {}) if isinstance(error_data, dict) else None
            if isinstance(error_info, dict):
                raise GraphApiError(
                    message=str(error_info.get("message", response.text)),
                    status_code=response.status_code,
                    error_code=str(error_info.get("code", "")),
                )
            raise GraphApiError(message=response.text, status_code=response.status_code)

        if not response.content:
            return {}

        result: dict[str, Any] = response.json()
        return result

    async def _list(self, path: str, params: dict[str, str] | None = None) -> list[dict[str, Any]]:
        """GET a collection and return its "value" items."""
        result = await self._request("GET", path, params)
        items = result.get("value", [])
        if not isinstance(items, list):
            return []
        return [item for item in items if isinstance(item, dict)]

    # Directory

    async def get_me(self) -> CurrentUser:
        """Get the signed-in user.

        Raises:
            GraphApiError: If the API returns an error.
        """
        result = await self._request(
            "GET", "me", {"$select": "id,displayName,mail,userPrincipalName"}
        )
        return CurrentUser(
            id=str(result.get("id") or ""),
            email=user_email(result).lower(),
            display_name=str(result.get("displayName") or ""),
        )

    async def get_manager(self) -> dict[str, Any] | None:
        """Get the signed-in user's manager, or None if they have none."""
        try:
            return await self._request(
                "GET", "me/manager", {"$select": "id,displayName,mail,userPrincipalName"}
            )
        except GraphApiError as e:
            if e.status_code == 404:
                return None
            raise

    async def list_direct_reports(self, top: int = 50) -> list[dict[str, Any]]:
        """List the signed-in user's direct reports."""
        return await self._list(
            "me/directReports",
            {"$select": "id,displayName,mail,userPrincipalName", "$top": str(top)},
        )

    async def list_people(self, top: int = 25) -> list[dict[str, Any]]:
        """List the people the signed-in user works with most."""
        return await self._list(
            "me/people",
            {"$filter": "personType/class eq 'Person'", "$top": str(top)},
        )

    async def list_joined_teams(self) -> list[dict[str, Any]]:
        """List the teams the signed-in user is a member of."""
        return await self._list("me/joinedTeams", {"$select": "id,displayName,webUrl"})

    async def find_user_id_by_email(self, email: str) -> str | None:
        """Look up a directory user ID by mail or user principal name."""
        quoted = _odata_quote(email)
        users = await self._list(
            "users",
            {
                "$filter": f"mail eq {quoted} or userPrincipalName eq {quoted}",
                "$select": "id",
                "$top": "1",
            },
        )
        if users and users[0].get("id"):
            return str(users[0]["id"])
        return None

    @staticmethod
    def user_lookup_url(email: str) -> str:
        """Relative URL of a single-user lookup, for use inside a batch."""
        quoted = _odata_quote(email)
        return f"/users?$filter=mail eq {quoted} or userPrincipalName eq {quoted}&$select=id"

    # Mail

    async def list_messages(
        self,
        received_after: datetime,
        received_before: datetime,
        top: int = 100,
    ) -> list[dict[str, Any]]:
        """List received, non-draft messages in a time window, newest first."""
        return await self._list(
            "me/messages",
            {
                "$filter": (
                    f"receivedDateTime ge {format_graph_datetime(received_after)}"
                    f" and receivedDateTime le {format_graph_datetime(received_before)}"
                    " and isDraft eq false"
                ),
                "$select": "id,subject,bodyPreview,from,receivedDateTime,conversationId,webLink",
                "$orderby": "receivedDateTime desc",
                "$top": str(top),
            },
        )

    async def list_sent_conversation_ids(self, sent_after: datetime, top: int = 200) -> set[str]:
        """Conversation IDs of everything the user has sent since sent_after."""
        messages = await self._list(
            "me/mailFolders/sentItems/messages",
            {
                "$filter": f"sentDateTime ge {format_graph_datetime(sent_after)}",
                "$select": "conversationId",
                "$top": str(top),
            },
        )
        return {str(m["conversationId"]) for m in messages if m.get("conversationId")}

    # Chats and channels

    async def list_chats(
        self, top: int = 50, expand_last_message: bool = False
    ) -> list[dict[str, Any]]:
        """List the signed-in user's chats."""
        params = {"$top": str(top)}
        if expand_last_message:
            params["$expand"] = "lastMessagePreview"
        else:
            params["$select"] = "id,topic,chatType,webUrl"
        return await self._list("me/chats", params)

    async def list_chat_messages(self, chat_id: str, top: int = 30) -> list[dict[str, Any]]:
        """List recent messages in a chat."""
        return await self._list(f"me/chats/{chat_id}/messages", {"$top": str(top)})

    async def list_channels(self, team_id: str, top: int = 10) -> list[dict[str, Any]]:
        """List channels of a team."""
        return await self._list(
            f"teams/{team_id}/channels",
            {"$select": "id,displayName,webUrl", "$top": str(top)},
        )

    async def list_channel_messages(
        self, team_id: str, channel_id: str, top: int = 20
    ) -> list[dict[str, Any]]:
        """List recent top-level messages in a channel."""
        return await self._list(
            f"teams/{team_id}/channels/{channel_id}/messages", {"$top": str(top)}
        )

    async def send_chat_message(self, chat_id: str, content: str) -> dict[str, Any]:
        """Post a plain-text message into a chat."""
        return await self._request(
            "POST",
            f"chats/{chat_id}/messages",
            json_body={"body": {"contentType": "text", "content": content}},
        )

    async def reply_to_channel_message(
        self, team_id: str, channel_id: str, message_id: str, content: str
    ) -> dict[str, Any]:
        """Reply in the thread of a channel message."""
        return await self._request(
            "POST",
            f"teams/{team_id}/channels/{channel_id}/messages/{message_id}/replies",
            json_body={"body": {"contentType": "text", "content": content}},
        )

    # Batching

    async def batch(self, requests: list[BatchRequest]) -> list[BatchResponse]:
        """Send up to 20 sub-requests in one $batch call.

        Args:
            requests: Tagged sub-requests.

        Returns:
            One response per sub-request that the service answered, in the
            order the service returned them.

        Raises:
            ValueError: If more than 20 sub-requests are given.
            GraphApiError: If the batch call itself fails.
        """
        if len(requests) > MAX_BATCH_REQUESTS:
            raise ValueError(f"A batch holds at most {MAX_BATCH_REQUESTS} requests")
        if not requests:
            return []

        result = await self._request(
            "POST", "$batch", json_body={"requests": [r.to_dict() for r in requests]}
        )
        responses = []
        for raw in result.get("responses", []):
            if not isinstance(raw, dict):
                continue
            responses.append(
                BatchResponse(
                    id=str(raw.get("id", "")),
                    status=int(raw.get("status", 0)),
                    body=raw.get("body"),
                )
            )
        return responses
