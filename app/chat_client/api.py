"""
REST client for the chat API.

Wraps every ``/api/v1/`` chat endpoint behind an httpx client carrying the
bearer token. Responses are parsed into the typed shapes from
``chat_client.events`` where the client keeps them in state (chat summaries,
messages, reactions); detail payloads are returned as dicts.

Usage:
    from chat_client.api import ChatAPIClient

    api = ChatAPIClient("https://bloxmarket.example", token=access_token)
    chats, pagination = api.list_chats()
    message = api.send_message(chats[0].chat_id, "hello")
"""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

import httpx

from chat_client.events import ChatSummary, Message, Reaction
from core.exceptions import BaseApplicationError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 15.0


class ChatAPIError(BaseApplicationError):
    """
    Raised for transport failures and non-2xx responses.

    ``status_code`` is None when the request never reached the server.
    """

    default_error_code = "API_ERROR"

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        error_code: str | None = None,
        body: Any = None,
    ):
        self.status_code = status_code
        self.body = body
        super().__init__(message, error_code=error_code)


class ChatAPIClient:
    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.BaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self._client = httpx.Client(
            base_url=f"{self.base_url}/api/v1/",
            timeout=timeout,
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> ChatAPIClient:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def set_token(self, token: str | None) -> None:
        self.token = token

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _request(self, method: str, path: str, **kwargs) -> Any:
        try:
            r = self._client.request(method, path, headers=self._headers(), **kwargs)
        except httpx.RequestError as e:
            logger.warning("Chat API %s %s request error: %s", method, path, e)
            raise ChatAPIError(str(e)) from e

        if r.status_code >= 400:
            body: Any = r.text
            error_code = None
            message = f"Chat API {method} {path} failed: {r.status_code}"
            try:
                body = r.json()
            except ValueError:
                pass
            if isinstance(body, dict):
                error_code = body.get("error_code")
                detail = body.get("error") or body.get("detail")
                if detail:
                    message = str(detail)
            logger.info(
                "Chat API %s %s returned %s (%s)", method, path, r.status_code, error_code
            )
            raise ChatAPIError(
                message, status_code=r.status_code, error_code=error_code, body=body
            )

        if r.status_code == 204 or not r.content:
            return None
        try:
            return r.json()
        except ValueError as e:
            logger.warning("Chat API %s %s returned a non-JSON body", method, path)
            raise ChatAPIError(
                "Malformed response body", status_code=r.status_code, body=r.text
            ) from e

    # =========================================================================
    # Chats
    # =========================================================================

    def list_chats(self, page: int = 1, limit: int = 20) -> tuple[list[ChatSummary], dict]:
        data = self._request("GET", "chats/", params={"page": page, "limit": limit})
        chats = [ChatSummary.from_data(item) for item in data["chats"]]
        return chats, data.get("pagination", {})

    def create_direct_chat(self, other_user_id: int) -> ChatSummary:
        data = self._request("POST", "chats/direct/", json={"otherUserId": other_user_id})
        return ChatSummary.from_data(data)

    def create_group_chat(
        self,
        name: str,
        participant_ids: list[int],
        description: str = "",
        avatar_url: str = "",
    ) -> ChatSummary:
        body = {"name": name, "participantIds": list(participant_ids)}
        if description:
            body["description"] = description
        if avatar_url:
            body["avatarUrl"] = avatar_url
        return ChatSummary.from_data(self._request("POST", "chats/group/", json=body))

    def get_chat(self, chat_id: str) -> dict:
        return self._request("GET", f"chats/{chat_id}/")

    def update_chat(self, chat_id: str, **changes) -> dict:
        """
        Update group metadata.

        Accepts ``name``, ``description``, ``avatar_url`` and ``settings``.
        """
        body = {}
        for key in ("name", "description", "settings"):
            if key in changes:
                body[key] = changes[key]
        if "avatar_url" in changes:
            body["avatarUrl"] = changes["avatar_url"]
        return self._request("PATCH", f"chats/{chat_id}/", json=body)

    def delete_chat(self, chat_id: str) -> None:
        self._request("DELETE", f"chats/{chat_id}/")

    def mark_read(self, chat_id: str) -> int:
        """Clear the caller's unread counter; returns how many were cleared."""
        return self._request("POST", f"chats/{chat_id}/read/")["cleared"]

    def leave_chat(self, chat_id: str) -> None:
        self._request("POST", f"chats/{chat_id}/leave/")

    # =========================================================================
    # Participants
    # =========================================================================

    def add_participant(self, chat_id: str, user_id: int) -> dict:
        return self._request(
            "POST", f"chats/{chat_id}/participants/", json={"userId": user_id}
        )

    def set_participant_role(self, chat_id: str, user_id: int, role: str) -> dict:
        return self._request(
            "PATCH", f"chats/{chat_id}/participants/{user_id}/", json={"role": role}
        )

    def remove_participant(self, chat_id: str, user_id: int) -> None:
        self._request("DELETE", f"chats/{chat_id}/participants/{user_id}/")

    # =========================================================================
    # Messages
    # =========================================================================

    def get_messages(
        self, chat_id: str, page: int = 1, limit: int = 50
    ) -> tuple[list[Message], dict]:
        data = self._request(
            "GET", f"chats/{chat_id}/messages/", params={"page": page, "limit": limit}
        )
        messages = [Message.from_data(item) for item in data["messages"]]
        return messages, data.get("pagination", {})

    def send_message(
        self,
        chat_id: str,
        content: str,
        message_type: str = "text",
        reply_to: str | None = None,
        file_url: str | None = None,
        file_name: str | None = None,
        file_size: int | None = None,
    ) -> Message:
        body: dict[str, Any] = {"content": content, "type": message_type}
        if reply_to:
            body["replyTo"] = reply_to
        if file_url:
            body["fileUrl"] = file_url
            body["fileName"] = file_name
            body["fileSize"] = file_size
        data = self._request("POST", f"chats/{chat_id}/messages/", json=body)
        return Message.from_data(data)

    def edit_message(self, chat_id: str, message_id: str, content: str) -> Message:
        data = self._request(
            "PATCH", f"chats/{chat_id}/messages/{message_id}/", json={"content": content}
        )
        return Message.from_data(data)

    def delete_message(self, chat_id: str, message_id: str) -> None:
        self._request("DELETE", f"chats/{chat_id}/messages/{message_id}/")

    # =========================================================================
    # Reactions
    # =========================================================================

    def add_reaction(self, chat_id: str, message_id: str, emoji: str) -> Reaction:
        data = self._request(
            "POST",
            f"chats/{chat_id}/messages/{message_id}/reactions/",
            json={"emoji": emoji},
        )
        return Reaction.from_data(data)

    def remove_reaction(self, chat_id: str, message_id: str, emoji: str) -> None:
        self._request(
            "DELETE",
            f"chats/{chat_id}/messages/{message_id}/reactions/{quote(emoji, safe='')}/",
        )

    # =========================================================================
    # Notifications
    # =========================================================================

    def get_unread_total(self) -> int:
        data = self._request("GET", "notifications/unread-count/total/")
        try:
            return int(data["totalUnreadCount"])
        except (TypeError, KeyError, ValueError) as e:
            raise ChatAPIError("Malformed unread count response", body=data) from e
