"""Typed access to the ``/api/messages`` endpoints."""
from __future__ import annotations

from datetime import datetime
from typing import Any

import pydantic

from classifieds_core.application.exceptions import ServerError
from classifieds_core.domain.entities.conversation import ConversationSummary
from classifieds_core.domain.entities.message import Message
from classifieds_core.infrastructure.api.mappers import chat_user_to_summary, payload_to_entity
from classifieds_core.infrastructure.api.schemas import (
    ChatUserPayload,
    MessagePayload,
    SendMessageRequest,
    UnreadCountPayload,
)
from classifieds_core.services.authenticated_client import AuthenticatedClient

MESSAGES_PATH = "/api/messages"

_LIST_KEYS = ("messages", "items", "results", "data")


def epoch_millis(ts: datetime) -> int:
    return int(ts.timestamp() * 1000)


def _items(data: Any) -> list[Any]:
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        for key in _LIST_KEYS:
            if isinstance(data.get(key), list):
                return data[key]
    return []


def _to_message(data: Any) -> Message:
    try:
        return payload_to_entity(MessagePayload.model_validate(data))
    except pydantic.ValidationError as exc:
        raise ServerError(f"Unexpected message payload from server: {exc.error_count()} error(s)") from exc


def _to_messages(data: Any) -> list[Message]:
    return [_to_message(item) for item in _items(data)]


class MessagesApi:
    def __init__(self, client: AuthenticatedClient) -> None:
        self._client = client

    async def send_message(
        self,
        content: str,
        receiver_id: str,
        product_id: str | None = None,
    ) -> Message:
        body = SendMessageRequest(content=content, receiver_id=receiver_id, product_id=product_id)
        data = await self._client.request_json("POST", f"{MESSAGES_PATH}/", json=body.model_dump())
        return _to_message(data)

    async def get_message(self, message_id: str) -> Message:
        return _to_message(await self._client.request_json("GET", f"{MESSAGES_PATH}/{message_id}"))

    async def delete_message(self, message_id: str) -> None:
        await self._client.request("DELETE", f"{MESSAGES_PATH}/{message_id}")

    async def fetch_conversation(
        self,
        user_a: str,
        user_b: str,
        *,
        skip: int = 0,
        limit: int = 50,
    ) -> list[Message]:
        data = await self._client.request_json(
            "GET",
            f"{MESSAGES_PATH}/conversation/{user_a}/{user_b}",
            params={"skip": skip, "limit": limit},
        )
        return _to_messages(data)

    async def get_new_messages(self, user_id: str, *, since: datetime) -> list[Message]:
        data = await self._client.request_json(
            "GET",
            f"{MESSAGES_PATH}/new-messages/{user_id}",
            params={"since": epoch_millis(since)},
        )
        return _to_messages(data)

    async def mark_as_read(self, message_id: str) -> None:
        await self._client.request("PUT", f"{MESSAGES_PATH}/{message_id}/read", json={})

    async def mark_conversation_as_read(self, user_a: str, user_b: str) -> None:
        await self._client.request("PUT", f"{MESSAGES_PATH}/conversation/{user_a}/{user_b}/read", json={})

    async def unread_count(self) -> int:
        data = await self._client.request_json("GET", f"{MESSAGES_PATH}/unread/count")
        if isinstance(data, int):
            return data
        try:
            return UnreadCountPayload.model_validate(data).count
        except pydantic.ValidationError as exc:
            raise ServerError("Unexpected unread count payload from server") from exc

    async def chat_users(self) -> list[ConversationSummary]:
        data = await self._client.request_json("GET", f"{MESSAGES_PATH}/chat-users/")
        try:
            return [chat_user_to_summary(ChatUserPayload.model_validate(item)) for item in _items(data)]
        except pydantic.ValidationError as exc:
            raise ServerError("Unexpected chat user payload from server") from exc

    async def product_messages(self, product_id: str, *, skip: int = 0, limit: int = 50) -> list[Message]:
        data = await self._client.request_json(
            "GET",
            f"{MESSAGES_PATH}/product/{product_id}",
            params={"skip": skip, "limit": limit},
        )
        return _to_messages(data)

    async def search(self, query: str, *, skip: int = 0, limit: int = 50) -> list[Message]:
        data = await self._client.request_json(
            "GET",
            f"{MESSAGES_PATH}/search/",
            params={"q": query, "skip": skip, "limit": limit},
        )
        return _to_messages(data)

    async def conversation_with(self, user_id: str, *, skip: int = 0, limit: int = 50) -> list[Message]:
        data = await self._client.request_json(
            "GET",
            f"{MESSAGES_PATH}/conversation-with/{user_id}",
            params={"skip": skip, "limit": limit},
        )
        return _to_messages(data)
