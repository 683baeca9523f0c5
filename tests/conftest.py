"""Shared test fixtures."""
from __future__ import annotations

import asyncio
import inspect
import json
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Mapping

import httpx
import pytest

from classifieds_core.config import Settings
from classifieds_core.core import ClassifiedsCore, build_core
from classifieds_core.domain.entities.credential import Credential
from classifieds_core.domain.entities.message import Message
from classifieds_core.domain.value_objects.ids import pair_key
from classifieds_core.infrastructure.http.transport import create_http_client

BASE_TIME = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

ME = "1"
THEM = "2"


def make_message(
    *,
    id: str = "m1",
    sender_id: str = THEM,
    receiver_id: str = ME,
    content: str = "hello",
    created_at: datetime | None = None,
    product_id: str | None = None,
    is_provisional: bool = False,
) -> Message:
    return Message(
        id=id,
        conversation_key=pair_key(sender_id, receiver_id),
        sender_id=sender_id,
        receiver_id=receiver_id,
        product_id=product_id,
        content=content,
        created_at=created_at or BASE_TIME,
        is_provisional=is_provisional,
    )


def message_json(message: Message) -> dict[str, Any]:
    return {
        "id": int(message.id) if message.id.isdigit() else message.id,
        "sender_id": int(message.sender_id),
        "receiver_id": int(message.receiver_id),
        "product_id": message.product_id,
        "content": message.content,
        "created_at": message.created_at.isoformat(),
        "is_read": message.is_read,
    }


@dataclass
class FakeKeyValueStore:
    """In-memory KeyValueStore for unit tests."""

    _data: dict[str, str] = field(default_factory=dict)
    writes: int = 0

    async def get(self, key: str) -> str | None:
        return self._data.get(key)

    async def get_many(self, keys: list[str]) -> list[str | None]:
        return [self._data.get(k) for k in keys]

    async def set(self, key: str, value: str) -> None:
        self.writes += 1
        self._data[key] = value

    async def set_many(self, items: Mapping[str, str]) -> None:
        self.writes += 1
        self._data.update(items)

    async def delete(self, *keys: str) -> None:
        for key in keys:
            self._data.pop(key, None)


@dataclass
class FixedClock:
    current: datetime = BASE_TIME

    def now(self) -> datetime:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += timedelta(seconds=seconds)


Handler = Callable[[httpx.Request], "httpx.Response | Awaitable[httpx.Response]"]


class MockBackend:
    """Routes requests by (method, path) and records everything it sees."""

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], Handler] = {}
        self.requests: list[httpx.Request] = []

    def route(self, method: str, path: str, handler: Handler) -> None:
        self.routes[(method, path)] = handler

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path == path]

    async def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        handler = self.routes.get((request.method, request.url.path))
        if handler is None:
            return httpx.Response(404, json={"detail": "Not Found"})
        result = handler(request)
        if inspect.isawaitable(result):
            result = await result
        return result


def body_of(request: httpx.Request) -> Any:
    return json.loads(request.content) if request.content else None


def token_of(request: httpx.Request) -> str | None:
    return request.headers.get("Authorization")


async def slow(response: httpx.Response, delay: float = 0.01) -> httpx.Response:
    await asyncio.sleep(delay)
    return response


@pytest.fixture
def test_settings() -> Settings:
    return Settings(API_BASE_URL="https://api.test", POLL_INTERVAL_SECONDS=0.01)


@pytest.fixture
def store() -> FakeKeyValueStore:
    return FakeKeyValueStore()


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def backend() -> MockBackend:
    return MockBackend()


@pytest.fixture
def core(store, backend, test_settings, clock) -> ClassifiedsCore:
    http_client = create_http_client(test_settings, transport=httpx.MockTransport(backend.handle))
    return build_core(store, http_client, test_settings, clock)


async def seed_credential(
    store: FakeKeyValueStore,
    access_token: str = "A1",
    refresh_token: str | None = "R1",
    token_type: str = "Bearer",
) -> None:
    from classifieds_core.services.credential_store import CredentialStore

    await CredentialStore(store).set(Credential(access_token, token_type, refresh_token))
