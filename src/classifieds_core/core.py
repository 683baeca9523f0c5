from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator

import httpx
import redis.asyncio as aioredis

from classifieds_core.application.exceptions import UnauthenticatedError
from classifieds_core.application.ports.clock import Clock, SystemClock
from classifieds_core.application.ports.storage import KeyValueStore
from classifieds_core.config import Settings, settings
from classifieds_core.domain.entities.conversation import ConversationSummary
from classifieds_core.domain.value_objects.ids import ConversationKey
from classifieds_core.infrastructure.http.correlation import bind_correlation_id
from classifieds_core.infrastructure.http.transport import HttpxTransport, create_http_client
from classifieds_core.infrastructure.storage.redis_store import RedisKeyValueStore
from classifieds_core.services.auth_service import AuthService
from classifieds_core.services.authenticated_client import AuthenticatedClient
from classifieds_core.services.conversation_cache import ConversationCache
from classifieds_core.services.conversation_sync import (
    ConversationSyncEngine,
    OpenConversationRegistry,
)
from classifieds_core.services.credential_store import CredentialStore
from classifieds_core.services.messages_api import MessagesApi
from classifieds_core.services.refresh_coordinator import RefreshCoordinator

logger = logging.getLogger(__name__)


@dataclass
class ClassifiedsCore:
    """Dependency graph handed to the application shell."""

    config: Settings
    store: KeyValueStore
    transport: HttpxTransport
    credentials: CredentialStore
    coordinator: RefreshCoordinator
    client: AuthenticatedClient
    auth: AuthService
    messages: MessagesApi
    cache: ConversationCache
    registry: OpenConversationRegistry
    clock: Clock

    async def request(
        self,
        method: str,
        path: str,
        *,
        correlation_id: str | None = None,
        **kwargs: Any,
    ) -> httpx.Response:
        if correlation_id is None:
            return await self.client.request(method, path, **kwargs)
        with bind_correlation_id(correlation_id):
            return await self.client.request(method, path, **kwargs)

    async def open_conversation(
        self,
        counterpart_id: str,
        product_id: str | None = None,
        *,
        user_id: str | None = None,
    ) -> ConversationSyncEngine:
        user_id = user_id or await self.auth.current_user_id()
        if user_id is None:
            raise UnauthenticatedError("Please log in to open a conversation.")
        engine = ConversationSyncEngine(
            self.messages,
            self.cache,
            registry=self.registry,
            clock=self.clock,
            poll_interval=self.config.POLL_INTERVAL_SECONDS,
            history_page_size=self.config.HISTORY_PAGE_SIZE,
        )
        await engine.open(ConversationKey(str(user_id), str(counterpart_id), product_id))
        return engine

    async def conversations(self) -> list[ConversationSummary]:
        return await self.cache.active_summaries()


def build_core(
    store: KeyValueStore,
    http_client: httpx.AsyncClient,
    config: Settings = settings,
    clock: Clock | None = None,
) -> ClassifiedsCore:
    transport = HttpxTransport(http_client)
    credentials = CredentialStore(store, config.DEFAULT_TOKEN_TYPE)
    coordinator = RefreshCoordinator(
        credentials,
        transport,
        refresh_path=config.REFRESH_PATH,
        default_token_type=config.DEFAULT_TOKEN_TYPE,
    )
    client = AuthenticatedClient(transport, credentials, coordinator)
    return ClassifiedsCore(
        config=config,
        store=store,
        transport=transport,
        credentials=credentials,
        coordinator=coordinator,
        client=client,
        auth=AuthService(
            client,
            credentials,
            store,
            login_path=config.LOGIN_PATH,
            default_token_type=config.DEFAULT_TOKEN_TYPE,
        ),
        messages=MessagesApi(client),
        cache=ConversationCache(store),
        registry=OpenConversationRegistry(),
        clock=clock or SystemClock(),
    )


@asynccontextmanager
async def create_core(config: Settings = settings) -> AsyncIterator[ClassifiedsCore]:
    """Startup / shutdown lifecycle of the networking core."""
    redis = aioredis.from_url(config.REDIS_URL, decode_responses=True)
    logger.info("Redis connection pool created")
    core = build_core(
        RedisKeyValueStore(redis, config.STORAGE_KEY_PREFIX),
        create_http_client(config),
        config,
    )
    try:
        yield core
    finally:
        await core.transport.aclose()
        await redis.aclose()
        logger.info("Redis connection pool closed")
