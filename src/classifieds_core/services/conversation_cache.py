from __future__ import annotations

import asyncio
import logging
from typing import Iterable

from classifieds_core.application.ports.storage import KeyValueStore
from classifieds_core.domain.entities.conversation import ConversationSummary
from classifieds_core.domain.entities.message import Message
from classifieds_core.infrastructure.storage.serializer import (
    deserialize_messages,
    deserialize_summaries,
    serialize_messages,
    serialize_summaries,
)

logger = logging.getLogger(__name__)

MESSAGES_KEY_PREFIX = "chat_messages_"
SUMMARIES_KEY = "chat_users_list"


def messages_key(counterpart_id: str) -> str:
    return f"{MESSAGES_KEY_PREFIX}{counterpart_id}"


class ConversationCache:
    """Durable per-counterpart message history and the conversation list."""

    def __init__(self, store: KeyValueStore) -> None:
        self._store = store
        self._summaries_lock = asyncio.Lock()

    async def load(self, counterpart_id: str) -> list[Message]:
        raw = await self._store.get(messages_key(counterpart_id))
        if raw is None:
            return []
        try:
            return deserialize_messages(raw)
        except (ValueError, TypeError, KeyError):
            logger.warning("Discarding unreadable message cache for %s", counterpart_id)
            return []

    async def save(self, counterpart_id: str, messages: Iterable[Message]) -> None:
        await self._store.set(messages_key(counterpart_id), serialize_messages(messages))

    async def clear(self, counterpart_id: str) -> None:
        await self._store.delete(messages_key(counterpart_id))

    async def load_summaries(self) -> list[ConversationSummary]:
        raw = await self._store.get(SUMMARIES_KEY)
        if raw is None:
            return []
        try:
            return deserialize_summaries(raw)
        except (ValueError, TypeError, KeyError):
            logger.warning("Discarding unreadable conversation list cache")
            return []

    async def save_summaries(self, summaries: Iterable[ConversationSummary]) -> None:
        await self._store.set(SUMMARIES_KEY, serialize_summaries(summaries))

    async def promote(self, counterpart_id: str, message: Message) -> list[ConversationSummary]:
        """Move a conversation to the front of the list with ``message`` as preview."""
        async with self._summaries_lock:
            summaries = await self.load_summaries()
            current = next(
                (s for s in summaries if s.counterpart_id == counterpart_id),
                ConversationSummary(counterpart_id=counterpart_id),
            )
            updated = [
                current.with_last_message(message),
                *(s for s in summaries if s.counterpart_id != counterpart_id),
            ]
            await self.save_summaries(updated)
            return updated

    async def active_summaries(self) -> list[ConversationSummary]:
        """Conversations that have at least one cached message."""
        summaries = await self.load_summaries()
        if not summaries:
            return []
        raws = await self._store.get_many([messages_key(s.counterpart_id) for s in summaries])
        active = []
        for summary, raw in zip(summaries, raws):
            if raw is None:
                continue
            try:
                if deserialize_messages(raw):
                    active.append(summary)
            except (ValueError, TypeError, KeyError):
                logger.warning("Skipping unreadable cache for %s", summary.counterpart_id)
        return active
