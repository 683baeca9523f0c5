"""Polling and optimistic-send reconciliation for one open conversation."""
from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import datetime, timezone

from classifieds_core.application.dto.delivery import DeliveryResult
from classifieds_core.application.exceptions import (
    AppError,
    ConversationAlreadyOpenError,
    ValidationError,
)
from classifieds_core.application.ports.clock import Clock, SystemClock
from classifieds_core.config import settings
from classifieds_core.domain.entities.conversation import ConversationTimeline
from classifieds_core.domain.entities.message import Message
from classifieds_core.domain.value_objects.ids import TEMP_ID_PREFIX, ConversationKey
from classifieds_core.services.conversation_cache import ConversationCache
from classifieds_core.services.messages_api import MessagesApi

logger = logging.getLogger(__name__)

EPOCH = datetime.fromtimestamp(0, timezone.utc)


class OpenConversationRegistry:
    """Tracks which conversations have an engine open in this process."""

    def __init__(self) -> None:
        self._open: set[str] = set()

    def __contains__(self, key: object) -> bool:
        return isinstance(key, ConversationKey) and key.cache_id in self._open

    def claim(self, key: ConversationKey) -> None:
        if key.cache_id in self._open:
            raise ConversationAlreadyOpenError(
                f"Conversation with {key.counterpart_id} is already open",
            )
        self._open.add(key.cache_id)

    def release(self, key: ConversationKey) -> None:
        self._open.discard(key.cache_id)


class ConversationSyncEngine:
    """Owns the timeline of one conversation between ``open`` and ``close``.

    The timeline is rehydrated from the cache, kept fresh by a background
    poll and written back to the cache after every change. Sent messages
    show up immediately as provisional entries and are later either replaced
    by the server's copy or rolled back.
    """

    def __init__(
        self,
        api: MessagesApi,
        cache: ConversationCache,
        *,
        registry: OpenConversationRegistry | None = None,
        clock: Clock | None = None,
        poll_interval: float = settings.POLL_INTERVAL_SECONDS,
        history_page_size: int = settings.HISTORY_PAGE_SIZE,
    ) -> None:
        self._api = api
        self._cache = cache
        self._registry = registry
        self._clock = clock or SystemClock()
        self._poll_interval = poll_interval
        self._history_page_size = history_page_size

        self._key: ConversationKey | None = None
        self._timeline = ConversationTimeline()
        self._last_sync_mark = EPOCH
        self._poll_task: asyncio.Task[None] | None = None
        self._polling = False
        self._closed = False
        self._deliveries: dict[str, asyncio.Task[DeliveryResult]] = {}

    @property
    def key(self) -> ConversationKey | None:
        return self._key

    @property
    def timeline(self) -> ConversationTimeline:
        return self._timeline

    @property
    def last_sync_mark(self) -> datetime:
        return self._last_sync_mark

    @property
    def is_open(self) -> bool:
        return self._key is not None and not self._closed

    async def open(self, key: ConversationKey) -> ConversationTimeline:
        if self._key is not None:
            raise RuntimeError("An engine can only be opened once")
        if self._registry is not None:
            self._registry.claim(key)
        self._key = key

        try:
            timeline = ConversationTimeline(await self._cache.load(key.cache_id))
            stale = timeline.drop_provisional()
            self._timeline = timeline
            if stale:
                logger.info("Dropped %d unsent message(s) left in cache for %s", len(stale), key)
                await self._persist()
        except BaseException:
            self._closed = True
            if self._registry is not None:
                self._registry.release(key)
            raise

        self._last_sync_mark = self._timeline.latest_confirmed_at() or EPOCH
        self._poll_task = asyncio.create_task(self._poll_loop(), name=f"conversation-poll-{key}")
        logger.info("Opened conversation %s (%d cached message(s))", key, len(self._timeline))
        return self._timeline

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._poll_task is not None:
            self._poll_task.cancel()
            try:
                await self._poll_task
            except asyncio.CancelledError:
                pass
        if self._key is not None:
            if self._registry is not None:
                self._registry.release(self._key)
            logger.info("Closed conversation %s", self._key)

    async def poll_once(self) -> int:
        """Merge messages newer than the sync mark. Returns how many were added."""
        key = self._require_open()
        if self._polling:
            logger.debug("Poll for %s still running, skipping tick", key)
            return 0

        self._polling = True
        try:
            try:
                incoming = await self._api.get_new_messages(key.counterpart_id, since=self._last_sync_mark)
            except AppError as exc:
                logger.warning("Poll for %s failed: %s", key, exc.detail)
                return 0

            if self._closed:
                return 0
            added = self._timeline.merge(m for m in incoming if m.conversation_key == key.value)
            if not added:
                return 0
            self._last_sync_mark = max(self._last_sync_mark, *(m.created_at for m in added))
            await self._persist()
            logger.debug("Merged %d new message(s) into %s", len(added), key)
            return len(added)
        finally:
            self._polling = False

    async def load_history(self, *, skip: int = 0, limit: int | None = None) -> int:
        """Merge one page of server history. Errors reach the caller."""
        key = self._require_open()
        page = await self._api.fetch_conversation(
            key.user_id,
            key.counterpart_id,
            skip=skip,
            limit=limit or self._history_page_size,
        )
        if self._closed:
            return 0
        added = self._timeline.merge(page)
        if added:
            await self._persist()
        return len(added)

    async def send(self, content: str) -> Message:
        """Show ``content`` as a provisional message and submit it in the background.

        Use :meth:`delivery` with the returned message id to learn whether the
        server accepted it.
        """
        key = self._require_open()
        if not content.strip():
            raise ValidationError("Message cannot be empty.")

        provisional = Message(
            id=f"{TEMP_ID_PREFIX}{uuid.uuid4().hex}",
            conversation_key=key.value,
            sender_id=key.user_id,
            receiver_id=key.counterpart_id,
            product_id=key.product_id,
            content=content,
            created_at=self._clock.now(),
            is_provisional=True,
        )
        self._timeline.merge([provisional])
        try:
            await self._persist()
        except BaseException:
            self._timeline.remove(provisional.id)
            raise

        self._deliveries[provisional.id] = asyncio.create_task(
            self._deliver(provisional),
            name=f"deliver-{provisional.id}",
        )
        return provisional

    async def delivery(self, message_id: str) -> DeliveryResult:
        """Wait for the outcome of a previous :meth:`send`.

        The outcome is handed out once; later calls for the same id raise
        KeyError.
        """
        task = self._deliveries.get(message_id)
        if task is None:
            raise KeyError(message_id)
        result = await task
        self._deliveries.pop(message_id, None)
        return result

    async def _deliver(self, provisional: Message) -> DeliveryResult:
        try:
            confirmed = await self._api.send_message(
                provisional.content,
                provisional.receiver_id,
                provisional.product_id,
            )
        except Exception as exc:
            if isinstance(exc, AppError):
                logger.warning("Sending to %s failed: %s", provisional.receiver_id, exc.detail)
            else:
                logger.exception("Sending to %s failed", provisional.receiver_id)
            await self._rollback(provisional)
            return DeliveryResult(provisional=provisional, error=exc)

        try:
            if not self._closed:
                self._timeline.confirm(provisional.id, confirmed)
                await self._persist()
            await self._cache.promote(provisional.receiver_id, confirmed)
        except Exception:
            logger.exception("Failed to store confirmed message %s", confirmed.id)
        return DeliveryResult(provisional=provisional, confirmed=confirmed)

    async def _rollback(self, provisional: Message) -> None:
        if self._closed:
            return
        if self._timeline.remove(provisional.id):
            try:
                await self._persist()
            except Exception:
                logger.exception("Failed to store rollback of %s", provisional.id)

    async def _poll_loop(self) -> None:
        while not self._closed:
            await asyncio.sleep(self._poll_interval)
            if self._closed:
                break
            try:
                # An in-flight poll outlives close() but will not mutate anything.
                poll = asyncio.ensure_future(self.poll_once())
                poll.add_done_callback(self._finish_poll)
                await asyncio.shield(poll)
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Poll loop error for %s", self._key)

    def _finish_poll(self, task: asyncio.Future[int]) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None and self._closed:
            logger.error("Poll for %s failed after close: %r", self._key, exc)

    async def _persist(self) -> None:
        assert self._key is not None
        await self._cache.save(self._key.cache_id, self._timeline)

    def _require_open(self) -> ConversationKey:
        if self._key is None or self._closed:
            raise RuntimeError("Conversation is not open")
        return self._key
