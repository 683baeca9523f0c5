from __future__ import annotations

import bisect
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Iterable, Iterator

from classifieds_core.domain.entities.message import Message


def _sort_key(message: Message) -> datetime:
    return message.created_at


class ConversationTimeline:
    """Messages of one conversation, unique by id, ascending by ``created_at``.

    Messages with equal timestamps keep their insertion order.
    """

    def __init__(self, messages: Iterable[Message] = ()) -> None:
        self._messages: list[Message] = []
        self._ids: set[str] = set()
        self.merge(messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(self._messages)

    def __len__(self) -> int:
        return len(self._messages)

    def __contains__(self, message_id: object) -> bool:
        return message_id in self._ids

    @property
    def messages(self) -> tuple[Message, ...]:
        return tuple(self._messages)

    def get(self, message_id: str) -> Message | None:
        if message_id not in self._ids:
            return None
        return next(m for m in self._messages if m.id == message_id)

    def merge(self, incoming: Iterable[Message]) -> list[Message]:
        """Insert every message whose id is not present yet.

        Returns the messages that were actually added.
        """
        added: list[Message] = []
        for message in incoming:
            if message.id in self._ids:
                continue
            self._insert(message)
            added.append(message)
        return added

    def confirm(self, temporary_id: str, confirmed: Message) -> bool:
        """Replace a provisional message by its server-confirmed version.

        If the confirmed id already arrived through a poll only the
        provisional entry is dropped. Returns False when the provisional
        message is no longer in the timeline.
        """
        if temporary_id not in self._ids:
            return False
        self.remove(temporary_id)
        if confirmed.id not in self._ids:
            self._insert(replace(confirmed, is_provisional=False))
        return True

    def remove(self, message_id: str) -> bool:
        if message_id not in self._ids:
            return False
        self._messages = [m for m in self._messages if m.id != message_id]
        self._ids.discard(message_id)
        return True

    def drop_provisional(self) -> list[Message]:
        dropped = [m for m in self._messages if m.is_provisional]
        for message in dropped:
            self.remove(message.id)
        return dropped

    def latest_confirmed_at(self) -> datetime | None:
        for message in reversed(self._messages):
            if not message.is_provisional:
                return message.created_at
        return None

    def _insert(self, message: Message) -> None:
        bisect.insort_right(self._messages, message, key=_sort_key)
        self._ids.add(message.id)


@dataclass(frozen=True, slots=True)
class ConversationSummary:
    """One row of the conversation list, most recent first."""

    counterpart_id: str
    display_name: str | None = None
    product_id: str | None = None
    last_message: str | None = None
    last_message_at: datetime | None = None
    unread_count: int = 0

    def with_last_message(self, message: Message) -> ConversationSummary:
        return replace(
            self,
            product_id=message.product_id or self.product_id,
            last_message=message.content,
            last_message_at=message.created_at,
        )
