from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from classifieds_core.domain.value_objects.enums import MessageState


@dataclass(frozen=True, slots=True)
class Message:
    id: str
    conversation_key: str
    sender_id: str
    receiver_id: str
    product_id: str | None
    content: str
    created_at: datetime
    is_provisional: bool = False
    is_read: bool = False

    @property
    def state(self) -> MessageState:
        return MessageState.PROVISIONAL if self.is_provisional else MessageState.CONFIRMED
