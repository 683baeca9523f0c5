from __future__ import annotations

from classifieds_core.domain.entities.conversation import ConversationSummary
from classifieds_core.domain.entities.message import Message
from classifieds_core.domain.value_objects.ids import pair_key
from classifieds_core.infrastructure.api.schemas import ChatUserPayload, MessagePayload


def payload_to_entity(payload: MessagePayload) -> Message:
    return Message(
        id=payload.id,
        conversation_key=pair_key(payload.sender_id, payload.receiver_id),
        sender_id=payload.sender_id,
        receiver_id=payload.receiver_id,
        product_id=payload.product_id,
        content=payload.content,
        created_at=payload.created_at,
        is_provisional=False,
        is_read=payload.is_read,
    )


def chat_user_to_summary(payload: ChatUserPayload) -> ConversationSummary:
    last = payload.last_message
    return ConversationSummary(
        counterpart_id=payload.user_id,
        display_name=payload.name,
        product_id=payload.product_id,
        last_message=last.content if last else None,
        last_message_at=last.created_at if last else None,
        unread_count=payload.unread_count,
    )
