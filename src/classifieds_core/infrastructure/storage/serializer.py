from __future__ import annotations

import json
from dataclasses import asdict
from datetime import datetime
from typing import Any, Iterable

from classifieds_core.domain.entities.conversation import ConversationSummary
from classifieds_core.domain.entities.message import Message


class _Encoder(json.JSONEncoder):
    def default(self, o: object) -> Any:
        if isinstance(o, datetime):
            return o.isoformat()
        return super().default(o)


def _parse_ts(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def serialize_messages(messages: Iterable[Message]) -> str:
    return json.dumps([asdict(m) for m in messages], cls=_Encoder)


def deserialize_messages(raw: str | bytes) -> list[Message]:
    return [
        Message(**{**item, "created_at": _parse_ts(item["created_at"])})
        for item in json.loads(raw)
    ]


def serialize_summaries(summaries: Iterable[ConversationSummary]) -> str:
    return json.dumps([asdict(s) for s in summaries], cls=_Encoder)


def deserialize_summaries(raw: str | bytes) -> list[ConversationSummary]:
    return [
        ConversationSummary(**{**item, "last_message_at": _parse_ts(item.get("last_message_at"))})
        for item in json.loads(raw)
    ]
