from __future__ import annotations

from enum import StrEnum


class MessageState(StrEnum):
    PROVISIONAL = "provisional"
    CONFIRMED = "confirmed"


class DeliveryStatus(StrEnum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    FAILED = "failed"
