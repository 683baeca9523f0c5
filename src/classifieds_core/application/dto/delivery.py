from __future__ import annotations

from dataclasses import dataclass

from classifieds_core.domain.entities.message import Message
from classifieds_core.domain.value_objects.enums import DeliveryStatus


@dataclass(frozen=True, slots=True)
class DeliveryResult:
    """Outcome of submitting one provisional message."""

    provisional: Message
    confirmed: Message | None = None
    error: Exception | None = None

    @property
    def status(self) -> DeliveryStatus:
        if self.confirmed is not None:
            return DeliveryStatus.CONFIRMED
        if self.error is not None:
            return DeliveryStatus.FAILED
        return DeliveryStatus.PENDING

    @property
    def ok(self) -> bool:
        return self.status == DeliveryStatus.CONFIRMED
