from __future__ import annotations

from dataclasses import dataclass

TEMP_ID_PREFIX = "temp-"


def pair_key(user_a: str, user_b: str) -> str:
    """Order-independent key for the conversation between two users."""
    first, second = sorted((str(user_a), str(user_b)))
    return f"{first}:{second}"


def is_temporary_id(message_id: str) -> bool:
    return message_id.startswith(TEMP_ID_PREFIX)


@dataclass(frozen=True, slots=True)
class ConversationKey:
    """Identifies one open conversation from the current user's side."""

    user_id: str
    counterpart_id: str
    product_id: str | None = None

    @property
    def value(self) -> str:
        return pair_key(self.user_id, self.counterpart_id)

    @property
    def cache_id(self) -> str:
        """Local cache entries are keyed by the counterpart only."""
        return self.counterpart_id

    def __str__(self) -> str:
        if self.product_id:
            return f"{self.value}@{self.product_id}"
        return self.value
