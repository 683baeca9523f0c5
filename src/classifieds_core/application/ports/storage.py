from __future__ import annotations

from typing import Mapping, Protocol


class KeyValueStore(Protocol):
    """Durable string storage shared by credentials and the chat cache."""

    async def get(self, key: str) -> str | None: ...

    async def get_many(self, keys: list[str]) -> list[str | None]: ...

    async def set(self, key: str, value: str) -> None: ...

    async def set_many(self, items: Mapping[str, str]) -> None: ...

    async def delete(self, *keys: str) -> None: ...
