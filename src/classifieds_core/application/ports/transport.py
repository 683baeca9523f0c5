from __future__ import annotations

from typing import Mapping, Protocol

import httpx

from classifieds_core.application.dto.request import RequestSpec


class TransportClient(Protocol):
    """Sends one HTTP request. Knows nothing about authentication."""

    async def send(
        self,
        spec: RequestSpec,
        headers: Mapping[str, str] | None = None,
    ) -> httpx.Response: ...
