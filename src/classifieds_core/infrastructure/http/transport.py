from __future__ import annotations

import logging
from typing import Mapping

import httpx

from classifieds_core.application.dto.request import RequestSpec
from classifieds_core.application.exceptions import NetworkError
from classifieds_core.config import Settings
from classifieds_core.infrastructure.http.correlation import correlation_headers
from classifieds_core.infrastructure.http.errors import (
    NETWORK_ERROR_MESSAGE,
    TIMEOUT_ERROR_MESSAGE,
)

logger = logging.getLogger(__name__)


async def _log_response(response: httpx.Response) -> None:
    request = response.request
    logger.debug("%s %s -> %d", request.method, request.url.path, response.status_code)


def create_http_client(
    config: Settings,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        base_url=config.API_BASE_URL,
        timeout=httpx.Timeout(config.REQUEST_TIMEOUT_SECONDS),
        headers={"Accept": "application/json"},
        follow_redirects=True,
        event_hooks={"response": [_log_response]},
        transport=transport,
    )


class HttpxTransport:
    """Implements application.ports.transport.TransportClient."""

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    async def send(
        self,
        spec: RequestSpec,
        headers: Mapping[str, str] | None = None,
    ) -> httpx.Response:
        merged = correlation_headers(spec.request_id)
        if headers:
            merged.update(headers)
        try:
            return await self._client.request(
                spec.method,
                spec.path,
                params=spec.params,
                json=spec.json,
                headers=merged,
            )
        except httpx.TimeoutException as exc:
            logger.warning("%s timed out", spec)
            raise NetworkError(TIMEOUT_ERROR_MESSAGE) from exc
        except httpx.TransportError as exc:
            logger.warning("%s failed: %s", spec, exc)
            raise NetworkError(NETWORK_ERROR_MESSAGE) from exc

    async def aclose(self) -> None:
        await self._client.aclose()
