from __future__ import annotations

import logging
from typing import Any

import httpx

from classifieds_core.application.dto.request import RequestSpec
from classifieds_core.application.exceptions import ServerError, SessionExpiredError
from classifieds_core.application.ports.transport import TransportClient
from classifieds_core.domain.entities.credential import Credential
from classifieds_core.infrastructure.http.errors import error_from_response
from classifieds_core.services.credential_store import CredentialStore
from classifieds_core.services.refresh_coordinator import RefreshCoordinator

logger = logging.getLogger(__name__)

SESSION_EXPIRED_MESSAGE = "Your session has expired. Please log in again."


class AuthenticatedClient:
    """Attaches credentials to every call and hides recoverable 401s."""

    def __init__(
        self,
        transport: TransportClient,
        credentials: CredentialStore,
        coordinator: RefreshCoordinator,
    ) -> None:
        self._transport = transport
        self._credentials = credentials
        self._coordinator = coordinator

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
        authenticated: bool = True,
    ) -> httpx.Response:
        spec = RequestSpec(
            method.upper(),
            path,
            params=params,
            json=json,
            authenticated=authenticated,
        )
        return await self.send(spec)

    async def request_json(self, method: str, path: str, **kwargs: Any) -> Any:
        response = await self.request(method, path, **kwargs)
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise ServerError(
                "Unexpected response from server.",
                status_code=response.status_code,
            ) from exc

    async def send(self, spec: RequestSpec) -> httpx.Response:
        if not spec.authenticated:
            response = await self._transport.send(spec)
            if response.is_success:
                return response
            raise error_from_response(response)

        await self._coordinator.wait_idle()
        credential = await self._credentials.get()
        response = await self._dispatch(spec, credential)

        if (
            response.status_code == 401
            and not spec.retried
            and spec.path != self._coordinator.refresh_path
        ):
            retry = spec.as_retry()
            logger.debug("%s unauthorized, handing over to refresh", spec)
            response = await self._coordinator.handle_unauthorized(
                retry.request_id,
                credential.access_token,
                lambda fresh: self._dispatch(retry, fresh),
            )

        if response.is_success:
            return response
        if response.status_code in (401, 403):
            logger.warning("%s rejected with %d, ending session", spec, response.status_code)
            await self._credentials.clear()
            raise SessionExpiredError(SESSION_EXPIRED_MESSAGE, status_code=response.status_code)
        raise error_from_response(response)

    async def _dispatch(self, spec: RequestSpec, credential: Credential) -> httpx.Response:
        headers = {}
        if credential.authorization is not None:
            headers["Authorization"] = credential.authorization
        return await self._transport.send(spec, headers)
