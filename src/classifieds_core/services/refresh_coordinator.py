"""Single-flight access token refresh.

Every authenticated call that is answered with 401 ends up here. The first
one starts a refresh; the rest wait in the queue and are replayed with the
new credential once it is stored, or rejected when the refresh fails.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable

import httpx

from classifieds_core.application.dto.request import RequestSpec
from classifieds_core.application.exceptions import NetworkError, SessionExpiredError
from classifieds_core.application.ports.transport import TransportClient
from classifieds_core.config import settings
from classifieds_core.domain.entities.credential import Credential
from classifieds_core.infrastructure.api.schemas import RefreshTokenRequest, TokenResponse
from classifieds_core.infrastructure.http.errors import error_from_response
from classifieds_core.services.credential_store import CredentialStore

logger = logging.getLogger(__name__)

Replay = Callable[[Credential], Awaitable[httpx.Response]]

REFRESH_EXPIRED_MESSAGE = "Refresh token expired. Please log in again."
NO_REFRESH_TOKEN_MESSAGE = "No refresh token available. Please log in again."


@dataclass(eq=False, slots=True)
class PendingRequest:
    id: str
    replay: Replay
    result: asyncio.Future[httpx.Response]


class RefreshCoordinator:
    def __init__(
        self,
        credentials: CredentialStore,
        transport: TransportClient,
        *,
        refresh_path: str = settings.REFRESH_PATH,
        default_token_type: str = settings.DEFAULT_TOKEN_TYPE,
    ) -> None:
        self._credentials = credentials
        self._transport = transport
        self._refresh_path = refresh_path
        self._default_token_type = default_token_type
        self._refreshing = False
        self._queue: list[PendingRequest] = []
        self._idle = asyncio.Event()
        self._idle.set()
        self._refresh_task: asyncio.Task[Credential] | None = None
        self._replays: set[asyncio.Task[None]] = set()

    @property
    def refresh_path(self) -> str:
        return self._refresh_path

    @property
    def refreshing(self) -> bool:
        return self._refreshing

    @property
    def queued(self) -> int:
        return len(self._queue)

    async def wait_idle(self) -> None:
        """Return once no refresh is in flight."""
        await self._idle.wait()

    async def handle_unauthorized(
        self,
        request_id: str,
        used_token: str | None,
        replay: Replay,
    ) -> httpx.Response:
        """Resolve a 401 by refreshing (or waiting for a refresh) and replaying.

        Raises SessionExpiredError when the refresh fails. Errors raised by
        the replay itself reach the caller unchanged.
        """
        current = await self._credentials.get()

        if self._refreshing:
            pending = PendingRequest(
                id=request_id,
                replay=replay,
                result=asyncio.get_running_loop().create_future(),
            )
            self._queue.append(pending)
            logger.debug("Queued %s behind token refresh (queue=%d)", request_id, len(self._queue))
            return await pending.result

        if current.access_token is not None and current.access_token != used_token:
            logger.debug("Token already rotated, replaying %s", request_id)
            return await replay(current)

        self._refreshing = True
        self._idle.clear()
        task = asyncio.create_task(self._refresh(), name="credential-refresh")
        task.add_done_callback(_consume_result)
        self._refresh_task = task
        credential = await asyncio.shield(task)
        return await replay(credential)

    async def _refresh(self) -> Credential:
        try:
            credential = await self._request_credential()
        except Exception as exc:
            error = exc if isinstance(exc, SessionExpiredError) else SessionExpiredError(
                f"Token refresh failed: {exc}",
            )
            logger.warning("Token refresh failed, clearing session: %s", error.detail)
            try:
                await self._credentials.clear()
            finally:
                self._reject_queue(error)
            if error is exc:
                raise
            raise error from exc
        else:
            logger.info("Token refreshed, replaying %d queued request(s)", len(self._queue))
            self._replay_queue(credential)
            return credential
        finally:
            self._refreshing = False
            self._idle.set()

    async def _request_credential(self) -> Credential:
        current = await self._credentials.get()
        if not current.refresh_token:
            raise SessionExpiredError(NO_REFRESH_TOKEN_MESSAGE)

        spec = RequestSpec(
            "POST",
            self._refresh_path,
            json=RefreshTokenRequest(refresh_token=current.refresh_token).model_dump(),
            authenticated=False,
        )
        try:
            response = await self._transport.send(spec)
        except NetworkError as exc:
            raise SessionExpiredError(f"Token refresh failed: {exc.detail}") from exc

        if response.status_code in (401, 403):
            raise SessionExpiredError(REFRESH_EXPIRED_MESSAGE)
        if not response.is_success:
            raise SessionExpiredError(f"Token refresh failed: {error_from_response(response).detail}")

        try:
            tokens = TokenResponse.model_validate(response.json())
        except ValueError as exc:
            raise SessionExpiredError("Token refresh returned an unreadable response.") from exc

        credential = Credential(
            access_token=tokens.access_token,
            token_type=tokens.token_type or self._default_token_type,
            refresh_token=tokens.refresh_token or current.refresh_token,
        )
        await self._credentials.set(credential)
        return credential

    def _replay_queue(self, credential: Credential) -> None:
        queue, self._queue = self._queue, []
        for pending in queue:
            task = asyncio.create_task(self._replay(pending, credential), name=f"replay-{pending.id}")
            self._replays.add(task)
            task.add_done_callback(self._replays.discard)

    def _reject_queue(self, error: Exception) -> None:
        queue, self._queue = self._queue, []
        for pending in queue:
            if not pending.result.done():
                pending.result.set_exception(error)

    @staticmethod
    async def _replay(pending: PendingRequest, credential: Credential) -> None:
        if pending.result.done():
            return
        try:
            response = await pending.replay(credential)
        except Exception as exc:
            if not pending.result.done():
                pending.result.set_exception(exc)
        else:
            if not pending.result.done():
                pending.result.set_result(response)


def _consume_result(task: asyncio.Task[Credential]) -> None:
    # The triggering caller may have been cancelled; its failure is already
    # reported through the queue.
    if not task.cancelled():
        task.exception()
