from __future__ import annotations

import json
import logging
from typing import Any

from classifieds_core.application.exceptions import ValidationError
from classifieds_core.application.ports.storage import KeyValueStore
from classifieds_core.config import settings
from classifieds_core.domain.entities.credential import Credential
from classifieds_core.infrastructure.api.schemas import LoginRequest, LoginResponse
from classifieds_core.infrastructure.auth.token_claims import subject_of
from classifieds_core.services.authenticated_client import AuthenticatedClient
from classifieds_core.services.credential_store import CredentialStore

logger = logging.getLogger(__name__)

USER_DATA_KEY = "user_data"

_USER_ID_FIELDS = ("id", "user_id", "_id")


class AuthService:
    """Login flow: the only writer of credentials besides the refresh path."""

    def __init__(
        self,
        client: AuthenticatedClient,
        credentials: CredentialStore,
        store: KeyValueStore,
        *,
        login_path: str = settings.LOGIN_PATH,
        default_token_type: str = settings.DEFAULT_TOKEN_TYPE,
    ) -> None:
        self._client = client
        self._credentials = credentials
        self._store = store
        self._login_path = login_path
        self._default_token_type = default_token_type

    async def login(self, username: str, password: str) -> dict[str, Any] | None:
        """Exchange username/password for tokens. Returns the user object, if sent."""
        data = await self._client.request_json(
            "POST",
            self._login_path,
            json=LoginRequest(username=username, password=password).model_dump(),
            authenticated=False,
        )
        try:
            tokens = LoginResponse.model_validate(data)
        except ValueError as exc:
            raise ValidationError("Server response missing required tokens.") from exc

        await self._credentials.set(
            Credential(
                access_token=tokens.access_token,
                token_type=tokens.token_type or self._default_token_type,
                refresh_token=tokens.refresh_token,
            )
        )
        if tokens.user is not None:
            await self._store.set(USER_DATA_KEY, json.dumps(tokens.user))
        else:
            await self._store.delete(USER_DATA_KEY)
        logger.info("Logged in as %s", username)
        return tokens.user

    async def logout(self) -> None:
        await self._credentials.clear()
        await self._store.delete(USER_DATA_KEY)
        logger.info("Logged out")

    async def is_logged_in(self) -> bool:
        return (await self._credentials.get()).is_authenticated

    async def user_data(self) -> dict[str, Any] | None:
        raw = await self._store.get(USER_DATA_KEY)
        if raw is None:
            return None
        try:
            data = json.loads(raw)
        except ValueError:
            logger.warning("Stored user data is not valid JSON, ignoring it")
            return None
        return data if isinstance(data, dict) else None

    async def current_user_id(self) -> str | None:
        data = await self.user_data()
        if data:
            for field in _USER_ID_FIELDS:
                if data.get(field) is not None:
                    return str(data[field])
        credential = await self._credentials.get()
        return subject_of(credential.access_token)
