from __future__ import annotations

from classifieds_core.application.ports.storage import KeyValueStore
from classifieds_core.config import settings
from classifieds_core.domain.entities.credential import Credential

ACCESS_TOKEN_KEY = "access_token"
TOKEN_TYPE_KEY = "token_type"
REFRESH_TOKEN_KEY = "refresh_token"

_KEYS = (ACCESS_TOKEN_KEY, TOKEN_TYPE_KEY, REFRESH_TOKEN_KEY)


class CredentialStore:
    """Persists the current credential as three plain keys."""

    def __init__(
        self,
        store: KeyValueStore,
        default_token_type: str = settings.DEFAULT_TOKEN_TYPE,
    ) -> None:
        self._store = store
        self._default_token_type = default_token_type

    async def get(self) -> Credential:
        access_token, token_type, refresh_token = await self._store.get_many(list(_KEYS))
        if access_token is None:
            return Credential(refresh_token=refresh_token)
        return Credential(
            access_token=access_token,
            token_type=token_type or self._default_token_type,
            refresh_token=refresh_token,
        )

    async def set(self, credential: Credential) -> None:
        if not credential.is_authenticated:
            raise ValueError("Cannot store a credential without an access token")
        items = {
            ACCESS_TOKEN_KEY: credential.access_token,
            TOKEN_TYPE_KEY: credential.token_type,
        }
        if credential.refresh_token is not None:
            items[REFRESH_TOKEN_KEY] = credential.refresh_token
        await self._store.set_many(items)
        if credential.refresh_token is None:
            await self._store.delete(REFRESH_TOKEN_KEY)

    async def clear(self) -> None:
        await self._store.delete(*_KEYS)
