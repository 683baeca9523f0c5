from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Credential:
    access_token: str | None = None
    token_type: str | None = None
    refresh_token: str | None = None

    def __post_init__(self) -> None:
        if (self.access_token is None) != (self.token_type is None):
            raise ValueError("access_token and token_type must be set together")

    @property
    def is_authenticated(self) -> bool:
        return self.access_token is not None

    @property
    def authorization(self) -> str | None:
        """Value for the ``Authorization`` header, if any."""
        if self.access_token is None:
            return None
        return f"{self.token_type} {self.access_token}"

