"""Wire models for the classifieds backend."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated, Any

from pydantic import AfterValidator, AliasChoices, BaseModel, ConfigDict, Field


def _assume_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


UtcDatetime = Annotated[datetime, AfterValidator(_assume_utc)]


class _WireModel(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True, extra="ignore")


class MessagePayload(_WireModel):
    id: str = Field(validation_alias=AliasChoices("id", "_id"))
    sender_id: str
    receiver_id: str
    product_id: str | None = None
    content: str = ""
    created_at: UtcDatetime
    is_read: bool = False


class SendMessageRequest(BaseModel):
    content: str
    product_id: str | None = None
    receiver_id: str


class LastMessagePayload(_WireModel):
    content: str | None = None
    created_at: UtcDatetime | None = None


class ChatUserPayload(_WireModel):
    user_id: str = Field(validation_alias=AliasChoices("user_id", "id"))
    name: str | None = None
    product_id: str | None = None
    last_message: LastMessagePayload | None = None
    unread_count: int = 0


class UnreadCountPayload(_WireModel):
    count: int = Field(validation_alias=AliasChoices("unread_count", "count"))


class RefreshTokenRequest(BaseModel):
    refresh_token: str


class LoginRequest(BaseModel):
    username: str
    password: str


class TokenResponse(_WireModel):
    access_token: str = Field(validation_alias=AliasChoices("access_token", "token"))
    refresh_token: str | None = None
    token_type: str | None = None


class LoginResponse(TokenResponse):
    refresh_token: str
    user: dict[str, Any] | None = None
