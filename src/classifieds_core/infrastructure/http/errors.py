"""Turn error responses into one readable message and a typed error."""
from __future__ import annotations

import json
from typing import Any

import httpx

from classifieds_core.application.exceptions import (
    AppError,
    ConflictOrNotFoundError,
    RateLimitedError,
    ServerError,
    UnauthenticatedError,
    ValidationError,
)

NETWORK_ERROR_MESSAGE = "Network error. Please check your internet connection."
TIMEOUT_ERROR_MESSAGE = "Request timed out. Please try again."

_PREFIXED: dict[int, str] = {
    400: "Bad Request: ",
    422: "Validation Error: ",
}

_FIXED: dict[int, str] = {
    401: "Unauthorized. Please log in again.",
    403: "Access forbidden. You don't have permission.",
    404: "Resource not found.",
    429: "Too many requests. Please try again later.",
    500: "Internal server error. Please try again later.",
    502: "Server is temporarily unavailable. Please try again later.",
    503: "Server is temporarily unavailable. Please try again later.",
    504: "Server is temporarily unavailable. Please try again later.",
}


def _format_validation_item(item: Any) -> str:
    if not isinstance(item, dict):
        return str(item)
    loc = item.get("loc")
    field = ".".join(str(part) for part in loc[1:]) if loc else "Unknown Field"
    return f"{field}: {item.get('msg') or item.get('message')}"


def format_error_payload(payload: Any) -> str:
    """Flatten a FastAPI-style error body into a single string."""
    detail = payload
    if isinstance(payload, dict):
        detail = payload.get("detail") or payload.get("message") or payload

    if isinstance(detail, list):
        return "\n".join(_format_validation_item(item) for item in detail)
    if isinstance(detail, str):
        return detail
    if isinstance(detail, dict):
        lines = []
        for key, value in detail.items():
            text = ", ".join(str(v) for v in value) if isinstance(value, list) else str(value)
            lines.append(f"{str(key).upper()}: {text}")
        return "\n".join(lines) if lines else json.dumps(detail)
    return str(detail)


def describe_status(status_code: int, detail: str) -> str:
    if status_code in _PREFIXED:
        return f"{_PREFIXED[status_code]}{detail}"
    if status_code in _FIXED:
        return _FIXED[status_code]
    if status_code >= 500:
        return _FIXED[500]
    return detail


def _error_type(status_code: int) -> type[AppError]:
    if status_code in (401, 403):
        return UnauthenticatedError
    if status_code in (404, 409, 410):
        return ConflictOrNotFoundError
    if status_code == 429:
        return RateLimitedError
    if status_code >= 500:
        return ServerError
    return ValidationError


def error_from_response(response: httpx.Response) -> AppError:
    try:
        payload: Any = response.json()
    except ValueError:
        payload = response.text or response.reason_phrase
    detail = format_error_payload(payload)
    message = describe_status(response.status_code, detail) or response.reason_phrase
    return _error_type(response.status_code)(message, status_code=response.status_code)
