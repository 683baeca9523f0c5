from __future__ import annotations


class AppError(Exception):
    """Base application error."""

    status_code: int = 0

    def __init__(self, detail: str = "", status_code: int | None = None) -> None:
        self.detail = detail
        if status_code is not None:
            self.status_code = status_code
        super().__init__(detail)


class UnauthenticatedError(AppError):
    status_code = 401


class SessionExpiredError(AppError):
    status_code = 401


class ValidationError(AppError):
    status_code = 422


class ServerError(AppError):
    status_code = 500


class RateLimitedError(ServerError):
    status_code = 429


class NetworkError(AppError):
    status_code = 0


class ConflictOrNotFoundError(AppError):
    status_code = 404


class ConversationAlreadyOpenError(ConflictOrNotFoundError):
    status_code = 409
