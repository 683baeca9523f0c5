from __future__ import annotations

import logging
from typing import Any

import jwt

logger = logging.getLogger(__name__)


def read_claims(token: str) -> dict[str, Any]:
    """Decode an access token without verifying it.

    The client never holds the signing key; the claims are only used to
    identify the signed-in user locally.
    """
    return jwt.decode(token, options={"verify_signature": False})


def subject_of(token: str | None) -> str | None:
    if not token:
        return None
    try:
        sub = read_claims(token).get("sub")
    except jwt.PyJWTError:
        logger.debug("Access token is not a readable JWT")
        return None
    return str(sub) if sub is not None else None
