from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator

correlation_id_ctx: ContextVar[str] = ContextVar("correlation_id", default="")

HEADER = "X-Request-ID"


@contextmanager
def bind_correlation_id(cid: str) -> Iterator[str]:
    """Send ``cid`` as the request id of every call made inside the block."""
    token = correlation_id_ctx.set(cid)
    try:
        yield cid
    finally:
        correlation_id_ctx.reset(token)


def correlation_headers(fallback: str) -> dict[str, str]:
    """Request id header: the bound correlation id, else ``fallback``."""
    return {HEADER: correlation_id_ctx.get() or fallback}
