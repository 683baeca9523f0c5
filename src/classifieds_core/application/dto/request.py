from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from typing import Any


@dataclass(frozen=True, slots=True)
class RequestSpec:
    method: str
    path: str
    params: dict[str, Any] | None = None
    json: Any = None
    authenticated: bool = True
    retried: bool = False
    request_id: str = field(default_factory=lambda: uuid.uuid4().hex)

    def as_retry(self) -> RequestSpec:
        return replace(self, retried=True)

    def __str__(self) -> str:
        return f"{self.method} {self.path}"
