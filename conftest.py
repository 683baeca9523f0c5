"""Root conftest: test environment defaults, applied before any module imports."""
from __future__ import annotations

import os
from pathlib import Path

os.environ.setdefault("API_BASE_URL", "https://api.test")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/15")

_env_test = Path(__file__).resolve().parent / ".env.test"
if _env_test.exists():
    for line in _env_test.read_text().splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        key, _, value = line.partition("=")
        os.environ.setdefault(key.strip(), value.strip())
