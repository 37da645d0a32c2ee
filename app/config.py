"""
app/config.py
Application configuration
Environment-driven (Render compatible)

Variables:
- DATABASE_URL                     (required)
- WEBHOOK_PROVIDER                 (default: whatsapp)
- CONNECTION_TEST_TIMEOUT_SECONDS  (default: 10)
- LOG_LEVEL                        (default: INFO)
"""

from __future__ import annotations

import os
from dataclasses import dataclass

DEFAULT_PROVIDER = "whatsapp"
DEFAULT_CONNECTION_TEST_TIMEOUT = 10.0


def _require_env(name: str) -> str:
    value = os.getenv(name, "").strip()
    if not value:
        raise RuntimeError(f"{name} is not set")
    return value


def _env_float(name: str, default: float) -> float:
    try:
        value = float(os.getenv(name, str(default)))
    except ValueError:
        return default
    return value if value > 0 else default


@dataclass(frozen=True)
class Settings:
    database_url: str
    webhook_provider: str = DEFAULT_PROVIDER
    connection_test_timeout: float = DEFAULT_CONNECTION_TEST_TIMEOUT
    log_level: str = "INFO"


def load_settings() -> Settings:
    return Settings(
        database_url=_require_env("DATABASE_URL"),
        webhook_provider=os.getenv("WEBHOOK_PROVIDER", DEFAULT_PROVIDER).strip()
        or DEFAULT_PROVIDER,
        connection_test_timeout=_env_float(
            "CONNECTION_TEST_TIMEOUT_SECONDS", DEFAULT_CONNECTION_TEST_TIMEOUT
        ),
        log_level=os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO",
    )
