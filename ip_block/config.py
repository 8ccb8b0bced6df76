"""Application settings and environment loading utilities."""
from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional


def _load_dotenv() -> None:
    env_path = Path(".env")
    if not env_path.exists():
        return
    for line in env_path.read_text().splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        if "=" not in line:
            continue
        key, value = line.split("=", 1)
        os.environ.setdefault(key.strip(), value.strip())


_load_dotenv()


def _int_from_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise RuntimeError(f"Invalid integer for environment variable: {name}") from exc


def _optional(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


@dataclass(frozen=True)
class Settings:
    """Runtime configuration derived from environment variables."""

    max_attempts: int = 5
    window_seconds: int = 3600
    log_option: str = "ip_block_logs"
    log_limit: int = 500
    timezone_name: str = "UTC"
    redis_url: Optional[str] = None
    admin_username: str = "admin"
    admin_token: Optional[str] = None
    secret_key: str = "dev-only-change-me"
    nonce_lifetime_seconds: int = 86400

    @property
    def block_minutes(self) -> int:
        return self.window_seconds // 60

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            max_attempts=_int_from_env("IP_BLOCK_MAX_ATTEMPTS", 5),
            window_seconds=_int_from_env("IP_BLOCK_WINDOW_SECONDS", 3600),
            log_option=_optional(os.getenv("IP_BLOCK_LOG_OPTION")) or "ip_block_logs",
            log_limit=_int_from_env("IP_BLOCK_LOG_LIMIT", 500),
            timezone_name=_optional(os.getenv("IP_BLOCK_TIMEZONE")) or "UTC",
            redis_url=_optional(os.getenv("IP_BLOCK_REDIS_URL")),
            admin_username=_optional(os.getenv("IP_BLOCK_ADMIN_USERNAME")) or "admin",
            admin_token=_optional(os.getenv("IP_BLOCK_ADMIN_TOKEN")),
            secret_key=os.getenv("IP_BLOCK_SECRET_KEY", "dev-only-change-me"),
            nonce_lifetime_seconds=_int_from_env("IP_BLOCK_NONCE_LIFETIME_SECONDS", 86400),
        )


@lru_cache()
def get_settings() -> Settings:
    """Return cached application settings."""

    return Settings.from_env()
