from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Tuple

from .exceptions import ConfigurationError
from .http_client import HttpConfig

DEFAULT_BASE_URL = "https://query.ampre.ca/odata"


def env(name: str, default: str | None = None) -> str | None:
    v = os.getenv(name)
    return v if v is not None else default


def _env_number(name: str, default: str, cast):
    raw = env(name, default) or default
    try:
        return cast(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from e


@dataclass(frozen=True)
class Settings:
    base_url: str = DEFAULT_BASE_URL
    access_token: str | None = None
    log_level: str = "INFO"

    batch_size: int = 100
    # Pause between full pages (seconds). Politeness only.
    sleep_seconds: float = 1.0
    requests_per_sec: float = 0.0

    connect_timeout: float = 10.0
    read_timeout: float = 30.0
    max_retries: int = 6

    checkpoint_dir: str = "./checkpoints"
    schedule_minutes: int = 15
    schedule_resources: Tuple[str, ...] = ("Property", "Media")

    def require_token(self) -> str:
        if not self.access_token:
            raise ConfigurationError("Missing AMPLIFY_ACCESS_TOKEN.")
        return self.access_token

    def http_config(self) -> HttpConfig:
        return HttpConfig(
            access_token=self.require_token(),
            connect_timeout=self.connect_timeout,
            read_timeout=self.read_timeout,
            max_retries=self.max_retries,
            requests_per_sec=self.requests_per_sec,
        )


def load_settings() -> Settings:
    resources = env("AMPLIFY_SCHEDULE_RESOURCES", "Property,Media") or ""
    return Settings(
        base_url=env("AMPLIFY_BASE_URL", DEFAULT_BASE_URL) or DEFAULT_BASE_URL,
        access_token=env("AMPLIFY_ACCESS_TOKEN") or None,
        log_level=env("LOG_LEVEL", "INFO") or "INFO",
        batch_size=_env_number("AMPLIFY_BATCH_SIZE", "100", int),
        sleep_seconds=_env_number("AMPLIFY_SLEEP_SECONDS", "1.0", float),
        requests_per_sec=_env_number("AMPLIFY_REQUESTS_PER_SEC", "0", float),
        connect_timeout=_env_number("AMPLIFY_CONNECT_TIMEOUT", "10", float),
        read_timeout=_env_number("AMPLIFY_READ_TIMEOUT", "30", float),
        max_retries=_env_number("AMPLIFY_MAX_RETRIES", "6", int),
        checkpoint_dir=env("AMPLIFY_CHECKPOINT_DIR", "./checkpoints") or "./checkpoints",
        schedule_minutes=_env_number("AMPLIFY_SCHEDULE_MINUTES", "15", int),
        schedule_resources=tuple(r.strip() for r in resources.split(",") if r.strip()),
    )
