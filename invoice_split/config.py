"""Environment-driven settings for the HTTP service."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import List, Mapping, Optional

ENV_PREFIX = "INVOICE_SPLIT_"

DEFAULT_CORS_ORIGINS = [
    "http://localhost:3000",
    "http://localhost:5173",
    "http://127.0.0.1:3000",
    "http://127.0.0.1:5173",
]


@dataclass
class Settings:
    cors_origins: List[str] = field(default_factory=lambda: list(DEFAULT_CORS_ORIGINS))
    cache_enabled: bool = True
    cache_size: int = 20
    cache_ttl_seconds: float = 24 * 60 * 60
    log_level: str = "INFO"
    port: int = 5000


def _parse_bool(name: str, raw: str) -> bool:
    value = raw.strip().lower()
    if value in {"1", "true", "yes", "on"}:
        return True
    if value in {"0", "false", "no", "off"}:
        return False
    raise ValueError(f"{name} must be a boolean, got {raw!r}")


def _parse_positive(name: str, raw: str, kind: type) -> float:
    try:
        value = kind(raw.strip())
    except ValueError:
        raise ValueError(f"{name} must be a {kind.__name__}, got {raw!r}") from None
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {raw!r}")
    return value


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Build ``Settings`` from ``INVOICE_SPLIT_*`` variables (``os.environ`` by default)."""
    env = os.environ if environ is None else environ
    settings = Settings()

    origins = env.get(f"{ENV_PREFIX}CORS_ORIGINS")
    if origins and origins.strip():
        settings.cors_origins = [o.strip() for o in origins.split(",") if o.strip()]

    enabled = env.get(f"{ENV_PREFIX}CACHE_ENABLED")
    if enabled:
        settings.cache_enabled = _parse_bool(f"{ENV_PREFIX}CACHE_ENABLED", enabled)

    size = env.get(f"{ENV_PREFIX}CACHE_SIZE")
    if size:
        settings.cache_size = _parse_positive(f"{ENV_PREFIX}CACHE_SIZE", size, int)

    ttl = env.get(f"{ENV_PREFIX}CACHE_TTL")
    if ttl:
        settings.cache_ttl_seconds = _parse_positive(f"{ENV_PREFIX}CACHE_TTL", ttl, float)

    level = env.get(f"{ENV_PREFIX}LOG_LEVEL")
    if level and level.strip():
        settings.log_level = level.strip().upper()

    port = env.get(f"{ENV_PREFIX}PORT")
    if port:
        settings.port = _parse_positive(f"{ENV_PREFIX}PORT", port, int)

    return settings
