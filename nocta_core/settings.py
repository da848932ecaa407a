"""Environment contract for the nocta runtime."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from .constants import (
    ASSET_CACHE_TTL_ENV,
    CACHE_DIR_ENV,
    CACHE_TTL_ENV,
    DEFAULT_ASSET_TTL_MS,
    DEFAULT_REGISTRY_TTL_MS,
    DEFAULT_REGISTRY_URL,
    HTTP_TIMEOUT_ENV,
    REGISTRY_URL_ENV,
)


@dataclass(frozen=True)
class NoctaSettings:
    registry_url: str
    cache_dir: Path | None
    registry_ttl_seconds: float
    asset_ttl_seconds: float
    http_timeout_seconds: float | None = None


def _ttl_from_env(name: str, default_ms: int) -> float:
    raw = str(os.environ.get(name) or "").strip()
    if not raw:
        return default_ms / 1000.0
    try:
        value = int(raw)
    except ValueError:
        return default_ms / 1000.0
    return max(value, 0) / 1000.0


def _timeout_from_env() -> float | None:
    raw = str(os.environ.get(HTTP_TIMEOUT_ENV) or "").strip()
    if not raw:
        return None
    try:
        value = float(raw)
    except ValueError:
        return None
    return value if value > 0 else None


def load_settings(
    *,
    registry_url: str | None = None,
    cache_dir: str | Path | None = None,
) -> NoctaSettings:
    url_value = (
        str(registry_url or "").strip()
        or str(os.environ.get(REGISTRY_URL_ENV) or "").strip()
        or DEFAULT_REGISTRY_URL
    )
    cache_value = cache_dir or str(os.environ.get(CACHE_DIR_ENV) or "").strip() or None
    return NoctaSettings(
        registry_url=url_value.rstrip("/"),
        cache_dir=Path(cache_value) if cache_value else None,
        registry_ttl_seconds=_ttl_from_env(CACHE_TTL_ENV, DEFAULT_REGISTRY_TTL_MS),
        asset_ttl_seconds=_ttl_from_env(ASSET_CACHE_TTL_ENV, DEFAULT_ASSET_TTL_MS),
        http_timeout_seconds=_timeout_from_env(),
    )
