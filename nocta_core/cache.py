"""On-disk cache for registry manifests and assets."""

from __future__ import annotations

import json
import logging
import os
import shutil
import tempfile
import time
from pathlib import Path, PurePosixPath
from typing import Any

from .constants import CACHE_DIR_ENV, DEFAULT_CACHE_DIR_NAME, MAX_CACHE_AGE_SECONDS, METADATA_SUFFIX

logger = logging.getLogger(__name__)


def normalize_cache_key(raw: str) -> str:
    parts: list[str] = []
    for part in PurePosixPath(raw.replace("\\", "/")).parts:
        if part in ("/", ".", ""):
            continue
        if part == "..":
            # never climbs above the cache root
            if parts:
                parts.pop()
            continue
        parts.append(part)
    if not parts:
        return "entry"
    return "/".join(parts)


def default_cache_root(base_dir: Path | None = None) -> Path:
    explicit = str(os.environ.get(CACHE_DIR_ENV) or "").strip()
    if explicit:
        return Path(explicit)
    return (base_dir or Path.cwd()) / DEFAULT_CACHE_DIR_NAME


class RegistryCache:
    """TTL-aware text cache. Reads never raise and writes are best effort."""

    def __init__(self, root: Path | None = None, *, max_age_seconds: float = MAX_CACHE_AGE_SECONDS) -> None:
        self.root = (root or default_cache_root()).resolve()
        self.max_age_seconds = max_age_seconds

    def path_for(self, key: str) -> Path:
        return self.root / normalize_cache_key(key)

    def _metadata_path(self, key: str) -> Path:
        path = self.path_for(key)
        return path.with_name(f"{path.name}{METADATA_SUFFIX}")

    def read(self, key: str, ttl: float | None = None, *, accept_stale: bool = False) -> str | None:
        path = self.path_for(key)
        if not path.is_file():
            return None
        try:
            age = time.time() - path.stat().st_mtime
            if age > self.max_age_seconds:
                logger.debug("cache entry expired key=%s age=%.0fs", key, age)
                self._purge(key)
                return None
            if not accept_stale and ttl is not None and age > ttl:
                logger.debug("cache entry stale key=%s age=%.0fs ttl=%.0fs", key, age, ttl)
                return None
            return path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            logger.debug("cache read failed key=%s err=%s", key, exc)
            return None

    def write(self, key: str, content: str) -> bool:
        path = self.path_for(key)
        tmp_name: str | None = None
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w", encoding="utf-8", dir=path.parent, prefix=f".{path.name}.", delete=False
            ) as handle:
                tmp_name = handle.name
                handle.write(content)
            os.replace(tmp_name, path)
            return True
        except OSError as exc:
            logger.warning("cache write failed key=%s err=%s", key, exc)
            if tmp_name is not None:
                Path(tmp_name).unlink(missing_ok=True)
            return False

    def read_metadata(self, key: str) -> dict[str, Any] | None:
        path = self._metadata_path(key)
        if not path.exists():
            return None
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
        except Exception:
            return None
        return payload if isinstance(payload, dict) else None

    def write_metadata(self, key: str, payload: dict[str, Any]) -> None:
        path = self._metadata_path(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(json.dumps(payload, sort_keys=True), encoding="utf-8")
        except OSError as exc:
            logger.warning("cache metadata write failed key=%s err=%s", key, exc)

    def remove_metadata(self, key: str) -> None:
        try:
            self._metadata_path(key).unlink(missing_ok=True)
        except OSError as exc:
            logger.debug("cache metadata removal failed key=%s err=%s", key, exc)

    def clear(self) -> None:
        if self.root.exists():
            shutil.rmtree(self.root)

    def _purge(self, key: str) -> None:
        try:
            self.path_for(key).unlink(missing_ok=True)
        except OSError:
            pass
        self.remove_metadata(key)
