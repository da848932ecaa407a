"""HTTP client for the component registry with a cache-backed fallback."""

from __future__ import annotations

import base64
import binascii
import json
import logging
import threading
import zlib
from pathlib import PurePosixPath
from typing import Any, Callable

import requests

from .cache import RegistryCache
from .constants import (
    ASSET_CACHE_PREFIX,
    COMPONENTS_MANIFEST,
    DEFAULT_ASSET_TTL_MS,
    DEFAULT_REGISTRY_TTL_MS,
    DEFAULT_REGISTRY_URL,
    MIRROR_CACHE_PREFIX,
    REGISTRY_CACHE_KEY,
    REGISTRY_MANIFEST,
)
from .errors import ErrorKind, NoctaError, component_file_not_found, component_not_found, registry_unavailable
from .settings import NoctaSettings
from .types import Component, CategoryInfo, Registry

logger = logging.getLogger(__name__)


class ComponentManifestCache:
    """Decoded-on-demand view of components.json shared by one pipeline run."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._entries: dict[str, str] | None = None

    @property
    def loaded(self) -> bool:
        return self._entries is not None

    def get_or_load(self, loader: Callable[[], dict[str, str]]) -> dict[str, str]:
        with self._lock:
            if self._entries is None:
                self._entries = loader()
            return self._entries


class RegistryClient:
    """Fetches the registry manifest, assets and component sources."""

    def __init__(
        self,
        base_url: str = DEFAULT_REGISTRY_URL,
        cache: RegistryCache | None = None,
        *,
        registry_ttl_seconds: float = DEFAULT_REGISTRY_TTL_MS / 1000.0,
        asset_ttl_seconds: float = DEFAULT_ASSET_TTL_MS / 1000.0,
        timeout: float | None = None,
        session: requests.Session | None = None,
        manifest_cache: ComponentManifestCache | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.cache = cache or RegistryCache()
        self.registry_ttl_seconds = registry_ttl_seconds
        self.asset_ttl_seconds = asset_ttl_seconds
        self.timeout = timeout
        self.session = session or requests.Session()
        self.manifest_cache = manifest_cache or ComponentManifestCache()
        self._registry_memo: tuple[str, Registry] | None = None

    @classmethod
    def from_settings(
        cls,
        settings: NoctaSettings,
        *,
        cache: RegistryCache | None = None,
        session: requests.Session | None = None,
        manifest_cache: ComponentManifestCache | None = None,
    ) -> "RegistryClient":
        return cls(
            settings.registry_url,
            cache or RegistryCache(settings.cache_dir),
            registry_ttl_seconds=settings.registry_ttl_seconds,
            asset_ttl_seconds=settings.asset_ttl_seconds,
            timeout=settings.http_timeout_seconds,
            session=session,
            manifest_cache=manifest_cache,
        )

    def get_registry(self) -> Registry:
        text = self._fetch_text(
            f"{self.base_url}/{REGISTRY_MANIFEST}",
            self._cache_key(REGISTRY_CACHE_KEY),
            self.registry_ttl_seconds,
            resource=REGISTRY_MANIFEST,
        )
        if self._registry_memo is not None and self._registry_memo[0] == text:
            return self._registry_memo[1]
        try:
            registry = Registry.from_dict(json.loads(text))
        except (json.JSONDecodeError, ValueError) as exc:
            raise NoctaError(
                ErrorKind.INVALID_PAYLOAD,
                f"failed to parse {REGISTRY_MANIFEST}",
                resource=REGISTRY_MANIFEST,
                cause=exc,
            ) from exc
        self._registry_memo = (text, registry)
        return registry

    def get_asset(self, path: str) -> str:
        relative = _normalize_registry_path(path)
        return self._fetch_text(
            f"{self.base_url}/{relative}",
            self._cache_key(f"{ASSET_CACHE_PREFIX}/{relative}"),
            self.asset_ttl_seconds,
            resource=relative,
        )

    def get_component_file(self, path: str) -> str:
        entries = self.manifest_cache.get_or_load(self._load_components_manifest)
        normalized = _normalize_registry_path(path)
        encoded = entries.get(normalized)
        if encoded is None:
            encoded = entries.get(PurePosixPath(normalized).name)
        if encoded is None:
            raise component_file_not_found(path)
        try:
            return base64.b64decode(encoded, validate=True).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError) as exc:
            raise NoctaError(
                ErrorKind.INVALID_PAYLOAD,
                f'component file "{path}" is not valid base64 text',
                resource=path,
                cause=exc,
            ) from exc

    def get_component(self, name: str) -> Component:
        component = self.get_registry().components.get(name)
        if component is None:
            raise component_not_found(name)
        return component

    def list_components(self) -> dict[str, Component]:
        return dict(self.get_registry().components)

    def components_by_category(self, category: str | None = None) -> dict[str, list[str]]:
        grouped: dict[str, list[str]] = {}
        for key, component in self.get_registry().components.items():
            if category is not None and component.category != category:
                continue
            grouped.setdefault(component.category or "other", []).append(key)
        return grouped

    def categories(self) -> dict[str, CategoryInfo]:
        return dict(self.get_registry().categories)

    def requirements(self) -> dict[str, str]:
        return dict(self.get_registry().requirements)

    def preload_component_manifest(self) -> int:
        return len(self.manifest_cache.get_or_load(self._load_components_manifest))

    def _load_components_manifest(self) -> dict[str, str]:
        text = self.get_asset(COMPONENTS_MANIFEST)
        try:
            payload = json.loads(text)
        except json.JSONDecodeError as exc:
            raise NoctaError(
                ErrorKind.INVALID_PAYLOAD,
                f"failed to parse {COMPONENTS_MANIFEST}",
                resource=COMPONENTS_MANIFEST,
                cause=exc,
            ) from exc
        if not isinstance(payload, dict):
            raise NoctaError(
                ErrorKind.INVALID_PAYLOAD,
                f"{COMPONENTS_MANIFEST} must be a JSON object",
                resource=COMPONENTS_MANIFEST,
            )
        entries = {
            _normalize_registry_path(str(key)): str(value)
            for key, value in payload.items()
            if isinstance(value, str)
        }
        logger.debug("components manifest loaded entries=%s", len(entries))
        return entries

    def _cache_key(self, key: str) -> str:
        if self.base_url == DEFAULT_REGISTRY_URL:
            return key
        namespace = f"{zlib.crc32(self.base_url.encode('utf-8')):08x}"
        return f"{MIRROR_CACHE_PREFIX}/{namespace}/{key}"

    def _fetch_text(self, url: str, key: str, ttl: float, *, resource: str) -> str:
        cached = self.cache.read(key, ttl)
        if cached is not None:
            logger.debug("cache hit key=%s", key)
            return cached

        try:
            response = self.session.get(url, headers=self._validator_headers(key), timeout=self.timeout)
            if response.status_code == 304:
                revalidated = self.cache.read(key, ttl, accept_stale=True)
                if revalidated is not None:
                    logger.debug("not modified key=%s", key)
                    self.cache.write(key, revalidated)
                    return revalidated
                self.cache.remove_metadata(key)
                response = self.session.get(url, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as exc:
            stale = self.cache.read(key, ttl, accept_stale=True)
            if stale is not None:
                logger.warning("registry fetch failed, using cached copy resource=%s err=%s", resource, exc)
                return stale
            raise registry_unavailable(resource, exc) from exc

        text = response.content.decode("utf-8", errors="replace")
        logger.debug("fetched url=%s bytes=%s", url, len(response.content))
        if self.cache.write(key, text):
            self._store_validators(key, response)
        return text

    def _validator_headers(self, key: str) -> dict[str, str]:
        metadata = self.cache.read_metadata(key) or {}
        headers: dict[str, str] = {}
        etag = str(metadata.get("etag") or "").strip()
        if etag:
            headers["If-None-Match"] = etag
        last_modified = str(metadata.get("last_modified") or "").strip()
        if last_modified:
            headers["If-Modified-Since"] = last_modified
        return headers

    def _store_validators(self, key: str, response: requests.Response) -> None:
        payload: dict[str, Any] = {}
        etag = response.headers.get("ETag")
        if etag:
            payload["etag"] = etag
        last_modified = response.headers.get("Last-Modified")
        if last_modified:
            payload["last_modified"] = last_modified
        if payload:
            self.cache.write_metadata(key, payload)
        else:
            self.cache.remove_metadata(key)


def _normalize_registry_path(path: str) -> str:
    value = str(path or "").strip().replace("\\", "/")
    while value.startswith("./"):
        value = value[2:]
    return value.lstrip("/")
