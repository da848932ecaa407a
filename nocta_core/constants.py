"""Shared constants for the nocta registry client and installer."""

from __future__ import annotations

DEFAULT_REGISTRY_URL = "https://www.nocta-ui.com/registry"

REGISTRY_MANIFEST = "registry.json"
COMPONENTS_MANIFEST = "components.json"

REGISTRY_CACHE_KEY = "registry/registry.json"
ASSET_CACHE_PREFIX = "assets"
MIRROR_CACHE_PREFIX = "mirrors"

DEFAULT_CACHE_DIR_NAME = ".nocta-cache"
MAX_CACHE_AGE_SECONDS = 30 * 24 * 60 * 60
METADATA_SUFFIX = ".meta"

DEFAULT_REGISTRY_TTL_MS = 10 * 60 * 1000
DEFAULT_ASSET_TTL_MS = 24 * 60 * 60 * 1000

REGISTRY_URL_ENV = "NOCTA_REGISTRY_URL"
CACHE_DIR_ENV = "NOCTA_CACHE_DIR"
CACHE_TTL_ENV = "NOCTA_CACHE_TTL_MS"
ASSET_CACHE_TTL_ENV = "NOCTA_ASSET_CACHE_TTL_MS"
HTTP_TIMEOUT_ENV = "NOCTA_HTTP_TIMEOUT"

CONFIG_FILE_NAME = "nocta.config.json"
CONFIG_SCHEMA_URL = "https://www.nocta-ui.com/registry/config-schema.json"

FILE_FETCH_CONCURRENCY = 6

UTILS_ASSET = "lib/utils.ts"
ICONS_ASSET = "icons/icons.ts"
