"""Rewrite registry-style ``@/`` imports to the consumer project's alias."""

from __future__ import annotations

import re

from .types import Config

IMPORT_SPECIFIER_RE = re.compile(r"""(['"])@/([^'"\n]+)(['"])""")


def _trim_prefix(value: str, prefix: str) -> str:
    while value.startswith(prefix):
        value = value[len(prefix):]
    return value


def normalize_import_path(import_path: str) -> str:
    path = _trim_prefix(_trim_prefix(import_path, "./"), "/")
    for root in ("app/", "src/"):
        if path.startswith(root):
            return path[len(root):]
    return path


def normalize_alias_path(path: str) -> str:
    value = path
    for prefix in ("./", "/", "src/", "app/"):
        value = _trim_prefix(value, prefix)
    return value


def join_import_path(prefix: str, import_path: str) -> str:
    sanitized = prefix.rstrip("/")
    if not import_path:
        return sanitized
    return f"{sanitized}/{import_path.lstrip('/')}"


def component_relative_path(path: str, components_dir: str) -> str | None:
    """Path below the components alias, or None when ``path`` is not a component import."""
    normalized = _trim_prefix(_trim_prefix(path, "./"), "/")
    if normalized == "components":
        return ""
    if not normalized.startswith("components/"):
        return None
    relative = normalized[len("components/"):]
    suffix = _trim_prefix(_trim_prefix(normalize_alias_path(components_dir), "components/"), "/")
    if suffix and relative.startswith(suffix):
        relative = relative[len(suffix):].lstrip("/")
    return relative


def resolve_alias_prefix(config: Config, framework: str | None = None) -> str:
    if config.alias_prefixes is not None and config.alias_prefixes.components:
        return config.alias_prefixes.components
    if framework == "react-router":
        return "~"
    return "@"


def component_import_base(config: Config, alias_prefix: str) -> str:
    """Import specifier under which installed components are reachable."""
    custom = config.components.import_alias
    if custom:
        return custom.rstrip("/")
    normalized = normalize_alias_path(config.components.filesystem_path)
    prefix = alias_prefix.rstrip("/")
    if not normalized:
        return prefix
    return join_import_path(prefix, normalized)


class ImportNormalizer:
    def normalize(
        self,
        source: str,
        alias_prefix: str,
        component_alias: str | None = None,
        components_dir: str = "",
    ) -> str:
        prefix = alias_prefix.rstrip("/")
        custom = component_alias.rstrip("/") if component_alias else None

        def _replace(match: re.Match[str]) -> str:
            open_quote, raw_path, close_quote = match.groups()
            path = normalize_import_path(raw_path)
            if custom is not None:
                relative = component_relative_path(path, components_dir)
                if relative is not None:
                    return f"{open_quote}{join_import_path(custom, relative)}{close_quote}"
            return f"{open_quote}{join_import_path(prefix, path)}{close_quote}"

        return IMPORT_SPECIFIER_RE.sub(_replace, source)

    def normalize_for_config(self, source: str, config: Config, framework: str | None = None) -> str:
        return self.normalize(
            source,
            resolve_alias_prefix(config, framework),
            component_alias=config.components.import_alias,
            components_dir=config.components.filesystem_path,
        )


def normalize_imports(source: str, alias_prefix: str) -> str:
    return ImportNormalizer().normalize(source, alias_prefix)
