"""Map registry file paths onto the consumer project's layout."""

from __future__ import annotations

from pathlib import Path, PurePosixPath

from .types import Config


def resolve_component_path(component_file_path: str, config: Config) -> Path:
    file_name = PurePosixPath(str(component_file_path).replace("\\", "/")).name
    return Path(config.components.filesystem_path) / file_name


def resolve_utils_path(config: Config, extension: str = ".ts") -> Path:
    base = config.utils.filesystem_path
    return Path(base if base.endswith(extension) else f"{base}{extension}")
