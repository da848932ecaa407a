"""Read and write the project-level nocta.config.json."""

from __future__ import annotations

import json
from dataclasses import replace
from pathlib import Path

from .constants import CONFIG_FILE_NAME, CONFIG_SCHEMA_URL
from .errors import ErrorKind, NoctaError
from .types import Config


def config_path(project_root: Path) -> Path:
    return project_root / CONFIG_FILE_NAME


def read_config(project_root: Path) -> Config | None:
    path = config_path(project_root)
    if not path.exists():
        return None
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise NoctaError(ErrorKind.CONFIG_INVALID, f"failed to read {CONFIG_FILE_NAME}", cause=exc) from exc
    if not text.strip():
        return None
    try:
        payload = json.loads(text)
        return Config.from_dict(payload)
    except (json.JSONDecodeError, ValueError) as exc:
        raise NoctaError(ErrorKind.CONFIG_INVALID, f"failed to parse {CONFIG_FILE_NAME}", cause=exc) from exc


def require_config(project_root: Path) -> Config:
    config = read_config(project_root)
    if config is None:
        raise NoctaError(ErrorKind.CONFIG_MISSING, f"{CONFIG_FILE_NAME} not found")
    return config


def write_config(project_root: Path, config: Config) -> Path:
    path = config_path(project_root)
    path.parent.mkdir(parents=True, exist_ok=True)
    if config.schema is None:
        config = replace(config, schema=CONFIG_SCHEMA_URL)
    path.write_text(json.dumps(config.to_dict(), ensure_ascii=False, indent=2) + "\n", encoding="utf-8")
    return path
