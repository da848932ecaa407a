"""Maintain the auto-generated export block of a components barrel file."""

from __future__ import annotations

import logging
import posixpath
import re
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Iterable, Mapping

from .errors import ErrorKind, NoctaError
from .types import ExportsTarget

logger = logging.getLogger(__name__)

EXPORT_BLOCK_START = "// @nocta-ui/cli: auto-exports:start"
EXPORT_BLOCK_END = "// @nocta-ui/cli: auto-exports:end"
EXPORT_BLOCK_COMMENT = "// This section is auto-generated by Nocta UI CLI. Do not edit manually."

_EXPORT_LINE_RE = re.compile(r"""^export\s*\{([^}]*)\}\s*from\s*(['"])([^'"]*)\2""")


@dataclass(frozen=True)
class ExportBlock:
    before: str = ""
    after: str = ""
    entries: dict[str, frozenset[str]] = field(default_factory=dict)


@dataclass(frozen=True)
class BarrelUpdate:
    path: Path
    content: str
    statements: tuple[str, ...]
    created: bool


def default_barrel_path(components_path: str) -> str:
    """``components/ui`` -> ``components/index.ts``; an empty path gives ``index.ts``."""
    normalized = components_path.strip().replace("\\", "/")
    while normalized.startswith("./"):
        normalized = normalized[2:]
    first = next((segment for segment in normalized.split("/") if segment), None)
    return f"{first}/index.ts" if first else "index.ts"


def parse_export_line(line: str) -> tuple[str, list[str]] | None:
    match = _EXPORT_LINE_RE.match(line.strip())
    if match is None:
        return None
    names = [name.strip() for name in match.group(1).split(",") if name.strip()]
    if not names:
        return None
    return match.group(3), names


def parse_export_block(content: str) -> ExportBlock:
    """Split a barrel into the text around the managed block and the entries inside it.

    A barrel without a complete start/end marker pair is treated as all
    ``before`` text, so hand-written exports are never rewritten.
    """
    if not content:
        return ExportBlock()
    start = content.find(EXPORT_BLOCK_START)
    end = content.find(EXPORT_BLOCK_END, start) if start >= 0 else -1
    if start < 0 or end < 0:
        return ExportBlock(before=content)

    entries: dict[str, set[str]] = {}
    for line in content[start + len(EXPORT_BLOCK_START) : end].splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("//"):
            continue
        parsed = parse_export_line(stripped)
        if parsed is None:
            continue
        module, names = parsed
        entries.setdefault(module, set()).update(names)
    return ExportBlock(
        before=content[:start],
        after=content[end + len(EXPORT_BLOCK_END) :],
        entries={module: frozenset(names) for module, names in entries.items()},
    )


def format_export_line(module: str, names: Iterable[str]) -> str:
    return f'export {{ {", ".join(sorted(names))} }} from "{module}";'


def build_export_block(entries: Mapping[str, Iterable[str]]) -> str:
    lines = [EXPORT_BLOCK_START, EXPORT_BLOCK_COMMENT]
    lines.extend(format_export_line(module, entries[module]) for module in sorted(entries))
    lines.append(EXPORT_BLOCK_END)
    return "\n".join(lines) + "\n"


def module_path_from_barrel(barrel_dir: PurePosixPath, target: PurePosixPath) -> str:
    relative = posixpath.relpath(str(target.with_suffix("")), str(barrel_dir) or ".")
    return relative if relative.startswith(".") else f"./{relative}"


def plan_barrel_update(
    project_root: Path,
    target: ExportsTarget,
    components_path: str,
    modules: Mapping[Path, Iterable[str]],
) -> BarrelUpdate | None:
    """Merge component exports into the barrel and return the new file content.

    ``modules`` maps each written component file (relative to the project root)
    to the names it exports. Returns ``None`` when the barrel already lists
    every name.
    """
    barrel = PurePosixPath(target.barrel or default_barrel_path(components_path))
    new_entries: dict[str, set[str]] = {}
    for path, names in modules.items():
        exported = [name for name in names if name]
        if not exported:
            continue
        module = module_path_from_barrel(barrel.parent, PurePosixPath(path.as_posix()))
        new_entries.setdefault(module, set()).update(exported)
    if not new_entries:
        return None

    absolute = project_root / Path(barrel)
    try:
        existing = absolute.read_text(encoding="utf-8") if absolute.exists() else None
    except OSError as exc:
        raise NoctaError(
            ErrorKind.FILE_WRITE_FAILED,
            f"failed to read export barrel {barrel}",
            resource=str(barrel),
            cause=exc,
        ) from exc

    block = parse_export_block(existing or "")
    merged: dict[str, set[str]] = {module: set(names) for module, names in block.entries.items()}
    for module, names in new_entries.items():
        merged.setdefault(module, set()).update(names)
    if merged == {module: set(names) for module, names in block.entries.items()}:
        logger.debug("export barrel up to date path=%s", barrel)
        return None

    content = block.before
    if content and not content.endswith("\n"):
        content += "\n"
    content += build_export_block(merged)
    # the marker line keeps its own newline inside the rebuilt block
    content += block.after[1:] if block.after.startswith("\n") else block.after
    statements = tuple(format_export_line(module, merged[module]) for module in sorted(new_entries))
    return BarrelUpdate(path=Path(barrel), content=content, statements=statements, created=existing is None)
