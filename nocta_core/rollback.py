"""Best-effort undo of file-system mutations."""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from types import TracebackType

logger = logging.getLogger(__name__)


class InstallationTransaction:
    """Records created paths and deletes them again on rollback.

    Deletion is the only undo operation: a path that already existed and was
    overwritten is removed, not restored.
    """

    def __init__(self, base_dir: Path | None = None) -> None:
        self.base_dir = base_dir or Path.cwd()
        self._paths: list[Path] = []

    @property
    def paths(self) -> list[Path]:
        return list(self._paths)

    def record(self, path: str | Path) -> None:
        self._paths.append(Path(path))

    def rollback(self) -> None:
        seen: set[Path] = set()
        for raw in self._paths:
            path = raw if raw.is_absolute() else self.base_dir / raw
            if path in seen:
                continue
            seen.add(path)
            if not path.exists():
                continue
            try:
                if path.is_dir():
                    shutil.rmtree(path)
                else:
                    path.unlink()
                logger.debug("rolled back path=%s", path)
            except OSError as exc:
                logger.warning("rollback failed path=%s err=%s", path, exc)

    def __enter__(self) -> "InstallationTransaction":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> bool:
        if exc_type is not None:
            self.rollback()
        return False


@dataclass(frozen=True)
class FileSnapshot:
    path: Path
    previous: bytes | None


class FileSnapshotJournal:
    """Snapshots files before they are written so a failed run can restore them."""

    def __init__(self) -> None:
        self._snapshots: list[FileSnapshot] = []

    @property
    def paths(self) -> list[Path]:
        return [snapshot.path for snapshot in self._snapshots]

    def snapshot(self, path: Path) -> None:
        if any(entry.path == path for entry in self._snapshots):
            return
        previous = path.read_bytes() if path.exists() else None
        self._snapshots.append(FileSnapshot(path=path, previous=previous))

    def write_text(self, path: Path, content: str) -> None:
        self.snapshot(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")

    def restore(self) -> None:
        for snapshot in reversed(self._snapshots):
            try:
                if snapshot.previous is None:
                    snapshot.path.unlink(missing_ok=True)
                else:
                    snapshot.path.parent.mkdir(parents=True, exist_ok=True)
                    snapshot.path.write_bytes(snapshot.previous)
            except OSError as exc:
                logger.warning("restore failed path=%s err=%s", snapshot.path, exc)
        self._snapshots.clear()
