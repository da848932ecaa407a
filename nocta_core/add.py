"""Install registry components into a project."""

from __future__ import annotations

import logging
import subprocess
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from pathlib import Path, PurePosixPath
from typing import Any, Callable, Sequence

from .config import require_config
from .constants import FILE_FETCH_CONCURRENCY
from .deps import (
    DependencyInstallPlan,
    InstallPlan,
    VersionReconciler,
    detect_package_manager,
    get_installed_dependencies,
)
from .errors import ErrorKind, NoctaError
from .exports import BarrelUpdate, plan_barrel_update
from .imports import ImportNormalizer, component_import_base, join_import_path, resolve_alias_prefix
from .paths import resolve_component_path
from .registry import RegistryClient
from .resolver import DependencyResolver, ResolvedComponent, split_requested
from .rollback import FileSnapshotJournal
from .types import Component, Config

logger = logging.getLogger(__name__)

ConfirmOverwrite = Callable[[Sequence[Path]], bool]


@dataclass(frozen=True)
class PreparedFile:
    component_key: str
    component_name: str
    source_path: str
    target_path: Path
    content: str
    file_type: str = "component"


@dataclass(frozen=True)
class AddReport:
    requested: tuple[ResolvedComponent, ...]
    dependencies: tuple[ResolvedComponent, ...]
    files: tuple[PreparedFile, ...] = ()
    existing: tuple[Path, ...] = ()
    dependency_plan: InstallPlan = field(default_factory=InstallPlan)
    dev_dependency_plan: InstallPlan = field(default_factory=InstallPlan)
    install_commands: tuple[DependencyInstallPlan, ...] = ()
    import_hints: tuple[str, ...] = ()
    barrel_update: BarrelUpdate | None = None
    dry_run: bool = False
    cancelled: bool = False

    @property
    def components(self) -> tuple[ResolvedComponent, ...]:
        return self.dependencies + self.requested


class AddPipeline:
    """Resolve, fetch, rewrite and write components, then install their npm packages.

    In dry-run mode every step up to dependency classification runs, but no
    file is written and no package manager is spawned. When files already
    exist, ``confirm_overwrite`` decides whether to proceed; without a callback
    the run is cancelled.
    """

    def __init__(
        self,
        project_root: Path,
        client: RegistryClient,
        *,
        framework: str = "unknown",
        dry_run: bool = False,
        confirm_overwrite: ConfirmOverwrite | None = None,
        reconciler: VersionReconciler | None = None,
        normalizer: ImportNormalizer | None = None,
        package_manager: str | None = None,
        runner: Callable[..., subprocess.CompletedProcess[Any]] = subprocess.run,
        max_workers: int = FILE_FETCH_CONCURRENCY,
    ) -> None:
        self.project_root = project_root
        self.client = client
        self.framework = framework
        self.dry_run = dry_run
        self.confirm_overwrite = confirm_overwrite
        self.reconciler = reconciler or VersionReconciler()
        self.normalizer = normalizer or ImportNormalizer()
        self.package_manager = package_manager
        self.runner = runner
        self.max_workers = max(1, int(max_workers))

    def run(self, names: Sequence[str]) -> AddReport:
        config = require_config(self.project_root)
        registry = self.client.get_registry()
        resolver = DependencyResolver(registry)

        keys: list[str] = []
        for name in names:
            key = resolver.lookup_key(name)
            if key not in keys:
                keys.append(key)
        resolved = resolver.resolve_many(keys)
        requested, dependencies = split_requested(resolved, keys)
        logger.debug("add requested=%s dependencies=%s", keys, [entry.key for entry in dependencies])

        files = self._prepare_files(resolved, config)
        existing = tuple(item.target_path for item in files if (self.project_root / item.target_path).exists())
        report = AddReport(
            requested=tuple(requested),
            dependencies=tuple(dependencies),
            files=tuple(files),
            existing=existing,
            import_hints=tuple(self._import_hints(requested, config)),
            dry_run=self.dry_run,
        )

        if existing and not self.dry_run:
            if self.confirm_overwrite is None or not self.confirm_overwrite(existing):
                logger.debug("add cancelled existing=%s", [str(path) for path in existing])
                return replace(report, cancelled=True)

        journal = FileSnapshotJournal()
        try:
            if not self.dry_run:
                self._write_files(files, journal)
            report = self._sync_exports(report, resolved, config, journal)
            report = self._plan_dependencies(report, resolved)
            if not self.dry_run:
                for command in report.install_commands:
                    command.execute(self.project_root, runner=self.runner)
        except Exception:
            journal.restore()
            raise
        return report

    def _prepare_files(self, resolved: Sequence[ResolvedComponent], config: Config) -> list[PreparedFile]:
        if not any(entry.component.files for entry in resolved):
            return []
        self.client.preload_component_manifest()
        alias_prefix = resolve_alias_prefix(config, self.framework)

        prepared: list[PreparedFile] = []
        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            for entry in resolved:
                sources = list(executor.map(self.client.get_component_file, [f.path for f in entry.component.files]))
                for component_file, source in zip(entry.component.files, sources):
                    content = self.normalizer.normalize(
                        source,
                        alias_prefix,
                        component_alias=config.components.import_alias,
                        components_dir=config.components.filesystem_path,
                    )
                    prepared.append(
                        PreparedFile(
                            component_key=entry.key,
                            component_name=entry.component.name,
                            source_path=component_file.path,
                            target_path=resolve_component_path(component_file.path, config),
                            content=content,
                            file_type=component_file.type,
                        )
                    )
        return prepared

    def _write_files(self, files: Sequence[PreparedFile], journal: FileSnapshotJournal) -> None:
        for item in files:
            target = self.project_root / item.target_path
            try:
                journal.write_text(target, item.content)
            except OSError as exc:
                raise NoctaError(
                    ErrorKind.FILE_WRITE_FAILED,
                    f"failed to write {item.target_path}",
                    resource=str(item.target_path),
                    cause=exc,
                ) from exc
            logger.debug("wrote component file path=%s", target)

    def _sync_exports(
        self,
        report: AddReport,
        resolved: Sequence[ResolvedComponent],
        config: Config,
        journal: FileSnapshotJournal,
    ) -> AddReport:
        if config.exports is None:
            return report
        exports_by_key = {entry.key: entry.component.exports for entry in resolved}
        modules = {
            item.target_path: exports_by_key.get(item.component_key, ())
            for item in report.files
            if item.file_type == "component"
        }
        update = plan_barrel_update(self.project_root, config.exports, config.components.filesystem_path, modules)
        if update is None:
            return report
        if not self.dry_run:
            target = self.project_root / update.path
            try:
                journal.write_text(target, update.content)
            except OSError as exc:
                raise NoctaError(
                    ErrorKind.FILE_WRITE_FAILED,
                    f"failed to write export barrel {update.path}",
                    resource=str(update.path),
                    cause=exc,
                ) from exc
            logger.debug("updated export barrel path=%s", target)
        return replace(report, barrel_update=update)

    def _plan_dependencies(self, report: AddReport, resolved: Sequence[ResolvedComponent]) -> AddReport:
        required: dict[str, str] = {}
        required_dev: dict[str, str] = {}
        for entry in resolved:
            required.update(entry.component.dependencies)
            required_dev.update(entry.component.dev_dependencies)
        if not required and not required_dev:
            return report

        installed = get_installed_dependencies(self.project_root)
        plan = self.reconciler.plan(required, installed)
        dev_plan = self.reconciler.plan(required_dev, installed)
        manager = self.package_manager or detect_package_manager(self.project_root)
        commands = tuple(
            command
            for command in (
                DependencyInstallPlan(manager, plan.to_install),
                DependencyInstallPlan(manager, dev_plan.to_install, dev=True),
            )
            if not command.empty
        )
        return replace(
            report,
            dependency_plan=plan,
            dev_dependency_plan=dev_plan,
            install_commands=commands,
        )

    def _import_hints(self, requested: Sequence[ResolvedComponent], config: Config) -> list[str]:
        base = component_import_base(config, resolve_alias_prefix(config, self.framework))
        return [hint for hint in (_import_hint(entry.component, base) for entry in requested) if hint]


def _import_hint(component: Component, base: str) -> str | None:
    if not component.files or not component.exports:
        return None
    module = PurePosixPath(component.files[0].path).stem
    return f'import {{ {", ".join(component.exports)} }} from "{join_import_path(base, module)}"'

