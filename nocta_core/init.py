"""Project initialization: config, required packages and shared helper assets."""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable

from .config import config_path, read_config, write_config
from .constants import CONFIG_FILE_NAME, ICONS_ASSET, UTILS_ASSET
from .deps import DependencyInstallPlan, RequirementIssue, check_project_requirements, detect_package_manager
from .errors import ErrorKind, NoctaError
from .paths import resolve_component_path, resolve_utils_path
from .registry import RegistryClient
from .rollback import InstallationTransaction
from .types import AliasPrefixes, Config, SimpleAlias

logger = logging.getLogger(__name__)

FRAMEWORKS = ("nextjs", "vite-react", "react-router", "unknown")

_FRAMEWORK_LAYOUTS: dict[str, tuple[str, str, str]] = {
    "nextjs": ("components/ui", "lib/utils", "app/globals.css"),
    "vite-react": ("src/components/ui", "src/lib/utils", "src/App.css"),
    "react-router": ("app/components/ui", "app/lib/utils", "app/app.css"),
    "unknown": ("src/components/ui", "src/lib/utils", "src/styles/globals.css"),
}


def default_config(framework: str) -> Config:
    components, utils, css = _FRAMEWORK_LAYOUTS.get(framework, _FRAMEWORK_LAYOUTS["unknown"])
    prefix = "~" if framework == "react-router" else "@"
    return Config(
        components=SimpleAlias(components),
        utils=SimpleAlias(utils),
        tailwind_css=css,
        alias_prefixes=AliasPrefixes(components=prefix, utils=prefix),
    )


@dataclass(frozen=True)
class InitReport:
    framework: str
    config: Config | None
    requirement_issues: tuple[RequirementIssue, ...] = ()
    install_command: DependencyInstallPlan | None = None
    created: tuple[Path, ...] = ()
    skipped: tuple[Path, ...] = ()
    already_initialized: bool = False
    dry_run: bool = False


class InitPipeline:
    def __init__(
        self,
        project_root: Path,
        client: RegistryClient,
        *,
        framework: str = "unknown",
        dry_run: bool = False,
        strict: bool = False,
        package_manager: str | None = None,
        runner: Callable[..., subprocess.CompletedProcess[Any]] = subprocess.run,
    ) -> None:
        if framework not in FRAMEWORKS:
            raise ValueError(f"unsupported framework '{framework}', expected one of {', '.join(FRAMEWORKS)}")
        self.project_root = project_root
        self.client = client
        self.framework = framework
        self.dry_run = dry_run
        self.strict = strict
        self.package_manager = package_manager
        self.runner = runner

    def run(self) -> InitReport:
        existing = read_config(self.project_root)
        if existing is not None:
            logger.debug("config already present path=%s", config_path(self.project_root))
            return InitReport(framework=self.framework, config=existing, already_initialized=True)

        issues = tuple(check_project_requirements(self.project_root, self.client.requirements()))
        if issues and self.strict:
            names = ", ".join(f"{issue.name}@{issue.required}" for issue in issues)
            raise NoctaError(ErrorKind.REQUIREMENTS_NOT_MET, f"project requirements not met: {names}")

        install_command = None
        if issues:
            install_command = DependencyInstallPlan(
                self.package_manager or detect_package_manager(self.project_root),
                {issue.name: issue.required for issue in issues},
            )

        config = default_config(self.framework)
        assets = (
            (UTILS_ASSET, resolve_utils_path(config)),
            (ICONS_ASSET, resolve_component_path(ICONS_ASSET, config)),
        )
        created: list[Path] = []
        skipped: list[Path] = []

        if self.dry_run:
            for _, target in assets:
                (skipped if (self.project_root / target).exists() else created).append(target)
            return InitReport(
                framework=self.framework,
                config=config,
                requirement_issues=issues,
                install_command=install_command,
                created=tuple(created),
                skipped=tuple(skipped),
                dry_run=True,
            )

        with InstallationTransaction(self.project_root) as transaction:
            transaction.record(config_path(self.project_root))
            try:
                write_config(self.project_root, config)
            except OSError as exc:
                raise NoctaError(
                    ErrorKind.FILE_WRITE_FAILED,
                    f"failed to write {CONFIG_FILE_NAME}",
                    resource=CONFIG_FILE_NAME,
                    cause=exc,
                ) from exc
            if install_command is not None:
                install_command.execute(self.project_root, runner=self.runner)
            for asset, target in assets:
                absolute = self.project_root / target
                if absolute.exists():
                    logger.debug("asset target exists, skipping path=%s", absolute)
                    skipped.append(target)
                    continue
                content = self.client.get_asset(asset)
                transaction.record(absolute)
                try:
                    absolute.parent.mkdir(parents=True, exist_ok=True)
                    absolute.write_text(content, encoding="utf-8")
                except OSError as exc:
                    raise NoctaError(
                        ErrorKind.FILE_WRITE_FAILED,
                        f"failed to write {target}",
                        resource=str(target),
                        cause=exc,
                    ) from exc
                created.append(target)

        return InitReport(
            framework=self.framework,
            config=config,
            requirement_issues=issues,
            install_command=install_command,
            created=tuple(created),
            skipped=tuple(skipped),
        )
