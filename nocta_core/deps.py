"""npm dependency reconciliation and package-manager invocation."""

from __future__ import annotations

import json
import logging
import re
import shlex
import subprocess
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Mapping

from semantic_version import NpmSpec, Version

from .errors import ErrorKind, NoctaError

logger = logging.getLogger(__name__)

_MAJOR_RE = re.compile(r"\d+")
_RANGE_PREFIX_RE = re.compile(r"^[v^~]")
_ALWAYS_COMPATIBLE_UPGRADES = frozenset({"react", "react-dom"})


class Action(str, Enum):
    INSTALL = "install"
    SKIP = "skip"


class Reason(str, Enum):
    MISSING = "missing"
    SATISFIED = "satisfied"
    NEWER_VERSION_COMPATIBLE = "newer-version-compatible"
    NEWER_MAJOR_ASSUMED_COMPATIBLE = "newer-major-assumed-compatible"
    INCOMPATIBLE = "incompatible"
    UNKNOWN = "unknown"


class IssueReason(str, Enum):
    MISSING = "missing"
    OUTDATED = "outdated"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class Reconciliation:
    name: str
    required: str
    installed: str | None
    action: Action
    reason: Reason
    detail: str = ""

    def describe(self) -> str:
        if self.reason is Reason.SATISFIED:
            return f"{self.name}@{self.installed} (satisfies {self.required})"
        if self.reason is Reason.NEWER_VERSION_COMPATIBLE:
            return f"{self.name}@{self.installed} (newer version compatible with {self.required})"
        if self.reason is Reason.NEWER_MAJOR_ASSUMED_COMPATIBLE:
            return f"{self.name}@{self.installed} (newer major version, assuming compatibility)"
        if self.reason is Reason.INCOMPATIBLE:
            return f"{self.name}: installed {self.installed}, required {self.required}"
        if self.reason is Reason.UNKNOWN:
            return f"{self.name}: could not compare {self.installed} with {self.required} ({self.detail})"
        return f"{self.name}@{self.required}"


@dataclass(frozen=True)
class InstallPlan:
    entries: tuple[Reconciliation, ...] = ()

    @property
    def to_install(self) -> dict[str, str]:
        return {entry.name: entry.required for entry in self.entries if entry.action is Action.INSTALL}

    @property
    def skipped(self) -> list[Reconciliation]:
        return [entry for entry in self.entries if entry.action is Action.SKIP]

    @property
    def incompatible(self) -> list[Reconciliation]:
        return [entry for entry in self.entries if entry.reason is Reason.INCOMPATIBLE]

    @property
    def unknown(self) -> list[Reconciliation]:
        return [entry for entry in self.entries if entry.reason is Reason.UNKNOWN]


class VersionReconciler:
    """Decide which required packages need installing given what is already present.

    Comparison failures never abort the pipeline: an entry whose versions cannot
    be parsed is scheduled for installation with reason ``unknown``.
    """

    def classify(self, name: str, required_range: str, installed_version: str | None) -> Reconciliation:
        if not installed_version:
            return Reconciliation(name, required_range, None, Action.INSTALL, Reason.MISSING)

        def _result(action: Action, reason: Reason, detail: str = "") -> Reconciliation:
            return Reconciliation(name, required_range, installed_version, action, reason, detail)

        try:
            installed = Version(installed_version.strip().lstrip("v"))
            if name in _ALWAYS_COMPATIBLE_UPGRADES and installed.major >= _required_major(required_range):
                return _result(Action.SKIP, Reason.NEWER_VERSION_COMPATIBLE)
            if NpmSpec(required_range).match(installed):
                return _result(Action.SKIP, Reason.SATISFIED)
            if installed.major > _required_major(required_range):
                return _result(Action.SKIP, Reason.NEWER_MAJOR_ASSUMED_COMPATIBLE)
            return _result(Action.INSTALL, Reason.INCOMPATIBLE)
        except ValueError as exc:
            logger.warning("could not compare versions for %s: %s", name, exc)
            return _result(Action.INSTALL, Reason.UNKNOWN, str(exc))

    def plan(self, required: Mapping[str, str], installed: Mapping[str, str]) -> InstallPlan:
        entries = tuple(self.classify(name, spec, installed.get(name)) for name, spec in required.items())
        logger.debug(
            "dependency plan install=%s skip=%s",
            [entry.name for entry in entries if entry.action is Action.INSTALL],
            [entry.name for entry in entries if entry.action is Action.SKIP],
        )
        return InstallPlan(entries=entries)


@dataclass(frozen=True)
class RequirementIssue:
    name: str
    required: str
    installed: str | None
    declared: str | None
    reason: IssueReason


def check_project_requirements(project_root: Path, requirements: Mapping[str, str]) -> list[RequirementIssue]:
    declared = _declared_dependencies(project_root)
    issues: list[RequirementIssue] = []
    for name, required_range in requirements.items():
        if not _module_manifest_path(project_root, name).exists():
            issues.append(
                RequirementIssue(
                    name=name,
                    required=required_range,
                    installed=None,
                    declared=declared.get(name),
                    reason=IssueReason.MISSING,
                )
            )
            continue

        installed_spec = _read_installed_version(project_root, name) or declared.get(name)
        resolved = _parse_version(installed_spec) if installed_spec else None
        requirement = _parse_range(required_range)

        range_satisfied = resolved is not None and requirement is not None and requirement.match(resolved)
        installed_major = _extract_major(installed_spec) if installed_spec else None
        required_major = _extract_major(required_range)
        higher_major = installed_major is not None and required_major is not None and installed_major > required_major
        if range_satisfied or higher_major:
            continue

        installed_text = str(resolved) if resolved is not None else None
        declared_text = installed_spec if installed_spec and installed_spec != installed_text else None
        issues.append(
            RequirementIssue(
                name=name,
                required=required_range,
                installed=installed_text,
                declared=declared_text,
                reason=IssueReason.OUTDATED if resolved is not None else IssueReason.UNKNOWN,
            )
        )
    return issues


def get_installed_dependencies(project_root: Path) -> dict[str, str]:
    """Declared dependencies, preferring the version actually present in node_modules."""
    resolved: dict[str, str] = {}
    for name, spec in _declared_dependencies(project_root).items():
        resolved[name] = _read_installed_version(project_root, name) or spec
    return resolved


def detect_package_manager(project_root: Path) -> str:
    if (project_root / "yarn.lock").exists():
        return "yarn"
    if (project_root / "pnpm-lock.yaml").exists():
        return "pnpm"
    if (project_root / "bun.lockb").exists():
        return "bun"
    return "npm"


@dataclass(frozen=True)
class DependencyInstallPlan:
    package_manager: str
    dependencies: Mapping[str, str] = field(default_factory=dict)
    dev: bool = False

    @property
    def empty(self) -> bool:
        return not self.dependencies

    def argv(self) -> list[str]:
        specs = sorted(f"{name}@{version}" for name, version in self.dependencies.items())
        if self.package_manager == "npm":
            command = ["npm", "install"]
            if self.dev:
                command.append("--save-dev")
        else:
            command = [self.package_manager, "add"]
            if self.dev:
                command.append("-D")
        return [*command, *specs]

    def command_line(self) -> str:
        return shlex.join(self.argv())

    def execute(
        self,
        project_root: Path,
        *,
        runner: Callable[..., subprocess.CompletedProcess[Any]] = subprocess.run,
    ) -> None:
        if self.empty:
            return
        command = self.argv()
        logger.debug("package manager command cwd=%s cmd=%s", project_root, command)
        try:
            result = runner(command, check=False, cwd=str(project_root))
        except FileNotFoundError as exc:
            raise NoctaError(
                ErrorKind.INSTALL_FAILED,
                f"{self.package_manager} not found in PATH",
                resource=self.package_manager,
                cause=exc,
            ) from exc
        if result.returncode != 0:
            raise NoctaError(
                ErrorKind.INSTALL_FAILED,
                f"{self.package_manager} exited with status {result.returncode}",
                resource=self.command_line(),
            )


def _module_manifest_path(project_root: Path, name: str) -> Path:
    return project_root.joinpath("node_modules", *name.split("/"), "package.json")


def _read_json(path: Path) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError):
        return None


def _declared_dependencies(project_root: Path) -> dict[str, str]:
    payload = _read_json(project_root / "package.json")
    if not isinstance(payload, dict):
        return {}
    declared: dict[str, str] = {}
    for section in ("dependencies", "devDependencies"):
        values = payload.get(section)
        if isinstance(values, dict):
            declared.update({str(name): str(spec) for name, spec in values.items()})
    return declared


def _read_installed_version(project_root: Path, name: str) -> str | None:
    payload = _read_json(_module_manifest_path(project_root, name))
    if not isinstance(payload, dict):
        return None
    version = payload.get("version")
    return version if isinstance(version, str) else None


def _parse_version(value: str) -> Version | None:
    try:
        return Version(value.strip().lstrip("v"))
    except ValueError:
        return None


def _parse_range(value: str) -> NpmSpec | None:
    try:
        return NpmSpec(value)
    except ValueError:
        return None


def _extract_major(value: str) -> int | None:
    match = _MAJOR_RE.search(value.strip().lstrip("v"))
    return int(match.group(0)) if match else None


def _required_major(required_range: str) -> int:
    """Major of the range floor, e.g. ``^18.2.0`` -> 18. Raises ``ValueError`` for compound ranges."""
    return Version(_RANGE_PREFIX_RE.sub("", required_range.strip(), count=1)).major
