from __future__ import annotations

import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import List, NoReturn, Optional, Sequence

import click
import typer

from nocta_core.add import AddPipeline, AddReport
from nocta_core.cache import RegistryCache, default_cache_root
from nocta_core.constants import REGISTRY_URL_ENV
from nocta_core.deps import Reason
from nocta_core.errors import NoctaError
from nocta_core.init import FRAMEWORKS, InitPipeline, InitReport
from nocta_core.registry import ComponentManifestCache, RegistryClient
from nocta_core.settings import NoctaSettings, load_settings

app = typer.Typer(help="Add nocta UI components to your project", no_args_is_help=True)
cache_app = typer.Typer(help="Inspect or clear the local registry cache")
app.add_typer(cache_app, name="cache")

LOG_FORMAT = "%(levelname)s %(name)s: %(message)s"


@dataclass(frozen=True)
class CliState:
    project_root: Path
    settings: NoctaSettings
    cache_root: Path

    @classmethod
    def for_project(cls, project_root: Path, settings: NoctaSettings) -> "CliState":
        cache_root = (settings.cache_dir or default_cache_root(project_root)).resolve()
        return cls(project_root=project_root, settings=settings, cache_root=cache_root)

    def cache(self) -> RegistryCache:
        return RegistryCache(self.cache_root)

    def client(self) -> RegistryClient:
        return RegistryClient.from_settings(
            self.settings,
            cache=self.cache(),
            manifest_cache=ComponentManifestCache(),
        )


# -------------------------
# Helpers
# -------------------------
def _state(ctx: typer.Context) -> CliState:
    state = ctx.obj
    if not isinstance(state, CliState):
        raise typer.BadParameter("CLI state is not initialized")
    return state


def _fail(command: str, exc: NoctaError) -> NoReturn:
    typer.echo(f"[nocta:{command}] error: {exc}", err=True)
    if exc.hint:
        typer.echo(f"[nocta:{command}] hint: {exc.hint}", err=True)
    raise typer.Exit(1)


def _print_add_report(report: AddReport) -> None:
    prefix = "[dry-run] " if report.dry_run else ""
    if report.dependencies:
        typer.echo(f"[nocta:add] {prefix}internal dependencies:")
        for entry in report.dependencies:
            typer.echo(f"  - {entry.component.name}")
    for entry in report.requested:
        typer.echo(f"[nocta:add] {prefix}component: {entry.component.name}")

    if report.existing and report.dry_run:
        typer.echo(f"[nocta:add] {prefix}would overwrite existing files:")
        for path in report.existing:
            typer.echo(f"  {path}")
    if report.cancelled:
        typer.echo("[nocta:add] installation cancelled")
        return

    verb = "would write" if report.dry_run else "wrote"
    for item in report.files:
        typer.echo(f"[nocta:add] {prefix}{verb} {item.target_path} ({item.component_name})")
    if report.barrel_update is not None:
        barrel = report.barrel_update
        if report.dry_run:
            action = "would create" if barrel.created else "would update"
        else:
            action = "created" if barrel.created else "updated"
        typer.echo(f"[nocta:add] {prefix}{action} exports in {barrel.path}")
        for statement in barrel.statements:
            typer.echo(f"  {statement}")

    for plan in (report.dependency_plan, report.dev_dependency_plan):
        if plan.skipped:
            typer.echo(f"[nocta:add] {prefix}dependencies already satisfied:")
            for entry in plan.skipped:
                typer.echo(f"  {entry.describe()}")
        updates = [entry for entry in plan.entries if entry.reason in (Reason.INCOMPATIBLE, Reason.UNKNOWN)]
        if updates:
            typer.echo(f"[nocta:add] {prefix}incompatible dependencies updated:")
            for entry in updates:
                typer.echo(f"  {entry.describe()}")

    for command in report.install_commands:
        action = "would run" if report.dry_run else "ran"
        typer.echo(f"[nocta:add] {prefix}{action}: {command.command_line()}")

    if report.import_hints:
        typer.echo("[nocta:add] import and use:")
        for hint in report.import_hints:
            typer.echo(f"  {hint}")
    for entry in report.requested:
        if entry.component.variants:
            typer.echo(f"[nocta:add] {entry.component.name} variants: {', '.join(entry.component.variants)}")
        if entry.component.sizes:
            typer.echo(f"[nocta:add] {entry.component.name} sizes: {', '.join(entry.component.sizes)}")


def _print_init_report(report: InitReport) -> None:
    if report.already_initialized:
        typer.echo("[nocta:init] nocta.config.json already exists, project is already initialized")
        return
    prefix = "[dry-run] " if report.dry_run else ""
    for issue in report.requirement_issues:
        installed = issue.installed or "not found"
        typer.echo(
            f"[nocta:init] {prefix}requirement {issue.name}@{issue.required} "
            f"({issue.reason.value}, installed: {installed})"
        )
    if report.install_command is not None:
        action = "would run" if report.dry_run else "ran"
        typer.echo(f"[nocta:init] {prefix}{action}: {report.install_command.command_line()}")
    verb = "would create" if report.dry_run else "created"
    typer.echo(f"[nocta:init] {prefix}{verb} nocta.config.json (framework={report.framework})")
    for path in report.created:
        typer.echo(f"[nocta:init] {prefix}{verb} {path}")
    for path in report.skipped:
        typer.echo(f"[nocta:init] {path} already exists, skipping")


# -------------------------
# Commands
# -------------------------
@app.callback()
def root(
    ctx: typer.Context,
    registry_url: Optional[str] = typer.Option(
        None, "--registry-url", envvar=REGISTRY_URL_ENV, help="Registry base URL"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
    cwd: Optional[Path] = typer.Option(None, "--cwd", help="Project directory (default: current directory)"),
) -> None:
    logging.basicConfig(level=logging.DEBUG if verbose else logging.WARNING, format=LOG_FORMAT)
    project_root = (cwd or Path.cwd()).resolve()
    ctx.obj = CliState.for_project(project_root, load_settings(registry_url=registry_url))


@app.command("init")
def init(
    ctx: typer.Context,
    framework: str = typer.Option("unknown", "--framework", help=f"One of: {', '.join(FRAMEWORKS)}"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Show what would change without writing"),
    strict: bool = typer.Option(False, "--strict", help="Fail instead of installing missing requirements"),
) -> None:
    """Create nocta.config.json and the shared helper files."""
    state = _state(ctx)
    if framework not in FRAMEWORKS:
        raise typer.BadParameter(f"expected one of {', '.join(FRAMEWORKS)}", param_hint="--framework")
    pipeline = InitPipeline(
        state.project_root,
        state.client(),
        framework=framework,
        dry_run=dry_run,
        strict=strict,
    )
    try:
        report = pipeline.run()
    except NoctaError as exc:
        _fail("init", exc)
    _print_init_report(report)


@app.command("add")
def add(
    ctx: typer.Context,
    names: List[str] = typer.Argument(..., help="Component names"),
    framework: str = typer.Option("unknown", "--framework", help=f"One of: {', '.join(FRAMEWORKS)}"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Resolve and fetch without writing or installing"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Overwrite existing files without asking"),
) -> None:
    """Add components and their dependencies to the project."""
    state = _state(ctx)
    if framework not in FRAMEWORKS:
        raise typer.BadParameter(f"expected one of {', '.join(FRAMEWORKS)}", param_hint="--framework")

    def _confirm(paths: Sequence[Path]) -> bool:
        if yes:
            return True
        typer.echo("[nocta:add] the following files already exist:")
        for path in paths:
            typer.echo(f"  {path}")
        return typer.confirm("Do you want to overwrite these files?", default=False)

    pipeline = AddPipeline(
        state.project_root,
        state.client(),
        framework=framework,
        dry_run=dry_run,
        confirm_overwrite=_confirm,
    )
    try:
        report = pipeline.run(names)
    except NoctaError as exc:
        _fail("add", exc)
    _print_add_report(report)
    if report.cancelled:
        raise typer.Exit(1)


@app.command("list")
def list_components(ctx: typer.Context) -> None:
    """List the components available in the registry."""
    client = _state(ctx).client()
    try:
        registry = client.get_registry()
    except NoctaError as exc:
        _fail("list", exc)

    groups: list[tuple[str, str, list[str]]] = [
        (category.name, category.description, sorted(category.components))
        for category in sorted(registry.categories.values(), key=lambda item: item.name)
    ]
    if not groups:
        groups = [
            (name, "", sorted(keys)) for name, keys in sorted(client.components_by_category().items())
        ]

    typer.echo("[nocta:list] available components:")
    for name, description, keys in groups:
        typer.echo(f"{name}" + (f" - {description}" if description else ""))
        for key in keys:
            component = registry.components.get(key)
            if component is None:
                continue
            typer.echo(f"  {key}: {component.description}")
            if component.variants:
                typer.echo(f"    variants: {', '.join(component.variants)}")
            if component.sizes:
                typer.echo(f"    sizes: {', '.join(component.sizes)}")
    typer.echo("[nocta:list] add one with: nocta add <component-name>")


@cache_app.command("info")
def cache_info(ctx: typer.Context) -> None:
    """Print the cache directory and its size."""
    cache = _state(ctx).cache()
    typer.echo(f"[nocta:cache] directory: {cache.root}")
    if not cache.root.exists():
        typer.echo("[nocta:cache] entries: 0")
        return
    files = [path for path in cache.root.rglob("*") if path.is_file()]
    size = sum(path.stat().st_size for path in files)
    typer.echo(f"[nocta:cache] entries: {len(files)} ({size} bytes)")


@cache_app.command("clear")
def cache_clear(
    ctx: typer.Context,
    force: bool = typer.Option(False, "--force", "-y", help="Confirm cache deletion"),
) -> None:
    """Remove all cached registry data."""
    cache = _state(ctx).cache()
    if not force:
        typer.echo("[nocta:cache] cache not cleared, re-run with --force to confirm deletion")
        raise typer.Exit(1)
    try:
        cache.clear()
    except OSError as exc:
        typer.echo(f"[nocta:cache] error: failed to clear {cache.root}: {exc}", err=True)
        raise typer.Exit(1)
    typer.echo(f"[nocta:cache] removed {cache.root}")


def main(argv: Optional[Sequence[str]] = None, *, start_dir: Optional[Path] = None) -> int:
    args = list(sys.argv[1:] if argv is None else argv)
    if start_dir is not None:
        args = ["--cwd", str(start_dir), *args]
    try:
        rv = app(args=args, standalone_mode=False, prog_name="nocta")
    except click.exceptions.Exit as exc:
        return int(exc.exit_code)
    except click.ClickException as exc:
        exc.show()
        return int(exc.exit_code)
    except click.exceptions.Abort:
        typer.echo("Aborted!", err=True)
        return 1
    return int(rv or 0)


if __name__ == "__main__":
    raise SystemExit(main())
