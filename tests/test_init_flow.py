from __future__ import annotations

import json
import subprocess
from pathlib import Path

import pytest
import requests

from nocta_core.cache import RegistryCache
from nocta_core.config import read_config
from nocta_core.errors import ErrorKind, NoctaError
from nocta_core.init import InitPipeline, default_config
from nocta_core.registry import RegistryClient

BASE_URL = "http://registry.test"


class _FakeResponse:
    def __init__(self, status_code: int, body: str = "") -> None:
        self.status_code = status_code
        self.content = body.encode("utf-8")
        self.headers: dict[str, str] = {}

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error", response=self)


class _FakeSession:
    def __init__(self, routes: dict[str, str]) -> None:
        self.routes = routes

    def get(self, url: str, headers=None, timeout=None) -> _FakeResponse:
        body = self.routes.get(url[len(BASE_URL) + 1 :])
        return _FakeResponse(404) if body is None else _FakeResponse(200, body)


def _routes(requirements: dict[str, str] | None = None) -> dict[str, str]:
    return {
        "registry.json": json.dumps({"name": "nocta-ui", "version": "1", "components": {}, "requirements": requirements or {}}),
        "lib/utils.ts": "export function cn() {}\n",
        "icons/icons.ts": "export const Icons = {}\n",
    }


def _client(tmp_path: Path, routes: dict[str, str]) -> RegistryClient:
    return RegistryClient(BASE_URL, RegistryCache(tmp_path / "cache"), session=_FakeSession(routes))


def _runner(returncode: int = 0):
    calls: list[list[str]] = []

    def _run(command, **kwargs):
        calls.append(list(command))
        return subprocess.CompletedProcess(command, returncode)

    _run.calls = calls
    return _run


@pytest.mark.parametrize(
    ("framework", "components", "utils", "css", "prefix"),
    [
        ("nextjs", "components/ui", "lib/utils", "app/globals.css", "@"),
        ("vite-react", "src/components/ui", "src/lib/utils", "src/App.css", "@"),
        ("react-router", "app/components/ui", "app/lib/utils", "app/app.css", "~"),
        ("unknown", "src/components/ui", "src/lib/utils", "src/styles/globals.css", "@"),
    ],
)
def test_default_config_per_framework(framework, components, utils, css, prefix) -> None:
    config = default_config(framework)

    assert config.components.filesystem_path == components
    assert config.utils.filesystem_path == utils
    assert config.tailwind_css == css
    assert config.alias_prefixes.components == prefix


def test_init_writes_config_and_assets(tmp_path: Path) -> None:
    root = tmp_path / "project"
    root.mkdir()

    report = InitPipeline(root, _client(tmp_path, _routes()), framework="nextjs").run()

    assert read_config(root).components.filesystem_path == "components/ui"
    assert (root / "lib/utils.ts").read_text(encoding="utf-8") == "export function cn() {}\n"
    assert (root / "components/ui/icons.ts").read_text(encoding="utf-8") == "export const Icons = {}\n"
    assert report.created == (Path("lib/utils.ts"), Path("components/ui/icons.ts"))
    assert report.install_command is None


def test_init_skips_existing_assets(tmp_path: Path) -> None:
    root = tmp_path / "project"
    (root / "lib").mkdir(parents=True)
    (root / "lib/utils.ts").write_text("mine", encoding="utf-8")

    report = InitPipeline(root, _client(tmp_path, _routes()), framework="nextjs").run()

    assert report.skipped == (Path("lib/utils.ts"),)
    assert (root / "lib/utils.ts").read_text(encoding="utf-8") == "mine"


def test_init_rolls_back_on_failure(tmp_path: Path) -> None:
    root = tmp_path / "project"
    root.mkdir()
    routes = _routes()
    del routes["icons/icons.ts"]

    with pytest.raises(NoctaError) as excinfo:
        InitPipeline(root, _client(tmp_path, routes), framework="vite-react").run()

    assert excinfo.value.kind is ErrorKind.REGISTRY_UNAVAILABLE
    assert not (root / "nocta.config.json").exists()
    assert not (root / "src/lib/utils.ts").exists()


def test_init_installs_missing_requirements(tmp_path: Path) -> None:
    root = tmp_path / "project"
    root.mkdir()
    (root / "pnpm-lock.yaml").write_text("", encoding="utf-8")
    runner = _runner()

    report = InitPipeline(
        root,
        _client(tmp_path, _routes({"tailwindcss": "^4.0.0"})),
        framework="nextjs",
        runner=runner,
    ).run()

    assert [issue.name for issue in report.requirement_issues] == ["tailwindcss"]
    assert runner.calls == [["pnpm", "add", "tailwindcss@^4.0.0"]]


def test_init_strict_mode_rejects_missing_requirements(tmp_path: Path) -> None:
    root = tmp_path / "project"
    root.mkdir()

    with pytest.raises(NoctaError) as excinfo:
        InitPipeline(root, _client(tmp_path, _routes({"react": "^18.0.0"})), strict=True).run()

    assert excinfo.value.kind is ErrorKind.REQUIREMENTS_NOT_MET
    assert not (root / "nocta.config.json").exists()


def test_init_install_failure_rolls_back_config(tmp_path: Path) -> None:
    root = tmp_path / "project"
    root.mkdir()

    with pytest.raises(NoctaError) as excinfo:
        InitPipeline(
            root,
            _client(tmp_path, _routes({"react": "^18.0.0"})),
            runner=_runner(returncode=1),
        ).run()

    assert excinfo.value.kind is ErrorKind.INSTALL_FAILED
    assert not (root / "nocta.config.json").exists()


def test_init_dry_run_and_already_initialized(tmp_path: Path) -> None:
    root = tmp_path / "project"
    root.mkdir()
    client = _client(tmp_path, _routes())

    dry = InitPipeline(root, client, framework="react-router", dry_run=True).run()
    assert dry.dry_run
    assert dry.created == (Path("app/lib/utils.ts"), Path("app/components/ui/icons.ts"))
    assert not (root / "nocta.config.json").exists()

    InitPipeline(root, client, framework="react-router").run()
    again = InitPipeline(root, client, framework="nextjs").run()
    assert again.already_initialized
    assert again.config.components.filesystem_path == "app/components/ui"


def test_init_rejects_unknown_framework(tmp_path: Path) -> None:
    with pytest.raises(ValueError):
        InitPipeline(tmp_path, _client(tmp_path, _routes()), framework="angular")


def test_init_rolls_back_partially_written_asset(tmp_path: Path, monkeypatch) -> None:
    root = tmp_path / "project"
    root.mkdir()
    real_write_text = Path.write_text

    def _truncated_write(self: Path, data: str, *args, **kwargs) -> int:
        if self.name != "icons.ts":
            return real_write_text(self, data, *args, **kwargs)
        real_write_text(self, data[:3], *args, **kwargs)
        raise OSError("No space left on device")

    monkeypatch.setattr(Path, "write_text", _truncated_write)

    with pytest.raises(NoctaError) as excinfo:
        InitPipeline(root, _client(tmp_path, _routes()), framework="nextjs").run()

    assert excinfo.value.kind is ErrorKind.FILE_WRITE_FAILED
    assert not (root / "components/ui/icons.ts").exists()
    assert not (root / "lib/utils.ts").exists()
    assert not (root / "nocta.config.json").exists()


def test_init_rolls_back_partially_written_config(tmp_path: Path, monkeypatch) -> None:
    root = tmp_path / "project"
    root.mkdir()
    real_write_text = Path.write_text

    def _truncated_write(self: Path, data: str, *args, **kwargs) -> int:
        if self.name != "nocta.config.json":
            return real_write_text(self, data, *args, **kwargs)
        real_write_text(self, data[:5], *args, **kwargs)
        raise OSError("No space left on device")

    monkeypatch.setattr(Path, "write_text", _truncated_write)

    with pytest.raises(NoctaError) as excinfo:
        InitPipeline(root, _client(tmp_path, _routes()), framework="nextjs").run()

    assert excinfo.value.kind is ErrorKind.FILE_WRITE_FAILED
    assert not (root / "nocta.config.json").exists()
