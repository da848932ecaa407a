from __future__ import annotations

import base64
import json
import subprocess
from pathlib import Path

import pytest
import requests

from nocta_core.add import AddPipeline
from nocta_core.cache import RegistryCache
from nocta_core.config import write_config
from nocta_core.errors import ErrorKind, NoctaError
from nocta_core.registry import ComponentManifestCache, RegistryClient
from nocta_core.types import Config, ExportsTarget, SimpleAlias

BASE_URL = "http://registry.test"

REGISTRY = {
    "name": "nocta-ui",
    "version": "1.0.0",
    "components": {
        "table": {
            "name": "Table",
            "category": "data",
            "files": [{"name": "table.tsx", "path": "components/ui/table.tsx", "type": "component"}],
            "dependencies": {"clsx": "^2.0.0", "@tanstack/react-table": "^8.0.0"},
            "internalDependencies": ["spinner"],
            "exports": ["Table", "TableRow"],
            "variants": ["default", "striped"],
        },
        "spinner": {
            "name": "Spinner",
            "category": "feedback",
            "files": [{"name": "spinner.tsx", "path": "components/ui/spinner.tsx", "type": "component"}],
            "dependencies": {"clsx": "^2.0.0"},
            "devDependencies": {"@types/react": "^18.0.0"},
            "exports": ["Spinner"],
        },
    },
}

SOURCES = {
    "components/ui/table.tsx": "import { Spinner } from '@/components/ui/spinner'\nimport { cn } from '@/lib/utils'\n",
    "spinner.tsx": "import { cn } from \"@/app/lib/utils\"\nexport function Spinner() {}\n",
}


class _FakeResponse:
    def __init__(self, status_code: int, body: str = "", headers: dict[str, str] | None = None) -> None:
        self.status_code = status_code
        self.content = body.encode("utf-8")
        self.headers = headers or {}

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error", response=self)


class _FakeSession:
    def __init__(self, routes: dict[str, str]) -> None:
        self.routes = routes
        self.calls: list[str] = []

    def get(self, url: str, headers=None, timeout=None) -> _FakeResponse:
        self.calls.append(url)
        path = url[len(BASE_URL) + 1 :]
        body = self.routes.get(path)
        if body is None:
            return _FakeResponse(404)
        return _FakeResponse(200, body)


def _routes() -> dict[str, str]:
    return {
        "registry.json": json.dumps(REGISTRY),
        "components.json": json.dumps(
            {path: base64.b64encode(text.encode("utf-8")).decode("ascii") for path, text in SOURCES.items()}
        ),
    }


def _client(tmp_path: Path, session: _FakeSession) -> RegistryClient:
    return RegistryClient(
        BASE_URL,
        RegistryCache(tmp_path / "cache"),
        session=session,
        manifest_cache=ComponentManifestCache(),
    )


def _project(tmp_path: Path) -> Path:
    root = tmp_path / "app"
    root.mkdir()
    write_config(root, Config(components=SimpleAlias("app/components/ui"), utils=SimpleAlias("app/lib/utils")))
    (root / "package.json").write_text(json.dumps({"dependencies": {"clsx": "^2.1.0"}}), encoding="utf-8")
    module = root / "node_modules" / "clsx" / "package.json"
    module.parent.mkdir(parents=True)
    module.write_text(json.dumps({"version": "2.1.1"}), encoding="utf-8")
    return root


class _Recorder:
    def __init__(self, returncode: int = 0) -> None:
        self.returncode = returncode
        self.commands: list[list[str]] = []

    def __call__(self, command, **kwargs):
        self.commands.append(list(command))
        return subprocess.CompletedProcess(command, self.returncode)


def test_add_table_installs_spinner_as_dependency(tmp_path: Path) -> None:
    root = _project(tmp_path)
    session = _FakeSession(_routes())
    runner = _Recorder()

    report = AddPipeline(root, _client(tmp_path, session), framework="react-router", runner=runner).run(["Table"])

    assert [entry.key for entry in report.requested] == ["table"]
    assert [entry.key for entry in report.dependencies] == ["spinner"]
    assert [item.target_path for item in report.files] == [
        Path("app/components/ui/spinner.tsx"),
        Path("app/components/ui/table.tsx"),
    ]
    table = (root / "app/components/ui/table.tsx").read_text(encoding="utf-8")
    spinner = (root / "app/components/ui/spinner.tsx").read_text(encoding="utf-8")
    assert "from '~/components/ui/spinner'" in table
    assert "from '~/lib/utils'" in table
    assert 'from "~/lib/utils"' in spinner

    assert report.dependency_plan.to_install == {"@tanstack/react-table": "^8.0.0"}
    assert [entry.name for entry in report.dependency_plan.skipped] == ["clsx"]
    assert report.dev_dependency_plan.to_install == {"@types/react": "^18.0.0"}
    assert runner.commands == [
        ["npm", "install", "@tanstack/react-table@^8.0.0"],
        ["npm", "install", "--save-dev", "@types/react@^18.0.0"],
    ]
    assert report.import_hints == ('import { Table, TableRow } from "~/components/ui/table"',)
    assert session.calls.count(f"{BASE_URL}/components.json") == 1


def test_add_dry_run_writes_nothing(tmp_path: Path) -> None:
    root = _project(tmp_path)
    runner = _Recorder()

    report = AddPipeline(root, _client(tmp_path, _FakeSession(_routes())), dry_run=True, runner=runner).run(["table"])

    assert report.dry_run
    assert len(report.files) == 2
    assert not (root / "app/components/ui").exists()
    assert runner.commands == []
    assert report.dependency_plan.to_install == {"@tanstack/react-table": "^8.0.0"}
    assert [command.argv() for command in report.install_commands][0] == [
        "npm",
        "install",
        "@tanstack/react-table@^8.0.0",
    ]


def test_add_declined_overwrite_cancels(tmp_path: Path) -> None:
    root = _project(tmp_path)
    existing = root / "app/components/ui/spinner.tsx"
    existing.parent.mkdir(parents=True)
    existing.write_text("mine", encoding="utf-8")
    asked: list[list[Path]] = []

    def _decline(paths) -> bool:
        asked.append(list(paths))
        return False

    report = AddPipeline(
        root,
        _client(tmp_path, _FakeSession(_routes())),
        confirm_overwrite=_decline,
        runner=_Recorder(),
    ).run(["table"])

    assert report.cancelled
    assert asked == [[Path("app/components/ui/spinner.tsx")]]
    assert existing.read_text(encoding="utf-8") == "mine"
    assert not (root / "app/components/ui/table.tsx").exists()


def test_add_restores_files_when_install_fails(tmp_path: Path) -> None:
    root = _project(tmp_path)
    existing = root / "app/components/ui/spinner.tsx"
    existing.parent.mkdir(parents=True)
    existing.write_text("mine", encoding="utf-8")

    pipeline = AddPipeline(
        root,
        _client(tmp_path, _FakeSession(_routes())),
        confirm_overwrite=lambda paths: True,
        runner=_Recorder(returncode=1),
    )
    with pytest.raises(NoctaError) as excinfo:
        pipeline.run(["table"])

    assert excinfo.value.kind is ErrorKind.INSTALL_FAILED
    assert existing.read_text(encoding="utf-8") == "mine"
    assert not (root / "app/components/ui/table.tsx").exists()


def test_add_unknown_component(tmp_path: Path) -> None:
    root = _project(tmp_path)

    with pytest.raises(NoctaError) as excinfo:
        AddPipeline(root, _client(tmp_path, _FakeSession(_routes()))).run(["calendar"])

    assert excinfo.value.kind is ErrorKind.COMPONENT_NOT_FOUND


def test_add_requires_config(tmp_path: Path) -> None:
    with pytest.raises(NoctaError) as excinfo:
        AddPipeline(tmp_path, _client(tmp_path, _FakeSession(_routes()))).run(["table"])

    assert excinfo.value.kind is ErrorKind.CONFIG_MISSING


def test_add_missing_component_file(tmp_path: Path) -> None:
    root = _project(tmp_path)
    routes = _routes()
    routes["components.json"] = json.dumps({})

    with pytest.raises(NoctaError) as excinfo:
        AddPipeline(root, _client(tmp_path, _FakeSession(routes))).run(["spinner"])

    assert excinfo.value.kind is ErrorKind.COMPONENT_FILE_NOT_FOUND
    assert not (root / "app/components/ui").exists()


def _project_with_barrel(tmp_path: Path) -> Path:
    root = _project(tmp_path)
    write_config(
        root,
        Config(
            components=SimpleAlias("app/components/ui"),
            utils=SimpleAlias("app/lib/utils"),
            exports=ExportsTarget(barrel="app/components/index.ts"),
        ),
    )
    return root


def test_add_updates_components_barrel(tmp_path: Path) -> None:
    root = _project_with_barrel(tmp_path)

    report = AddPipeline(root, _client(tmp_path, _FakeSession(_routes())), runner=_Recorder()).run(["table"])

    barrel = (root / "app/components/index.ts").read_text(encoding="utf-8")
    assert 'export { Spinner } from "./ui/spinner";' in barrel
    assert 'export { Table, TableRow } from "./ui/table";' in barrel
    assert report.barrel_update is not None
    assert report.barrel_update.created


def test_add_dry_run_plans_barrel_without_writing(tmp_path: Path) -> None:
    root = _project_with_barrel(tmp_path)

    report = AddPipeline(root, _client(tmp_path, _FakeSession(_routes())), dry_run=True).run(["spinner"])

    assert report.barrel_update is not None
    assert report.barrel_update.statements == ('export { Spinner } from "./ui/spinner";',)
    assert not (root / "app/components/index.ts").exists()


def test_add_restores_barrel_when_install_fails(tmp_path: Path) -> None:
    root = _project_with_barrel(tmp_path)
    barrel = root / "app/components/index.ts"
    barrel.parent.mkdir(parents=True)
    barrel.write_text('export { Mine } from "./mine";\n', encoding="utf-8")

    with pytest.raises(NoctaError):
        AddPipeline(root, _client(tmp_path, _FakeSession(_routes())), runner=_Recorder(returncode=1)).run(["table"])

    assert barrel.read_text(encoding="utf-8") == 'export { Mine } from "./mine";\n'
