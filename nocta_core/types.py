"""Registry and project configuration datatypes."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping


def _ensure_mapping(data: Any, label: str) -> Mapping[str, Any]:
    if isinstance(data, Mapping):
        return data
    raise ValueError(f"expected mapping for {label}")


def _str_map(data: Any) -> dict[str, str]:
    if not isinstance(data, Mapping):
        return {}
    return {str(key): str(value) for key, value in data.items() if key is not None and value is not None}


def _str_tuple(data: Any) -> tuple[str, ...]:
    if not isinstance(data, (list, tuple)):
        return ()
    return tuple(str(item) for item in data if item is not None)


@dataclass(frozen=True)
class ComponentFile:
    name: str
    path: str
    type: str

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ComponentFile":
        raw = _ensure_mapping(data, "component file")
        path = str(raw.get("path") or "").strip()
        if not path:
            raise ValueError("component file is missing 'path'")
        name = str(raw.get("name") or path.rsplit("/", 1)[-1])
        return cls(name=name, path=path, type=str(raw.get("type") or "component"))


@dataclass(frozen=True)
class Component:
    name: str
    description: str = ""
    category: str = ""
    files: tuple[ComponentFile, ...] = ()
    dependencies: Mapping[str, str] = field(default_factory=dict)
    dev_dependencies: Mapping[str, str] = field(default_factory=dict)
    internal_dependencies: tuple[str, ...] = ()
    exports: tuple[str, ...] = ()
    variants: tuple[str, ...] = ()
    sizes: tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], *, key: str | None = None) -> "Component":
        raw = _ensure_mapping(data, f"component '{key}'" if key else "component")
        files_raw = raw.get("files") or []
        if not isinstance(files_raw, list):
            raise ValueError(f"component '{key}' has invalid 'files'")
        name = str(raw.get("name") or key or "").strip()
        if not name:
            raise ValueError("component is missing 'name'")
        return cls(
            name=name,
            description=str(raw.get("description") or ""),
            category=str(raw.get("category") or ""),
            files=tuple(ComponentFile.from_dict(item) for item in files_raw),
            dependencies=_str_map(raw.get("dependencies")),
            dev_dependencies=_str_map(raw.get("devDependencies")),
            internal_dependencies=_str_tuple(raw.get("internalDependencies")),
            exports=_str_tuple(raw.get("exports")),
            variants=_str_tuple(raw.get("variants")),
            sizes=_str_tuple(raw.get("sizes")),
        )


@dataclass(frozen=True)
class CategoryInfo:
    name: str
    description: str = ""
    components: tuple[str, ...] = ()


@dataclass(frozen=True)
class Registry:
    name: str
    version: str
    components: Mapping[str, Component]
    categories: Mapping[str, CategoryInfo] = field(default_factory=dict)
    requirements: Mapping[str, str] = field(default_factory=dict)
    description: str | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Registry":
        raw = _ensure_mapping(data, "registry")
        components_raw = _ensure_mapping(raw.get("components") or {}, "registry components")
        components = {
            str(key): Component.from_dict(value, key=str(key)) for key, value in components_raw.items()
        }
        categories: dict[str, CategoryInfo] = {}
        categories_raw = raw.get("categories") or {}
        if isinstance(categories_raw, Mapping):
            for key, value in categories_raw.items():
                if not isinstance(value, Mapping):
                    continue
                categories[str(key)] = CategoryInfo(
                    name=str(value.get("name") or key),
                    description=str(value.get("description") or ""),
                    components=_str_tuple(value.get("components")),
                )
        description = raw.get("description")
        return cls(
            name=str(raw.get("name") or ""),
            version=str(raw.get("version") or ""),
            components=components,
            categories=categories,
            requirements=_str_map(raw.get("requirements")),
            description=str(description) if description is not None else None,
        )


@dataclass(frozen=True)
class SimpleAlias:
    path: str

    @property
    def filesystem_path(self) -> str:
        return self.path

    @property
    def import_alias(self) -> str | None:
        return None

    def to_json(self) -> Any:
        return self.path


@dataclass(frozen=True)
class ImportOverrideAlias:
    path: str
    import_prefix: str | None = None

    @property
    def filesystem_path(self) -> str:
        return self.path

    @property
    def import_alias(self) -> str | None:
        if not self.import_prefix:
            return None
        return self.import_prefix.rstrip("/")

    def to_json(self) -> Any:
        payload: dict[str, str] = {"filesystem": self.path}
        if self.import_prefix:
            payload["import"] = self.import_prefix
        return payload


AliasTarget = SimpleAlias | ImportOverrideAlias


def parse_alias(value: Any, *, label: str = "alias") -> AliasTarget:
    if value is None:
        return SimpleAlias("")
    if isinstance(value, str):
        return SimpleAlias(value)
    if isinstance(value, Mapping):
        filesystem = value.get("filesystem")
        if not isinstance(filesystem, str):
            raise ValueError(f"{label} object requires a 'filesystem' string")
        import_prefix = value.get("import")
        return ImportOverrideAlias(
            path=filesystem,
            import_prefix=str(import_prefix) if import_prefix else None,
        )
    raise ValueError(f"{label} must be a string or an object")


@dataclass(frozen=True)
class AliasPrefixes:
    components: str | None = None
    utils: str | None = None


@dataclass(frozen=True)
class ExportsTarget:
    """Barrel file that ``add`` keeps in sync with installed component exports."""

    barrel: str
    strategy: str = "named"

    @classmethod
    def from_dict(cls, data: Any) -> "ExportsTarget":
        raw = _ensure_mapping(data, "exports.components")
        strategy = str(raw.get("strategy") or "named").lower()
        if strategy != "named":
            raise ValueError(f"unsupported export strategy '{strategy}'")
        return cls(barrel=str(raw.get("barrel") or "").strip(), strategy=strategy)

    def to_json(self) -> dict[str, str]:
        return {"barrel": self.barrel, "strategy": self.strategy}


@dataclass(frozen=True)
class Config:
    components: AliasTarget
    utils: AliasTarget
    tailwind_css: str = ""
    style: str = "default"
    alias_prefixes: AliasPrefixes | None = None
    schema: str | None = None
    exports: ExportsTarget | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Config":
        raw = _ensure_mapping(data, "config")
        aliases = _ensure_mapping(raw.get("aliases") or {}, "config aliases")
        tailwind = raw.get("tailwind") if isinstance(raw.get("tailwind"), Mapping) else {}
        prefixes_raw = raw.get("aliasPrefixes")
        prefixes = None
        if isinstance(prefixes_raw, Mapping):
            prefixes = AliasPrefixes(
                components=str(prefixes_raw["components"]) if prefixes_raw.get("components") else None,
                utils=str(prefixes_raw["utils"]) if prefixes_raw.get("utils") else None,
            )
        exports_raw = raw.get("exports")
        exports = None
        if isinstance(exports_raw, Mapping) and exports_raw.get("components") is not None:
            exports = ExportsTarget.from_dict(exports_raw["components"])
        schema = raw.get("$schema")
        return cls(
            components=parse_alias(aliases.get("components"), label="aliases.components"),
            utils=parse_alias(aliases.get("utils"), label="aliases.utils"),
            tailwind_css=str(tailwind.get("css") or ""),
            style=str(raw.get("style") or "default"),
            alias_prefixes=prefixes,
            schema=str(schema) if schema else None,
            exports=exports,
        )

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {}
        if self.schema:
            payload["$schema"] = self.schema
        payload["style"] = self.style
        payload["tailwind"] = {"css": self.tailwind_css}
        payload["aliases"] = {
            "components": self.components.to_json(),
            "utils": self.utils.to_json(),
        }
        if self.alias_prefixes is not None:
            prefixes: dict[str, str] = {}
            if self.alias_prefixes.components:
                prefixes["components"] = self.alias_prefixes.components
            if self.alias_prefixes.utils:
                prefixes["utils"] = self.alias_prefixes.utils
            payload["aliasPrefixes"] = prefixes
        if self.exports is not None:
            payload["exports"] = {"components": self.exports.to_json()}
        return payload
