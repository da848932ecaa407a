"""Expand requested component names into their internal dependency closure."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable

from .errors import component_not_found
from .types import Component, Registry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedComponent:
    key: str
    component: Component


class DependencyResolver:
    def __init__(self, registry: Registry) -> None:
        self.registry = registry

    def lookup_key(self, name: str) -> str:
        """Map a user-typed name to its registry key, matching key or display name."""
        wanted = str(name or "").strip()
        if wanted in self.registry.components:
            return wanted
        lowered = wanted.lower()
        for key, component in self.registry.components.items():
            if key.lower() == lowered or component.name.lower() == lowered:
                return key
        raise component_not_found(wanted)

    def resolve(self, name: str, visited: set[str]) -> list[ResolvedComponent]:
        """Return ``name`` preceded by its transitive internal dependencies.

        ``visited`` is shared across calls so a cycle or a repeated dependency
        terminates with an empty result instead of recursing again.
        """
        if name in visited:
            return []
        visited.add(name)
        component = self.registry.components.get(name)
        if component is None:
            raise component_not_found(name)

        resolved: list[ResolvedComponent] = []
        for dependency in component.internal_dependencies:
            resolved.extend(self.resolve(dependency, visited))
        resolved.append(ResolvedComponent(key=name, component=component))
        return resolved

    def resolve_many(self, names: Iterable[str]) -> list[ResolvedComponent]:
        merged: list[ResolvedComponent] = []
        seen: set[str] = set()
        for name in names:
            for entry in self.resolve(name, set()):
                if entry.key in seen:
                    continue
                seen.add(entry.key)
                merged.append(entry)
        logger.debug("resolved components=%s", [entry.key for entry in merged])
        return merged


def split_requested(
    entries: Iterable[ResolvedComponent],
    requested: Iterable[str],
) -> tuple[list[ResolvedComponent], list[ResolvedComponent]]:
    wanted = set(requested)
    primary: list[ResolvedComponent] = []
    dependencies: list[ResolvedComponent] = []
    for entry in entries:
        (primary if entry.key in wanted else dependencies).append(entry)
    return primary, dependencies
