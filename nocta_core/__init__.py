"""Core installation pipeline for nocta UI components."""

from .add import AddPipeline, AddReport, PreparedFile
from .cache import RegistryCache
from .config import read_config, require_config, write_config
from .deps import (
    Action,
    DependencyInstallPlan,
    InstallPlan,
    IssueReason,
    Reason,
    Reconciliation,
    RequirementIssue,
    VersionReconciler,
    check_project_requirements,
    detect_package_manager,
    get_installed_dependencies,
)
from .errors import ErrorKind, NoctaError
from .exports import BarrelUpdate, plan_barrel_update
from .imports import ImportNormalizer, normalize_imports, resolve_alias_prefix
from .init import InitPipeline, InitReport, default_config
from .paths import resolve_component_path
from .registry import ComponentManifestCache, RegistryClient
from .resolver import DependencyResolver, ResolvedComponent, split_requested
from .rollback import FileSnapshotJournal, InstallationTransaction
from .settings import NoctaSettings, load_settings
from .types import (
    AliasPrefixes,
    CategoryInfo,
    Component,
    ComponentFile,
    Config,
    ExportsTarget,
    ImportOverrideAlias,
    Registry,
    SimpleAlias,
)

__all__ = [
    "AddPipeline",
    "AddReport",
    "PreparedFile",
    "InitPipeline",
    "InitReport",
    "default_config",
    "RegistryCache",
    "RegistryClient",
    "ComponentManifestCache",
    "DependencyResolver",
    "ResolvedComponent",
    "split_requested",
    "VersionReconciler",
    "Reconciliation",
    "InstallPlan",
    "Action",
    "Reason",
    "RequirementIssue",
    "IssueReason",
    "DependencyInstallPlan",
    "check_project_requirements",
    "detect_package_manager",
    "get_installed_dependencies",
    "BarrelUpdate",
    "plan_barrel_update",
    "ImportNormalizer",
    "normalize_imports",
    "resolve_alias_prefix",
    "resolve_component_path",
    "InstallationTransaction",
    "FileSnapshotJournal",
    "NoctaError",
    "ErrorKind",
    "NoctaSettings",
    "load_settings",
    "read_config",
    "require_config",
    "write_config",
    "Registry",
    "Component",
    "ComponentFile",
    "CategoryInfo",
    "Config",
    "SimpleAlias",
    "ImportOverrideAlias",
    "AliasPrefixes",
    "ExportsTarget",
]
