"""Error types raised by the nocta installation pipeline."""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    REGISTRY_UNAVAILABLE = "registry-unavailable"
    COMPONENT_NOT_FOUND = "component-not-found"
    COMPONENT_FILE_NOT_FOUND = "component-file-not-found"
    INVALID_PAYLOAD = "invalid-payload"
    CONFIG_MISSING = "config-missing"
    CONFIG_INVALID = "config-invalid"
    REQUIREMENTS_NOT_MET = "requirements-not-met"
    INSTALL_FAILED = "install-failed"
    FILE_WRITE_FAILED = "file-write-failed"


_HINTS: dict[ErrorKind, str] = {
    ErrorKind.REGISTRY_UNAVAILABLE: "Check your network connection or --registry-url and retry.",
    ErrorKind.COMPONENT_NOT_FOUND: 'Run "nocta list" to see available components.',
    ErrorKind.COMPONENT_FILE_NOT_FOUND: "The registry manifest is out of sync; run \"nocta cache clear --force\" and retry.",
    ErrorKind.INVALID_PAYLOAD: "The registry returned malformed data; run \"nocta cache clear --force\" and retry.",
    ErrorKind.CONFIG_MISSING: 'Run "nocta init" first.',
    ErrorKind.CONFIG_INVALID: "Fix or remove nocta.config.json and run \"nocta init\" again.",
    ErrorKind.REQUIREMENTS_NOT_MET: "Install the required packages and run the command again.",
    ErrorKind.INSTALL_FAILED: "Install the listed packages manually with your package manager.",
    ErrorKind.FILE_WRITE_FAILED: "Check file permissions in the project directory.",
}


class NoctaError(Exception):
    """Pipeline failure tagged with an explicit kind."""

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        *,
        resource: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.resource = resource
        self.cause = cause

    @property
    def hint(self) -> str:
        return _HINTS.get(self.kind, "")

    def __str__(self) -> str:
        message = super().__str__()
        if self.cause is not None:
            return f"{message}: {self.cause}"
        return message


def registry_unavailable(resource: str, cause: BaseException | None = None) -> NoctaError:
    return NoctaError(
        ErrorKind.REGISTRY_UNAVAILABLE,
        f"registry resource '{resource}' is unavailable and no cached copy exists",
        resource=resource,
        cause=cause,
    )


def component_not_found(name: str) -> NoctaError:
    return NoctaError(
        ErrorKind.COMPONENT_NOT_FOUND,
        f'component "{name}" not found in registry',
        resource=name,
    )


def component_file_not_found(path: str) -> NoctaError:
    return NoctaError(
        ErrorKind.COMPONENT_FILE_NOT_FOUND,
        f'component file "{path}" not found in registry manifest',
        resource=path,
    )
