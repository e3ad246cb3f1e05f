"""Error taxonomy for Converge.

Build-time errors (duplicate identities, dangling references, cycles, missing
providers) are fatal and raised before any provider call. Provider errors are
raised by provider capabilities and are captured per resource by the
executor; a run with failed resources is a normal result, not an exception.

Exit codes used by the CLI:
- 0: Success
- 1: Partial failure (some resources failed or were skipped)
- 10: Configuration error
- 11: Provider error
- 127: Unknown/internal error
"""

from __future__ import annotations

from enum import IntEnum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from converge.spec import ApplyState, Reference, ResourceId


class ExitCode(IntEnum):
    SUCCESS = 0
    PARTIAL_FAILURE = 1
    CONFIG_ERROR = 10
    PROVIDER_ERROR = 11
    UNKNOWN_ERROR = 127


class ConvergeError(Exception):
    """Base exception for Converge errors with exit code support."""

    exit_code: ExitCode = ExitCode.UNKNOWN_ERROR

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(ConvergeError):
    """The declared graph is invalid. Raised before anything is provisioned."""

    exit_code = ExitCode.CONFIG_ERROR


class DuplicateIdentityError(ConfigurationError):
    def __init__(self, resource_id: ResourceId):
        super().__init__(f"Duplicate resource identity: {resource_id}", {"resource": str(resource_id)})
        self.resource_id = resource_id


class DanglingReferenceError(ConfigurationError):
    """A parent, depends_on entry or config reference names an undeclared resource."""

    def __init__(self, source: ResourceId | str, missing: ResourceId, via: str):
        super().__init__(
            f"{source} {via} {missing}, which is not declared",
            {"resource": str(source), "missing": str(missing), "via": via},
        )
        self.source = source
        self.missing = missing
        self.via = via


class CycleDetectedError(ConfigurationError):
    def __init__(self, cycle: list[ResourceId]):
        path = " -> ".join(str(r) for r in [*cycle, cycle[0]]) if cycle else ""
        super().__init__(f"Dependency cycle detected: {path}", {"cycle": [str(r) for r in cycle]})
        self.cycle = cycle


class MissingProviderError(ConfigurationError):
    def __init__(self, kind: str):
        super().__init__(f"No provider registered for resource kind {kind!r}", {"kind": kind})
        self.kind = kind


class ProviderError(ConvergeError):
    """Raised by a provider capability when a remote call fails."""

    exit_code = ExitCode.PROVIDER_ERROR
    retryable: bool = False


class TransientProviderError(ProviderError):
    """Retryable failure, e.g. throttling or a temporarily unavailable API."""

    retryable = True


class FatalProviderError(ProviderError):
    """Non-retryable failure; fails the resource immediately."""


class ResourceNotFound(ProviderError):
    """The remote side has no such resource (delete of an absent resource)."""


class UnresolvedOutputError(ConvergeError):
    """An applied resource did not produce the property a reference asks for."""

    def __init__(self, reference: Reference):
        super().__init__(
            f"{reference.target} did not produce output {reference.property!r}",
            {"reference": str(reference)},
        )
        self.reference = reference


class OutputNotReadyError(ConvergeError):
    """A reference was resolved before its target reached ``applied``."""

    def __init__(self, reference: Reference, state: ApplyState):
        super().__init__(
            f"Cannot resolve {reference}: {reference.target} is {state.value}",
            {"reference": str(reference), "state": state.value},
        )
        self.reference = reference
        self.state = state


class OutputAlreadySetError(ConvergeError):
    def __init__(self, resource_id: ResourceId):
        super().__init__(f"Outputs for {resource_id} were already published", {"resource": str(resource_id)})
        self.resource_id = resource_id


class InvalidTransitionError(ConvergeError):
    def __init__(self, resource_id: ResourceId, current: ApplyState, target: ApplyState):
        super().__init__(
            f"{resource_id}: cannot move from {current.value} to {target.value}",
            {"resource": str(resource_id), "from": current.value, "to": target.value},
        )
        self.resource_id = resource_id


def format_error_message(error: ConvergeError) -> str:
    """Format an error message for display to users."""
    msg = error.message
    if error.details:
        detail_str = ", ".join(f"{k}={v}" for k, v in error.details.items())
        msg = f"{msg} ({detail_str})"
    return msg
