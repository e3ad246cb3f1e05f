"""Converge: declarative, idempotent resource provisioning in dependency order."""

from converge.errors import (
    ConfigurationError,
    ConvergeError,
    CycleDetectedError,
    DanglingReferenceError,
    DuplicateIdentityError,
    FatalProviderError,
    MissingProviderError,
    ProviderError,
    TransientProviderError,
)
from converge.spec import (
    Action,
    ApplyState,
    Deployment,
    Reference,
    Resource,
    ResourceId,
    RunStatus,
    ref,
)

__version__ = "0.3.1"

__all__ = [
    "Action",
    "ApplyState",
    "ConfigurationError",
    "ConvergeError",
    "CycleDetectedError",
    "DanglingReferenceError",
    "Deployment",
    "DuplicateIdentityError",
    "Engine",
    "EngineSettings",
    "FatalProviderError",
    "LocalStateProvider",
    "MissingProviderError",
    "ObservedState",
    "PlanResult",
    "ProviderError",
    "ProviderRegistry",
    "Reference",
    "Resource",
    "ResourceId",
    "ResourceProvider",
    "RunResult",
    "RunStatus",
    "TransientProviderError",
    "build_graph",
    "load_settings",
    "ref",
    "resolve_order",
]


def __getattr__(name: str):
    # Lazy imports keep `import converge` cheap for model-only users
    if name == "Engine":
        from converge.engine import Engine

        return Engine
    if name in ("EngineSettings", "load_settings"):
        from converge import config

        return getattr(config, name)
    if name in ("ObservedState", "ProviderRegistry", "ResourceProvider"):
        from converge import providers

        return getattr(providers, name)
    if name == "LocalStateProvider":
        from converge.providers.local import LocalStateProvider

        return LocalStateProvider
    if name in ("PlanResult", "RunResult"):
        from converge import results

        return getattr(results, name)
    if name == "build_graph":
        from converge.graph import build_graph

        return build_graph
    if name == "resolve_order":
        from converge.resolver import resolve_order

        return resolve_order
    raise AttributeError(f"module 'converge' has no attribute {name!r}")
