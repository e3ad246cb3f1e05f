"""Provider capabilities — the pluggable per-kind bridge to a remote environment.

A provider reads, creates/updates and deletes resources of the kinds it
serves. Failures are signalled by raising ``TransientProviderError``
(retried by the executor) or ``FatalProviderError`` (fails the resource at
once); any other exception is treated as fatal.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Iterable

from converge.errors import MissingProviderError
from converge.spec import Resource, ResourceId


@dataclass
class ObservedState:
    """What the remote side reports for one resource."""

    properties: dict[str, Any] = field(default_factory=dict)
    outputs: dict[str, Any] = field(default_factory=dict)  # runtime-assigned: ids, endpoints, host names
    location: str | None = None

    def exported(self) -> dict[str, Any]:
        """Values made available to referencing resources (outputs win over properties)."""
        values = dict(self.properties)
        if self.location is not None:
            values.setdefault("location", self.location)
        values.update(self.outputs)
        return values


class ResourceProvider(ABC):
    """Abstract base for provider capabilities."""

    @abstractmethod
    def read(self, resource_id: ResourceId) -> ObservedState | None:
        """Return the observed state, or None when the resource does not exist."""

    @abstractmethod
    def create_or_update(self, resource: Resource, config: dict[str, Any]) -> ObservedState:
        """Converge the remote resource to ``config`` (fully resolved, no references)."""

    @abstractmethod
    def delete(self, resource_id: ResourceId) -> None:
        """Remove the resource. Raises ResourceNotFound if it does not exist."""

    def update(self, resource: Resource, patch: dict[str, Any]) -> ObservedState:
        """Apply only the drifted properties. Only called when partial update is supported.

        ``patch`` holds config properties only. When ``location`` drifted the
        patch may be empty; the provider must converge to ``resource.location``.
        """
        raise NotImplementedError(f"{type(self).__name__} does not support partial updates")

    def supports_partial_update(self, kind: str) -> bool:
        return False


class ProviderRegistry:
    """Maps resource kinds to the provider that serves them."""

    def __init__(self, default: ResourceProvider | None = None) -> None:
        self._providers: dict[str, ResourceProvider] = {}
        self._default = default

    def register(self, kind: str, provider: ResourceProvider) -> None:
        if not kind:
            raise ValueError("Resource kind is required")
        self._providers[kind] = provider

    def get(self, kind: str) -> ResourceProvider:
        provider = self._providers.get(kind, self._default)
        if provider is None:
            raise MissingProviderError(kind)
        return provider

    def kinds(self) -> list[str]:
        return sorted(self._providers)

    def check(self, kinds: Iterable[str]) -> None:
        """Raise MissingProviderError for the first kind nobody serves."""
        for kind in kinds:
            self.get(kind)


__all__ = ["ObservedState", "ProviderRegistry", "ResourceProvider"]
