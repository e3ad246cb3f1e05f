"""State reconciler — decides and performs create, update or no-op per resource.

Desired configuration always wins on drift. Only declared properties are
compared; anything the remote side carries beyond them is left alone.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from converge.errors import ResourceNotFound
from converge.outputs import OutputMap
from converge.providers import ObservedState, ProviderRegistry
from converge.spec import Action, Resource, ResourceId

log = logging.getLogger(__name__)


@dataclass
class Decision:
    action: Action
    drifted: list[str] = field(default_factory=list)
    observed: ObservedState | None = None


@dataclass
class ReconcileResult:
    resource_id: ResourceId
    action: Action
    drifted: list[str] = field(default_factory=list)
    observed: ObservedState | None = None
    partial: bool = False  # update sent only the drifted properties


def diff_properties(desired: dict[str, Any], observed: ObservedState, location: str | None = None) -> list[str]:
    """Names of desired properties whose observed value differs, in declaration order."""
    drifted = [
        name for name, value in desired.items() if name not in observed.properties or observed.properties[name] != value
    ]
    if location and observed.location and location != observed.location:
        drifted.append("location")
    return drifted


class Reconciler:
    """Compares desired config to ``provider.read`` and applies the minimal action.

    When given an OutputMap, every successful apply (including a no-op)
    publishes the resource's observed values into it.
    """

    def __init__(self, providers: ProviderRegistry, outputs: OutputMap | None = None):
        self._providers = providers
        self._outputs = outputs

    def decide(self, resource: Resource, desired: dict[str, Any]) -> Decision:
        observed = self._providers.get(resource.kind).read(resource.id)
        if observed is None:
            return Decision(Action.CREATE)
        drifted = diff_properties(desired, observed, resource.location)
        if not drifted:
            return Decision(Action.NOOP, observed=observed)
        return Decision(Action.UPDATE, drifted=drifted, observed=observed)

    def apply(self, resource: Resource, desired: dict[str, Any]) -> ReconcileResult:
        provider = self._providers.get(resource.kind)
        decision = self.decide(resource, desired)
        partial = False

        if decision.action is Action.NOOP:
            observed = decision.observed
        elif decision.action is Action.CREATE:
            observed = provider.create_or_update(resource, desired)
        elif provider.supports_partial_update(resource.kind):
            patch = {name: desired[name] for name in decision.drifted if name in desired}
            observed = provider.update(resource, patch)
            partial = True
        else:
            observed = provider.create_or_update(resource, desired)

        if decision.action is Action.NOOP:
            log.debug("%s: no changes", resource.id)
        else:
            detail = f" ({', '.join(decision.drifted)})" if decision.drifted else ""
            log.info("%s: %s%s", resource.id, decision.action.value, detail)

        if self._outputs is not None:
            self._outputs.publish(resource.id, observed.exported())

        return ReconcileResult(
            resource_id=resource.id,
            action=decision.action,
            drifted=decision.drifted,
            observed=observed,
            partial=partial,
        )

    def remove(self, resource: Resource) -> ReconcileResult:
        """Delete the resource if it exists; absent resources are a no-op."""
        provider = self._providers.get(resource.kind)
        if provider.read(resource.id) is None:
            return ReconcileResult(resource_id=resource.id, action=Action.NOOP)
        try:
            provider.delete(resource.id)
        except ResourceNotFound:
            return ReconcileResult(resource_id=resource.id, action=Action.NOOP)
        log.info("%s: deleted", resource.id)
        return ReconcileResult(resource_id=resource.id, action=Action.DELETE)
