"""Output map and resolver — thread values produced by applied resources.

Each resource publishes its observed properties exactly once, from the worker
that applied it. Readers only look up resources already marked ``applied``,
which the scheduler guarantees happens after the publish, so the read path
takes no lock.
"""

from __future__ import annotations

import threading
from typing import Any

from converge.errors import OutputAlreadySetError, OutputNotReadyError, UnresolvedOutputError
from converge.spec import ApplyState, Reference, ResourceId
from converge.state import StateTable


class OutputMap:
    """``(resource, property) -> value`` for one run."""

    def __init__(self) -> None:
        self._values: dict[ResourceId, dict[str, Any]] = {}
        self._write_lock = threading.Lock()

    def publish(self, rid: ResourceId, values: dict[str, Any]) -> None:
        with self._write_lock:
            if rid in self._values:
                raise OutputAlreadySetError(rid)
            self._values[rid] = dict(values)

    def has(self, rid: ResourceId) -> bool:
        return rid in self._values

    def get(self, rid: ResourceId, prop: str) -> Any:
        """Raises KeyError when the resource or property is absent."""
        return self._values[rid][prop]

    def for_resource(self, rid: ResourceId) -> dict[str, Any]:
        return dict(self._values.get(rid, {}))

    def as_dict(self) -> dict[str, dict[str, Any]]:
        return {str(rid): dict(values) for rid, values in self._values.items()}

    def __len__(self) -> int:
        return len(self._values)


class OutputResolver:
    def __init__(self, outputs: OutputMap, states: StateTable):
        self._outputs = outputs
        self._states = states

    def resolve(self, reference: Reference) -> Any:
        state = self._states.get(reference.target)
        if state is not ApplyState.APPLIED:
            raise OutputNotReadyError(reference, state)
        try:
            return self._outputs.get(reference.target, reference.property)
        except KeyError:
            raise UnresolvedOutputError(reference) from None

    def resolve_config(self, config: dict[str, Any]) -> dict[str, Any]:
        """Copy of ``config`` with every nested reference replaced by its value."""
        return {k: self._resolve_value(v) for k, v in config.items()}

    def _resolve_value(self, value: Any) -> Any:
        if isinstance(value, Reference):
            return self.resolve(value)
        if isinstance(value, dict):
            return {k: self._resolve_value(v) for k, v in value.items()}
        if isinstance(value, list):
            return [self._resolve_value(v) for v in value]
        return value
