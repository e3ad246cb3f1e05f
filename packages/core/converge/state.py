"""Per-resource ApplyState table for a single run."""

from __future__ import annotations

import threading
from typing import Iterable

from converge.errors import InvalidTransitionError
from converge.spec import ApplyState, ResourceId

# Failed is terminal; pending -> failed is how blocked dependents are recorded.
_ALLOWED: dict[ApplyState, frozenset[ApplyState]] = {
    ApplyState.PENDING: frozenset({ApplyState.IN_PROGRESS, ApplyState.FAILED}),
    ApplyState.IN_PROGRESS: frozenset({ApplyState.APPLIED, ApplyState.FAILED}),
    ApplyState.APPLIED: frozenset(),
    ApplyState.FAILED: frozenset(),
}


class StateTable:
    """Forward-only state machine per resource, safe to update from workers."""

    def __init__(self, resource_ids: Iterable[ResourceId]):
        self._states: dict[ResourceId, ApplyState] = {rid: ApplyState.PENDING for rid in resource_ids}
        self._lock = threading.Lock()

    def get(self, rid: ResourceId) -> ApplyState:
        return self._states[rid]

    def transition(self, rid: ResourceId, target: ApplyState) -> None:
        with self._lock:
            current = self._states[rid]
            if target not in _ALLOWED[current]:
                raise InvalidTransitionError(rid, current, target)
            self._states[rid] = target

    def in_state(self, state: ApplyState) -> list[ResourceId]:
        with self._lock:
            return [rid for rid, s in self._states.items() if s is state]

    def snapshot(self) -> dict[ResourceId, ApplyState]:
        with self._lock:
            return dict(self._states)
