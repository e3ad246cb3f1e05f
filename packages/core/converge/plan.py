"""Plan — a read-only preview of what an apply would do.

Walks the resolved order calling only ``provider.read``. References to
resources that would be created, or to properties that would change, cannot
be known before apply; they are substituted with ``KNOWN_AFTER_APPLY``, which
never equals an observed value and so always shows up as drift.
"""

from __future__ import annotations

import logging
from typing import Any

from converge.errors import ProviderError
from converge.graph import ResourceGraph
from converge.reconciler import Reconciler
from converge.results import PlanEntry, PlanResult
from converge.spec import Action, Reference, ResourceId

log = logging.getLogger(__name__)


class _KnownAfterApply:
    _instance: _KnownAfterApply | None = None

    def __new__(cls) -> _KnownAfterApply:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "(known after apply)"


KNOWN_AFTER_APPLY = _KnownAfterApply()


def build_plan(name: str, graph: ResourceGraph, order: list[ResourceId], reconciler: Reconciler) -> PlanResult:
    known: dict[ResourceId, dict[str, Any]] = {}
    # None means every output of that resource is unknown until apply.
    unknown: dict[ResourceId, set[str] | None] = {}
    entries: list[PlanEntry] = []

    for rid in order:
        resource = graph.get(rid)
        desired = _planned(resource.config, known, unknown)
        try:
            decision = reconciler.decide(resource, desired)
        except ProviderError as exc:
            log.warning("plan: cannot read %s: %s", rid, exc.message)
            entries.append(PlanEntry(resource_id=rid, action=None, error=exc.message))
            unknown[rid] = None
            continue

        entries.append(PlanEntry(resource_id=rid, action=decision.action, drifted=list(decision.drifted)))
        if decision.action is Action.CREATE or decision.observed is None:
            unknown[rid] = None
        else:
            known[rid] = decision.observed.exported()
            unknown[rid] = set(decision.drifted)

    return PlanResult(deployment=name, order=list(order), entries=entries)


def _planned(value: Any, known: dict[ResourceId, dict[str, Any]], unknown: dict[ResourceId, set[str] | None]) -> Any:
    if isinstance(value, Reference):
        pending = unknown.get(value.target)
        if pending is None or value.property in pending:
            return KNOWN_AFTER_APPLY
        return known[value.target].get(value.property, KNOWN_AFTER_APPLY)
    if isinstance(value, dict):
        return {k: _planned(v, known, unknown) for k, v in value.items()}
    if isinstance(value, list):
        return [_planned(v, known, unknown) for v in value]
    return value
