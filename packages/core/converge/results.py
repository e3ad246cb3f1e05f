"""Result types for plan and provisioning runs."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from converge.outputs import OutputMap
from converge.spec import Action, ApplyState, ResourceId, RunStatus

_MUTATING = (Action.CREATE, Action.UPDATE, Action.DELETE)


@dataclass
class ResourceOutcome:
    """What happened to one resource during a run."""

    resource_id: ResourceId
    state: ApplyState
    action: Action | None = None
    drifted: list[str] = field(default_factory=list)
    attempts: int = 0
    error: str | None = None
    error_type: str | None = None
    blocked_by: ResourceId | None = None  # failed dependency that prevented this one from starting
    cancelled: bool = False
    duration_seconds: float = 0.0

    @property
    def skipped(self) -> bool:
        """Never started: blocked by a failed dependency or left pending by cancellation."""
        return self.blocked_by is not None or self.state is ApplyState.PENDING

    def to_dict(self) -> dict[str, Any]:
        return {
            "resource": str(self.resource_id),
            "state": self.state.value,
            "action": self.action.value if self.action else None,
            "drifted": list(self.drifted),
            "attempts": self.attempts,
            "error": self.error,
            "error_type": self.error_type,
            "blocked_by": str(self.blocked_by) if self.blocked_by else None,
            "cancelled": self.cancelled,
            "skipped": self.skipped,
        }


@dataclass
class RunResult:
    """Result of an apply or destroy run. Partial failure is a normal outcome."""

    deployment: str
    operation: str
    order: list[ResourceId]
    outcomes: dict[ResourceId, ResourceOutcome]
    outputs: OutputMap = field(default_factory=OutputMap)
    named_outputs: dict[str, Any] = field(default_factory=dict)
    cancelled: bool = False
    duration_seconds: float = 0.0

    @property
    def status(self) -> RunStatus:
        if all(o.state is ApplyState.APPLIED for o in self.outcomes.values()):
            return RunStatus.SUCCESS
        return RunStatus.PARTIAL_FAILURE

    @property
    def success(self) -> bool:
        return self.status is RunStatus.SUCCESS

    @property
    def applied(self) -> list[ResourceId]:
        return [rid for rid, o in self.outcomes.items() if o.state is ApplyState.APPLIED]

    @property
    def failed(self) -> list[ResourceId]:
        """Resources whose own provider work failed."""
        return [rid for rid, o in self.outcomes.items() if o.state is ApplyState.FAILED and not o.skipped]

    @property
    def skipped(self) -> list[ResourceId]:
        return [rid for rid, o in self.outcomes.items() if o.skipped]

    @property
    def mutations(self) -> int:
        return sum(1 for o in self.outcomes.values() if o.action in _MUTATING)

    def actions(self) -> dict[ResourceId, Action | None]:
        return {rid: o.action for rid, o in self.outcomes.items()}

    def output(self, resource_id: ResourceId | str, prop: str) -> Any:
        return self.outputs.get(ResourceId.model_validate(resource_id), prop)

    def summary(self) -> str:
        counts: dict[str, int] = {}
        for o in self.outcomes.values():
            if o.state is ApplyState.APPLIED and o.action:
                counts[o.action.value] = counts.get(o.action.value, 0) + 1
        parts = [f"{n} {action}" for action, n in sorted(counts.items())]
        if self.failed:
            parts.append(f"{len(self.failed)} failed")
        if self.skipped:
            parts.append(f"{len(self.skipped)} skipped")
        if self.cancelled:
            parts.append("cancelled")
        body = ", ".join(parts) if parts else "nothing to do"
        return f"{self.operation} {self.status.value}: {body}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "deployment": self.deployment,
            "operation": self.operation,
            "status": self.status.value,
            "order": [str(rid) for rid in self.order],
            "resources": [o.to_dict() for o in self.outcomes.values()],
            "outputs": self.outputs.as_dict(),
            "named_outputs": dict(self.named_outputs),
            "cancelled": self.cancelled,
            "summary": self.summary(),
        }


@dataclass
class PlanEntry:
    resource_id: ResourceId
    action: Action | None
    drifted: list[str] = field(default_factory=list)
    error: str | None = None  # read failed, so the action is unknown


@dataclass
class PlanResult:
    """Read-only preview of what an apply would do."""

    deployment: str
    order: list[ResourceId]
    entries: list[PlanEntry] = field(default_factory=list)

    @property
    def has_changes(self) -> bool:
        return any(e.action is not Action.NOOP for e in self.entries)

    def count(self, action: Action) -> int:
        return sum(1 for e in self.entries if e.action is action)

    def summary(self) -> str:
        if not self.has_changes:
            return "No changes. Remote state matches the deployment."
        parts = [
            f"{self.count(Action.CREATE)} to create",
            f"{self.count(Action.UPDATE)} to update",
            f"{self.count(Action.NOOP)} unchanged",
        ]
        errors = sum(1 for e in self.entries if e.error)
        if errors:
            parts.append(f"{errors} unreadable")
        return "Plan: " + ", ".join(parts) + "."

    def to_dict(self) -> dict[str, Any]:
        return {
            "deployment": self.deployment,
            "order": [str(rid) for rid in self.order],
            "resources": [
                {
                    "resource": str(e.resource_id),
                    "action": e.action.value if e.action else None,
                    "drifted": list(e.drifted),
                    "error": e.error,
                }
                for e in self.entries
            ],
            "summary": self.summary(),
        }
