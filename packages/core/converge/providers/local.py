"""Local state provider — a simulated remote environment.

Keeps every resource it "provisions" in memory and, when given a state file,
persists them as JSON so repeated runs observe what earlier runs created.
Runtime outputs (ids, endpoints, host names) come from the kind catalog.
"""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Any

from converge.errors import ResourceNotFound
from converge.kinds import KindCatalog, get_catalog
from converge.providers import ObservedState, ResourceProvider
from converge.spec import Resource, ResourceId

log = logging.getLogger(__name__)

DEFAULT_SUBSCRIPTION = "00000000-0000-0000-0000-000000000000"
_STATE_VERSION = 1


class LocalStateProvider(ResourceProvider):
    def __init__(
        self,
        state_file: str | Path | None = None,
        *,
        catalog: KindCatalog | None = None,
        subscription: str = DEFAULT_SUBSCRIPTION,
    ):
        self._path = Path(state_file) if state_file else None
        self._catalog = catalog or get_catalog()
        self._subscription = subscription
        self._lock = threading.Lock()
        self._records: dict[str, dict[str, Any]] = self._load()
        self.mutations = 0
        self.calls: list[tuple[str, str]] = []

    # Provider capability

    def read(self, resource_id: ResourceId) -> ObservedState | None:
        with self._lock:
            self.calls.append(("read", str(resource_id)))
            record = self._records.get(str(resource_id))
            if record is None:
                return None
            return _observed(record)

    def create_or_update(self, resource: Resource, config: dict[str, Any]) -> ObservedState:
        key = str(resource.id)
        with self._lock:
            self.calls.append(("create_or_update", key))
            existing = self._records.get(key)
            outputs = dict(existing["outputs"]) if existing else {}
            for prop, value in self._render_outputs(resource, config).items():
                outputs.setdefault(prop, value)
            record = {
                "kind": resource.kind,
                "name": resource.name,
                "location": resource.location,
                "properties": dict(config),
                "outputs": outputs,
            }
            self._records[key] = record
            self.mutations += 1
            self._save()
        log.debug("local state: wrote %s", key)
        return _observed(record)

    def update(self, resource: Resource, patch: dict[str, Any]) -> ObservedState:
        key = str(resource.id)
        with self._lock:
            self.calls.append(("update", key))
            record = self._records.get(key)
            if record is None:
                raise ResourceNotFound(f"{key} does not exist", {"resource": key})
            record["properties"].update(patch)
            if resource.location:
                record["location"] = resource.location
            self.mutations += 1
            self._save()
        log.debug("local state: patched %s (%s)", key, ", ".join(sorted(patch)))
        return _observed(record)

    def delete(self, resource_id: ResourceId) -> None:
        key = str(resource_id)
        with self._lock:
            self.calls.append(("delete", key))
            if key not in self._records:
                raise ResourceNotFound(f"{key} does not exist", {"resource": key})
            del self._records[key]
            self.mutations += 1
            self._save()

    def supports_partial_update(self, kind: str) -> bool:
        return self._catalog.supports_partial_update(kind)

    # Helpers

    def seed(
        self,
        resource_id: ResourceId,
        properties: dict[str, Any],
        *,
        outputs: dict[str, Any] | None = None,
        location: str | None = None,
    ) -> None:
        """Record a resource as if it had been changed out-of-band (not counted as a mutation).

        Outputs and location already on record are kept unless given.
        """
        key = str(resource_id)
        with self._lock:
            existing = self._records.get(key, {})
            self._records[key] = {
                "kind": resource_id.kind,
                "name": resource_id.name,
                "location": location if location is not None else existing.get("location"),
                "properties": dict(properties),
                "outputs": dict(outputs if outputs is not None else existing.get("outputs", {})),
            }
            self._save()

    def resource_ids(self) -> list[ResourceId]:
        with self._lock:
            return [ResourceId(kind=r["kind"], name=r["name"]) for r in self._records.values()]

    def _render_outputs(self, resource: Resource, config: dict[str, Any]) -> dict[str, str]:
        fields: dict[str, Any] = {k: v for k, v in config.items() if isinstance(v, (str, int, float, bool))}
        fields.update(
            name=resource.name,
            kind=resource.kind,
            location=resource.location or "",
            subscription=self._subscription,
            parent_name=resource.parent.name if resource.parent else "",
            parent_kind=resource.parent.kind if resource.parent else "",
        )
        outputs = self._catalog.render_outputs(resource.kind, fields)
        outputs.setdefault("id", f"/{resource.kind}/{resource.name}")
        return outputs

    def _load(self) -> dict[str, dict[str, Any]]:
        if self._path is None or not self._path.exists():
            return {}
        data = json.loads(self._path.read_text())
        return dict(data.get("resources", {}))

    def _save(self) -> None:
        if self._path is None:
            return
        payload = {"version": _STATE_VERSION, "resources": self._records}
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(payload, indent=2, sort_keys=True, default=str) + "\n")


def _observed(record: dict[str, Any]) -> ObservedState:
    return ObservedState(
        properties=dict(record.get("properties", {})),
        outputs=dict(record.get("outputs", {})),
        location=record.get("location"),
    )
