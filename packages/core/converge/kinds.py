"""Resource-kind catalog loaded from YAML kind definitions.

Each file under data/kinds/ describes one provider namespace: for every kind
a display name, whether the kind supports partial (patch) updates, and
templates for the runtime outputs the remote side assigns on creation.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

_KINDS_DIR = Path(__file__).parent / "data" / "kinds"


class KindDef:
    """A single resource kind definition."""

    __slots__ = ("kind", "namespace", "name", "description", "partial_update", "outputs")

    def __init__(
        self,
        kind: str,
        namespace: str,
        name: str,
        description: str,
        partial_update: bool,
        outputs: dict[str, str],
    ):
        self.kind = kind
        self.namespace = namespace
        self.name = name
        self.description = description
        self.partial_update = partial_update
        self.outputs = outputs

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "namespace": self.namespace,
            "name": self.name,
            "description": self.description,
            "partial_update": self.partial_update,
            "outputs": dict(self.outputs),
        }


class _Fields(dict):
    def __missing__(self, key: str) -> str:
        return ""


class KindCatalog:
    """Catalog of known resource kinds, loaded once from disk."""

    def __init__(self, kinds_dir: str | Path | None = None):
        self._dir = Path(kinds_dir) if kinds_dir else _KINDS_DIR
        self._kinds: dict[str, KindDef] = {}
        self._load()

    def _load(self) -> None:
        for yaml_path in sorted(self._dir.glob("*.yaml")):
            data = yaml.safe_load(yaml_path.read_text()) or {}
            namespace = data.get("namespace", yaml_path.stem)
            for kind, spec in (data.get("kinds") or {}).items():
                spec = spec or {}
                self._kinds[kind] = KindDef(
                    kind=kind,
                    namespace=namespace,
                    name=spec.get("name", kind),
                    description=spec.get("description", ""),
                    partial_update=bool(spec.get("partial_update", False)),
                    outputs=dict(spec.get("outputs") or {}),
                )

    def get(self, kind: str) -> KindDef | None:
        return self._kinds.get(kind)

    def list_kinds(self, namespace: str | None = None) -> list[KindDef]:
        kinds = sorted(self._kinds.values(), key=lambda k: k.kind)
        if namespace:
            return [k for k in kinds if k.namespace == namespace]
        return kinds

    def supports_partial_update(self, kind: str) -> bool:
        kdef = self.get(kind)
        return kdef.partial_update if kdef else False

    def render_outputs(self, kind: str, fields: dict[str, Any]) -> dict[str, str]:
        """Render a kind's output templates; unknown placeholders render empty."""
        kdef = self.get(kind)
        if kdef is None:
            return {}
        values = _Fields(fields)
        return {prop: template.format_map(values) for prop, template in kdef.outputs.items()}


# Module-level singleton, loaded lazily on first access
_catalog: KindCatalog | None = None


def get_catalog() -> KindCatalog:
    """Return the shared catalog singleton, loading from disk if needed."""
    global _catalog
    if _catalog is None:
        _catalog = KindCatalog()
    return _catalog


def reload_catalog(kinds_dir: str | Path | None = None) -> KindCatalog:
    """Force-reload the catalog (useful in tests or after YAML changes)."""
    global _catalog
    _catalog = KindCatalog(kinds_dir)
    return _catalog
