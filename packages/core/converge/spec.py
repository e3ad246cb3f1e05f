"""Deployment — the core input format for Converge.

A deployment is a flat, typed collection of resource declarations. Each
resource has an identity ``(kind, name)``, a location, a config property bag
whose values are literals or references to another resource's outputs, an
optional parent and an explicit ``depends_on`` set.
"""

from __future__ import annotations

import re
from datetime import date, time
from enum import Enum
from pathlib import Path
from typing import Any, Iterator

import yaml
from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_serializer,
    model_validator,
)

_PROPERTY_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_-]*$")


class ApplyState(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    APPLIED = "applied"
    FAILED = "failed"


class Action(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    NOOP = "noop"
    DELETE = "delete"


class RunStatus(str, Enum):
    SUCCESS = "success"
    PARTIAL_FAILURE = "partial_failure"


class ResourceId(BaseModel):
    """Identity of a resource, unique within a run. Text form is ``kind:name``."""

    model_config = ConfigDict(frozen=True)

    kind: str
    name: str

    @model_validator(mode="before")
    @classmethod
    def _from_text(cls, data: Any) -> Any:
        if isinstance(data, str):
            kind, sep, name = data.partition(":")
            if not sep:
                raise ValueError(f"Resource id {data!r} must look like 'kind:name'")
            return {"kind": kind, "name": name}
        return data

    @field_validator("kind")
    @classmethod
    def _validate_kind(cls, v: str) -> str:
        if not v or ":" in v:
            raise ValueError(f"Resource kind {v!r} must be non-empty and must not contain ':'")
        return v

    @field_validator("name")
    @classmethod
    def _validate_name(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Resource name must be non-empty")
        return v

    @model_serializer
    def _to_text(self) -> str:
        return str(self)

    @classmethod
    def parse(cls, text: str) -> ResourceId:
        return cls.model_validate(text)

    def __str__(self) -> str:
        return f"{self.kind}:{self.name}"


class Reference(BaseModel):
    """Symbolic pointer to a property another resource produces once applied.

    Text form is ``kind:name.property``; in YAML documents it is written as
    ``{ref: "kind:name.property"}``.
    """

    model_config = ConfigDict(frozen=True)

    target: ResourceId
    property: str

    @model_validator(mode="before")
    @classmethod
    def _from_text(cls, data: Any) -> Any:
        if isinstance(data, dict) and set(data) == {"ref"}:
            data = data["ref"]
        if isinstance(data, str):
            target, sep, prop = data.rpartition(".")
            if not sep or not target:
                raise ValueError(f"Reference {data!r} must look like 'kind:name.property'")
            return {"target": target, "property": prop}
        return data

    @field_validator("property")
    @classmethod
    def _validate_property(cls, v: str) -> str:
        if not _PROPERTY_PATTERN.match(v):
            raise ValueError(f"Reference property {v!r} is not a valid property name")
        return v

    @model_serializer
    def _to_ref(self) -> dict[str, str]:
        return {"ref": str(self)}

    @classmethod
    def parse(cls, text: str) -> Reference:
        return cls.model_validate(text)

    def __str__(self) -> str:
        return f"{self.target}.{self.property}"


def ref(text: str) -> Reference:
    """Shorthand for ``Reference.parse``."""
    return Reference.parse(text)


def _is_ref_mapping(value: Any) -> bool:
    return isinstance(value, dict) and len(value) == 1 and "ref" in value and isinstance(value["ref"], str)


def _lift_references(value: Any) -> Any:
    if isinstance(value, Reference):
        return value
    if _is_ref_mapping(value):
        return Reference.parse(value["ref"])
    if isinstance(value, dict):
        return {k: _lift_references(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_lift_references(v) for v in value]
    if isinstance(value, (date, time)):
        # YAML timestamps; state is stored as JSON text
        return value.isoformat()
    return value


def iter_references(value: Any) -> Iterator[Reference]:
    """Yield every reference found in a (possibly nested) config value."""
    if isinstance(value, Reference):
        yield value
    elif isinstance(value, dict):
        for v in value.values():
            yield from iter_references(v)
    elif isinstance(value, (list, tuple)):
        for v in value:
            yield from iter_references(v)


class Resource(BaseModel):
    """One declared infrastructure unit. Immutable once built."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    kind: str
    name: str
    location: str | None = None
    config: dict[str, Any] = Field(default_factory=dict)
    parent: ResourceId | None = None
    depends_on: tuple[ResourceId, ...] = Field(
        default=(), validation_alias=AliasChoices("depends_on", "dependsOn")
    )

    @field_validator("config", mode="before")
    @classmethod
    def _lift_config(cls, v: Any) -> Any:
        if v is None:
            return {}
        if not isinstance(v, dict):
            return v
        return {k: _lift_references(val) for k, val in v.items()}

    @model_validator(mode="after")
    def _validate_identity(self) -> Resource:
        # Runs the ResourceId validators over kind/name.
        ResourceId(kind=self.kind, name=self.name)
        return self

    @property
    def id(self) -> ResourceId:
        return ResourceId(kind=self.kind, name=self.name)

    def references(self) -> list[Reference]:
        return list(iter_references(self.config))

    def __str__(self) -> str:
        return str(self.id)


class Deployment(BaseModel):
    """The run input: a named set of resources plus optional named outputs."""

    name: str
    location: str | None = None
    resources: list[Resource] = Field(default_factory=list)
    outputs: dict[str, Reference] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _inherit_location(self) -> Deployment:
        if self.location:
            self.resources = [
                r if r.location else r.model_copy(update={"location": self.location}) for r in self.resources
            ]
        return self

    def get(self, resource_id: ResourceId | str) -> Resource | None:
        rid = ResourceId.model_validate(resource_id)
        for r in self.resources:
            if r.id == rid:
                return r
        return None

    def to_yaml(self) -> str:
        data = self.model_dump(mode="json", exclude_none=True)
        if not data["outputs"]:
            del data["outputs"]
        data["resources"] = [_clean_empty(r) for r in data["resources"]]
        return yaml.dump(data, default_flow_style=False, sort_keys=False, allow_unicode=True)

    def to_json(self, indent: int = 2) -> str:
        return self.model_dump_json(indent=indent, exclude_none=True)

    @classmethod
    def from_yaml(cls, yaml_str: str) -> Deployment:
        data = yaml.safe_load(yaml_str)
        return cls.model_validate(data)

    @classmethod
    def from_file(cls, path: str | Path) -> Deployment:
        p = Path(path)
        text = p.read_text()
        if p.suffix in (".yaml", ".yml"):
            return cls.from_yaml(text)
        return cls.model_validate_json(text)


def _clean_empty(resource: dict[str, Any]) -> dict[str, Any]:
    # Only optional fields are dropped; config values are kept as declared.
    return {k: v for k, v in resource.items() if k == "config" or v not in ([], {}, "", ())}
