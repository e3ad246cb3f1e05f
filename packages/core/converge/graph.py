"""Graph builder — turns a flat resource collection into a dependency graph.

An edge ``(A, B)`` means B depends on A: A must be applied before B starts.
Edges come from three places: ``B.parent == A``, ``A in B.depends_on``, and
any reference inside ``B.config`` that targets A.
"""

from __future__ import annotations

from typing import Iterable, Iterator

from converge.errors import DanglingReferenceError, DuplicateIdentityError
from converge.spec import Resource, ResourceId


class ResourceGraph:
    """Resources in declaration order plus the derived edge set."""

    def __init__(self, resources: list[Resource], edges: Iterable[tuple[ResourceId, ResourceId]]):
        self._resources: dict[ResourceId, Resource] = {r.id: r for r in resources}
        self._index: dict[ResourceId, int] = {r.id: i for i, r in enumerate(resources)}
        self._deps: dict[ResourceId, set[ResourceId]] = {rid: set() for rid in self._resources}
        self._dependents: dict[ResourceId, set[ResourceId]] = {rid: set() for rid in self._resources}
        for upstream, downstream in edges:
            self._deps[downstream].add(upstream)
            self._dependents[upstream].add(downstream)

    def __len__(self) -> int:
        return len(self._resources)

    def __iter__(self) -> Iterator[ResourceId]:
        return iter(self._resources)

    def __contains__(self, rid: object) -> bool:
        return rid in self._resources

    @property
    def resources(self) -> list[Resource]:
        return list(self._resources.values())

    @property
    def edges(self) -> set[tuple[ResourceId, ResourceId]]:
        return {(up, down) for down, ups in self._deps.items() for up in ups}

    def get(self, rid: ResourceId) -> Resource:
        return self._resources[rid]

    def index(self, rid: ResourceId) -> int:
        """Declaration position, the stable tie-breaker for ordering."""
        return self._index[rid]

    def dependencies(self, rid: ResourceId) -> set[ResourceId]:
        return set(self._deps[rid])

    def dependents(self, rid: ResourceId) -> set[ResourceId]:
        return set(self._dependents[rid])

    def transitive_dependents(self, rid: ResourceId) -> set[ResourceId]:
        seen: set[ResourceId] = set()
        stack = list(self._dependents[rid])
        while stack:
            current = stack.pop()
            if current in seen:
                continue
            seen.add(current)
            stack.extend(self._dependents[current])
        return seen

    def children(self, rid: ResourceId) -> list[ResourceId]:
        return [r.id for r in self._resources.values() if r.parent == rid]

    def sorted_by_declaration(self, rids: Iterable[ResourceId]) -> list[ResourceId]:
        return sorted(rids, key=self._index.__getitem__)

    def reversed(self) -> ResourceGraph:
        """Same resources with every edge flipped (teardown order)."""
        return ResourceGraph(self.resources, ((down, up) for up, down in self.edges))


def build_graph(resources: Iterable[Resource]) -> ResourceGraph:
    """Build the dependency graph, validating identities and references."""
    ordered: list[Resource] = []
    seen: set[ResourceId] = set()
    for resource in resources:
        if resource.id in seen:
            raise DuplicateIdentityError(resource.id)
        seen.add(resource.id)
        ordered.append(resource)

    edges: list[tuple[ResourceId, ResourceId]] = []
    for resource in ordered:
        for upstream, via in _upstreams(resource):
            if upstream not in seen:
                raise DanglingReferenceError(resource.id, upstream, via)
            edges.append((upstream, resource.id))

    return ResourceGraph(ordered, edges)


def _upstreams(resource: Resource) -> Iterator[tuple[ResourceId, str]]:
    if resource.parent is not None:
        yield resource.parent, "has parent"
    for dep in resource.depends_on:
        yield dep, "depends on"
    for reference in resource.references():
        yield reference.target, f"references {reference.property!r} of"
