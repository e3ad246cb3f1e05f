"""Deterministic topological ordering of a resource graph."""

from __future__ import annotations

import heapq
from collections import deque

from converge.errors import CycleDetectedError
from converge.graph import ResourceGraph
from converge.spec import ResourceId


def resolve_order(graph: ResourceGraph) -> list[ResourceId]:
    """Return a total order in which every resource follows its dependencies.

    Kahn's algorithm over a min-heap keyed on declaration index, so whenever
    several resources are ready the earliest declared one goes first and the
    same input always yields the same order.

    Raises:
        CycleDetectedError: with the minimal cycle, if the graph is not a DAG.
    """
    remaining = {rid: len(graph.dependencies(rid)) for rid in graph}
    heap = [(graph.index(rid), rid) for rid, count in remaining.items() if count == 0]
    heapq.heapify(heap)
    order: list[ResourceId] = []

    while heap:
        _, rid = heapq.heappop(heap)
        order.append(rid)
        for child in graph.dependents(rid):
            remaining[child] -= 1
            if remaining[child] == 0:
                heapq.heappush(heap, (graph.index(child), child))

    if len(order) != len(graph):
        placed = set(order)
        stuck = [rid for rid in graph if rid not in placed]
        raise CycleDetectedError(find_cycle(graph, stuck))

    return order


def find_cycle(graph: ResourceGraph, candidates: list[ResourceId] | None = None) -> list[ResourceId]:
    """Shortest cycle among ``candidates`` (default: every resource), or [].

    The cycle is listed in edge direction starting from its earliest declared
    member: for ``A -> B -> A`` with A declared first the result is ``[A, B]``.
    """
    nodes = graph.sorted_by_declaration(candidates if candidates is not None else list(graph))
    allowed = set(nodes)
    best: list[ResourceId] = []

    for start in nodes:
        path = _shortest_path_back(graph, start, allowed)
        if path and (not best or len(path) < len(best)):
            best = path
            if len(best) == 1:
                break
    return best


def _shortest_path_back(graph: ResourceGraph, start: ResourceId, allowed: set[ResourceId]) -> list[ResourceId]:
    previous: dict[ResourceId, ResourceId] = {}
    queue: deque[ResourceId] = deque([start])
    visited = {start}

    while queue:
        current = queue.popleft()
        for nxt in graph.sorted_by_declaration(graph.dependents(current) & allowed):
            if nxt == start:
                path = [current]
                while path[-1] != start:
                    path.append(previous[path[-1]])
                return list(reversed(path))
            if nxt not in visited:
                visited.add(nxt)
                previous[nxt] = current
                queue.append(nxt)
    return []


def levels(graph: ResourceGraph) -> list[list[ResourceId]]:
    """Group the resolved order into waves of mutually independent resources.

    Every resource in wave ``n`` depends only on resources in earlier waves.
    """
    depth: dict[ResourceId, int] = {}
    for rid in resolve_order(graph):
        deps = graph.dependencies(rid)
        depth[rid] = 1 + max((depth[d] for d in deps), default=-1)

    waves: list[list[ResourceId]] = [[] for _ in range(max(depth.values(), default=-1) + 1)]
    for rid in graph:
        waves[depth[rid]].append(rid)
    return waves
