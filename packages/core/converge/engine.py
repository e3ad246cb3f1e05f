"""Engine — runs a deployment from declarations to a final output map.

Data flow: declarations -> graph builder -> dependency resolver -> executor,
which drives the reconciler per resource and threads outputs through the
output resolver. Build-time errors raise before any provider is called;
resource failures end up in the returned RunResult.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Iterable, Union

from converge.config import EngineSettings
from converge.errors import DanglingReferenceError, UnresolvedOutputError
from converge.executor import EventHook, ProvisioningExecutor, Work
from converge.graph import ResourceGraph, build_graph
from converge.outputs import OutputMap, OutputResolver
from converge.plan import build_plan
from converge.providers import ProviderRegistry
from converge.reconciler import Reconciler, ReconcileResult
from converge.resolver import resolve_order
from converge.results import PlanResult, RunResult
from converge.spec import ApplyState, Deployment, Resource, ResourceId
from converge.state import StateTable

log = logging.getLogger(__name__)

Source = Union[Deployment, Iterable[Resource]]


class Engine:
    def __init__(self, providers: ProviderRegistry, settings: EngineSettings | None = None):
        self.providers = providers
        self.settings = settings or EngineSettings()

    def validate(self, source: Source) -> ResourceGraph:
        """Build and order the graph and check every kind has a provider. No provider calls."""
        _, graph, _ = self._prepare(source)
        return graph

    def order(self, source: Source) -> list[ResourceId]:
        _, _, order = self._prepare(source)
        return order

    def plan(self, source: Source) -> PlanResult:
        deployment, graph, order = self._prepare(source)
        return build_plan(deployment.name, graph, order, Reconciler(self.providers))

    def apply(
        self,
        source: Source,
        cancel_event: threading.Event | None = None,
        on_event: EventHook | None = None,
    ) -> RunResult:
        deployment, graph, order = self._prepare(source)
        started = time.monotonic()
        log.info("applying %s (%d resources)", deployment.name, len(graph))

        states = StateTable(graph)
        outputs = OutputMap()
        resolver = OutputResolver(outputs, states)
        reconciler = Reconciler(self.providers, outputs)

        def work(resource: Resource) -> ReconcileResult:
            return reconciler.apply(resource, resolver.resolve_config(resource.config))

        executor = self._executor(graph, work, states, cancel_event, on_event)
        outcomes = executor.run()

        result = RunResult(
            deployment=deployment.name,
            operation="apply",
            order=order,
            outcomes=outcomes,
            outputs=outputs,
            named_outputs=_named_outputs(deployment, resolver, states),
            cancelled=executor.cancelled,
            duration_seconds=round(time.monotonic() - started, 3),
        )
        log.info(result.summary())
        return result

    def destroy(
        self,
        source: Source,
        cancel_event: threading.Event | None = None,
        on_event: EventHook | None = None,
    ) -> RunResult:
        """Delete every resource, dependents first; a failed delete protects what it depends on."""
        deployment, graph, order = self._prepare(source)
        started = time.monotonic()
        teardown = graph.reversed()
        log.info("destroying %s (%d resources)", deployment.name, len(graph))

        reconciler = Reconciler(self.providers)
        executor = self._executor(teardown, reconciler.remove, StateTable(teardown), cancel_event, on_event)
        outcomes = executor.run()

        result = RunResult(
            deployment=deployment.name,
            operation="destroy",
            order=list(reversed(order)),
            outcomes=outcomes,
            cancelled=executor.cancelled,
            duration_seconds=round(time.monotonic() - started, 3),
        )
        log.info(result.summary())
        return result

    def _executor(
        self,
        graph: ResourceGraph,
        work: Work,
        states: StateTable,
        cancel_event: threading.Event | None,
        on_event: EventHook | None,
    ) -> ProvisioningExecutor:
        s = self.settings
        return ProvisioningExecutor(
            graph,
            work,
            states=states,
            parallelism=s.parallelism,
            max_attempts=s.max_attempts,
            backoff_seconds=s.backoff_seconds,
            backoff_max_seconds=s.backoff_max_seconds,
            cancel_event=cancel_event,
            on_event=on_event,
        )

    def _prepare(self, source: Source) -> tuple[Deployment, ResourceGraph, list[ResourceId]]:
        deployment = as_deployment(source)
        graph = build_graph(deployment.resources)
        order = resolve_order(graph)
        self.providers.check(sorted({r.kind for r in deployment.resources}))
        for name, reference in deployment.outputs.items():
            if reference.target not in graph:
                raise DanglingReferenceError(f"output {name!r}", reference.target, "references")
        return deployment, graph, order


def as_deployment(source: Source, name: str = "deployment") -> Deployment:
    if isinstance(source, Deployment):
        return source
    return Deployment(name=name, resources=list(source))


def _named_outputs(deployment: Deployment, resolver: OutputResolver, states: StateTable) -> dict[str, Any]:
    values: dict[str, Any] = {}
    snapshot = states.snapshot()
    for name, reference in deployment.outputs.items():
        if snapshot.get(reference.target) is not ApplyState.APPLIED:
            continue
        try:
            values[name] = resolver.resolve(reference)
        except UnresolvedOutputError as exc:
            log.warning("output %r: %s", name, exc.message)
    return values
