"""Provisioning executor — walks the graph with a bounded worker pool.

Scheduling:
- A resource is ready once every dependency is ``applied``; ready resources
  wait in a queue ordered by declaration index.
- Up to ``parallelism`` resources run at once. Each worker runs the work
  callable for one resource and retries ``TransientProviderError`` with
  bounded exponential backoff.
- When a resource fails, every transitive dependent is marked ``failed``
  without starting (recorded with ``blocked_by``).
- When ``cancel_event`` is set, nothing new starts; in-flight work finishes
  and untouched resources stay ``pending`` and are reported as cancelled.
- ``on_event`` is called on the scheduling thread with each final outcome.
"""

from __future__ import annotations

import heapq
import logging
import threading
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from typing import Callable

from tenacity import Retrying, before_sleep_log, retry_if_exception_type, stop_after_attempt, wait_exponential

from converge.errors import ConvergeError, ProviderError, TransientProviderError
from converge.graph import ResourceGraph
from converge.reconciler import ReconcileResult
from converge.results import ResourceOutcome
from converge.spec import ApplyState, Resource, ResourceId
from converge.state import StateTable

log = logging.getLogger(__name__)

Work = Callable[[Resource], ReconcileResult]
EventHook = Callable[[ResourceOutcome], None]


class ProvisioningExecutor:
    def __init__(
        self,
        graph: ResourceGraph,
        work: Work,
        *,
        states: StateTable | None = None,
        parallelism: int = 4,
        max_attempts: int = 5,
        backoff_seconds: float = 1.0,
        backoff_max_seconds: float = 30.0,
        cancel_event: threading.Event | None = None,
        on_event: EventHook | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if parallelism < 1:
            raise ValueError("parallelism must be at least 1")
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._graph = graph
        self._work = work
        self.states = states or StateTable(graph)
        self._parallelism = parallelism
        self._max_attempts = max_attempts
        self._backoff_seconds = backoff_seconds
        self._backoff_max_seconds = backoff_max_seconds
        self._cancel_event = cancel_event or threading.Event()
        self._on_event = on_event
        self._sleep = sleep

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def run(self) -> dict[ResourceId, ResourceOutcome]:
        """Drive every resource to a final outcome; returned in declaration order."""
        graph = self._graph
        waiting = {rid: len(graph.dependencies(rid)) for rid in graph}
        ready = [(graph.index(rid), rid) for rid, count in waiting.items() if count == 0]
        heapq.heapify(ready)
        outcomes: dict[ResourceId, ResourceOutcome] = {}

        with ThreadPoolExecutor(max_workers=self._parallelism, thread_name_prefix="converge") as pool:
            in_flight: dict[Future[ResourceOutcome], ResourceId] = {}

            while ready or in_flight:
                while ready and len(in_flight) < self._parallelism and not self.cancelled:
                    _, rid = heapq.heappop(ready)
                    self.states.transition(rid, ApplyState.IN_PROGRESS)
                    log.debug("starting %s", rid)
                    in_flight[pool.submit(self._run_one, graph.get(rid))] = rid

                if not in_flight:
                    break

                done, _ = wait(in_flight, return_when=FIRST_COMPLETED)
                for future in sorted(done, key=lambda f: graph.index(in_flight[f])):
                    rid = in_flight.pop(future)
                    outcome = future.result()
                    outcomes[rid] = outcome
                    self.states.transition(rid, outcome.state)
                    self._emit(outcome)

                    if outcome.state is ApplyState.APPLIED:
                        for child in graph.dependents(rid):
                            waiting[child] -= 1
                            if waiting[child] == 0 and self.states.get(child) is ApplyState.PENDING:
                                heapq.heappush(ready, (graph.index(child), child))
                    else:
                        self._block_dependents(rid, outcomes)

        for rid in graph:
            if rid not in outcomes:
                outcomes[rid] = ResourceOutcome(resource_id=rid, state=ApplyState.PENDING, cancelled=True)
        if self.cancelled:
            log.warning("run cancelled; %d resource(s) not started", sum(1 for o in outcomes.values() if o.cancelled))

        return {rid: outcomes[rid] for rid in graph}

    def _block_dependents(self, failed: ResourceId, outcomes: dict[ResourceId, ResourceOutcome]) -> None:
        for rid in self._graph.sorted_by_declaration(self._graph.transitive_dependents(failed)):
            if self.states.get(rid) is not ApplyState.PENDING:
                continue
            self.states.transition(rid, ApplyState.FAILED)
            outcomes[rid] = ResourceOutcome(
                resource_id=rid,
                state=ApplyState.FAILED,
                blocked_by=failed,
                error=f"dependency {failed} failed",
                error_type="DependencyFailed",
            )
            log.warning("skipping %s: dependency %s failed", rid, failed)
            self._emit(outcomes[rid])

    def _emit(self, outcome: ResourceOutcome) -> None:
        if self._on_event is not None:
            self._on_event(outcome)

    def _retrying(self) -> Retrying:
        return Retrying(
            retry=retry_if_exception_type(TransientProviderError),
            stop=stop_after_attempt(self._max_attempts),
            wait=wait_exponential(multiplier=self._backoff_seconds, max=self._backoff_max_seconds),
            sleep=self._sleep,
            before_sleep=before_sleep_log(log, logging.WARNING),
            reraise=True,
        )

    def _run_one(self, resource: Resource) -> ResourceOutcome:
        outcome = ResourceOutcome(resource_id=resource.id, state=ApplyState.IN_PROGRESS)
        started = time.monotonic()
        try:
            for attempt in self._retrying():
                with attempt:
                    outcome.attempts = attempt.retry_state.attempt_number
                    result = self._work(resource)
        except ProviderError as exc:
            outcome.state = ApplyState.FAILED
            outcome.error = exc.message
            outcome.error_type = type(exc).__name__
            log.warning("%s failed after %d attempt(s): %s", resource.id, outcome.attempts, exc.message)
        except ConvergeError as exc:
            outcome.state = ApplyState.FAILED
            outcome.error = exc.message
            outcome.error_type = type(exc).__name__
            log.warning("%s failed: %s", resource.id, exc.message)
        except Exception as exc:
            # Unexpected provider exceptions are fatal for this resource only.
            outcome.state = ApplyState.FAILED
            outcome.error = str(exc) or type(exc).__name__
            outcome.error_type = type(exc).__name__
            log.error("%s failed with unexpected error", resource.id, exc_info=True)
        else:
            outcome.state = ApplyState.APPLIED
            outcome.action = result.action
            outcome.drifted = list(result.drifted)
        outcome.duration_seconds = round(time.monotonic() - started, 3)
        return outcome
