"""Plugging in a provider, with throttling retries and a contained failure.

The storage provider below throttles its first two calls (retried with
backoff) and refuses to create the "archive" account at all. The archive's
dependents are skipped; everything else still converges.
"""

import threading
from typing import Any

from converge import Engine, EngineSettings, LocalStateProvider, ProviderRegistry, Resource
from converge.errors import FatalProviderError, TransientProviderError
from converge.providers import ObservedState

GROUP = "Microsoft.Resources/resourceGroups"
STORAGE = "Microsoft.Storage/storageAccounts"
CONTAINER = "Microsoft.Storage/storageAccounts/blobServices/containers"


class ThrottledStorage(LocalStateProvider):
    def __init__(self) -> None:
        super().__init__()
        self.throttle = 2
        self._throttle_lock = threading.Lock()

    def create_or_update(self, resource: Resource, config: dict[str, Any]) -> ObservedState:
        with self._throttle_lock:
            throttled = self.throttle > 0
            if throttled:
                self.throttle -= 1
        if throttled:
            raise TransientProviderError("429 Too Many Requests")
        if resource.name == "starchive":
            raise FatalProviderError("StorageAccountAlreadyTaken: starchive")
        return super().create_or_update(resource, config)


resources = [
    Resource(kind=GROUP, name="rg-demo", location="westeurope"),
    Resource(kind=STORAGE, name="stdata", location="westeurope", parent=f"{GROUP}:rg-demo"),
    Resource(kind=STORAGE, name="starchive", location="westeurope", parent=f"{GROUP}:rg-demo"),
    Resource(kind=CONTAINER, name="cold", parent=f"{STORAGE}:starchive"),
    Resource(kind=CONTAINER, name="uploads", parent=f"{STORAGE}:stdata"),
]

registry = ProviderRegistry(default=LocalStateProvider())
registry.register(STORAGE, ThrottledStorage())

engine = Engine(registry, EngineSettings(parallelism=2, backoff_seconds=0.2))
result = engine.apply(resources)

print(result.summary())
for rid, outcome in result.outcomes.items():
    detail = outcome.error or (outcome.action.value if outcome.action else "")
    print(f"  {outcome.state.value:<8} {rid}  attempts={outcome.attempts}  {detail}")
