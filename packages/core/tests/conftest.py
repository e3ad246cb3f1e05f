"""Shared fixtures for core tests."""

from __future__ import annotations

import threading
from typing import Any

import pytest
from converge.config import EngineSettings
from converge.errors import FatalProviderError, TransientProviderError
from converge.providers import ObservedState, ProviderRegistry
from converge.providers.local import LocalStateProvider
from converge.spec import Deployment, Resource, ResourceId

GROUP = "Microsoft.Resources/resourceGroups"
STORAGE = "Microsoft.Storage/storageAccounts"
CONTAINER = "Microsoft.Storage/storageAccounts/blobServices/containers"
COGNITIVE = "Microsoft.CognitiveServices/accounts"
SITE = "Microsoft.Web/staticSites"


class ScriptedProvider(LocalStateProvider):
    """Local provider that fails on demand.

    ``transient`` maps a resource key to how many create/update calls should
    raise TransientProviderError before succeeding; ``fatal`` keys always raise
    FatalProviderError; ``crash`` keys raise a plain RuntimeError.
    """

    def __init__(
        self,
        *,
        transient: dict[str, int] | None = None,
        fatal: set[str] | None = None,
        crash: set[str] | None = None,
        delay: float = 0.0,
    ):
        super().__init__()
        self.transient = dict(transient or {})
        self.fatal = set(fatal or ())
        self.crash = set(crash or ())
        self.delay = delay
        self.active = 0
        self.peak = 0
        self.attempts: dict[str, int] = {}
        self._gate = threading.Lock()

    def create_or_update(self, resource: Resource, config: dict[str, Any]) -> ObservedState:
        key = str(resource.id)
        with self._gate:
            self.attempts[key] = self.attempts.get(key, 0) + 1
            self.active += 1
            self.peak = max(self.peak, self.active)
        try:
            if self.delay:
                threading.Event().wait(self.delay)
            if key in self.fatal:
                raise FatalProviderError(f"{key}: quota exceeded")
            if key in self.crash:
                raise RuntimeError(f"{key}: connection reset")
            with self._gate:
                remaining = self.transient.get(key, 0)
                if remaining:
                    self.transient[key] = remaining - 1
            if remaining:
                raise TransientProviderError(f"{key}: throttled")
            return super().create_or_update(resource, config)
        finally:
            with self._gate:
                self.active -= 1


@pytest.fixture
def scripted():
    """Factory for a ScriptedProvider: ``scripted(transient=..., fatal=..., crash=..., delay=...)``."""
    return ScriptedProvider


@pytest.fixture
def rid():
    return ResourceId.parse


@pytest.fixture
def provider() -> LocalStateProvider:
    return LocalStateProvider()


@pytest.fixture
def registry(provider: LocalStateProvider) -> ProviderRegistry:
    return ProviderRegistry(default=provider)


@pytest.fixture
def fast_settings() -> EngineSettings:
    """No real sleeping between retries."""
    return EngineSettings(parallelism=4, max_attempts=3, backoff_seconds=0, backoff_max_seconds=0)


@pytest.fixture
def scenario() -> list[Resource]:
    """Group, Storage (child of Group) and Service (depends on and references Storage)."""
    return [
        Resource(kind=GROUP, name="rg-app", location="westeurope"),
        Resource(
            kind=STORAGE,
            name="stapp",
            location="westeurope",
            parent=f"{GROUP}:rg-app",
            config={"sku": "Standard_LRS", "kind": "StorageV2"},
        ),
        Resource(
            kind=COGNITIVE,
            name="cog-app",
            location="westeurope",
            parent=f"{GROUP}:rg-app",
            depends_on=[f"{STORAGE}:stapp"],
            config={
                "sku": "S1",
                "storageEndpoint": {"ref": f"{STORAGE}:stapp.primaryBlobEndpoint"},
            },
        ),
    ]


@pytest.fixture
def translation_app() -> Deployment:
    """The document-translation topology used by the examples."""
    return Deployment.model_validate(
        {
            "name": "translation-app",
            "location": "westeurope",
            "resources": [
                {"kind": GROUP, "name": "rg-translate"},
                {
                    "kind": STORAGE,
                    "name": "sttranslate",
                    "parent": f"{GROUP}:rg-translate",
                    "config": {"sku": "Standard_LRS", "accessTier": "Hot"},
                },
                {
                    "kind": CONTAINER,
                    "name": "source",
                    "parent": f"{STORAGE}:sttranslate",
                },
                {
                    "kind": CONTAINER,
                    "name": "target",
                    "parent": f"{STORAGE}:sttranslate",
                },
                {
                    "kind": COGNITIVE,
                    "name": "translator",
                    "parent": f"{GROUP}:rg-translate",
                    "config": {
                        "kind": "TextTranslation",
                        "sku": "S1",
                        "sourceUrl": {"ref": f"{CONTAINER}:source.url"},
                        "targetUrl": {"ref": f"{CONTAINER}:target.url"},
                    },
                },
                {
                    "kind": SITE,
                    "name": "web-translate",
                    "parent": f"{GROUP}:rg-translate",
                    "dependsOn": [f"{COGNITIVE}:translator"],
                    "config": {
                        "sku": "Free",
                        "appSettings": {"TRANSLATOR_ENDPOINT": {"ref": f"{COGNITIVE}:translator.endpoint"}},
                    },
                },
            ],
            "outputs": {
                "siteHostname": {"ref": f"{SITE}:web-translate.defaultHostname"},
                "translatorEndpoint": {"ref": f"{COGNITIVE}:translator.endpoint"},
            },
        }
    )
