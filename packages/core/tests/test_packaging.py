"""Packaging acceptance tests: verify the package is usable after install."""

from __future__ import annotations

import runpy
from pathlib import Path

import converge
import pytest


class TestImports:
    """Verify all public API symbols are importable."""

    def test_core_models_importable(self):
        from converge import Deployment, Resource, ResourceId, ref

        assert Deployment is not None
        assert Resource is not None
        assert ResourceId is not None
        assert ref is not None

    def test_lazy_imports(self):
        from converge import Engine, EngineSettings, LocalStateProvider, ProviderRegistry, RunResult

        assert Engine is not None
        assert EngineSettings is not None
        assert LocalStateProvider is not None
        assert ProviderRegistry is not None
        assert RunResult is not None

    def test_all_names_resolve(self):
        for name in converge.__all__:
            assert getattr(converge, name) is not None

    def test_invalid_import_raises(self):
        with pytest.raises(AttributeError):
            _ = converge.NoSuchThing  # type: ignore[attr-defined]


class TestVersion:
    def test_version_is_semver(self):
        parts = converge.__version__.split(".")
        assert len(parts) >= 2
        assert all(p.isdigit() for p in parts[:2])


class TestPackageData:
    def test_kind_catalog_shipped(self):
        kinds_dir = Path(converge.__file__).parent / "data" / "kinds"
        assert (kinds_dir / "azure.yaml").exists()


EXAMPLES = Path(__file__).resolve().parents[3] / "examples"


@pytest.mark.skipif(not EXAMPLES.is_dir(), reason="examples not shipped with the installed package")
class TestExamples:
    def test_custom_provider_contains_failure(self):
        ns = runpy.run_path(str(EXAMPLES / "custom_provider.py"))
        result = ns["result"]

        assert ns["registry"].get(ns["STORAGE"]).throttle == 0
        assert [rid.name for rid in result.failed] == ["starchive"]
        assert [rid.name for rid in result.skipped] == ["cold"]
        assert {rid.name for rid in result.applied} == {"rg-demo", "stdata", "uploads"}
