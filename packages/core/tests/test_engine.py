"""End-to-end engine tests: validate, plan, apply and destroy against local state."""

import threading

import pytest
from converge.engine import Engine
from converge.errors import CycleDetectedError, DanglingReferenceError, MissingProviderError
from converge.plan import KNOWN_AFTER_APPLY
from converge.providers import ProviderRegistry
from converge.providers.local import LocalStateProvider
from converge.spec import Action, ApplyState, Deployment, Resource, ResourceId, RunStatus

GROUP = "Microsoft.Resources/resourceGroups"
STORAGE = "Microsoft.Storage/storageAccounts"
COGNITIVE = "Microsoft.CognitiveServices/accounts"
SITE = "Microsoft.Web/staticSites"

STORAGE_ID = ResourceId(kind=STORAGE, name="stapp")
SERVICE_ID = ResourceId(kind=COGNITIVE, name="cog-app")


@pytest.fixture
def engine(registry, fast_settings):
    return Engine(registry, fast_settings)


class TestScenario:
    def test_order_and_reference_resolution(self, engine, provider, scenario):
        result = engine.apply(scenario)

        assert result.status is RunStatus.SUCCESS
        assert [rid.name for rid in result.order] == ["rg-app", "stapp", "cog-app"]
        assert set(result.actions().values()) == {Action.CREATE}

        endpoint = result.output(STORAGE_ID, "primaryBlobEndpoint")
        assert endpoint == "https://stapp.blob.core.windows.net/"
        # The consumer was configured with the producer's value from this run.
        assert provider.read(SERVICE_ID).properties["storageEndpoint"] == endpoint

    def test_rerun_is_noop(self, engine, provider, scenario):
        engine.apply(scenario)
        mutations_after_first = provider.mutations

        second = engine.apply(scenario)

        assert second.success
        assert all(a is Action.NOOP for a in second.actions().values())
        assert second.mutations == 0
        assert provider.mutations == mutations_after_first
        # Outputs are still threaded through on a no-op run.
        assert second.output(SERVICE_ID, "endpoint") == "https://cog-app.cognitiveservices.azure.com/"

    def test_cycle_raises_before_any_provider_call(self, engine, provider):
        resources = [
            Resource(kind="test", name="A", depends_on=["test:B"]),
            Resource(kind="test", name="B", depends_on=["test:A"]),
        ]
        with pytest.raises(CycleDetectedError) as exc_info:
            engine.apply(resources)
        assert exc_info.value.cycle == [ResourceId(kind="test", name="A"), ResourceId(kind="test", name="B")]
        assert provider.calls == []


class TestApply:
    def test_drift_is_corrected(self, engine, provider, scenario):
        engine.apply(scenario)
        provider.seed(STORAGE_ID, {"sku": "Premium_LRS", "kind": "StorageV2"}, location="westeurope")

        result = engine.apply(scenario)

        outcome = result.outcomes[STORAGE_ID]
        assert outcome.action is Action.UPDATE
        assert outcome.drifted == ["sku"]
        assert provider.read(STORAGE_ID).properties["sku"] == "Standard_LRS"
        assert result.mutations == 1

    def test_rerun_through_state_file_is_noop(self, tmp_path, fast_settings):
        deployment = Deployment.from_yaml(
            "name: app\n"
            "location: westeurope\n"
            "resources:\n"
            f"  - kind: {GROUP}\n"
            "    name: rg-app\n"
            "    config:\n"
            "      tags: {owner: ops, expires: 2025-01-01}\n"
        )
        state_file = tmp_path / "state.json"

        first = Engine(ProviderRegistry(default=LocalStateProvider(state_file)), fast_settings).apply(deployment)
        second = Engine(ProviderRegistry(default=LocalStateProvider(state_file)), fast_settings).apply(deployment)

        assert set(first.actions().values()) == {Action.CREATE}
        assert set(second.actions().values()) == {Action.NOOP}
        assert second.mutations == 0

    def test_partial_failure_is_a_result(self, fast_settings, scripted, scenario):
        provider = scripted(fatal={f"{STORAGE}:stapp"})
        engine = Engine(ProviderRegistry(default=provider), fast_settings)

        result = engine.apply(scenario)

        assert result.status is RunStatus.PARTIAL_FAILURE
        assert result.applied == [ResourceId(kind=GROUP, name="rg-app")]
        assert result.failed == [STORAGE_ID]
        assert result.skipped == [SERVICE_ID]
        assert result.outcomes[SERVICE_ID].blocked_by == STORAGE_ID
        assert "quota exceeded" in result.outcomes[STORAGE_ID].error
        assert provider.read(SERVICE_ID) is None
        assert "1 failed" in result.summary()

    def test_transient_errors_retried(self, fast_settings, scripted, scenario):
        provider = scripted(transient={f"{STORAGE}:stapp": 2})
        result = Engine(ProviderRegistry(default=provider), fast_settings).apply(scenario)
        assert result.success
        assert result.outcomes[STORAGE_ID].attempts == 3

    def test_unexpected_exception_is_fatal_for_that_resource(self, fast_settings, scripted, scenario):
        provider = scripted(crash={f"{COGNITIVE}:cog-app"})
        result = Engine(ProviderRegistry(default=provider), fast_settings).apply(scenario)
        assert result.failed == [SERVICE_ID]
        assert result.outcomes[SERVICE_ID].error_type == "RuntimeError"
        assert provider.attempts[f"{COGNITIVE}:cog-app"] == 1

    def test_unresolved_reference_fails_consumer_only(self, engine):
        resources = [
            Resource(kind=GROUP, name="rg"),
            Resource(kind=STORAGE, name="st", config={"x": {"ref": f"{GROUP}:rg.doesNotExist"}}),
            Resource(kind=SITE, name="site"),
        ]
        result = engine.apply(resources)
        st = result.outcomes[ResourceId(kind=STORAGE, name="st")]
        assert st.state is ApplyState.FAILED
        assert st.error_type == "UnresolvedOutputError"
        assert ResourceId(kind=SITE, name="site") in result.applied

    def test_parallel_apply_respects_bound(self, scripted):
        from converge.config import EngineSettings

        provider = scripted(delay=0.02)
        resources = [Resource(kind=GROUP, name=f"rg-{i}") for i in range(10)]
        engine = Engine(ProviderRegistry(default=provider), EngineSettings(parallelism=3, backoff_seconds=0))
        result = engine.apply(resources)
        assert result.success
        assert provider.peak <= 3

    def test_cancel_event(self, engine, provider, scenario):
        cancel = threading.Event()
        cancel.set()
        result = engine.apply(scenario, cancel_event=cancel)
        assert result.cancelled
        assert result.status is RunStatus.PARTIAL_FAILURE
        assert len(result.skipped) == 3
        assert provider.mutations == 0

    def test_missing_provider_detected_up_front(self, fast_settings, scenario):
        with pytest.raises(MissingProviderError):
            Engine(ProviderRegistry(), fast_settings).apply(scenario)

    def test_on_event_callback(self, engine, scenario):
        seen = []
        engine.apply(scenario, on_event=seen.append)
        assert [o.resource_id.name for o in seen] == ["rg-app", "stapp", "cog-app"]


class TestTranslationApp:
    def test_named_outputs(self, engine, translation_app):
        result = engine.apply(translation_app)
        assert result.success
        assert result.named_outputs == {
            "siteHostname": "web-translate.azurestaticapps.net",
            "translatorEndpoint": "https://translator.cognitiveservices.azure.com/",
        }

    def test_nested_references_resolved(self, engine, provider, translation_app):
        engine.apply(translation_app)
        translator = provider.read(ResourceId(kind=COGNITIVE, name="translator"))
        assert translator.properties["sourceUrl"] == "https://sttranslate.blob.core.windows.net/source"
        site = provider.read(ResourceId(kind=SITE, name="web-translate"))
        assert site.properties["appSettings"] == {
            "TRANSLATOR_ENDPOINT": "https://translator.cognitiveservices.azure.com/"
        }

    def test_location_inherited_from_deployment(self, engine, provider, translation_app):
        engine.apply(translation_app)
        assert provider.read(ResourceId(kind=GROUP, name="rg-translate")).location == "westeurope"

    def test_output_to_undeclared_resource_rejected(self, engine):
        deployment = Deployment.model_validate(
            {
                "name": "d",
                "resources": [{"kind": GROUP, "name": "rg"}],
                "outputs": {"x": {"ref": f"{GROUP}:other.id"}},
            }
        )
        with pytest.raises(DanglingReferenceError):
            engine.validate(deployment)


class TestPlan:
    def test_fresh_plan_creates_everything(self, engine, provider, scenario):
        plan = engine.plan(scenario)
        assert [e.action for e in plan.entries] == [Action.CREATE] * 3
        assert plan.has_changes
        assert plan.summary() == "Plan: 3 to create, 0 to update, 0 unchanged."
        assert provider.mutations == 0

    def test_plan_after_apply_has_no_changes(self, engine, scenario):
        engine.apply(scenario)
        plan = engine.plan(scenario)
        assert not plan.has_changes
        assert plan.count(Action.NOOP) == 3

    def test_drift_shown_with_known_after_apply(self, engine, provider, scenario):
        engine.apply(scenario)
        provider.seed(STORAGE_ID, {"sku": "Premium_LRS", "kind": "StorageV2"}, location="westeurope")
        plan = engine.plan(scenario)
        actions = {e.resource_id: e.action for e in plan.entries}
        assert actions[STORAGE_ID] is Action.UPDATE
        # Service only references an output that does not change, so it stays a noop.
        assert actions[SERVICE_ID] is Action.NOOP

    def test_reference_to_created_resource_is_unknown(self, engine, provider, scenario):
        # Service already exists but its storage account does not.
        provider.seed(SERVICE_ID, {"sku": "S1", "storageEndpoint": "old"}, location="westeurope")
        plan = engine.plan(scenario)
        entry = next(e for e in plan.entries if e.resource_id == SERVICE_ID)
        assert entry.action is Action.UPDATE
        assert entry.drifted == ["storageEndpoint"]
        assert repr(KNOWN_AFTER_APPLY) == "(known after apply)"


class TestDestroy:
    def test_reverse_order_and_idempotent(self, engine, provider, scenario):
        engine.apply(scenario)
        seen = []
        result = engine.destroy(scenario, on_event=seen.append)

        assert result.success
        assert [o.resource_id.name for o in seen] == ["cog-app", "stapp", "rg-app"]
        assert set(result.actions().values()) == {Action.DELETE}
        assert provider.resource_ids() == []

        again = engine.destroy(scenario)
        assert set(again.actions().values()) == {Action.NOOP}


class TestValidate:
    def test_validate_makes_no_provider_calls(self, engine, provider, translation_app):
        graph = engine.validate(translation_app)
        assert len(graph) == 6
        assert provider.calls == []

    def test_order_accepts_iterable(self, engine, scenario):
        assert engine.order(iter(scenario))[0] == ResourceId(kind=GROUP, name="rg-app")
