"""Tests for the DecisionVersion lifecycle reconciler."""

from __future__ import annotations

from dataclasses import dataclass
from unittest.mock import MagicMock

import pytest

from decision_operator.config import OperatorConfig
from decision_operator.control import ControlKind
from decision_operator.models import (
    Decision,
    DecisionSpec,
    DecisionVersion,
    DecisionVersionSpec,
    Kafka,
    ObjectMeta,
    Phase,
)
from decision_operator.reconcilers import DecisionReconciler, VersionReconciler
from decision_operator.runtime import RuntimeProvisioner
from decision_operator.status import StatusSynchronizer
from decision_operator.store import ConflictError, Stores, StoreError, in_memory_stores

NS = "baaas-c1"
IMAGE = "quay.io/baaas/some-decision:1"


@dataclass
class _Env:
    stores: Stores
    notifier: MagicMock
    reconciler: VersionReconciler

    def version(self, name: str = "some-decision-1") -> DecisionVersion:
        return self.stores.versions.get(NS, name)

    def persist(self, control) -> DecisionVersion | None:
        if control.needs_status_write:
            return self.stores.versions.update_status(control.resource)
        return None

    def set_runtime_status(self, *conditions: str, external_uri: str | None = None) -> None:
        runtime = self.stores.runtimes.get(NS, "some-decision")
        runtime["status"] = {
            "conditions": [{"type": c, "status": "True"} for c in conditions],
        }
        if external_uri:
            runtime["status"]["externalURI"] = external_uri
        self.stores.runtimes.create_or_replace(NS, runtime)


def _definition(**overrides) -> DecisionVersionSpec:
    defaults = {"source": "somesource", "version": "1"}
    defaults.update(overrides)
    return DecisionVersionSpec(**defaults)


def _setup(definition: DecisionVersionSpec | None = None, runtimes=None) -> _Env:
    stores = in_memory_stores()
    if runtimes is not None:
        stores.runtimes = runtimes
    notifier = MagicMock()
    decision = stores.decisions.create(Decision(
        metadata=ObjectMeta(
            name="some-decision",
            namespace=NS,
            labels={"org.kie.baaas.customer": "c1"},
        ),
        spec=DecisionSpec(definition=definition or _definition(), webhooks=["https://hook"]),
    ))
    stores.versions.create(DecisionReconciler(stores.versions, notifier).expected_version(decision))
    config = OperatorConfig()
    reconciler = VersionReconciler(
        stores.versions,
        stores.decisions,
        RuntimeProvisioner(stores.runtimes, stores.config_maps, stores.secrets, config),
        StatusSynchronizer(stores.versions, stores.decisions, notifier),
    )
    return _Env(stores, notifier, reconciler)


def _built(env: _Env, image: str = IMAGE) -> DecisionVersion:
    return env.persist(env.reconciler.record_build_succeeded(NS, "some-decision-1", image))


# --- Build signals ---


class TestBuildSignals:
    def test_build_succeeded(self):
        env = _setup()
        control = env.reconciler.record_build_succeeded(NS, "some-decision-1", IMAGE)
        assert control.kind == ControlKind.UPDATE_STATUS
        status = control.resource.status
        assert status.conditions["Build"].status == "True"
        assert status.conditions["Build"].reason == "Success"
        assert status.image_ref == IMAGE

    def test_build_succeeded_twice_is_no_update(self):
        env = _setup()
        _built(env)
        assert env.reconciler.record_build_succeeded(NS, "some-decision-1", IMAGE).is_no_update

    def test_new_image_recorded(self):
        env = _setup()
        _built(env)
        control = env.reconciler.record_build_succeeded(NS, "some-decision-1", "img:2")
        assert control.resource.status.image_ref == "img:2"

    def test_build_failed(self):
        env = _setup()
        control = env.reconciler.record_build_failed(NS, "some-decision-1", "compile error")
        status = control.resource.status
        assert status.conditions["Build"].status == "False"
        assert status.conditions["Build"].reason == "Failed"
        assert status.conditions["Ready"].reason == "BuildFailed"
        assert status.conditions["Ready"].message == "compile error"
        assert status.ready is False
        env.notifier.notify.assert_called_once()
        assert env.notifier.notify.call_args.args[3] == Phase.FAILED

    def test_unknown_version(self):
        env = _setup()
        assert env.reconciler.record_build_succeeded(NS, "nope", IMAGE).is_no_update
        assert env.reconciler.record_build_failed(NS, "nope", "x").is_no_update


# --- Reconcile ---


class TestReconcile:
    def test_not_built_does_nothing(self):
        env = _setup()
        assert env.reconciler.reconcile(env.version()).is_no_update
        assert env.stores.runtimes.writes == 0

    def test_built_creates_runtime(self):
        env = _setup()
        version = _built(env)

        control = env.reconciler.reconcile(version)

        runtime = env.stores.runtimes.get(NS, "some-decision")
        assert runtime["spec"] == {"image": IMAGE, "replicas": 1}
        status = control.resource.status
        assert status.kogito_service_ref == "some-decision"
        assert status.conditions["Service"].status == "False"
        assert status.conditions["Service"].reason == "Unknown"
        assert status.ready is False

    def test_reconcile_is_idempotent(self):
        env = _setup()
        _built(env)
        env.persist(env.reconciler.reconcile(env.version()))

        assert env.reconciler.reconcile(env.version()).is_no_update
        assert env.stores.runtimes.writes == 1

    def test_stale_snapshot_keeps_build_result(self):
        env = _setup()
        stale = env.version()
        _built(env)

        control = env.reconciler.reconcile(stale)

        status = env.persist(control).status
        assert status.conditions["Build"].status == "True"
        assert status.image_ref == IMAGE
        assert env.stores.runtimes.get(NS, "some-decision")["spec"]["image"] == IMAGE

    def test_deleted_version_is_no_update(self):
        env = _setup()
        version = _built(env)
        env.stores.versions.delete(NS, version.name)
        assert env.reconciler.reconcile(version).is_no_update

    def test_does_not_mutate_input(self):
        env = _setup()
        version = _built(env)
        snapshot = version.model_copy(deep=True)
        env.reconciler.reconcile(version)
        assert version == snapshot

    def test_provisioning(self):
        env = _setup()
        _built(env)
        env.persist(env.reconciler.reconcile(env.version()))
        env.set_runtime_status("Provisioning")

        status = env.reconciler.reconcile(env.version()).resource.status

        assert status.conditions["Service"].reason == "Provisioning"
        assert status.ready is False

    def test_deployed_is_ready(self):
        env = _setup()
        _built(env)
        env.persist(env.reconciler.reconcile(env.version()))
        env.set_runtime_status("Deployed", external_uri="https://some-decision.apps.example.com")

        status = env.reconciler.reconcile(env.version()).resource.status

        assert status.conditions["Service"].status == "True"
        assert status.conditions["Service"].reason == "Deployed"
        assert status.conditions["Ready"].status == "True"
        assert status.ready is True
        assert status.endpoint == "https://some-decision.apps.example.com"

    def test_deployed_without_external_uri_uses_service(self):
        env = _setup()
        _built(env)
        env.persist(env.reconciler.reconcile(env.version()))
        env.set_runtime_status("Deployed")
        status = env.reconciler.reconcile(env.version()).resource.status
        assert status.endpoint == "http://some-decision:8080"

    def test_new_image_replaces_runtime(self):
        env = _setup()
        _built(env)
        env.persist(env.reconciler.reconcile(env.version()))
        _built(env, image="img:2")
        env.reconciler.reconcile(env.version())
        assert env.stores.runtimes.get(NS, "some-decision")["spec"]["image"] == "img:2"
        assert env.stores.runtimes.writes == 2


class TestStaleVersion:
    def test_stale_version_not_deployed(self):
        env = _setup()
        _built(env)
        decision = env.stores.decisions.get(NS, "some-decision")
        decision.spec.definition = _definition(version="2")
        env.stores.decisions.create_or_replace(decision)

        env.reconciler.reconcile(env.version())

        assert env.stores.runtimes.writes == 0
        assert env.reconciler.is_current(env.version()) is False

    def test_stale_version_ignores_runtime_of_other_version(self):
        env = _setup()
        _built(env)
        env.persist(env.reconciler.reconcile(env.version()))
        env.set_runtime_status("Deployed")
        assert env.persist(env.reconciler.reconcile(env.version())).status.ready is True
        runtime = env.stores.runtimes.get(NS, "some-decision")
        runtime["metadata"]["labels"]["org.kie.baaas.decisionversion"] = "some-decision-2"
        env.stores.runtimes.create_or_replace(NS, runtime)
        decision = env.stores.decisions.get(NS, "some-decision")
        decision.spec.definition = _definition(version="2")
        env.stores.decisions.create_or_replace(decision)

        status = env.reconciler.reconcile(env.version()).resource.status

        assert status.ready is False
        assert status.conditions["Service"].reason == "Unknown"

    def test_missing_decision_is_not_current(self):
        env = _setup()
        env.stores.decisions.delete(NS, "some-decision")
        assert env.reconciler.is_current(env.version()) is False


class TestFailures:
    def test_build_failed_never_deploys(self):
        env = _setup()
        env.persist(env.reconciler.record_build_failed(NS, "some-decision-1", "boom"))
        assert env.reconciler.reconcile(env.version()).is_no_update
        assert env.stores.runtimes.writes == 0

    def test_store_error_marks_service_failed(self):
        runtimes = MagicMock()
        runtimes.get.return_value = None
        runtimes.create_or_replace.side_effect = StoreError("quota exceeded")
        env = _setup(runtimes=runtimes)
        _built(env)

        control = env.reconciler.reconcile(env.version())

        status = control.resource.status
        assert status.conditions["Service"].status == "False"
        assert status.conditions["Service"].reason == "Failed"
        assert status.conditions["Service"].message == "quota exceeded"
        assert status.conditions["Ready"].reason == "ServiceFailed"
        env.notifier.notify.assert_called_once()
        assert env.notifier.notify.call_args.args[2] == "quota exceeded"

    def test_service_failed_is_terminal(self):
        runtimes = MagicMock()
        runtimes.get.return_value = None
        runtimes.create_or_replace.side_effect = StoreError("quota exceeded")
        env = _setup(runtimes=runtimes)
        _built(env)
        env.persist(env.reconciler.reconcile(env.version()))

        assert env.reconciler.reconcile(env.version()).is_no_update
        assert runtimes.create_or_replace.call_count == 1

    def test_conflict_propagates(self):
        runtimes = MagicMock()
        runtimes.get.return_value = None
        runtimes.create_or_replace.side_effect = ConflictError("stale")
        env = _setup(runtimes=runtimes)
        _built(env)
        with pytest.raises(ConflictError):
            env.reconciler.reconcile(env.version())


class TestKafka:
    def _kafka_definition(self) -> DecisionVersionSpec:
        return _definition(kafka=Kafka(
            bootstrap_servers="kafka:9092",
            secret_name="c1-kafka",
            input_topic="in",
        ))

    def test_provisions_artifacts(self):
        env = _setup(definition=self._kafka_definition())
        env.stores.secrets.create_or_replace("baaas-system", {
            "metadata": {"name": "c1-kafka"},
            "data": {"clientid": "aWQ=", "clientsecret": "c2VjcmV0"},
        })
        _built(env)

        status = env.reconciler.reconcile(env.version()).resource.status

        assert status.config_ref == "some-decision-1"
        assert env.stores.config_maps.get(NS, "some-decision-1") is not None
        assert env.stores.secrets.get(NS, "some-decision-1-kafka-auth")["data"]["clientid"] == "aWQ="
        runtime = env.stores.runtimes.get(NS, "some-decision")
        assert runtime["spec"]["propertiesConfigMap"] == "some-decision-1"

    def test_missing_vault_secret_still_deploys(self):
        env = _setup(definition=self._kafka_definition())
        _built(env)
        env.reconciler.reconcile(env.version())
        assert env.stores.secrets.get(NS, "some-decision-1-kafka-auth") is None
        assert env.stores.runtimes.get(NS, "some-decision") is not None
