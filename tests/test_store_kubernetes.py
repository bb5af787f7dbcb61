"""Tests for the Kubernetes-backed stores.

All kubernetes client calls are mocked, no real cluster needed.
"""

from __future__ import annotations

import sys
from contextlib import contextmanager
from unittest.mock import MagicMock, patch

import pytest

from decision_operator.models import Decision, DecisionSpec, DecisionStatus, ObjectMeta
from decision_operator.store import ConflictError, NotFoundError, StoreError
from decision_operator.store.kubernetes import (
    KubernetesConnection,
    KubernetesCoreObjectStore,
    KubernetesCustomObjectStore,
    KubernetesNamespaceStore,
    KubernetesResourceStore,
    kubernetes_stores,
)

# --- Helpers ---


class ApiException(Exception):  # noqa: N818
    """Stands in for kubernetes.client.exceptions.ApiException (matched by name)."""

    def __init__(self, status: int, reason: str = "") -> None:
        super().__init__(reason)
        self.status = status
        self.reason = reason


@contextmanager
def _mock_kubernetes_modules():
    """Inject a mock kubernetes package into sys.modules."""
    mock_k8s = MagicMock()
    mock_client = mock_k8s.client
    mock_config = mock_k8s.config
    mock_client.ApiClient.return_value = MagicMock()

    modules = {
        "kubernetes": mock_k8s,
        "kubernetes.client": mock_client,
        "kubernetes.config": mock_config,
    }
    with patch.dict(sys.modules, modules):
        yield mock_client, mock_config


def _make_connection() -> tuple[MagicMock, MagicMock]:
    connection = MagicMock()
    connection.serialize.side_effect = lambda obj: obj
    api = connection.api.return_value
    return connection, api


def _decision_body(**overrides) -> dict:
    body = {
        "apiVersion": "operator.baaas.kie.org/v1alpha1",
        "kind": "Decision",
        "metadata": {"name": "some-decision", "namespace": "baaas-c1", "resourceVersion": "7"},
        "spec": {"definition": {"source": "somesource", "version": "1"}, "webhooks": []},
    }
    body.update(overrides)
    return body


# --- KubernetesConnection ---


class TestKubernetesConnection:
    def test_loads_kubeconfig_with_context(self):
        with _mock_kubernetes_modules() as (mock_client, mock_config):
            connection = KubernetesConnection(kubeconfig="/tmp/kube", context="dev")
            connection.api("CoreV1Api")
            mock_config.load_kube_config.assert_called_once_with(
                config_file="/tmp/kube", context="dev",
            )
            mock_client.CoreV1Api.assert_called_once_with(mock_client.ApiClient.return_value)

    def test_in_cluster(self):
        with _mock_kubernetes_modules() as (_, mock_config):
            KubernetesConnection(in_cluster=True).api_client()
            mock_config.load_incluster_config.assert_called_once()
            mock_config.load_kube_config.assert_not_called()

    def test_api_client_cached(self):
        with _mock_kubernetes_modules() as (mock_client, _):
            connection = KubernetesConnection()
            assert connection.api_client() is connection.api_client()
            mock_client.ApiClient.assert_called_once()

    def test_serialize_passes_dicts_through(self):
        assert KubernetesConnection().serialize({"a": 1}) == {"a": 1}


# --- KubernetesResourceStore ---


class TestKubernetesResourceStore:
    def test_get(self):
        connection, api = _make_connection()
        api.get_namespaced_custom_object.return_value = _decision_body()
        store = KubernetesResourceStore(Decision, connection)

        decision = store.get("baaas-c1", "some-decision")

        assert decision.name == "some-decision"
        assert decision.metadata.resource_version == "7"
        api.get_namespaced_custom_object.assert_called_once_with(
            name="some-decision",
            group="operator.baaas.kie.org",
            version="v1alpha1",
            namespace="baaas-c1",
            plural="decisions",
        )

    def test_get_missing_returns_none(self):
        connection, api = _make_connection()
        api.get_namespaced_custom_object.side_effect = ApiException(404, "Not Found")
        assert KubernetesResourceStore(Decision, connection).get("ns", "x") is None

    def test_update_status_conflict(self):
        connection, api = _make_connection()
        api.replace_namespaced_custom_object_status.side_effect = ApiException(409, "Conflict")
        store = KubernetesResourceStore(Decision, connection)
        with pytest.raises(ConflictError, match="409"):
            store.update_status(Decision.model_validate(_decision_body()))

    def test_update_status_not_found(self):
        connection, api = _make_connection()
        api.replace_namespaced_custom_object_status.side_effect = ApiException(404)
        store = KubernetesResourceStore(Decision, connection)
        with pytest.raises(NotFoundError):
            store.update_status(Decision.model_validate(_decision_body()))

    def test_other_api_errors_are_store_errors(self):
        connection, api = _make_connection()
        api.list_namespaced_custom_object.side_effect = ApiException(500, "Internal")
        store = KubernetesResourceStore(Decision, connection)
        with pytest.raises(StoreError) as exc_info:
            store.list("ns")
        assert not isinstance(exc_info.value, ConflictError)

    def test_non_api_errors_are_store_errors(self):
        connection, api = _make_connection()
        api.list_namespaced_custom_object.side_effect = OSError("connection refused")
        with pytest.raises(StoreError, match="connection refused"):
            KubernetesResourceStore(Decision, connection).list("ns")

    def test_list_uses_label_selector(self):
        connection, api = _make_connection()
        api.list_namespaced_custom_object.return_value = {"items": [_decision_body()]}
        store = KubernetesResourceStore(Decision, connection)

        decisions = store.list("baaas-c1", {"b": "2", "a": "1"})

        assert [d.name for d in decisions] == ["some-decision"]
        kwargs = api.list_namespaced_custom_object.call_args.kwargs
        assert kwargs["label_selector"] == "a=1,b=2"

    def test_create_writes_status_separately(self):
        connection, api = _make_connection()
        api.create_namespaced_custom_object.side_effect = lambda body, **_: body
        api.replace_namespaced_custom_object_status.side_effect = lambda body, **_: body
        store = KubernetesResourceStore(Decision, connection)
        decision = Decision(
            metadata=ObjectMeta(name="d", namespace="ns"),
            spec=DecisionSpec(),
            status=DecisionStatus(version_id="1"),
        )

        created = store.create(decision)

        assert created.status.version_id == "1"
        api.replace_namespaced_custom_object_status.assert_called_once()

    def test_create_or_replace_uses_current_resource_version(self):
        connection, api = _make_connection()
        api.get_namespaced_custom_object.return_value = _decision_body()
        api.replace_namespaced_custom_object.side_effect = lambda body, **_: body
        store = KubernetesResourceStore(Decision, connection)
        desired = Decision.model_validate(_decision_body(metadata={
            "name": "some-decision", "namespace": "baaas-c1",
        }))

        store.create_or_replace(desired)

        body = api.replace_namespaced_custom_object.call_args.kwargs["body"]
        assert body["metadata"]["resourceVersion"] == "7"
        api.replace_namespaced_custom_object_status.assert_not_called()

    def test_create_or_replace_creates_when_missing(self):
        connection, api = _make_connection()
        api.get_namespaced_custom_object.side_effect = ApiException(404)
        api.create_namespaced_custom_object.side_effect = lambda body, **_: body
        store = KubernetesResourceStore(Decision, connection)

        store.create_or_replace(Decision.model_validate(_decision_body()))

        api.create_namespaced_custom_object.assert_called_once()
        api.replace_namespaced_custom_object.assert_not_called()


# --- Untyped stores ---


class TestKubernetesNamespaceStore:
    def test_get_missing(self):
        connection, api = _make_connection()
        api.read_namespace.side_effect = ApiException(404)
        assert KubernetesNamespaceStore(connection).get("baaas-c1") is None

    def test_create_conflict(self):
        connection, api = _make_connection()
        api.create_namespace.side_effect = ApiException(409)
        with pytest.raises(ConflictError):
            KubernetesNamespaceStore(connection).create("baaas-c1")


class TestKubernetesCustomObjectStore:
    def test_replace_keeps_resource_version(self):
        connection, api = _make_connection()
        api.get_namespaced_custom_object.return_value = {
            "metadata": {"name": "rt", "resourceVersion": "11"},
        }
        api.replace_namespaced_custom_object.side_effect = lambda body, **_: body
        store = KubernetesCustomObjectStore(connection)

        result = store.create_or_replace("ns", {"metadata": {"name": "rt"}, "spec": {}})

        assert result["metadata"]["resourceVersion"] == "11"
        kwargs = api.replace_namespaced_custom_object.call_args.kwargs
        assert kwargs["group"] == "app.kiegroup.org"
        assert kwargs["plural"] == "kogitoruntimes"

    def test_create_when_missing(self):
        connection, api = _make_connection()
        api.get_namespaced_custom_object.side_effect = ApiException(404)
        store = KubernetesCustomObjectStore(connection)
        store.create_or_replace("ns", {"metadata": {"name": "rt"}})
        api.create_namespaced_custom_object.assert_called_once()


class TestKubernetesCoreObjectStore:
    def test_reads_config_map(self):
        connection, api = _make_connection()
        api.read_namespaced_config_map.return_value = {"data": {"a": "b"}}
        store = KubernetesCoreObjectStore(connection, "config_map")
        assert store.get("ns", "cm") == {"data": {"a": "b"}}
        api.read_namespaced_config_map.assert_called_once_with(name="cm", namespace="ns")

    def test_replaces_existing_secret(self):
        connection, api = _make_connection()
        api.read_namespaced_secret.return_value = {"data": {}}
        store = KubernetesCoreObjectStore(connection, "secret")
        store.create_or_replace("ns", {"metadata": {"name": "s"}, "data": {}})
        api.replace_namespaced_secret.assert_called_once()
        api.create_namespaced_secret.assert_not_called()

    def test_creates_missing_secret(self):
        connection, api = _make_connection()
        api.read_namespaced_secret.side_effect = ApiException(404)
        store = KubernetesCoreObjectStore(connection, "secret")
        store.create_or_replace("ns", {"metadata": {"name": "s"}, "data": {}})
        api.create_namespaced_secret.assert_called_once()

    def test_unsupported_kind(self):
        with pytest.raises(StoreError, match="Unsupported"):
            KubernetesCoreObjectStore(MagicMock(), "pod")


def test_kubernetes_stores_wires_every_store():
    stores = kubernetes_stores()
    assert isinstance(stores.versions, KubernetesResourceStore)
    assert isinstance(stores.namespaces, KubernetesNamespaceStore)
    assert isinstance(stores.runtimes, KubernetesCustomObjectStore)
    assert isinstance(stores.secrets, KubernetesCoreObjectStore)
