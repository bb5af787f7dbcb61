"""Kubernetes-backed stores using the official ``kubernetes`` Python client.

Supports a kubeconfig file, an explicit context, or in-cluster config.
API errors are translated into the store error types: 404 reads return
``None``, 404 writes raise ``NotFoundError``, 409 raises ``ConflictError``
and anything else raises ``StoreError``.
"""

from __future__ import annotations

import contextlib
from collections.abc import Iterator
from typing import TYPE_CHECKING, Any, Generic

from decision_operator.constants import (
    API_GROUP,
    API_VERSION,
    RUNTIME_GROUP,
    RUNTIME_PLURAL,
    RUNTIME_VERSION,
)
from decision_operator.models import Decision, DecisionRequest, DecisionVersion
from decision_operator.store.base import ConflictError, NotFoundError, StoreError, Stores, T

if TYPE_CHECKING:
    from decision_operator.config import OperatorConfig


@contextlib.contextmanager
def _api_errors(what: str) -> Iterator[None]:
    """Translate kubernetes client exceptions into store errors."""
    try:
        yield
    except StoreError:
        raise
    except Exception as exc:
        # Detect kubernetes ApiException by class name to avoid import
        if type(exc).__name__ == "ApiException":
            status = getattr(exc, "status", None)
            detail = f"K8s API error ({status}) on {what}: {getattr(exc, 'reason', exc)}"
            if status == 404:
                raise NotFoundError(detail) from exc
            if status == 409:
                raise ConflictError(detail) from exc
            raise StoreError(detail) from exc
        raise StoreError(f"K8s client error on {what}: {exc}") from exc


def _label_selector(labels: dict[str, str] | None) -> str:
    return ",".join(f"{k}={v}" for k, v in sorted((labels or {}).items()))


class KubernetesConnection:
    """Lazily builds one shared ``ApiClient`` from kubeconfig or in-cluster config."""

    def __init__(
        self,
        kubeconfig: str | None = None,
        context: str | None = None,
        in_cluster: bool = False,
    ) -> None:
        self._kubeconfig = kubeconfig
        self._context = context
        self._in_cluster = in_cluster
        self._api_client: Any = None

    def api_client(self) -> Any:
        if self._api_client is not None:
            return self._api_client

        from kubernetes import client, config

        if self._in_cluster:
            config.load_incluster_config()
        else:
            kwargs: dict[str, Any] = {}
            if self._kubeconfig:
                kwargs["config_file"] = self._kubeconfig
            if self._context:
                kwargs["context"] = self._context
            config.load_kube_config(**kwargs)
        self._api_client = client.ApiClient()
        return self._api_client

    def api(self, api_class_name: str) -> Any:
        """Instantiate the named API class (``CoreV1Api``, ``CustomObjectsApi``...)."""
        from kubernetes import client

        api_cls = getattr(client, api_class_name)
        return api_cls(self.api_client())

    def serialize(self, k8s_object: Any) -> dict[str, Any]:
        """Convert a kubernetes client model to its camelCase wire dict."""
        if isinstance(k8s_object, dict):
            return k8s_object
        return self.api_client().sanitize_for_serialization(k8s_object)


class KubernetesResourceStore(Generic[T]):
    """Typed store over ``CustomObjectsApi`` for one of the operator's kinds."""

    def __init__(
        self,
        model: type[T],
        connection: KubernetesConnection,
        group: str = API_GROUP,
        version: str = API_VERSION,
    ) -> None:
        self._model = model
        self._connection = connection
        self._group = group
        self._version = version
        self._plural = model.PLURAL

    def _api(self) -> Any:
        return self._connection.api("CustomObjectsApi")

    def _coords(self, namespace: str) -> dict[str, str]:
        return {
            "group": self._group,
            "version": self._version,
            "namespace": namespace,
            "plural": self._plural,
        }

    def get(self, namespace: str, name: str) -> T | None:
        try:
            with _api_errors(f"get {self._plural} {namespace}/{name}"):
                data = self._api().get_namespaced_custom_object(
                    name=name, **self._coords(namespace),
                )
        except NotFoundError:
            return None
        return self._model.model_validate(data)

    def create(self, resource: T) -> T:
        namespace = resource.metadata.namespace or ""
        with _api_errors(f"create {self._plural} {namespace}/{resource.name}"):
            data = self._api().create_namespaced_custom_object(
                body=resource.to_dict(), **self._coords(namespace),
            )
        created = self._model.model_validate(data)
        if resource.to_dict().get("status"):
            # The status sub-resource is ignored on create
            created.status = resource.status
            created = self.update_status(created)
        return created

    def create_or_replace(self, resource: T) -> T:
        namespace = resource.metadata.namespace or ""
        current = self.get(namespace, resource.name)
        if current is None:
            return self.create(resource)

        body = resource.to_dict()
        body["metadata"]["resourceVersion"] = current.metadata.resource_version
        with _api_errors(f"replace {self._plural} {namespace}/{resource.name}"):
            data = self._api().replace_namespaced_custom_object(
                name=resource.name, body=body, **self._coords(namespace),
            )
        replaced = self._model.model_validate(data)
        if replaced.to_dict().get("status") != body.get("status"):
            replaced.status = resource.status
            replaced = self.update_status(replaced)
        return replaced

    def update_status(self, resource: T) -> T:
        namespace = resource.metadata.namespace or ""
        with _api_errors(f"update status {self._plural} {namespace}/{resource.name}"):
            data = self._api().replace_namespaced_custom_object_status(
                name=resource.name, body=resource.to_dict(), **self._coords(namespace),
            )
        return self._model.model_validate(data)

    def list(self, namespace: str, labels: dict[str, str] | None = None) -> list[T]:
        with _api_errors(f"list {self._plural} in {namespace}"):
            data = self._api().list_namespaced_custom_object(
                label_selector=_label_selector(labels), **self._coords(namespace),
            )
        return [self._model.model_validate(item) for item in data.get("items", [])]


class KubernetesNamespaceStore:
    def __init__(self, connection: KubernetesConnection) -> None:
        self._connection = connection

    def get(self, name: str) -> dict[str, Any] | None:
        core = self._connection.api("CoreV1Api")
        try:
            with _api_errors(f"read namespace {name}"):
                return self._connection.serialize(core.read_namespace(name=name))
        except NotFoundError:
            return None

    def create(self, name: str) -> dict[str, Any]:
        core = self._connection.api("CoreV1Api")
        with _api_errors(f"create namespace {name}"):
            created = core.create_namespace(body={"metadata": {"name": name}})
        return self._connection.serialize(created)


class KubernetesCustomObjectStore:
    """Untyped store for custom objects owned by another controller."""

    def __init__(
        self,
        connection: KubernetesConnection,
        group: str = RUNTIME_GROUP,
        version: str = RUNTIME_VERSION,
        plural: str = RUNTIME_PLURAL,
    ) -> None:
        self._connection = connection
        self._coords = {"group": group, "version": version, "plural": plural}

    def get(self, namespace: str, name: str) -> dict[str, Any] | None:
        api = self._connection.api("CustomObjectsApi")
        try:
            with _api_errors(f"get {self._coords['plural']} {namespace}/{name}"):
                return api.get_namespaced_custom_object(
                    namespace=namespace, name=name, **self._coords,
                )
        except NotFoundError:
            return None

    def create_or_replace(self, namespace: str, body: dict[str, Any]) -> dict[str, Any]:
        api = self._connection.api("CustomObjectsApi")
        name = body["metadata"]["name"]
        current = self.get(namespace, name)
        with _api_errors(f"create or replace {self._coords['plural']} {namespace}/{name}"):
            if current is None:
                return api.create_namespaced_custom_object(
                    namespace=namespace, body=body, **self._coords,
                )
            replacement = {**body, "metadata": {
                **body["metadata"],
                "resourceVersion": current["metadata"].get("resourceVersion"),
            }}
            return api.replace_namespaced_custom_object(
                namespace=namespace, name=name, body=replacement, **self._coords,
            )


class KubernetesCoreObjectStore:
    """Untyped store for ConfigMaps or Secrets via ``CoreV1Api``."""

    _METHODS = {
        "config_map": "namespaced_config_map",
        "secret": "namespaced_secret",
    }

    def __init__(self, connection: KubernetesConnection, kind: str) -> None:
        if kind not in self._METHODS:
            msg = f"Unsupported core object kind: {kind}"
            raise StoreError(msg)
        self._connection = connection
        self._kind = kind
        self._suffix = self._METHODS[kind]

    def get(self, namespace: str, name: str) -> dict[str, Any] | None:
        core = self._connection.api("CoreV1Api")
        read = getattr(core, f"read_{self._suffix}")
        try:
            with _api_errors(f"read {self._kind} {namespace}/{name}"):
                return self._connection.serialize(read(name=name, namespace=namespace))
        except NotFoundError:
            return None

    def create_or_replace(self, namespace: str, body: dict[str, Any]) -> dict[str, Any]:
        core = self._connection.api("CoreV1Api")
        name = body["metadata"]["name"]
        exists = self.get(namespace, name) is not None
        with _api_errors(f"create or replace {self._kind} {namespace}/{name}"):
            if exists:
                result = getattr(core, f"replace_{self._suffix}")(
                    name=name, namespace=namespace, body=body,
                )
            else:
                result = getattr(core, f"create_{self._suffix}")(
                    namespace=namespace, body=body,
                )
        return self._connection.serialize(result)


def kubernetes_stores(config: OperatorConfig | None = None) -> Stores:
    connection = KubernetesConnection(
        kubeconfig=config.kubeconfig if config else None,
        context=config.context if config else None,
        in_cluster=config.in_cluster if config else False,
    )
    return Stores(
        requests=KubernetesResourceStore(DecisionRequest, connection),
        decisions=KubernetesResourceStore(Decision, connection),
        versions=KubernetesResourceStore(DecisionVersion, connection),
        namespaces=KubernetesNamespaceStore(connection),
        runtimes=KubernetesCustomObjectStore(connection),
        config_maps=KubernetesCoreObjectStore(connection, "config_map"),
        secrets=KubernetesCoreObjectStore(connection, "secret"),
    )
