"""KogitoRuntime synthesis and per-version Kafka artifacts.

The running decision service is a ``KogitoRuntime`` custom object that the
Kogito operator controls. This module builds the descriptor the decision
operator wants, decides whether the observed one must be replaced, and
provisions the ConfigMap and Secret a Kafka-bound version needs.

Only ``image`` and ``replicas`` are governed here. Everything else on the
observed runtime (its status, generated fields) belongs to the Kogito
operator and never triggers a replace.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from decision_operator.constants import (
    CUSTOMER_LABEL,
    DECISION_LABEL,
    DECISION_VERSION_LABEL,
    ENV_KAFKA_BOOTSTRAP_SERVERS,
    ENV_KAFKA_CLIENT_ID,
    ENV_KAFKA_CLIENT_SECRET,
    ENV_KAFKA_INCOMING_TOPIC,
    ENV_KAFKA_OUTGOING_TOPIC,
    KAFKA_CLIENT_ID_KEY,
    KAFKA_CLIENT_SECRET_KEY,
    KAFKA_SECRET_SUFFIX,
    MANAGED_BY_LABEL,
    OPERATOR_NAME,
    RESOURCE_KOGITO_SERVICE,
    RESOURCE_LABEL,
    RUNTIME_API_VERSION,
    RUNTIME_KIND,
    RUNTIME_PORT,
    RUNTIME_REPLICAS,
)
from decision_operator.models import DecisionVersion

if TYPE_CHECKING:
    from decision_operator.config import OperatorConfig
    from decision_operator.store.base import ObjectStore

logger = logging.getLogger(__name__)


# --- Naming ---


def service_name(version: DecisionVersion) -> str:
    """All versions of a Decision share one runtime, named after the Decision."""
    return version.metadata.labels.get(DECISION_LABEL) or version.metadata.name


def service_url(version: DecisionVersion) -> str:
    return f"http://{service_name(version)}:{RUNTIME_PORT}"


def kafka_secret_name(version: DecisionVersion) -> str:
    return version.metadata.name + KAFKA_SECRET_SUFFIX


# --- Descriptor ---


def _env_value(name: str, value: str | None) -> dict[str, Any]:
    return {"name": name, "value": value}


def _env_from_secret(name: str, key: str, secret: str) -> dict[str, Any]:
    return {"name": name, "valueFrom": {"secretKeyRef": {"name": secret, "key": key}}}


def build_env(version: DecisionVersion) -> list[dict[str, Any]]:
    """Kafka environment bindings, in a stable order. Empty without Kafka."""
    kafka = version.spec.kafka
    if kafka is None:
        return []
    secret = kafka_secret_name(version)
    env = [
        _env_from_secret(ENV_KAFKA_CLIENT_ID, KAFKA_CLIENT_ID_KEY, secret),
        _env_from_secret(ENV_KAFKA_CLIENT_SECRET, KAFKA_CLIENT_SECRET_KEY, secret),
        _env_value(ENV_KAFKA_BOOTSTRAP_SERVERS, kafka.bootstrap_servers),
    ]
    if kafka.input_topic is not None:
        env.append(_env_value(ENV_KAFKA_INCOMING_TOPIC, kafka.input_topic))
    if kafka.output_topic is not None:
        env.append(_env_value(ENV_KAFKA_OUTGOING_TOPIC, kafka.output_topic))
    return env


def build_runtime(version: DecisionVersion) -> dict[str, Any]:
    """Desired KogitoRuntime for *version*. Pure: *version* is not modified.

    The owner references are the version's own, with ``controller`` cleared:
    the Kogito operator must be the controller, but the Decision still
    cascades deletion to the runtime.
    """
    spec: dict[str, Any] = {
        "image": version.status.image_ref,
        "replicas": RUNTIME_REPLICAS,
    }
    if version.spec.kafka is not None:
        spec["propertiesConfigMap"] = version.metadata.name
        spec["env"] = build_env(version)

    labels = {
        RESOURCE_LABEL: RESOURCE_KOGITO_SERVICE,
        DECISION_VERSION_LABEL: version.metadata.name,
        DECISION_LABEL: version.metadata.labels.get(DECISION_LABEL),
        CUSTOMER_LABEL: version.metadata.labels.get(CUSTOMER_LABEL),
        MANAGED_BY_LABEL: OPERATOR_NAME,
    }
    owner_references = [
        ref.model_copy(update={"controller": False}).to_dict()
        for ref in version.metadata.owner_references
    ]
    return {
        "apiVersion": RUNTIME_API_VERSION,
        "kind": RUNTIME_KIND,
        "metadata": {
            "name": service_name(version),
            "namespace": version.metadata.namespace,
            "labels": {k: v for k, v in labels.items() if v is not None},
            "ownerReferences": owner_references,
        },
        "spec": spec,
    }


def needs_update(desired: dict[str, Any], observed: dict[str, Any] | None) -> bool:
    """True when *observed* is missing or its image or replicas drifted."""
    if observed is None:
        return True
    desired_spec = desired.get("spec") or {}
    observed_spec = observed.get("spec") or {}
    return (
        desired_spec.get("image") != observed_spec.get("image")
        or desired_spec.get("replicas") != observed_spec.get("replicas")
    )


# --- Observed state ---


def runtime_condition(observed: dict[str, Any] | None, type_: str) -> bool:
    """Whether the Kogito operator reports condition *type_* as True."""
    if observed is None:
        return False
    conditions = (observed.get("status") or {}).get("conditions") or []
    return any(
        c.get("type") == type_ and str(c.get("status")) == "True"
        for c in conditions
    )


def runtime_endpoint(observed: dict[str, Any] | None, version: DecisionVersion) -> str:
    """Public endpoint: the runtime's externalURI, else the in-cluster service URL."""
    if observed is not None:
        external = (observed.get("status") or {}).get("externalURI")
        if external:
            return external
    return service_url(version)


# --- Provisioning ---


class RuntimeProvisioner:
    """Upserts a version's KogitoRuntime and Kafka artifacts.

    Every write follows the same rule: fetch, compare what this operator
    governs, and create-or-replace only on difference.
    """

    def __init__(
        self,
        runtimes: ObjectStore,
        config_maps: ObjectStore,
        secrets: ObjectStore,
        config: OperatorConfig,
    ) -> None:
        self._runtimes = runtimes
        self._config_maps = config_maps
        self._secrets = secrets
        self._config = config

    def observed_runtime(self, version: DecisionVersion) -> dict[str, Any] | None:
        return self._runtimes.get(version.metadata.namespace or "", service_name(version))

    def apply_runtime(
        self,
        version: DecisionVersion,
        observed: dict[str, Any] | None,
    ) -> bool:
        """Create or replace the runtime when needed. Returns ``True`` on write."""
        desired = build_runtime(version)
        if not needs_update(desired, observed):
            logger.debug("KogitoRuntime %s is up to date", desired["metadata"]["name"])
            return False
        logger.info(
            "Creating or replacing KogitoRuntime %s/%s for version %s",
            version.metadata.namespace,
            desired["metadata"]["name"],
            version.metadata.name,
        )
        self._runtimes.create_or_replace(version.metadata.namespace or "", desired)
        return True

    def provision_kafka_config(self, version: DecisionVersion) -> dict[str, Any]:
        """ConfigMap named after the version holding the Kafka application properties."""
        namespace = version.metadata.namespace or ""
        expected = {
            "apiVersion": "v1",
            "kind": "ConfigMap",
            "metadata": {
                "name": version.metadata.name,
                "namespace": namespace,
                "labels": self._artifact_labels(version),
                "ownerReferences": [version.owner_reference().to_dict()],
            },
            "data": dict(self._config.kafka_properties),
        }
        current = self._config_maps.get(namespace, version.metadata.name)
        if current is not None and current.get("data") == expected["data"]:
            logger.debug("Using existing Kafka config for version %s", version.metadata.name)
            return current
        logger.debug("Creating or replacing Kafka config for version %s", version.metadata.name)
        return self._config_maps.create_or_replace(namespace, expected)

    def provision_kafka_secret(self, version: DecisionVersion) -> dict[str, Any] | None:
        """Copy the pre-provisioned credentials into a secret owned by the version.

        Returns ``None`` when the source secret is missing from the operator
        namespace.
        """
        kafka = version.spec.kafka
        if kafka is None or not kafka.secret_name:
            return None
        namespace = version.metadata.namespace or ""
        name = kafka_secret_name(version)
        source = self._secrets.get(self._config.operator_namespace, kafka.secret_name)
        if source is None:
            logger.error(
                "Missing required kafka-auth secret %s in %s",
                kafka.secret_name,
                self._config.operator_namespace,
            )
            return None
        current = self._secrets.get(namespace, name)
        if current is not None and current.get("data") == source.get("data"):
            return current
        expected = {
            "apiVersion": "v1",
            "kind": "Secret",
            "metadata": {
                "name": name,
                "namespace": namespace,
                "labels": self._artifact_labels(version),
                "ownerReferences": [version.owner_reference().to_dict()],
            },
            "data": dict(source.get("data") or {}),
        }
        logger.debug("Creating or replacing kafka-auth secret %s in %s", name, namespace)
        return self._secrets.create_or_replace(namespace, expected)

    @staticmethod
    def _artifact_labels(version: DecisionVersion) -> dict[str, str]:
        labels = {
            DECISION_VERSION_LABEL: version.metadata.name,
            DECISION_LABEL: version.metadata.labels.get(DECISION_LABEL),
            MANAGED_BY_LABEL: OPERATOR_NAME,
        }
        return {k: v for k, v in labels.items() if v is not None}
