"""Config file loading and auto-discovery for the decision operator.

Searches for ``decision-operator.yaml`` in the current directory and parent
directories, parses it, and resolves relative paths against the config
file's location.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

CONFIG_FILENAME = "decision-operator.yaml"

DEFAULT_NAMESPACE_TEMPLATE = "baaas-{customer_id}"

DEFAULT_KAFKA_PROPERTIES: dict[str, str] = {
    "application.properties": "\n".join([
        "kafka.bootstrap.servers=${BAAAS_KAFKA_BOOTSTRAP_SERVERS}",
        "mp.messaging.incoming.kogito_incoming_stream.connector=smallrye-kafka",
        "mp.messaging.incoming.kogito_incoming_stream.topic=${BAAAS_KAFKA_INCOMING_TOPIC}",
        "mp.messaging.incoming.kogito_incoming_stream.value.deserializer="
        "org.apache.kafka.common.serialization.StringDeserializer",
        "mp.messaging.outgoing.kogito_outgoing_stream.connector=smallrye-kafka",
        "mp.messaging.outgoing.kogito_outgoing_stream.topic=${BAAAS_KAFKA_OUTGOING_TOPIC}",
        "mp.messaging.outgoing.kogito_outgoing_stream.value.serializer="
        "org.apache.kafka.common.serialization.StringSerializer",
        "kafka.security.protocol=SASL_SSL",
        "kafka.sasl.mechanism=PLAIN",
        "kafka.sasl.jaas.config=org.apache.kafka.common.security.plain.PlainLoginModule "
        'required username="${BAAAS_KAFKA_CLIENTID}" password="${BAAAS_KAFKA_CLIENTSECRET}";',
    ]) + "\n",
}


@dataclass(frozen=True)
class OperatorConfig:
    """Parsed decision operator configuration."""

    config_path: Path | None = None
    namespace_template: str = DEFAULT_NAMESPACE_TEMPLATE
    operator_namespace: str = "baaas-system"
    kubeconfig: str | None = None
    context: str | None = None
    in_cluster: bool = False
    webhook_timeout: float = 10.0
    version_resync_interval: float = 30.0
    kafka_properties: dict[str, str] = field(
        default_factory=lambda: dict(DEFAULT_KAFKA_PROPERTIES),
    )
    log_level: str = "INFO"

    def target_namespace(self, customer_id: str) -> str:
        """Namespace that hosts all Decisions of one customer."""
        return self.namespace_template.format(customer_id=customer_id)


def find_config(start: Path | None = None) -> Path | None:
    """Walk from *start* (default ``cwd()``) up to the filesystem root.

    Returns the first ``decision-operator.yaml`` found, or ``None``.
    """
    current = (start or Path.cwd()).resolve()
    while True:
        candidate = current / CONFIG_FILENAME
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            return None
        current = parent


def load_config(
    path: str | Path | None = None,
    *,
    auto_discover: bool = True,
) -> OperatorConfig:
    """Load a decision operator config file.

    Resolution order:

    1. Explicit *path* (error if it doesn't exist).
    2. Auto-discover by walking parent directories.
    3. Return an empty ``OperatorConfig`` (all defaults).
    """
    config_path: Path | None = None

    if path is not None:
        config_path = Path(path).resolve()
        if not config_path.is_file():
            msg = f"Config file not found: {config_path}"
            raise FileNotFoundError(msg)
    elif auto_discover:
        config_path = find_config()

    if config_path is None:
        return OperatorConfig()

    return _parse_config(config_path)


def _parse_config(config_path: Path) -> OperatorConfig:
    """Read and parse a YAML config file, resolving relative paths."""
    text = config_path.read_text(encoding="utf-8")
    data = yaml.safe_load(text) or {}

    if not isinstance(data, dict):
        msg = f"Expected a YAML mapping in {config_path}, got {type(data).__name__}"
        raise ValueError(msg)

    template = data.get("namespace_template", DEFAULT_NAMESPACE_TEMPLATE)
    if "{customer_id}" not in template:
        msg = f"namespace_template must contain '{{customer_id}}', got {template!r}"
        raise ValueError(msg)
    try:
        template.format(customer_id="c1")
    except (KeyError, IndexError, ValueError) as exc:
        msg = f"namespace_template {template!r} cannot be formatted: {exc!r}"
        raise ValueError(msg) from exc

    kubeconfig = data.get("kubeconfig")
    if kubeconfig is not None:
        kubeconfig = str((config_path.parent / Path(kubeconfig).expanduser()).resolve())

    kafka_properties: dict[str, Any] = data.get("kafka_properties") or DEFAULT_KAFKA_PROPERTIES

    return OperatorConfig(
        config_path=config_path,
        namespace_template=template,
        operator_namespace=data.get("operator_namespace", "baaas-system"),
        kubeconfig=kubeconfig,
        context=data.get("context"),
        in_cluster=bool(data.get("in_cluster", False)),
        webhook_timeout=float(data.get("webhook_timeout", 10.0)),
        version_resync_interval=float(data.get("version_resync_interval", 30.0)),
        kafka_properties={str(k): str(v) for k, v in kafka_properties.items()},
        log_level=str(data.get("log_level", "INFO")).upper(),
    )
