"""DecisionRequest admission.

Validates a customer's request, maps it to the customer namespace and
upserts the Decision there. The outcome is recorded on the request's
status only: ``Accepted`` with a reference to the Decision, or
``Rejected`` with a reason code. Rejections are terminal; the customer
has to resubmit.
"""

from __future__ import annotations

import logging
import re
from typing import Annotated

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictStr,
    StringConstraints,
    ValidationError,
    model_validator,
)
from pydantic.alias_generators import to_camel

from decision_operator.conditions import has_failed
from decision_operator.config import OperatorConfig
from decision_operator.constants import (
    CONDITION_BUILD,
    CUSTOMER_LABEL,
    DECISION_LABEL,
    DECISION_REQUEST_LABEL,
    DUPLICATED_VERSION,
    MANAGED_BY_LABEL,
    OPERATOR_NAME,
    SERVER_ERROR,
    VALIDATION_ERROR,
    VERSION_BUILD_FAILED,
)
from decision_operator.control import UpdateControl
from decision_operator.models import (
    AdmissionStatus,
    Decision,
    DecisionRequest,
    DecisionRequestStatus,
    DecisionSpec,
    DecisionVersion,
    DecisionVersionRef,
    ObjectMeta,
)
from decision_operator.store.base import (
    ConflictError,
    NamespaceStore,
    ResourceStore,
    StoreError,
)

logger = logging.getLogger(__name__)

DNS1123_LABEL = re.compile(r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?$")
DNS1123_SUBDOMAIN = r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?(\.[a-z0-9]([-a-z0-9]*[a-z0-9])?)*$"
WEBHOOK_URL = r"^https?://\S+$"
# Version names are also label values on every derived object
MAX_VERSION_NAME = 63

NonBlank = Annotated[str, StringConstraints(strict=True, min_length=1, pattern=r"\S")]
VersionLabel = Annotated[
    str,
    StringConstraints(
        strict=True, min_length=1, max_length=MAX_VERSION_NAME, pattern=DNS1123_SUBDOMAIN,
    ),
]


class AdmissionError(Exception):
    """Raised when a request is rejected. Carries the reason code."""

    def __init__(self, reason: str, message: str) -> None:
        super().__init__(message)
        self.reason = reason
        self.message = message


# --- Request schema ---


class _Strict(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")


class KafkaSchema(_Strict):
    bootstrap_servers: NonBlank
    secret_name: NonBlank
    input_topic: StrictStr | None = None
    output_topic: StrictStr | None = None


class DefinitionSchema(_Strict):
    source: NonBlank
    version: VersionLabel
    kafka: KafkaSchema | None = None


class RequestSpecSchema(_Strict):
    customer_id: NonBlank
    name: Annotated[
        str, StringConstraints(strict=True, min_length=1, max_length=253, pattern=DNS1123_SUBDOMAIN),
    ]
    definition: DefinitionSchema
    webhooks: list[Annotated[str, StringConstraints(strict=True, pattern=WEBHOOK_URL)]] = Field(
        default_factory=list,
    )

    @model_validator(mode="after")
    def _check_version_name(self) -> RequestSpecSchema:
        version_name = f"{self.name}-{self.definition.version}"
        if len(version_name) > MAX_VERSION_NAME:
            msg = f"{version_name!r} must be at most {MAX_VERSION_NAME} characters"
            raise ValueError(msg)
        return self


def format_errors(exc: ValidationError) -> str:
    return ",".join(
        " ".join(filter(None, (".".join(str(part) for part in error["loc"]), error["msg"])))
        for error in exc.errors()
    )


# --- Validation ---


def validate_request(request: DecisionRequest, config: OperatorConfig) -> str:
    """Offline checks: customer id, schema and target namespace.

    Returns the target namespace.

    Raises:
        AdmissionError: On the first failing check.
    """
    spec = request.spec
    if spec.customer_id is None or not spec.customer_id.strip():
        raise AdmissionError(VALIDATION_ERROR, "Invalid spec: customerId must not be blank")

    try:
        RequestSpecSchema.model_validate(spec.to_dict())
    except ValidationError as exc:
        raise AdmissionError(VALIDATION_ERROR, f"Invalid spec: {format_errors(exc)}") from exc

    namespace = config.target_namespace(spec.customer_id)
    if len(namespace) > 63 or not DNS1123_LABEL.match(namespace):
        msg = f"Invalid target namespace: {namespace}"
        raise AdmissionError(VALIDATION_ERROR, msg)
    return namespace


class AdmissionReconciler:
    def __init__(
        self,
        namespaces: NamespaceStore,
        decisions: ResourceStore[Decision],
        versions: ResourceStore[DecisionVersion],
        config: OperatorConfig,
    ) -> None:
        self._namespaces = namespaces
        self._decisions = decisions
        self._versions = versions
        self._config = config

    def reconcile(self, request: DecisionRequest) -> UpdateControl:
        local = request.model_copy(deep=True)
        try:
            namespace = validate_request(local, self._config)
            self.validate_version(local, namespace)
            decision = self._admit(local, namespace)
        except AdmissionError as exc:
            return self._reject(local, exc)

        accepted = DecisionRequestStatus(
            state=AdmissionStatus.ACCEPTED,
            version_ref=DecisionVersionRef(
                name=decision.metadata.name,
                namespace=namespace,
                version=local.spec.definition.version,
            ),
        )
        if local.status is not None and local.status.to_dict() == accepted.to_dict():
            return UpdateControl.no_update()
        logger.info(
            "Accepted DecisionRequest %s/%s as Decision %s/%s",
            local.metadata.namespace,
            local.metadata.name,
            namespace,
            decision.metadata.name,
        )
        local.status = accepted
        return UpdateControl.update_status(local)

    def validate_version(self, request: DecisionRequest, namespace: str) -> None:
        """Reject a version label already used by a failed or different build."""
        definition = request.spec.definition
        try:
            existing = self._versions.list(namespace, labels={DECISION_LABEL: request.spec.name})
        except ConflictError:
            raise
        except StoreError as exc:
            raise AdmissionError(SERVER_ERROR, str(exc)) from exc

        for version in existing:
            if version.spec.version != definition.version:
                continue
            if has_failed(version.status, CONDITION_BUILD):
                raise AdmissionError(VERSION_BUILD_FAILED, "Requested DecisionVersion build failed")
            if version.spec.to_dict() != definition.to_dict():
                raise AdmissionError(
                    DUPLICATED_VERSION,
                    "The provided version already exists with a different spec",
                )

    def expected_decision(self, request: DecisionRequest, namespace: str) -> Decision:
        return Decision(
            metadata=ObjectMeta(
                name=request.spec.name,
                namespace=namespace,
                labels={
                    DECISION_REQUEST_LABEL: request.metadata.uid or request.metadata.name,
                    CUSTOMER_LABEL: request.spec.customer_id,
                    MANAGED_BY_LABEL: OPERATOR_NAME,
                },
            ),
            spec=DecisionSpec(
                definition=request.spec.definition.model_copy(deep=True),
                webhooks=list(request.spec.webhooks),
            ),
        )

    def _admit(self, request: DecisionRequest, namespace: str) -> Decision:
        try:
            self._ensure_namespace(namespace)
            expected = self.expected_decision(request, namespace)
            current = self._decisions.get(namespace, expected.metadata.name)
            if current is not None and current.spec.to_dict() == expected.spec.to_dict():
                logger.debug("Decision %s/%s is up to date", namespace, current.name)
                return current
            if current is not None:
                # Keep the active version until the new one is ready
                expected.status = current.status
            logger.info("Creating or replacing Decision %s/%s", namespace, expected.name)
            return self._decisions.create_or_replace(expected)
        except ConflictError:
            raise
        except StoreError as exc:
            logger.error("Unable to admit DecisionRequest %s: %s", request.metadata.name, exc)
            raise AdmissionError(SERVER_ERROR, str(exc)) from exc

    def _ensure_namespace(self, namespace: str) -> None:
        if self._namespaces.get(namespace) is not None:
            return
        logger.info("Creating namespace %s", namespace)
        try:
            self._namespaces.create(namespace)
        except ConflictError:
            logger.debug("Namespace %s was created concurrently", namespace)

    def _reject(self, request: DecisionRequest, exc: AdmissionError) -> UpdateControl:
        rejected = DecisionRequestStatus(
            state=AdmissionStatus.REJECTED,
            reason=exc.reason,
            message=exc.message,
        )
        if request.status is not None and request.status.to_dict() == rejected.to_dict():
            return UpdateControl.no_update()
        logger.info(
            "Rejected DecisionRequest %s/%s: %s %s",
            request.metadata.namespace,
            request.metadata.name,
            exc.reason,
            exc.message,
        )
        request.status = rejected
        return UpdateControl.rejected(request)
