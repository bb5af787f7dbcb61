"""Resource models for the decision operator.

Defines the schemas for:
- Object metadata and owner references (Kubernetes value objects)
- Decision definitions (ruleset source, version, Kafka binding)
- DecisionRequest (customer-facing admission request)
- Decision (logical decision service per customer namespace)
- DecisionVersion (one immutable build of a ruleset)
- Conditions tracked on a DecisionVersion

All models accept snake_case or camelCase input and serialise to the
camelCase wire form through ``to_dict()``.
"""

from __future__ import annotations

import enum
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from decision_operator.constants import (
    API_GROUP_VERSION,
    KIND_DECISION,
    KIND_DECISION_REQUEST,
    KIND_DECISION_VERSION,
    PLURAL_DECISION,
    PLURAL_DECISION_REQUEST,
    PLURAL_DECISION_VERSION,
)

# --- Enums ---


class ConditionStatus(enum.StrEnum):
    TRUE = "True"
    FALSE = "False"
    UNKNOWN = "Unknown"

    @classmethod
    def of(cls, value: bool) -> ConditionStatus:
        return cls.TRUE if value else cls.FALSE


class AdmissionStatus(enum.StrEnum):
    ACCEPTED = "Accepted"
    REJECTED = "Rejected"


class Phase(enum.StrEnum):
    """Lifecycle phase reported to webhook listeners."""

    CURRENT = "Current"
    FAILED = "Failed"


# --- Base ---


class K8sModel(BaseModel):
    """Base model using the Kubernetes camelCase wire names."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# --- Metadata ---


class OwnerReference(K8sModel):
    """Reference from a dependent object to its owner.

    Held by value: the owner may live in another controller's process, so
    the reference is resolved by identity, never followed as a pointer.
    """

    api_version: str
    kind: str
    name: str
    uid: str = ""
    controller: bool | None = None
    block_owner_deletion: bool | None = None


class ObjectMeta(K8sModel):
    name: str = ""
    namespace: str | None = None
    uid: str | None = None
    resource_version: str | None = None
    generation: int | None = None
    labels: dict[str, str] = Field(default_factory=dict)
    annotations: dict[str, str] = Field(default_factory=dict)
    owner_references: list[OwnerReference] = Field(default_factory=list)


class Resource(K8sModel):
    """Common shape of the operator's custom resources."""

    PLURAL: ClassVar[str] = ""

    api_version: str = API_GROUP_VERSION
    kind: str = ""
    metadata: ObjectMeta = Field(default_factory=ObjectMeta)

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def namespace(self) -> str | None:
        return self.metadata.namespace

    def owner_reference(self, controller: bool = True) -> OwnerReference:
        """Build an owner reference pointing at this resource."""
        return OwnerReference(
            api_version=self.api_version,
            kind=self.kind,
            name=self.metadata.name,
            uid=self.metadata.uid or "",
            controller=controller,
            block_owner_deletion=True,
        )


# --- Definition ---


class Kafka(K8sModel):
    """Streaming dependency of a decision version."""

    bootstrap_servers: str | None = None
    secret_name: str | None = None
    input_topic: str | None = None
    output_topic: str | None = None


class DecisionVersionSpec(K8sModel):
    """A ruleset definition: where the source lives and its version label."""

    source: str | None = None
    version: str | None = None
    kafka: Kafka | None = None


class Condition(K8sModel):
    """A typed status entry on a DecisionVersion."""

    type: str
    status: ConditionStatus = ConditionStatus.UNKNOWN
    reason: str = ""
    message: str = ""
    last_transition_time: str | None = None


# --- DecisionRequest ---


class DecisionVersionRef(K8sModel):
    name: str
    namespace: str
    version: str | None = None


class DecisionRequestSpec(K8sModel):
    customer_id: str | None = None
    name: str | None = None
    definition: DecisionVersionSpec | None = None
    webhooks: list[str] = Field(default_factory=list)


class DecisionRequestStatus(K8sModel):
    state: AdmissionStatus | None = None
    reason: str | None = None
    message: str | None = None
    version_ref: DecisionVersionRef | None = None


class DecisionRequest(Resource):
    """Customer-facing request. The operator only ever writes its status."""

    kind: str = KIND_DECISION_REQUEST
    PLURAL: ClassVar[str] = PLURAL_DECISION_REQUEST

    spec: DecisionRequestSpec = Field(default_factory=DecisionRequestSpec)
    status: DecisionRequestStatus | None = None


# --- Decision ---


class DecisionSpec(K8sModel):
    definition: DecisionVersionSpec = Field(default_factory=DecisionVersionSpec)
    webhooks: list[str] = Field(default_factory=list)


class DecisionStatus(K8sModel):
    """Externally visible state of a Decision: its active version."""

    version_id: str | None = None
    revision_name: str | None = None
    endpoint: str | None = None
    reason: str | None = None
    message: str | None = None


class Decision(Resource):
    kind: str = KIND_DECISION
    PLURAL: ClassVar[str] = PLURAL_DECISION

    spec: DecisionSpec = Field(default_factory=DecisionSpec)
    status: DecisionStatus | None = None


# --- DecisionVersion ---


class DecisionVersionStatus(K8sModel):
    conditions: dict[str, Condition] = Field(default_factory=dict)
    ready: bool = False
    image_ref: str | None = None
    config_ref: str | None = None
    kogito_service_ref: str | None = None
    endpoint: str | None = None


class DecisionVersion(Resource):
    """One immutable build of a Decision's ruleset."""

    kind: str = KIND_DECISION_VERSION
    PLURAL: ClassVar[str] = PLURAL_DECISION_VERSION

    spec: DecisionVersionSpec = Field(default_factory=DecisionVersionSpec)
    status: DecisionVersionStatus = Field(default_factory=DecisionVersionStatus)
