"""Decision -> DecisionVersion mapping and the Decision's active version."""

from __future__ import annotations

import logging

from decision_operator.constants import CUSTOMER_LABEL, DECISION_LABEL, MANAGED_BY_LABEL, OPERATOR_NAME
from decision_operator.control import UpdateControl
from decision_operator.models import (
    Decision,
    DecisionStatus,
    DecisionVersion,
    DecisionVersionStatus,
    ObjectMeta,
    Phase,
)
from decision_operator.notifier import Notifier
from decision_operator.store.base import ResourceStore

logger = logging.getLogger(__name__)


def version_name(decision_name: str, version_label: str) -> str:
    return f"{decision_name}-{version_label}"


class DecisionReconciler:
    """Keeps the requested DecisionVersion in place and tracks the active one.

    The active reference only ever moves to a Ready version. Moving to a
    lower version label (a rollback) takes the same path as moving forward.
    """

    def __init__(
        self,
        versions: ResourceStore[DecisionVersion],
        notifier: Notifier,
    ) -> None:
        self._versions = versions
        self._notifier = notifier

    def expected_version(self, decision: Decision) -> DecisionVersion:
        labels = {
            DECISION_LABEL: decision.metadata.name,
            MANAGED_BY_LABEL: OPERATOR_NAME,
        }
        customer = decision.metadata.labels.get(CUSTOMER_LABEL)
        if customer is not None:
            labels[CUSTOMER_LABEL] = customer
        return DecisionVersion(
            metadata=ObjectMeta(
                name=version_name(decision.metadata.name, decision.spec.definition.version or ""),
                namespace=decision.metadata.namespace,
                labels=labels,
                owner_references=[decision.owner_reference(controller=True)],
            ),
            spec=decision.spec.definition.model_copy(deep=True),
            status=DecisionVersionStatus(),
        )

    def reconcile(self, decision: Decision) -> UpdateControl:
        local = decision.model_copy(deep=True)
        namespace = local.metadata.namespace or ""
        label = local.spec.definition.version
        if not label:
            logger.warning("Decision %s/%s has no version label", namespace, local.name)
            return UpdateControl.no_update()

        name = version_name(local.metadata.name, label)
        version = self._versions.get(namespace, name)
        if version is None or version.spec.to_dict() != local.spec.definition.to_dict():
            logger.info("Creating or replacing DecisionVersion %s/%s", namespace, name)
            version = self._versions.create_or_replace(self.expected_version(local))

        if not version.status.ready:
            logger.debug("DecisionVersion %s/%s is not ready yet", namespace, name)
            return UpdateControl.no_update()

        active = DecisionStatus(
            version_id=version.spec.version,
            revision_name=version.metadata.name,
            endpoint=version.status.endpoint,
        )
        if local.status is not None and local.status.to_dict() == active.to_dict():
            return UpdateControl.no_update()

        logger.info("Decision %s/%s is now serving version %s", namespace, local.name, label)
        local.status = active
        self._notifier.notify(
            local,
            local.spec.webhooks,
            f"Version {label} is ready at {version.status.endpoint}",
            Phase.CURRENT,
        )
        return UpdateControl.update_status(local)
