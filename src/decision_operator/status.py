"""Status synchronizer for DecisionVersions.

Diffs a locally computed status against the freshly observed object and
hands the write back to the caller as an ``UpdateControl``. Failure
transitions are announced to the owning Decision's webhooks on the way.
"""

from __future__ import annotations

import logging

from decision_operator.conditions import ready_default
from decision_operator.constants import DECISION_LABEL, KIND_DECISION, REASON_FAILED
from decision_operator.control import UpdateControl
from decision_operator.models import Condition, Decision, DecisionVersion, Phase
from decision_operator.notifier import Notifier
from decision_operator.store.base import ConflictError, ResourceStore

logger = logging.getLogger(__name__)


def _same(a: Condition | None, b: Condition | None) -> bool:
    if a is None or b is None:
        return a is b
    return (a.status, a.reason, a.message) == (b.status, b.reason, b.message)


def owning_decision_name(version: DecisionVersion) -> str | None:
    """Name of the Decision controlling *version*, from its owner refs or labels."""
    for ref in version.metadata.owner_references:
        if ref.kind == KIND_DECISION and ref.controller:
            return ref.name
    return version.metadata.labels.get(DECISION_LABEL)


class StatusSynchronizer:
    def __init__(
        self,
        versions: ResourceStore[DecisionVersion],
        decisions: ResourceStore[Decision],
        notifier: Notifier,
    ) -> None:
        self._versions = versions
        self._decisions = decisions
        self._notifier = notifier

    def update_status(self, local: DecisionVersion) -> UpdateControl:
        """Compute the status write for *local*.

        Returns ``NoUpdate`` when the version is gone or nothing changed,
        otherwise ``UpdateStatus`` carrying the observed object with the
        local status applied. The observed ``resourceVersion`` is kept, so
        persisting the result fails with ``ConflictError`` if the version
        moved in between.

        Raises:
            ConflictError: If *local* was computed from an older
                ``resourceVersion`` than the stored one.
        """
        namespace = local.metadata.namespace or ""
        observed = self._versions.get(namespace, local.metadata.name)
        if observed is None:
            logger.debug("DecisionVersion %s/%s is gone, skipping status", namespace, local.name)
            return UpdateControl.no_update()

        base = local.metadata.resource_version
        if base is not None and base != observed.metadata.resource_version:
            msg = (
                f"DecisionVersion {namespace}/{local.name} changed since it was read "
                f"({base} != {observed.metadata.resource_version})"
            )
            raise ConflictError(msg)

        ready_default(local.status)
        if local.status.to_dict() == observed.status.to_dict():
            return UpdateControl.no_update()

        for type_, condition in local.status.conditions.items():
            if condition.reason != REASON_FAILED:
                continue
            if _same(condition, observed.status.conditions.get(type_)):
                continue
            self._notify_failure(local, condition)

        updated = observed.model_copy(deep=True)
        updated.status = local.status.model_copy(deep=True)
        return UpdateControl.update_status(updated)

    def _notify_failure(self, version: DecisionVersion, condition: Condition) -> None:
        webhooks: list[str] = []
        decision_name = owning_decision_name(version)
        if decision_name:
            decision = self._decisions.get(version.metadata.namespace or "", decision_name)
            if decision is not None:
                webhooks = list(decision.spec.webhooks)
        logger.info(
            "DecisionVersion %s/%s %s failed: %s",
            version.metadata.namespace,
            version.metadata.name,
            condition.type,
            condition.message,
        )
        self._notifier.notify(version, webhooks, condition.message, Phase.FAILED)
