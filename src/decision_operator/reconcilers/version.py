"""DecisionVersion lifecycle.

    NotBuilt -> Building -> BuildFailed
                         -> BuildSucceeded -> ServiceProvisioning -> ServiceFailed
                                                                  -> Deployed (Ready)

Build results arrive from outside as signals. Everything after the build
is driven from what the KogitoRuntime reports. BuildFailed and
ServiceFailed are terminal for a version object: a retry takes a new one.
"""

from __future__ import annotations

import logging

from decision_operator.conditions import (
    get_condition,
    has_failed,
    is_built,
    set_condition,
)
from decision_operator.constants import (
    CONDITION_BUILD,
    CONDITION_READY,
    CONDITION_SERVICE,
    DECISION_VERSION_LABEL,
    REASON_BUILD_FAILED,
    REASON_DEPLOYED,
    REASON_FAILED,
    REASON_PROVISIONING,
    REASON_SERVICE_FAILED,
    REASON_SUCCESS,
    REASON_UNKNOWN,
    RUNTIME_CONDITION_DEPLOYED,
    RUNTIME_CONDITION_PROVISIONING,
)
from decision_operator.control import UpdateControl
from decision_operator.models import Decision, DecisionVersion
from decision_operator.runtime import (
    RuntimeProvisioner,
    runtime_condition,
    runtime_endpoint,
    service_name,
)
from decision_operator.status import StatusSynchronizer, owning_decision_name
from decision_operator.store.base import ConflictError, ResourceStore, StoreError

logger = logging.getLogger(__name__)


class VersionReconciler:
    def __init__(
        self,
        versions: ResourceStore[DecisionVersion],
        decisions: ResourceStore[Decision],
        provisioner: RuntimeProvisioner,
        synchronizer: StatusSynchronizer,
    ) -> None:
        self._versions = versions
        self._decisions = decisions
        self._provisioner = provisioner
        self._synchronizer = synchronizer

    # --- Build signals ---

    def record_build_succeeded(
        self,
        namespace: str,
        name: str,
        image_ref: str,
    ) -> UpdateControl:
        """Mark the build of *name* as succeeded with the produced image."""
        version = self._versions.get(namespace, name)
        if version is None:
            logger.warning("Build succeeded for unknown DecisionVersion %s/%s", namespace, name)
            return UpdateControl.no_update()
        local = version.model_copy(deep=True)
        set_condition(local.status, CONDITION_BUILD, True, REASON_SUCCESS)
        if local.status.image_ref != image_ref:
            local.status.image_ref = image_ref
        return self._synchronizer.update_status(local)

    def record_build_failed(self, namespace: str, name: str, message: str) -> UpdateControl:
        """Mark the build of *name* as failed. Terminal for this version."""
        version = self._versions.get(namespace, name)
        if version is None:
            logger.warning("Build failed for unknown DecisionVersion %s/%s", namespace, name)
            return UpdateControl.no_update()
        local = version.model_copy(deep=True)
        set_condition(local.status, CONDITION_BUILD, False, REASON_FAILED, message)
        self._derive_readiness(local, None)
        return self._synchronizer.update_status(local)

    # --- Reconcile ---

    def reconcile(self, version: DecisionVersion) -> UpdateControl:
        """Reconcile *version* from its stored state, not the handed-in body.

        The body may be an older snapshot (a watch event or timer tick that
        predates a build signal).
        """
        namespace = version.metadata.namespace or ""
        current = self._versions.get(namespace, version.metadata.name)
        if current is None:
            logger.debug("DecisionVersion %s/%s is gone", namespace, version.metadata.name)
            return UpdateControl.no_update()
        local = current.model_copy(deep=True)
        if is_built(local.status) and not has_failed(local.status, CONDITION_SERVICE):
            if self.is_current(local):
                try:
                    self._deploy(local)
                except ConflictError:
                    raise
                except StoreError as exc:
                    logger.error(
                        "Unable to provision runtime for DecisionVersion %s/%s: %s",
                        local.metadata.namespace,
                        local.metadata.name,
                        exc,
                    )
                    set_condition(local.status, CONDITION_SERVICE, False, REASON_FAILED, str(exc))
            else:
                logger.debug(
                    "DecisionVersion %s/%s is stale, not deploying",
                    local.metadata.namespace,
                    local.metadata.name,
                )

        observed = None
        if is_built(local.status):
            observed = self._owned_runtime(local)
        self._derive_readiness(local, observed)
        return self._synchronizer.update_status(local)

    def is_current(self, version: DecisionVersion) -> bool:
        """True when *version* carries exactly its Decision's current definition."""
        decision_name = owning_decision_name(version)
        if not decision_name:
            return False
        decision = self._decisions.get(version.metadata.namespace or "", decision_name)
        if decision is None:
            return False
        return decision.spec.definition.to_dict() == version.spec.to_dict()

    def _deploy(self, local: DecisionVersion) -> None:
        if local.spec.kafka is not None:
            config_map = self._provisioner.provision_kafka_config(local)
            local.status.config_ref = config_map["metadata"]["name"]
            self._provisioner.provision_kafka_secret(local)
        observed = self._provisioner.observed_runtime(local)
        self._provisioner.apply_runtime(local, observed)
        local.status.kogito_service_ref = service_name(local)

    def _owned_runtime(self, version: DecisionVersion) -> dict | None:
        # All versions of a Decision share the runtime name; only the one it
        # is labelled with may read readiness from it.
        observed = self._provisioner.observed_runtime(version)
        if observed is None:
            return None
        labels = (observed.get("metadata") or {}).get("labels") or {}
        if labels.get(DECISION_VERSION_LABEL) != version.metadata.name:
            return None
        return observed

    @staticmethod
    def _derive_readiness(local: DecisionVersion, observed: dict | None) -> None:
        status = local.status
        # Only the failing condition itself carries reason Failed
        for failed_type, ready_reason in (
            (CONDITION_BUILD, REASON_BUILD_FAILED),
            (CONDITION_SERVICE, REASON_SERVICE_FAILED),
        ):
            if has_failed(status, failed_type):
                message = get_condition(status, failed_type).message
                set_condition(status, CONDITION_READY, False, ready_reason, message)
                status.endpoint = None
                return
        if not is_built(status):
            return

        if runtime_condition(observed, RUNTIME_CONDITION_DEPLOYED):
            set_condition(status, CONDITION_SERVICE, True, REASON_DEPLOYED)
            set_condition(status, CONDITION_READY, True, REASON_DEPLOYED)
            status.endpoint = runtime_endpoint(observed, local)
            return

        if runtime_condition(observed, RUNTIME_CONDITION_PROVISIONING):
            reason = REASON_PROVISIONING
        else:
            reason = REASON_UNKNOWN
        set_condition(status, CONDITION_SERVICE, False, reason)
        set_condition(status, CONDITION_READY, False, reason)
        status.endpoint = None
