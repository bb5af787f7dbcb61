"""Controller: wires stores, reconcilers and the notifier together.

Every entry point re-fetches what it needs, runs one reconciler and
persists the returned ``UpdateControl``. A ``ConflictError`` from a stale
write propagates so the invoking loop can retry from fresh state.

Usage::

    controller = Controller.from_config(load_config())
    controller.reconcile_request(request)
"""

from __future__ import annotations

import logging
from typing import Any

from decision_operator.config import OperatorConfig
from decision_operator.constants import DECISION_VERSION_LABEL
from decision_operator.control import UpdateControl
from decision_operator.models import Decision, DecisionRequest, DecisionVersion
from decision_operator.notifier import Notifier, build_notifier
from decision_operator.reconcilers import (
    AdmissionReconciler,
    DecisionReconciler,
    VersionReconciler,
)
from decision_operator.runtime import RuntimeProvisioner
from decision_operator.status import StatusSynchronizer, owning_decision_name
from decision_operator.store.base import ResourceStore, Stores, T, build_stores

logger = logging.getLogger(__name__)


class ControllerError(Exception):
    """Raised when a controller entry point cannot find its target."""


def apply_control(store: ResourceStore[T], control: UpdateControl) -> T | None:
    """Persist *control*. Returns the written resource, or ``None`` for NoUpdate."""
    if not control.needs_status_write:
        return None
    return store.update_status(control.resource)


class Controller:
    def __init__(
        self,
        stores: Stores,
        notifier: Notifier,
        config: OperatorConfig | None = None,
    ) -> None:
        self.stores = stores
        self.config = config or OperatorConfig()
        self.notifier = notifier
        self.synchronizer = StatusSynchronizer(stores.versions, stores.decisions, notifier)
        self.provisioner = RuntimeProvisioner(
            stores.runtimes, stores.config_maps, stores.secrets, self.config,
        )
        self.admission = AdmissionReconciler(
            stores.namespaces, stores.decisions, stores.versions, self.config,
        )
        self.decisions = DecisionReconciler(stores.versions, notifier)
        self.versions = VersionReconciler(
            stores.versions, stores.decisions, self.provisioner, self.synchronizer,
        )

    @classmethod
    def from_config(cls, config: OperatorConfig, backend: str = "kubernetes") -> Controller:
        stores = build_stores(config, backend=backend)
        notifier = build_notifier({"webhook_timeout": config.webhook_timeout})
        return cls(stores, notifier, config)

    # --- Entry points ---

    def reconcile_request(self, request: DecisionRequest) -> UpdateControl:
        control = self.admission.reconcile(request)
        apply_control(self.stores.requests, control)
        return control

    def reconcile_decision(self, decision: Decision) -> UpdateControl:
        control = self.decisions.reconcile(decision)
        apply_control(self.stores.decisions, control)
        return control

    def reconcile_version(self, version: DecisionVersion) -> UpdateControl:
        control = self.versions.reconcile(version)
        written = apply_control(self.stores.versions, control)
        if written is not None:
            self._follow(written)
        return control

    def build_succeeded(self, namespace: str, name: str, image_ref: str) -> UpdateControl:
        self._require_version(namespace, name)
        control = self.versions.record_build_succeeded(namespace, name, image_ref)
        written = apply_control(self.stores.versions, control)
        if written is not None:
            # Deploy right away instead of waiting for the next resync
            self.reconcile_version(written)
        return control

    def build_failed(self, namespace: str, name: str, message: str) -> UpdateControl:
        self._require_version(namespace, name)
        control = self.versions.record_build_failed(namespace, name, message)
        apply_control(self.stores.versions, control)
        return control

    def runtime_changed(self, runtime: dict[str, Any]) -> UpdateControl:
        """Re-reconcile the version a KogitoRuntime is labelled with."""
        metadata = runtime.get("metadata") or {}
        version_name = (metadata.get("labels") or {}).get(DECISION_VERSION_LABEL)
        if not version_name:
            return UpdateControl.no_update()
        version = self.stores.versions.get(metadata.get("namespace") or "", version_name)
        if version is None:
            logger.debug("No DecisionVersion %s for KogitoRuntime %s", version_name, metadata.get("name"))
            return UpdateControl.no_update()
        return self.reconcile_version(version)

    # --- Internals ---

    def _require_version(self, namespace: str, name: str) -> DecisionVersion:
        version = self.stores.versions.get(namespace, name)
        if version is None:
            msg = f"DecisionVersion {namespace}/{name} not found"
            raise ControllerError(msg)
        return version

    def _follow(self, version: DecisionVersion) -> None:
        """A version status change may move its Decision's active reference."""
        decision_name = owning_decision_name(version)
        if not decision_name:
            return
        decision = self.stores.decisions.get(version.metadata.namespace or "", decision_name)
        if decision is not None:
            self.reconcile_decision(decision)
