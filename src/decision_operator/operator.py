"""kopf handlers binding the controller to cluster watch events.

Handlers are registered on a dedicated ``kopf.OperatorRegistry`` so the
resync interval can come from the loaded config. Reconciles are
synchronous; kopf runs them in its thread pool, one at a time per object.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

import kopf

from decision_operator.config import OperatorConfig
from decision_operator.constants import (
    API_GROUP,
    API_VERSION,
    MANAGED_BY_LABEL,
    OPERATOR_NAME,
    PLURAL_DECISION,
    PLURAL_DECISION_REQUEST,
    PLURAL_DECISION_VERSION,
    RUNTIME_GROUP,
    RUNTIME_PLURAL,
    RUNTIME_VERSION,
)
from decision_operator.control import UpdateControl
from decision_operator.controller import Controller
from decision_operator.models import Decision, DecisionRequest, DecisionVersion
from decision_operator.store.base import ConflictError, StoreError

logger = logging.getLogger(__name__)

CONFLICT_RETRY_DELAY = 1.0
ERROR_RETRY_DELAY = 10.0


def run_reconcile(fn: Callable[[], UpdateControl]) -> str:
    """Run one reconcile, translating store errors into kopf retries."""
    try:
        control = fn()
    except ConflictError as exc:
        raise kopf.TemporaryError(f"Conflict, retrying: {exc}", delay=CONFLICT_RETRY_DELAY) from exc
    except StoreError as exc:
        raise kopf.TemporaryError(str(exc), delay=ERROR_RETRY_DELAY) from exc
    return str(control.kind)


def build_registry(controller: Controller, config: OperatorConfig) -> kopf.OperatorRegistry:
    registry = kopf.OperatorRegistry()
    managed = {MANAGED_BY_LABEL: OPERATOR_NAME}

    @kopf.on.resume(API_GROUP, API_VERSION, PLURAL_DECISION_REQUEST, registry=registry)
    @kopf.on.create(API_GROUP, API_VERSION, PLURAL_DECISION_REQUEST, registry=registry)
    @kopf.on.update(API_GROUP, API_VERSION, PLURAL_DECISION_REQUEST, registry=registry)
    def on_request(body: kopf.Body, **_: Any) -> None:
        request = DecisionRequest.model_validate(dict(body))
        logger.debug("Reconciling DecisionRequest %s/%s", request.namespace, request.name)
        run_reconcile(lambda: controller.reconcile_request(request))

    @kopf.on.resume(API_GROUP, API_VERSION, PLURAL_DECISION, registry=registry)
    @kopf.on.create(API_GROUP, API_VERSION, PLURAL_DECISION, registry=registry)
    @kopf.on.update(API_GROUP, API_VERSION, PLURAL_DECISION, registry=registry)
    def on_decision(body: kopf.Body, **_: Any) -> None:
        decision = Decision.model_validate(dict(body))
        logger.debug("Reconciling Decision %s/%s", decision.namespace, decision.name)
        run_reconcile(lambda: controller.reconcile_decision(decision))

    @kopf.on.resume(API_GROUP, API_VERSION, PLURAL_DECISION_VERSION, registry=registry)
    @kopf.on.create(API_GROUP, API_VERSION, PLURAL_DECISION_VERSION, registry=registry)
    @kopf.on.update(API_GROUP, API_VERSION, PLURAL_DECISION_VERSION, registry=registry)
    def on_version(body: kopf.Body, **_: Any) -> None:
        version = DecisionVersion.model_validate(dict(body))
        logger.debug("Reconciling DecisionVersion %s/%s", version.namespace, version.name)
        run_reconcile(lambda: controller.reconcile_version(version))

    @kopf.timer(
        API_GROUP,
        API_VERSION,
        PLURAL_DECISION_VERSION,
        interval=config.version_resync_interval,
        registry=registry,
    )
    def resync_version(body: kopf.Body, **_: Any) -> None:
        version = DecisionVersion.model_validate(dict(body))
        run_reconcile(lambda: controller.reconcile_version(version))

    @kopf.on.event(
        RUNTIME_GROUP,
        RUNTIME_VERSION,
        RUNTIME_PLURAL,
        labels=managed,
        registry=registry,
    )
    def on_runtime_event(body: kopf.Body, **_: Any) -> None:
        runtime = dict(body)
        try:
            run_reconcile(lambda: controller.runtime_changed(runtime))
        except kopf.TemporaryError as exc:
            # Event handlers are never retried; the resync timer catches up
            logger.warning("KogitoRuntime event not handled: %s", exc)

    return registry


def run(config: OperatorConfig, *, namespace: str | None = None) -> None:
    """Start the operator. Blocks until the process is stopped."""
    controller = Controller.from_config(config)
    registry = build_registry(controller, config)
    logger.info("Starting %s", OPERATOR_NAME)
    if namespace:
        kopf.run(registry=registry, standalone=True, namespaces=[namespace])
    else:
        kopf.run(registry=registry, standalone=True, clusterwide=True)
