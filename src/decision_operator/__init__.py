"""decision-operator: turns DecisionRequests into running decision services."""

__version__ = "0.1.0"

from decision_operator.config import OperatorConfig, find_config, load_config
from decision_operator.control import UpdateControl
from decision_operator.controller import Controller, ControllerError
from decision_operator.models import (
    AdmissionStatus,
    Condition,
    ConditionStatus,
    Decision,
    DecisionRequest,
    DecisionVersion,
    Kafka,
    Phase,
)
from decision_operator.notifier import Notifier, WebhookNotifier
from decision_operator.reconcilers import (
    AdmissionError,
    AdmissionReconciler,
    DecisionReconciler,
    VersionReconciler,
)
from decision_operator.store import ConflictError, NotFoundError, StoreError

__all__ = [
    "AdmissionError",
    "AdmissionReconciler",
    "AdmissionStatus",
    "Condition",
    "ConditionStatus",
    "ConflictError",
    "Controller",
    "ControllerError",
    "Decision",
    "DecisionReconciler",
    "DecisionRequest",
    "DecisionVersion",
    "find_config",
    "Kafka",
    "load_config",
    "NotFoundError",
    "Notifier",
    "OperatorConfig",
    "Phase",
    "StoreError",
    "UpdateControl",
    "VersionReconciler",
    "WebhookNotifier",
    "__version__",
]
