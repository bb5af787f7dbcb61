"""Condition bookkeeping for DecisionVersion status.

Pure in-memory transitions. Persisting the result is the status
synchronizer's job.
"""

from __future__ import annotations

from datetime import UTC, datetime

from decision_operator.constants import CONDITION_BUILD, CONDITION_READY, REASON_FAILED
from decision_operator.models import Condition, ConditionStatus, DecisionVersionStatus


def _now() -> str:
    return datetime.now(tz=UTC).isoformat()


def get_condition(status: DecisionVersionStatus, type_: str) -> Condition | None:
    return status.conditions.get(type_)


def set_condition(
    status: DecisionVersionStatus,
    type_: str,
    value: ConditionStatus | bool,
    reason: str = "",
    message: str = "",
    now: str | None = None,
) -> bool:
    """Upsert the condition of *type_* on *status*.

    The previous ``last_transition_time`` is kept unless status, reason or
    message changed. Returns ``True`` when the condition changed.
    """
    if isinstance(value, bool):
        value = ConditionStatus.of(value)
    current = status.conditions.get(type_)
    if (
        current is not None
        and current.status == value
        and current.reason == reason
        and current.message == message
    ):
        return False

    status.conditions[type_] = Condition(
        type=type_,
        status=value,
        reason=reason,
        message=message,
        last_transition_time=now or _now(),
    )
    return True


def is_condition_true(status: DecisionVersionStatus, type_: str) -> bool:
    condition = status.conditions.get(type_)
    return condition is not None and condition.status == ConditionStatus.TRUE


def has_failed(status: DecisionVersionStatus, type_: str) -> bool:
    condition = status.conditions.get(type_)
    return (
        condition is not None
        and condition.status == ConditionStatus.FALSE
        and condition.reason == REASON_FAILED
    )


def is_built(status: DecisionVersionStatus) -> bool:
    return is_condition_true(status, CONDITION_BUILD)


def ready_default(status: DecisionVersionStatus) -> bool:
    """Derive the ``ready`` flag. No Ready condition means not ready."""
    status.ready = is_condition_true(status, CONDITION_READY)
    return status.ready
