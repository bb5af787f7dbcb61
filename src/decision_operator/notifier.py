"""Webhook notification dispatch.

Tells a Decision's listeners about lifecycle transitions (a version became
current, a build or deployment failed). Fire-and-observe: every failure is
logged and never propagates into the reconcile outcome.

Built-in backend:
- WebhookNotifier: POST JSON to each webhook URL (stdlib only)

Custom notifiers just need a
``notify(resource, webhooks, message, phase) -> None`` method.
"""

from __future__ import annotations

import json
import logging
import urllib.request
from datetime import UTC, datetime
from typing import Any, Protocol, runtime_checkable

from decision_operator.models import Phase, Resource

logger = logging.getLogger(__name__)


@runtime_checkable
class Notifier(Protocol):
    """Protocol for lifecycle notifiers."""

    def notify(
        self,
        resource: Resource,
        webhooks: list[str],
        message: str | None,
        phase: Phase,
    ) -> None:
        """Notify every webhook target about *resource* entering *phase*."""
        ...


def build_payload(
    resource: Resource,
    message: str | None,
    phase: Phase,
) -> dict[str, Any]:
    """Webhook body: which resource, which phase, when, and why."""
    payload: dict[str, Any] = {
        "kind": resource.kind,
        "name": resource.metadata.name,
        "namespace": resource.metadata.namespace,
        "phase": str(phase),
        "at": datetime.now(tz=UTC).isoformat(),
    }
    version = getattr(resource.spec, "version", None) or getattr(
        getattr(resource.spec, "definition", None), "version", None,
    )
    if version is not None:
        payload["version"] = version
    if message:
        payload["message"] = message
    return payload


class WebhookNotifier:
    """POST lifecycle events as JSON to each webhook URL.

    Uses stdlib urllib.request, no extra dependencies required.
    """

    def __init__(
        self,
        headers: dict[str, str] | None = None,
        timeout: float = 10.0,
    ) -> None:
        self._headers = headers or {}
        self._timeout = timeout

    def notify(
        self,
        resource: Resource,
        webhooks: list[str],
        message: str | None,
        phase: Phase,
    ) -> None:
        if not webhooks:
            return
        body = json.dumps(build_payload(resource, message, phase), sort_keys=True).encode("utf-8")
        for url in webhooks:
            try:
                self._post(url, body)
            except Exception as exc:
                logger.warning(
                    "Webhook %s failed for %s %s/%s (%s): %s",
                    url,
                    resource.kind,
                    resource.metadata.namespace,
                    resource.metadata.name,
                    phase,
                    exc,
                )

    def _post(self, url: str, body: bytes) -> None:
        req = urllib.request.Request(
            url,
            data=body,
            headers={
                "Content-Type": "application/json",
                **self._headers,
            },
            method="POST",
        )
        with urllib.request.urlopen(req, timeout=self._timeout):  # noqa: S310
            pass


def build_notifier(config: dict[str, Any]) -> Notifier:
    """Build a notifier from a configuration dict.

    Supported keys:
    - webhook_headers: optional headers dict
    - webhook_timeout: optional timeout (default 10.0)
    """
    return WebhookNotifier(
        headers=config.get("webhook_headers"),
        timeout=config.get("webhook_timeout", 10.0),
    )
