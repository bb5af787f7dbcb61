"""Store protocols and error types.

Reconcilers only talk to these interfaces, one per resource concern:

- ResourceStore: the operator's own typed custom resources
- NamespaceStore: customer namespaces
- ObjectStore: untyped objects (KogitoRuntimes, ConfigMaps, Secrets)

Built-in backends: InMemory* (tests, dry runs) and Kubernetes*.
Any object with the right methods satisfies a protocol.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol, TypeVar, runtime_checkable

from decision_operator.models import Decision, DecisionRequest, DecisionVersion, Resource

if TYPE_CHECKING:
    from decision_operator.config import OperatorConfig

T = TypeVar("T", bound=Resource)


class StoreError(Exception):
    """Raised when a store cannot complete a read or write."""


class ConflictError(StoreError):
    """Raised when a write is based on a stale resourceVersion or the object exists."""


class NotFoundError(StoreError):
    """Raised when a write targets an object that no longer exists."""


@runtime_checkable
class ResourceStore(Protocol[T]):
    """Typed access to one kind of custom resource."""

    def get(self, namespace: str, name: str) -> T | None:
        """Return the resource, or ``None`` if it does not exist."""
        ...

    def create(self, resource: T) -> T: ...

    def create_or_replace(self, resource: T) -> T:
        """Create the resource or overwrite spec and status of the existing one."""
        ...

    def update_status(self, resource: T) -> T:
        """Write only the status sub-resource.

        Raises:
            ConflictError: If ``resource.metadata.resource_version`` is stale.
            NotFoundError: If the resource was deleted.
        """
        ...

    def list(self, namespace: str, labels: dict[str, str] | None = None) -> list[T]: ...


@runtime_checkable
class NamespaceStore(Protocol):
    def get(self, name: str) -> dict[str, Any] | None: ...

    def create(self, name: str) -> dict[str, Any]: ...


@runtime_checkable
class ObjectStore(Protocol):
    """Untyped objects keyed by namespace and name."""

    def get(self, namespace: str, name: str) -> dict[str, Any] | None: ...

    def create_or_replace(self, namespace: str, body: dict[str, Any]) -> dict[str, Any]: ...


@dataclass
class Stores:
    """Every store the reconcilers need, wired for one backend."""

    requests: ResourceStore[DecisionRequest]
    decisions: ResourceStore[Decision]
    versions: ResourceStore[DecisionVersion]
    namespaces: NamespaceStore
    runtimes: ObjectStore
    config_maps: ObjectStore
    secrets: ObjectStore


def build_stores(config: OperatorConfig | None = None, backend: str = "kubernetes") -> Stores:
    """Build a :class:`Stores` bundle.

    Supported backends: ``"kubernetes"`` (default) and ``"memory"``.
    """
    if backend == "memory":
        from decision_operator.store.memory import in_memory_stores

        return in_memory_stores()

    if backend == "kubernetes":
        from decision_operator.store.kubernetes import kubernetes_stores

        return kubernetes_stores(config)

    msg = f"Unknown store backend: {backend}. Available: 'kubernetes', 'memory'."
    raise StoreError(msg)
