"""Resource stores: protocols, errors and the in-memory/Kubernetes backends."""

from decision_operator.store.base import (
    ConflictError,
    NamespaceStore,
    NotFoundError,
    ObjectStore,
    ResourceStore,
    StoreError,
    Stores,
    build_stores,
)
from decision_operator.store.memory import (
    InMemoryNamespaceStore,
    InMemoryObjectStore,
    InMemoryResourceStore,
    in_memory_stores,
)

__all__ = [
    "ConflictError",
    "InMemoryNamespaceStore",
    "InMemoryObjectStore",
    "InMemoryResourceStore",
    "NamespaceStore",
    "NotFoundError",
    "ObjectStore",
    "ResourceStore",
    "StoreError",
    "Stores",
    "build_stores",
    "in_memory_stores",
]
