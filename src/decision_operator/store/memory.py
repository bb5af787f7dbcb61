"""In-memory stores for tests and dry runs.

Mirrors the API server's optimistic concurrency: every write bumps a
``resourceVersion`` and a status write carrying a stale one is rejected
with ``ConflictError``. Objects are copied in and out so callers never
share state with the store.
"""

from __future__ import annotations

import copy
import itertools
import threading
import uuid
from typing import Any, Generic

from decision_operator.models import Decision, DecisionRequest, DecisionVersion
from decision_operator.store.base import ConflictError, NotFoundError, Stores, T


class InMemoryResourceStore(Generic[T]):
    """Typed store for one custom resource kind. Thread-safe via a lock."""

    def __init__(self, model: type[T]) -> None:
        self._model = model
        self._items: dict[tuple[str, str], dict[str, Any]] = {}
        self._lock = threading.Lock()
        self._versions = itertools.count(1)

    def __len__(self) -> int:
        return len(self._items)

    def get(self, namespace: str, name: str) -> T | None:
        with self._lock:
            data = self._items.get((namespace, name))
        if data is None:
            return None
        return self._model.model_validate(data)

    def create(self, resource: T) -> T:
        key = self._key(resource)
        with self._lock:
            if key in self._items:
                msg = f"{resource.kind} {key[0]}/{key[1]} already exists"
                raise ConflictError(msg)
            data = resource.to_dict()
            data["metadata"]["uid"] = resource.metadata.uid or str(uuid.uuid4())
            data["metadata"]["resourceVersion"] = str(next(self._versions))
            self._items[key] = data
        return self._model.model_validate(data)

    def create_or_replace(self, resource: T) -> T:
        key = self._key(resource)
        with self._lock:
            existing = self._items.get(key)
            data = resource.to_dict()
            if existing is None:
                data["metadata"]["uid"] = resource.metadata.uid or str(uuid.uuid4())
            else:
                data["metadata"]["uid"] = existing["metadata"]["uid"]
            data["metadata"]["resourceVersion"] = str(next(self._versions))
            self._items[key] = data
        return self._model.model_validate(data)

    def update_status(self, resource: T) -> T:
        key = self._key(resource)
        with self._lock:
            existing = self._items.get(key)
            if existing is None:
                msg = f"{resource.kind} {key[0]}/{key[1]} not found"
                raise NotFoundError(msg)
            expected = resource.metadata.resource_version
            if expected is not None and expected != existing["metadata"]["resourceVersion"]:
                msg = (
                    f"{resource.kind} {key[0]}/{key[1]} was modified: "
                    f"resourceVersion {expected} is stale"
                )
                raise ConflictError(msg)
            data = copy.deepcopy(existing)
            status = resource.to_dict().get("status")
            if status is None:
                data.pop("status", None)
            else:
                data["status"] = status
            data["metadata"]["resourceVersion"] = str(next(self._versions))
            self._items[key] = data
        return self._model.model_validate(data)

    def list(self, namespace: str, labels: dict[str, str] | None = None) -> list[T]:
        wanted = labels or {}
        with self._lock:
            matches = [
                copy.deepcopy(data)
                for (ns, _), data in sorted(self._items.items())
                if ns == namespace
                and all(
                    data["metadata"].get("labels", {}).get(k) == v
                    for k, v in wanted.items()
                )
            ]
        return [self._model.model_validate(data) for data in matches]

    def delete(self, namespace: str, name: str) -> None:
        with self._lock:
            self._items.pop((namespace, name), None)

    @staticmethod
    def _key(resource: T) -> tuple[str, str]:
        return (resource.metadata.namespace or "", resource.metadata.name)


class InMemoryNamespaceStore:
    def __init__(self, names: list[str] | None = None) -> None:
        self._names: set[str] = set(names or [])
        self._lock = threading.Lock()

    def get(self, name: str) -> dict[str, Any] | None:
        with self._lock:
            if name not in self._names:
                return None
        return {"metadata": {"name": name}}

    def create(self, name: str) -> dict[str, Any]:
        with self._lock:
            if name in self._names:
                msg = f"Namespace {name} already exists"
                raise ConflictError(msg)
            self._names.add(name)
        return {"metadata": {"name": name}}


class InMemoryObjectStore:
    """Untyped object store (KogitoRuntimes, ConfigMaps, Secrets)."""

    def __init__(self) -> None:
        self._items: dict[tuple[str, str], dict[str, Any]] = {}
        self._lock = threading.Lock()
        self.writes = 0

    def get(self, namespace: str, name: str) -> dict[str, Any] | None:
        with self._lock:
            data = self._items.get((namespace, name))
            return copy.deepcopy(data) if data is not None else None

    def create_or_replace(self, namespace: str, body: dict[str, Any]) -> dict[str, Any]:
        name = body["metadata"]["name"]
        data = copy.deepcopy(body)
        data["metadata"]["namespace"] = namespace
        with self._lock:
            existing = self._items.get((namespace, name))
            # Status belongs to the owning controller and survives a replace
            if existing is not None and "status" in existing and "status" not in data:
                data["status"] = copy.deepcopy(existing["status"])
            self._items[(namespace, name)] = data
            self.writes += 1
        return copy.deepcopy(data)

    def list(self, namespace: str) -> list[dict[str, Any]]:
        with self._lock:
            return [
                copy.deepcopy(data)
                for (ns, _), data in sorted(self._items.items())
                if ns == namespace
            ]


def in_memory_stores() -> Stores:
    return Stores(
        requests=InMemoryResourceStore(DecisionRequest),
        decisions=InMemoryResourceStore(Decision),
        versions=InMemoryResourceStore(DecisionVersion),
        namespaces=InMemoryNamespaceStore(),
        runtimes=InMemoryObjectStore(),
        config_maps=InMemoryObjectStore(),
        secrets=InMemoryObjectStore(),
    )
