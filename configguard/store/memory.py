"""In-memory object store used by the CLI and the tests."""

import copy
import itertools
from typing import Dict, Iterable, List, Tuple, Type

from configguard.core.exceptions import AlreadyExistsError, ConflictError, NotFoundError
from configguard.core.models import StoreObject
from configguard.store.base import ObjectStore, T

_Identity = Tuple[str, str, str]


class InMemoryStore(ObjectStore):
    """
    Dictionary-backed store with version stamps.

    Objects are deep-copied on the way in and out, so callers never share
    state with the store. Every write assigns a new ``resource_version``;
    updates bump ``generation``. Listing returns objects in creation order.
    """

    def __init__(self, objects: Iterable[StoreObject] = ()):
        self._objects: Dict[_Identity, StoreObject] = {}
        self._versions = itertools.count(1)
        for obj in objects:
            self._insert(obj)

    @staticmethod
    def _identity(kind: str, namespace: str, name: str) -> _Identity:
        return (kind, namespace, name)

    def _key(self, obj: StoreObject) -> _Identity:
        return self._identity(obj.KIND, obj.metadata.namespace, obj.metadata.name)

    def _insert(self, obj: StoreObject) -> StoreObject:
        stored = copy.deepcopy(obj)
        stored.metadata.resource_version = str(next(self._versions))
        stored.metadata.generation = stored.metadata.generation or 1
        self._objects[self._key(stored)] = stored
        return copy.deepcopy(stored)

    async def get(self, kind: Type[T], namespace: str, name: str) -> T:
        try:
            return copy.deepcopy(self._objects[self._identity(kind.KIND, namespace, name)])
        except KeyError:
            raise NotFoundError(
                f"{kind.KIND} {namespace}/{name} not found",
                kind=kind.KIND,
                namespace=namespace,
                name=name,
            ) from None

    async def list(self, kind: Type[T], namespace: str) -> List[T]:
        return [
            copy.deepcopy(obj)
            for (obj_kind, obj_namespace, _), obj in self._objects.items()
            if obj_kind == kind.KIND and obj_namespace == namespace
        ]

    async def create(self, obj: T) -> T:
        key = self._key(obj)
        if key in self._objects:
            raise AlreadyExistsError(
                f"{obj.KIND} {obj.metadata.namespace}/{obj.metadata.name} already exists",
                kind=obj.KIND,
                namespace=obj.metadata.namespace,
                name=obj.metadata.name,
            )
        created = copy.deepcopy(obj)
        created.metadata.generation = 0
        return self._insert(created)

    async def update(self, obj: T) -> T:
        key = self._key(obj)
        current = self._objects.get(key)
        if current is None:
            raise NotFoundError(
                f"{obj.KIND} {obj.metadata.namespace}/{obj.metadata.name} not found",
                kind=obj.KIND,
                namespace=obj.metadata.namespace,
                name=obj.metadata.name,
            )
        if obj.metadata.resource_version != current.metadata.resource_version:
            raise ConflictError(
                f"{obj.KIND} {obj.metadata.namespace}/{obj.metadata.name} has been modified: "
                f"version {obj.metadata.resource_version!r} is stale, current is "
                f"{current.metadata.resource_version!r}",
                kind=obj.KIND,
                namespace=obj.metadata.namespace,
                name=obj.metadata.name,
            )
        updated = copy.deepcopy(obj)
        updated.metadata.generation = current.metadata.generation + 1
        return self._insert(updated)

    def objects(self) -> List[StoreObject]:
        """Snapshot of every stored object."""
        return [copy.deepcopy(obj) for obj in self._objects.values()]

    def __len__(self) -> int:
        return len(self._objects)
