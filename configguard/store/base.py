"""
Object store port.

The reconciler talks to the cluster store only through this interface.
Implementations raise ``NotFoundError`` for missing objects and
``ConflictError`` when an update carries a stale resource version.
"""

from abc import ABC, abstractmethod
from typing import List, Type, TypeVar

from configguard.core.models import StoreObject

T = TypeVar("T", bound=StoreObject)


class ObjectStore(ABC):
    """Namespaced object store with optimistic concurrency."""

    @abstractmethod
    async def get(self, kind: Type[T], namespace: str, name: str) -> T:
        """Get an object by identity. Raises NotFoundError if absent."""
        pass

    @abstractmethod
    async def list(self, kind: Type[T], namespace: str) -> List[T]:
        """List objects of a kind in a namespace, in a stable order."""
        pass

    @abstractmethod
    async def create(self, obj: T) -> T:
        """Create an object. Raises AlreadyExistsError if the identity is taken."""
        pass

    @abstractmethod
    async def update(self, obj: T) -> T:
        """
        Replace an object.

        The object's ``metadata.resource_version`` must match the stored one,
        otherwise ConflictError is raised.
        """
        pass
