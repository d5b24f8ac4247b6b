"""Idempotent create-or-update."""

from configguard.core.exceptions import NotFoundError
from configguard.store.base import ObjectStore, T


async def create_or_update(store: ObjectStore, obj: T) -> T:
    """
    Create the object if it is absent, otherwise replace it.

    On update the stored object's resource version is copied onto ``obj`` so
    the store's optimistic concurrency check passes. Version conflicts are
    not retried here; they propagate to the caller like any other store
    error.

    Returns:
        The object as written by the store
    """
    try:
        existing = await store.get(type(obj), obj.metadata.namespace, obj.metadata.name)
    except NotFoundError:
        return await store.create(obj)

    obj.metadata.resource_version = existing.metadata.resource_version
    return await store.update(obj)
