"""Object store port and adapters."""

from configguard.store.base import ObjectStore
from configguard.store.memory import InMemoryStore

__all__ = ["InMemoryStore", "ObjectStore"]
