"""List store implementations."""

from oppgave.stores.base import ListStore
from oppgave.stores.memory import InMemoryListStore
from oppgave.stores.redis import RedisListStore

__all__ = ["ListStore", "InMemoryListStore", "RedisListStore"]
