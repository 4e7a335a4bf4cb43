"""oppgave - A reliable task queue on top of Redis lists."""

from oppgave.core import (
    Codec,
    DecodeError,
    HandlerFailureMode,
    JSONCodec,
    PydanticCodec,
    Queue,
    QueueConfig,
    QueueError,
    QueueKeys,
    Reaper,
    SerializationError,
    StoreError,
    StoreUnavailableError,
    Task,
    TaskGuard,
    Worker,
    WorkerStats,
)
from oppgave.stores import InMemoryListStore, ListStore, RedisListStore

__version__ = "0.1.0"

__all__ = [
    # Core
    "Queue",
    "QueueKeys",
    "TaskGuard",
    "Task",
    "Worker",
    "WorkerStats",
    "HandlerFailureMode",
    "Reaper",
    "QueueConfig",
    # Codecs
    "Codec",
    "JSONCodec",
    "PydanticCodec",
    # Errors
    "QueueError",
    "SerializationError",
    "DecodeError",
    "StoreError",
    "StoreUnavailableError",
    # Stores
    "ListStore",
    "InMemoryListStore",
    "RedisListStore",
    # Meta
    "__version__",
]
