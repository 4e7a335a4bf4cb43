"""Core components of the oppgave reliable queue.

Types:
    Queue: Reliable FIFO queue over a list store (push/pop/ack/fail/requeue).
    QueueKeys: Store keys derived from a queue name.
    TaskGuard: Claimed task handed out by Queue.claim().
    Task: Ready-made pydantic task model.
    Worker: Pop/handle/settle loop with failure modes and a circuit breaker.
    Reaper: Sweep that returns stranded in-flight tasks to pending.
    QueueConfig: Connection and tuning settings.

Codecs:
    Codec: Protocol for task codecs.
    JSONCodec: Canonical JSON codec for plain values.
    PydanticCodec: Codec for pydantic model tasks.

Errors:
    QueueError: Base class.
    SerializationError: Task could not be encoded.
    DecodeError: Stored bytes could not be decoded.
    StoreError: The list store failed.
    StoreUnavailableError: The store failed beyond the worker's threshold.
"""

from oppgave.core.codec import Codec, JSONCodec, PydanticCodec
from oppgave.core.config import QueueConfig
from oppgave.core.errors import (
    DecodeError,
    QueueError,
    SerializationError,
    StoreError,
    StoreUnavailableError,
)
from oppgave.core.queue import Queue, QueueHealth, QueueKeys, TaskGuard
from oppgave.core.reaper import Reaper, SweepResult
from oppgave.core.task import MAX_PAYLOAD_SIZE, Task
from oppgave.core.worker import HandlerFailureMode, Worker, WorkerStats

__all__ = [
    "Queue",
    "QueueHealth",
    "QueueKeys",
    "TaskGuard",
    "Task",
    "MAX_PAYLOAD_SIZE",
    "Worker",
    "WorkerStats",
    "HandlerFailureMode",
    "Reaper",
    "SweepResult",
    "QueueConfig",
    "Codec",
    "JSONCodec",
    "PydanticCodec",
    "QueueError",
    "SerializationError",
    "DecodeError",
    "StoreError",
    "StoreUnavailableError",
]
