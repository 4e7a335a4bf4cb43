"""Reliable queue protocol.

A task moves through three lists derived from the queue name:

    absent --push--> pending --pop--> in-flight --ack--> absent
                                          |
                                          +--fail--> failed
                                          +--requeue / reaper--> pending

pop moves the head of pending to in-flight in one atomic store operation, so
there is no moment at which a claimed task exists in neither list. A worker
that crashes before ack leaves its task in in-flight, where the Reaper (or a
human, via the failed list) can recover it.
"""

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from oppgave.core.codec import Codec, JSONCodec
from oppgave.core.errors import DecodeError, StoreError
from oppgave.stores.base import ListStore

T = TypeVar("T")

logger = logging.getLogger("oppgave.queue")


@dataclass(frozen=True)
class QueueKeys:
    """Store keys owned by one queue.

    Independently constructed queues with the same name and prefix always
    agree on these keys.
    """

    pending: str
    in_flight: str
    failed: str
    claims: str

    @classmethod
    def for_name(cls, name: str, prefix: str = "queue") -> "QueueKeys":
        if not name:
            raise ValueError("queue name must not be empty")
        base = f"{prefix}:{name}"
        return cls(
            pending=base,
            in_flight=f"{base}:working",
            failed=f"{base}:failed",
            claims=f"{base}:claims",
        )


@dataclass
class QueueHealth:
    """Health check result."""

    healthy: bool
    latency_ms: float
    details: dict[str, Any]


class TaskGuard(Generic[T]):
    """A claimed task handed out by Queue.claim().

    Leaving the ``async with`` block normally acknowledges the task. Leaving
    it with an exception, or after calling fail(), moves the task to the
    failed list instead.
    """

    def __init__(self, queue: "Queue[T]", task: T, raw: bytes) -> None:
        self._queue = queue
        self._task = task
        self._raw = raw
        self._failed = False

    @property
    def task(self) -> T:
        return self._task

    @property
    def raw(self) -> bytes:
        """The in-flight entry exactly as it is stored."""
        return self._raw

    @property
    def queue(self) -> "Queue[T]":
        return self._queue

    @property
    def failed(self) -> bool:
        return self._failed

    def fail(self) -> None:
        """Mark processing as failed, so the task is kept in the failed list."""
        self._failed = True


class Queue(Generic[T]):
    """Reliable FIFO task queue over a list store.

    Args:
        name: Human-readable queue name.
        store: List store shared by reference; the queue never closes it.
        codec: Task codec. Defaults to JSONCodec. ack(), fail() and requeue()
            re-serialize the task to find its in-flight entry, so they only
            match entries the codec itself wrote; claim() and Worker settle
            with the stored bytes instead.
        key_prefix: Prefix of the derived store keys.
    """

    def __init__(
        self,
        name: str,
        store: ListStore,
        codec: Codec[T] | None = None,
        key_prefix: str = "queue",
    ) -> None:
        self.name = name
        self.keys = QueueKeys.for_name(name, key_prefix)
        self.store = store
        self.codec: Codec[T] = codec if codec is not None else JSONCodec()

    def __repr__(self) -> str:
        return f"Queue(name={self.name!r}, pending={self.keys.pending!r})"

    async def push(self, task: T) -> None:
        """Serialize a task and append it to the pending list.

        Raises:
            SerializationError: If the task cannot be encoded. The store is
                not touched.
            StoreError: If the push fails.
        """
        raw = self.codec.serialize(task)
        length = await self.store.push_right(self.keys.pending, raw)
        logger.debug(
            f"Pushed task to {self.keys.pending} (len={length})",
            extra={"queue": self.name, "operation": "push"},
        )

    async def pop(self, timeout: float | None = None) -> T | None:
        """Claim the oldest pending task, blocking while the queue is empty.

        The claimed entry is atomically moved to the in-flight list and stays
        there until ack(), fail() or requeue().

        Args:
            timeout: Maximum seconds to wait. None or 0 blocks indefinitely.

        Returns:
            The decoded task, or None if the timeout expired.

        Raises:
            ValueError: If timeout is negative.
            DecodeError: If the claimed entry cannot be decoded. The raw bytes
                are then in the in-flight list; see ack_raw(), fail_raw() and
                requeue_raw().
            StoreError: If the store fails.
        """
        claimed = await self.pop_raw(timeout)
        return None if claimed is None else claimed[1]

    async def pop_raw(self, timeout: float | None = None) -> tuple[bytes, T] | None:
        """Like pop(), but also return the in-flight entry as stored.

        Settling with the returned bytes (ack_raw() and friends) finds the
        entry even when decoding is lossy, e.g. a model that ignores unknown
        fields, or a handler that mutates the task it was given.
        """
        if timeout is not None and timeout < 0:
            raise ValueError(f"timeout must not be negative, got {timeout}")
        raw = await self.store.blocking_pop_and_move(self.keys.pending, self.keys.in_flight, timeout)
        if raw is None:
            return None
        try:
            return raw, self.codec.deserialize(raw)
        except DecodeError:
            logger.error(
                f"Claimed undecodable entry from {self.keys.pending}; kept in {self.keys.in_flight}",
                extra={"queue": self.name, "operation": "pop"},
            )
            raise

    async def ack(self, task: T) -> bool:
        """Mark a claimed task as complete by removing it from the in-flight list.

        Acknowledging a task that is no longer in flight is a no-op.

        Returns:
            True if an entry was removed.
        """
        return await self.ack_raw(self.codec.serialize(task))

    async def fail(self, task: T) -> bool:
        """Move a claimed task from the in-flight list to the failed list.

        Failed tasks are kept for manual inspection and are never picked up
        by the reaper. A no-op if the task is no longer in flight.
        """
        return await self.fail_raw(self.codec.serialize(task))

    async def requeue(self, task: T) -> bool:
        """Move a claimed task from the in-flight list back to the pending tail.

        A no-op if the task is no longer in flight.
        """
        return await self.requeue_raw(self.codec.serialize(task))

    async def ack_raw(self, raw: bytes) -> bool:
        """Remove one raw entry from the in-flight list.

        Returns:
            True if an entry was removed.
        """
        removed = await self.store.remove_one(self.keys.in_flight, raw)
        if not removed:
            logger.debug(
                "Ack found no matching in-flight entry",
                extra={"queue": self.name, "operation": "ack"},
            )
        return removed > 0

    async def fail_raw(self, raw: bytes) -> bool:
        """Move one raw entry from the in-flight list to the failed list."""
        moved = await self.store.requeue(self.keys.in_flight, self.keys.failed, raw)
        if moved:
            logger.warning(
                f"Task moved to {self.keys.failed}",
                extra={"queue": self.name, "operation": "fail"},
            )
        return moved

    async def requeue_raw(self, raw: bytes) -> bool:
        """Move one raw entry from the in-flight list back to pending."""
        moved = await self.store.requeue(self.keys.in_flight, self.keys.pending, raw)
        if moved:
            logger.info(
                f"Task requeued to {self.keys.pending}",
                extra={"queue": self.name, "operation": "requeue"},
            )
        return moved

    @asynccontextmanager
    async def claim(self, timeout: float | None = None) -> AsyncIterator[TaskGuard[T] | None]:
        """Pop a task and settle it when the block exits.

        Yields None when the timeout expires. Otherwise yields a TaskGuard;
        a clean exit acks the task, an exception or guard.fail() moves it to
        the failed list. Exceptions from the block are re-raised. Cancellation
        leaves the task in flight for the reaper.

            async with queue.claim(timeout=1.0) as guard:
                if guard is not None:
                    handle(guard.task)
        """
        claimed = await self.pop_raw(timeout)
        if claimed is None:
            yield None
            return

        raw, task = claimed
        guard = TaskGuard(self, task, raw)
        try:
            yield guard
        except Exception:
            await self.fail_raw(raw)
            raise
        if guard.failed:
            await self.fail_raw(raw)
        else:
            await self.ack_raw(raw)

    async def size(self) -> int:
        """Return the number of pending tasks."""
        return await self.store.length(self.keys.pending)

    async def in_flight_count(self) -> int:
        return await self.store.length(self.keys.in_flight)

    async def failed_count(self) -> int:
        return await self.store.length(self.keys.failed)

    async def in_flight(self) -> list[bytes]:
        """Return the raw in-flight entries, oldest claim first."""
        return await self.store.items(self.keys.in_flight)

    async def failed(self) -> list[bytes]:
        """Return the raw failed entries, oldest first."""
        return await self.store.items(self.keys.failed)

    async def health(self) -> QueueHealth:
        """Check store connectivity and report list sizes."""
        start = time.monotonic()
        try:
            await self.store.ping()
            details = {
                "queue": self.name,
                "pending": await self.size(),
                "in_flight": await self.in_flight_count(),
                "failed": await self.failed_count(),
            }
            return QueueHealth(
                healthy=True,
                latency_ms=(time.monotonic() - start) * 1000,
                details=details,
            )
        except StoreError as e:
            return QueueHealth(
                healthy=False,
                latency_ms=(time.monotonic() - start) * 1000,
                details={"queue": self.name, "error": str(e), "operation": e.operation},
            )
