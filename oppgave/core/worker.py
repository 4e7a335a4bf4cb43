"""Worker loop.

The Worker repeatedly pops from a Queue, hands each task to a handler and
settles it:

- handler returns: the task is acked
- handler raises or times out: the task is settled by HandlerFailureMode
- entry cannot be decoded: the raw entry is moved to the failed list
- store fails: the error is logged, the loop backs off and retries, and after
  too many consecutive failures StoreUnavailableError is raised

Stopping is cooperative: stop() sets a flag that is checked between pops,
and pops use a short poll timeout so the flag is seen promptly.
"""

import asyncio
import inspect
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, TypeVar
from uuid import uuid4

from oppgave.core.errors import DecodeError, QueueError, StoreError, StoreUnavailableError
from oppgave.core.logging import configure_worker_logger
from oppgave.core.queue import Queue

T = TypeVar("T")

Handler = Callable[[T], None | Awaitable[None]]

# Circuit breaker defaults
DEFAULT_MAX_CONSECUTIVE_FAILURES = 10


class HandlerFailureMode(Enum):
    """Strategy for settling a task whose handler failed.

    FAIL: Move the task to the failed list for manual processing
    REQUEUE: Move the task back to the pending tail for another attempt
    LEAVE: Leave the task in flight; the reaper returns it later
    ACK: Log the error and acknowledge the task (dropped, no retry)
    """

    FAIL = "fail"
    REQUEUE = "requeue"
    LEAVE = "leave"
    ACK = "ack"


@dataclass
class WorkerStats:
    """Statistics from a Worker run."""

    tasks_processed: int = 0
    tasks_acked: int = 0
    tasks_failed: int = 0
    tasks_requeued: int = 0
    tasks_left: int = 0
    handler_errors: int = 0
    decode_errors: int = 0
    store_errors: int = 0
    settle_errors: int = 0


class Worker(Generic[T]):
    """Pops tasks from a queue and runs a handler on each.

    Args:
        queue: The queue to consume.
        handler: Callable taking a task; may be sync or async.
        name: Worker name used in logs. Auto-generated if None.
        poll_timeout: Seconds each pop blocks before the stop flag is re-checked.
        handler_failure_mode: How to settle tasks whose handler failed.
        handler_timeout: Seconds an async handler may run.
        max_tasks: Stop after this many tasks. None runs until stop().
        max_consecutive_store_failures: Circuit breaker threshold.
        retry_base_delay: First backoff delay after a store failure.
        retry_max_delay: Cap on the backoff delay.
    """

    def __init__(
        self,
        queue: Queue[T],
        handler: Handler[T],
        name: str | None = None,
        poll_timeout: float = 1.0,
        handler_failure_mode: HandlerFailureMode = HandlerFailureMode.FAIL,
        handler_timeout: float = 30.0,
        max_tasks: int | None = None,
        max_consecutive_store_failures: int = DEFAULT_MAX_CONSECUTIVE_FAILURES,
        retry_base_delay: float = 0.1,
        retry_max_delay: float = 5.0,
    ) -> None:
        if poll_timeout <= 0:
            raise ValueError("poll_timeout must be positive so the worker can be stopped")
        self.queue = queue
        self.handler = handler
        self.name = name or f"worker-{uuid4().hex[:8]}"
        self.poll_timeout = poll_timeout
        self.handler_failure_mode = handler_failure_mode
        self.handler_timeout = handler_timeout
        self.max_tasks = max_tasks
        self.max_consecutive_store_failures = max_consecutive_store_failures
        self.retry_base_delay = retry_base_delay
        self.retry_max_delay = retry_max_delay
        self._log = configure_worker_logger()
        self._running = False
        self._stats = WorkerStats()
        self._consecutive_store_failures = 0
        self._last_store_error: str | None = None

    def stop(self) -> None:
        """Stop after the current task; takes effect within one poll timeout."""
        self._running = False

    @property
    def is_stopped(self) -> bool:
        return not self._running

    def get_stats(self) -> WorkerStats:
        """Return a snapshot of the current statistics."""
        return WorkerStats(**vars(self._stats))

    def _context(self, **extra: Any) -> dict[str, Any]:
        return {"queue": self.queue.name, "worker": self.name, **extra}

    async def _invoke_handler(self, task: T) -> None:
        """Invoke handler, awaiting it with a timeout if it is async."""
        result = self.handler(task)
        if inspect.isawaitable(result):
            try:
                await asyncio.wait_for(result, timeout=self.handler_timeout)
            except TimeoutError:
                raise TimeoutError(f"Handler timed out after {self.handler_timeout}s")

    async def _settle(self, operation: str, settle: Callable[[], Awaitable[bool]]) -> bool:
        """Run a settle operation, logging rather than raising on failure.

        Returns True only if the entry was found in flight and moved.
        """
        try:
            settled = await settle()
        except QueueError as e:
            self._stats.settle_errors += 1
            self._log.error(
                f"Failed to {operation} task: {e}",
                extra=self._context(operation=operation, error=str(e)),
            )
            return False
        if not settled:
            self._log.warning(
                f"Task to {operation} was no longer in flight",
                extra=self._context(operation=operation),
            )
        return settled

    async def _settle_failure(self, raw: bytes) -> None:
        mode = self.handler_failure_mode
        if mode == HandlerFailureMode.FAIL:
            if await self._settle("fail", lambda: self.queue.fail_raw(raw)):
                self._stats.tasks_failed += 1
        elif mode == HandlerFailureMode.REQUEUE:
            if await self._settle("requeue", lambda: self.queue.requeue_raw(raw)):
                self._stats.tasks_requeued += 1
        elif mode == HandlerFailureMode.LEAVE:
            self._stats.tasks_left += 1
            self._log.warning(
                "Task left in flight after handler failure",
                extra=self._context(operation="leave"),
            )
        else:  # ACK mode
            if await self._settle("ack", lambda: self.queue.ack_raw(raw)):
                self._stats.tasks_acked += 1

    def _backoff_delay(self) -> float:
        delay = self.retry_base_delay * (2 ** (self._consecutive_store_failures - 1))
        return min(delay, self.retry_max_delay)

    async def run(self) -> WorkerStats:
        """Process tasks until stopped or max_tasks is reached.

        Returns:
            Statistics for this run.

        Raises:
            StoreUnavailableError: After max_consecutive_store_failures
                consecutive failed pops.
        """
        self._stats = WorkerStats()
        self._running = True
        self._consecutive_store_failures = 0
        self._log.info(
            f"Worker {self.name} started on {self.queue.keys.pending}",
            extra=self._context(),
        )

        while self._running:
            if self.max_tasks is not None and self._stats.tasks_processed >= self.max_tasks:
                break

            # Circuit breaker for store failures
            if self._consecutive_store_failures >= self.max_consecutive_store_failures:
                self._running = False
                raise StoreUnavailableError(
                    f"Store unavailable after {self._consecutive_store_failures} failures",
                    failure_count=self._consecutive_store_failures,
                    last_error=self._last_store_error,
                )

            try:
                claimed = await self.queue.pop_raw(timeout=self.poll_timeout)
                self._consecutive_store_failures = 0
                self._last_store_error = None
            except DecodeError as e:
                self._consecutive_store_failures = 0
                self._stats.decode_errors += 1
                self._log.error(
                    f"Undecodable task, moving to failed list: {e}",
                    extra=self._context(operation="pop", error=str(e)),
                )
                await self._settle("fail", lambda: self.queue.fail_raw(e.raw))
                continue
            except StoreError as e:
                self._consecutive_store_failures += 1
                self._stats.store_errors += 1
                self._last_store_error = str(e)
                delay = self._backoff_delay()
                self._log.error(
                    f"Store pop failed ({self._consecutive_store_failures}/"
                    f"{self.max_consecutive_store_failures}), retrying in {delay}s: {e}",
                    extra=self._context(
                        operation="pop",
                        error=str(e),
                        consecutive_failures=self._consecutive_store_failures,
                    ),
                )
                await asyncio.sleep(delay)
                continue

            if claimed is None:
                continue

            raw, task = claimed

            self._stats.tasks_processed += 1

            try:
                await self._invoke_handler(task)
            except Exception as e:
                self._stats.handler_errors += 1
                self._log.error(
                    f"Handler raised exception: {e}",
                    extra=self._context(
                        operation="handle",
                        error=str(e),
                        failure_mode=self.handler_failure_mode.value,
                    ),
                )
                await self._settle_failure(raw)
                continue

            if await self._settle("ack", lambda: self.queue.ack_raw(raw)):
                self._stats.tasks_acked += 1

        self._running = False
        self._log.info(
            f"Worker {self.name} stopped after {self._stats.tasks_processed} tasks",
            extra=self._context(),
        )
        return self._stats
