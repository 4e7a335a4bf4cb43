"""Recovery of tasks stranded in flight by crashed workers.

The reaper runs as its own process (or task), never on the push/pop path.
Each sweep:

1. stamps every in-flight entry it has not seen before with the current time
   in the queue's claims index,
2. requeues entries whose stamp is older than the visibility timeout, using
   the store's conditional move so an entry acked in the meantime is never
   pushed back,
3. clears stamps of entries that are no longer in flight.

A stranded task is therefore back in pending at most
``visibility_timeout + interval`` seconds after the reaper first saw it.
Entries with identical bytes share one stamp; give tasks unique ids (as
Task does) to keep their timing independent.
"""

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

from oppgave.core.errors import StoreError
from oppgave.core.queue import Queue

logger = logging.getLogger("oppgave.reaper")


@dataclass
class SweepResult:
    """Outcome of one reaper sweep."""

    in_flight: int = 0
    stamped: int = 0
    requeued: int = 0
    cleared: int = 0


class Reaper:
    """Periodically returns expired in-flight tasks to pending.

    Args:
        queue: The queue to watch.
        visibility_timeout: Seconds an entry may stay in flight.
        interval: Seconds between sweeps in run().
        clock: Wall-clock source, shared across processes through the
            claims index. Defaults to time.time.
    """

    def __init__(
        self,
        queue: Queue,
        visibility_timeout: float = 300.0,
        interval: float = 30.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if visibility_timeout <= 0:
            raise ValueError("visibility_timeout must be positive")
        self.queue = queue
        self.visibility_timeout = visibility_timeout
        self.interval = interval
        self._clock = clock
        self._running = False

    def stop(self) -> None:
        self._running = False

    async def sweep(self) -> SweepResult:
        """Run one recovery pass.

        Raises:
            StoreError: If the store fails. Requeues already made stay made.
        """
        keys = self.queue.keys
        store = self.queue.store
        now = self._clock()
        result = SweepResult()

        entries = await store.items(keys.in_flight)
        stamps = await store.claim_stamps(keys.claims)
        live = set(entries)
        result.in_flight = len(entries)

        unseen = [value for value in live if value not in stamps]
        if unseen:
            await store.stamp_claims(keys.claims, unseen, now)
            result.stamped = len(unseen)

        gone = [value for value in stamps if value not in live]
        expired = [
            value
            for value, stamped_at in stamps.items()
            if value in live and now - stamped_at >= self.visibility_timeout
        ]

        for value in expired:
            if await store.requeue(keys.in_flight, keys.pending, value):
                result.requeued += 1
            gone.append(value)

        if gone:
            await store.clear_claims(keys.claims, gone)
            result.cleared = len(gone)

        if result.requeued:
            logger.warning(
                f"Requeued {result.requeued} expired in-flight tasks to {keys.pending}",
                extra={"queue": self.queue.name, "operation": "reap", "requeued": result.requeued},
            )
        return result

    async def run(self) -> None:
        """Sweep every ``interval`` seconds until stop() is called.

        Store failures are logged and the next sweep proceeds as scheduled.
        """
        self._running = True
        logger.info(
            f"Reaper started on {self.queue.keys.in_flight} "
            f"(visibility_timeout={self.visibility_timeout}s, interval={self.interval}s)",
            extra={"queue": self.queue.name},
        )
        while self._running:
            try:
                await self.sweep()
            except StoreError as e:
                logger.error(
                    f"Reaper sweep failed: {e}",
                    extra={"queue": self.queue.name, "operation": e.operation, "error": str(e)},
                )
            if self._running:
                await asyncio.sleep(self.interval)
        logger.info("Reaper stopped", extra={"queue": self.queue.name})
