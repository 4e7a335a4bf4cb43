"""List store protocol.

The Queue never talks to a store client directly; everything goes through
these primitives. Each call is a single round trip and is atomic at the store.
Implementations raise StoreError for connectivity or protocol failures and
never retry on their own.
"""

from collections.abc import Iterable
from typing import Protocol


class ListStore(Protocol):
    """Protocol defining the list primitives the queue protocol relies on."""

    async def push_right(self, key: str, value: bytes) -> int:
        """Append a value to the tail of a list.

        Returns:
            The new length of the list.
        """
        ...

    async def blocking_pop_and_move(self, src: str, dst: str, timeout: float | None = None) -> bytes | None:
        """Atomically move the head of ``src`` to the tail of ``dst``.

        Blocks while ``src`` is empty, for at most ``timeout`` seconds.
        ``None`` or ``0`` blocks indefinitely.

        Returns:
            The moved value, or None if the timeout expired.
        """
        ...

    async def remove_one(self, key: str, value: bytes) -> int:
        """Remove one occurrence of a value from a list.

        Returns:
            Number of removed entries (0 or 1). Absence is not an error.
        """
        ...

    async def requeue(self, src: str, dst: str, value: bytes) -> bool:
        """Atomically remove one occurrence of a value from ``src`` and append it to ``dst``.

        Returns:
            True if the value was moved, False if it was not in ``src``
            (in which case ``dst`` is left untouched).
        """
        ...

    async def length(self, key: str) -> int:
        """Return the length of a list (0 if it does not exist)."""
        ...

    async def items(self, key: str) -> list[bytes]:
        """Return all values of a list, head first."""
        ...

    async def stamp_claims(self, index_key: str, values: Iterable[bytes], at: float) -> None:
        """Record ``at`` as the claim time of each value not already stamped."""
        ...

    async def claim_stamps(self, index_key: str) -> dict[bytes, float]:
        """Return the claim index as a mapping of value to claim time."""
        ...

    async def clear_claims(self, index_key: str, values: Iterable[bytes]) -> None:
        """Drop values from the claim index."""
        ...

    async def ping(self) -> None:
        """Check that the store is reachable."""
        ...

    async def close(self) -> None:
        """Release resources owned by the store object."""
        ...
