"""In-memory list store.

This store is suitable for development and testing. It provides no
durability guarantees: everything is lost when the process terminates, and
it can only be shared between coroutines of a single event loop.

Every mutation runs under one asyncio.Condition without awaiting midway, so
each operation is indivisible with respect to other coroutines, matching the
atomicity of the real store.
"""

import asyncio
from collections import deque
from collections.abc import Iterable


class InMemoryListStore:
    """Async list store backed by dicts of deques."""

    def __init__(self) -> None:
        self._lists: dict[str, deque[bytes]] = {}
        self._claims: dict[str, dict[bytes, float]] = {}
        self._cond = asyncio.Condition()

    def _list(self, key: str) -> deque[bytes]:
        return self._lists.setdefault(key, deque())

    async def push_right(self, key: str, value: bytes) -> int:
        async with self._cond:
            items = self._list(key)
            items.append(value)
            self._cond.notify_all()
            return len(items)

    async def blocking_pop_and_move(self, src: str, dst: str, timeout: float | None = None) -> bytes | None:
        async with self._cond:
            if not self._lists.get(src):
                waiter = self._cond.wait_for(lambda: bool(self._lists.get(src)))
                if timeout:
                    try:
                        await asyncio.wait_for(waiter, timeout)
                    except TimeoutError:
                        return None
                else:
                    await waiter

            value = self._lists[src].popleft()
            self._list(dst).append(value)
            self._cond.notify_all()
            return value

    async def remove_one(self, key: str, value: bytes) -> int:
        async with self._cond:
            try:
                self._lists.get(key, deque()).remove(value)
            except ValueError:
                return 0
            return 1

    async def requeue(self, src: str, dst: str, value: bytes) -> bool:
        async with self._cond:
            try:
                self._lists.get(src, deque()).remove(value)
            except ValueError:
                return False
            self._list(dst).append(value)
            self._cond.notify_all()
            return True

    async def length(self, key: str) -> int:
        return len(self._lists.get(key, ()))

    async def items(self, key: str) -> list[bytes]:
        return list(self._lists.get(key, ()))

    async def stamp_claims(self, index_key: str, values: Iterable[bytes], at: float) -> None:
        index = self._claims.setdefault(index_key, {})
        for value in values:
            index.setdefault(value, at)

    async def claim_stamps(self, index_key: str) -> dict[bytes, float]:
        return dict(self._claims.get(index_key, {}))

    async def clear_claims(self, index_key: str, values: Iterable[bytes]) -> None:
        index = self._claims.get(index_key, {})
        for value in values:
            index.pop(value, None)

    async def ping(self) -> None:
        pass

    async def close(self) -> None:
        """Drop all lists and claim stamps."""
        async with self._cond:
            self._lists.clear()
            self._claims.clear()
