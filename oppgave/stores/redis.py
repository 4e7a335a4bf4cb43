"""Redis list store.

Maps the list store primitives onto Redis commands:

- push_right: RPUSH
- blocking_pop_and_move: BLMOVE src dst LEFT RIGHT timeout (Redis >= 6.2)
- remove_one: LREM key 1 value
- requeue: Lua script, LREM then RPUSH only if something was removed
- claim index: ZADD NX / ZRANGE WITHSCORES / ZREM

The store wraps a shared ``redis.asyncio.Redis`` client. The client checks a
connection out of its pool for every command, so concurrent blocking pops from
many workers each hold their own connection. Clients must use
``decode_responses=False`` and must not set a socket timeout shorter than the
longest blocking pop, or the pop fails with a StoreError instead of returning
None.
"""

import logging
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from typing import Any

from oppgave.core.errors import StoreError
from oppgave.core.logging import sanitize_url

try:
    from redis.asyncio import ConnectionPool, Redis
    from redis.exceptions import RedisError
except ImportError as e:
    raise ImportError(
        "The Redis store requires the 'redis' package. Install it with: pip install redis"
    ) from e

logger = logging.getLogger("oppgave.redis")

# KEYS[1] = source list, KEYS[2] = destination list, ARGV[1] = value
_REQUEUE_SCRIPT = """
if redis.call('LREM', KEYS[1], 1, ARGV[1]) == 1 then
    redis.call('RPUSH', KEYS[2], ARGV[1])
    return 1
end
return 0
"""


@contextmanager
def _translate_errors(operation: str) -> Iterator[None]:
    """Re-raise Redis client failures as StoreError."""
    try:
        yield
    except RedisError as e:
        logger.error(
            f"Redis {operation} failed: {e}",
            extra={"operation": operation, "error": str(e)},
        )
        raise StoreError(operation, e) from e


class RedisListStore:
    """List store backed by Redis lists.

    Args:
        client: A ``redis.asyncio.Redis`` client created with
            ``decode_responses=False``. It is borrowed, not owned: close()
            leaves it open unless the store was built with from_url().
    """

    def __init__(self, client: Redis) -> None:
        self._client = client
        self._pool: ConnectionPool | None = None
        self._requeue = client.register_script(_REQUEUE_SCRIPT)

    @classmethod
    def from_url(cls, url: str, pool_size: int = 10, **pool_kwargs: Any) -> "RedisListStore":
        """Create a store that owns its own connection pool.

        Args:
            url: Redis connection URL.
            pool_size: Maximum number of pooled connections.
            **pool_kwargs: Extra ConnectionPool options (e.g. socket_connect_timeout).
        """
        pool = ConnectionPool.from_url(url, max_connections=pool_size, decode_responses=False, **pool_kwargs)
        store = cls(Redis(connection_pool=pool))
        store._pool = pool
        logger.info(f"Created Redis pool for {sanitize_url(url)} (max_connections={pool_size})")
        return store

    @property
    def client(self) -> Redis:
        return self._client

    async def push_right(self, key: str, value: bytes) -> int:
        with _translate_errors("push_right"):
            return await self._client.rpush(key, value)

    async def blocking_pop_and_move(self, src: str, dst: str, timeout: float | None = None) -> bytes | None:
        # Redis treats a timeout of 0 as "block forever"
        with _translate_errors("blocking_pop_and_move"):
            return await self._client.blmove(src, dst, timeout or 0, src="LEFT", dest="RIGHT")

    async def remove_one(self, key: str, value: bytes) -> int:
        with _translate_errors("remove_one"):
            return await self._client.lrem(key, 1, value)

    async def requeue(self, src: str, dst: str, value: bytes) -> bool:
        with _translate_errors("requeue"):
            moved = await self._requeue(keys=[src, dst], args=[value])
        return moved == 1

    async def length(self, key: str) -> int:
        with _translate_errors("length"):
            return await self._client.llen(key)

    async def items(self, key: str) -> list[bytes]:
        with _translate_errors("items"):
            return await self._client.lrange(key, 0, -1)

    async def stamp_claims(self, index_key: str, values: Iterable[bytes], at: float) -> None:
        mapping = {value: at for value in values}
        if not mapping:
            return
        with _translate_errors("stamp_claims"):
            await self._client.zadd(index_key, mapping, nx=True)

    async def claim_stamps(self, index_key: str) -> dict[bytes, float]:
        with _translate_errors("claim_stamps"):
            entries = await self._client.zrange(index_key, 0, -1, withscores=True)
        return {member: float(score) for member, score in entries}

    async def clear_claims(self, index_key: str, values: Iterable[bytes]) -> None:
        values = list(values)
        if not values:
            return
        with _translate_errors("clear_claims"):
            await self._client.zrem(index_key, *values)

    async def ping(self) -> None:
        with _translate_errors("ping"):
            await self._client.ping()

    async def close(self) -> None:
        """Close the client and pool if this store created them."""
        if self._pool is None:
            return
        await self._client.aclose()
        await self._pool.disconnect()
        self._pool = None
        logger.info("Closed Redis connection pool")

    async def delete(self, *keys: str) -> None:
        """Delete keys (for testing and manual cleanup)."""
        with _translate_errors("delete"):
            await self._client.delete(*keys)
