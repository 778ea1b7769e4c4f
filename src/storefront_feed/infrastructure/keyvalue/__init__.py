"""Persisted client-side key-value store with graceful degradation.

Every read and write of the recency log, city preference and pinned
category path goes through a ``KeyValueStore``. Values are strings; callers
serialize structured payloads with orjson.
"""

import asyncio
from typing import Any, Iterable, Protocol

import orjson
import redis.asyncio as aioredis
import structlog

from shared.constants import CITY_KEY, PINNED_BECAUSE_KEY, RECENTLY_VIEWED_KEY, REGION_KEY
from storefront_feed.config import Settings, get_settings

logger = structlog.get_logger()

CLIENT_KEYS = (RECENTLY_VIEWED_KEY, CITY_KEY, REGION_KEY, PINNED_BECAUSE_KEY)


class KeyValueStore(Protocol):
    """Synchronous string-keyed, string-valued store scoped to one client."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...


class InMemoryKeyValueStore:
    """Process-local store. Used by tests and ephemeral sessions."""

    def __init__(self, initial: dict[str, str] | None = None):
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)


class RedisKeyValueStore(InMemoryKeyValueStore):
    """One client's keys in Redis, scoped to ``{namespace}:{client_id}:``.

    ``load()`` reads the client's keys once, after which reads are served from
    memory and never wait on Redis. Writes land in memory immediately and are
    sent to Redis by a background task, or by ``flush()``.

    No-ops against Redis if it is unavailable.
    """

    def __init__(
        self,
        client: aioredis.Redis | None,
        client_id: str,
        namespace: str | None = None,
        keys: Iterable[str] = CLIENT_KEYS,
    ):
        super().__init__()
        self.client = client
        self.prefix = f"{namespace or get_settings().storage_namespace}:{client_id}:"
        self.keys = tuple(keys)
        self._pending: dict[str, str | None] = {}
        self._writer: asyncio.Task | None = None

    def _key(self, key: str) -> str:
        return self.prefix + key

    async def load(self) -> None:
        if not self.client:
            return
        try:
            values = await self.client.mget([self._key(k) for k in self.keys])
        except Exception as e:
            logger.warning("Store load failed", prefix=self.prefix, error=str(e))
            return
        for key, data in zip(self.keys, values):
            if data is not None:
                self._data[key] = data.decode() if isinstance(data, bytes) else str(data)

    def set(self, key: str, value: str) -> None:
        super().set(key, value)
        self._schedule(key, value)

    def remove(self, key: str) -> None:
        super().remove(key)
        self._schedule(key, None)

    async def flush(self) -> None:
        """Wait until every change made so far has been sent to Redis."""
        writer = self._writer
        if writer is not None and not writer.done():
            await writer
        await self._write_pending()

    def _schedule(self, key: str, value: str | None) -> None:
        if not self.client:
            return
        self._pending[key] = value
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return  # no loop; left for flush()
        if self._writer is None or self._writer.done():
            self._writer = loop.create_task(self._write_pending())

    async def _write_pending(self) -> None:
        while self._pending:
            key = next(iter(self._pending))
            value = self._pending.pop(key)
            try:
                if value is None:
                    await self.client.delete(self._key(key))
                else:
                    await self.client.set(self._key(key), value)
            except Exception as e:
                logger.warning("Store write failed", key=key, error=str(e))


async def get_redis_client(settings: Settings | None = None) -> aioredis.Redis | None:
    """Create an async Redis client, or None when Redis is unreachable."""
    settings = settings or get_settings()
    client = aioredis.from_url(
        settings.redis_url,
        decode_responses=False,
        socket_connect_timeout=2,
        socket_timeout=2,
        retry_on_timeout=True,
    )
    try:
        await client.ping()
    except Exception as e:
        logger.warning("Redis unavailable, client storage disabled", error=str(e))
        await client.aclose()
        return None
    logger.info("Redis connection established")
    return client


def read_json(store: KeyValueStore, key: str) -> Any | None:
    """Decode a JSON value; malformed payloads read as missing."""
    raw = store.get(key)
    if not raw:
        return None
    try:
        return orjson.loads(raw)
    except orjson.JSONDecodeError:
        logger.warning("Discarding malformed stored value", key=key)
        return None


def write_json(store: KeyValueStore, key: str, value: Any) -> None:
    store.set(key, orjson.dumps(value).decode())
