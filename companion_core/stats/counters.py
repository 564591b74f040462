"""Atomic counter backends for usage statistics."""

from abc import ABC, abstractmethod
from typing import Dict, Iterable

import redis.asyncio as aioredis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from ..core.retry import RetryConfig, retry_with_backoff
from ..database.store import COUNTERS_COLLECTION, DocumentStore

REDIS_RETRY = RetryConfig(
    max_attempts=3,
    base_delay=0.2,
    max_delay=2.0,
    retry_exceptions=(RedisConnectionError, RedisTimeoutError),
)


class CounterStore(ABC):
    """Additive counters: increments never read-modify-write"""

    @abstractmethod
    async def incr(self, key: str, amount: int = 1) -> int:
        pass

    @abstractmethod
    async def get_many(self, keys: Iterable[str]) -> Dict[str, int]:
        pass

    async def close(self) -> None:
        return None


class RedisCounterStore(CounterStore):
    """INCRBY / MGET on plain redis keys"""

    def __init__(self, client: aioredis.Redis, prefix: str = "companion:stats:"):
        self.redis = client
        self.prefix = prefix

    @classmethod
    def from_url(cls, url: str, prefix: str = "companion:stats:") -> "RedisCounterStore":
        return cls(aioredis.from_url(url, decode_responses=True), prefix=prefix)

    @retry_with_backoff(REDIS_RETRY)
    async def incr(self, key: str, amount: int = 1) -> int:
        return await self.redis.incrby(self.prefix + key, amount)

    async def get_many(self, keys: Iterable[str]) -> Dict[str, int]:
        keys = list(keys)
        if not keys:
            return {}
        values = await self.redis.mget([self.prefix + key for key in keys])
        return {key: int(value) if value is not None else 0 for key, value in zip(keys, values)}

    async def close(self) -> None:
        await self.redis.aclose()


class DocumentCounterStore(CounterStore):
    """Counters as documents, using the store's atomic increment"""

    def __init__(self, store: DocumentStore):
        self.store = store

    async def incr(self, key: str, amount: int = 1) -> int:
        doc = await self.store.increment(COUNTERS_COLLECTION, key, {"value": amount})
        return int(doc.get("value", 0))

    async def get_many(self, keys: Iterable[str]) -> Dict[str, int]:
        result = {}
        for key in keys:
            doc = await self.store.get(COUNTERS_COLLECTION, key)
            result[key] = int(doc.get("value", 0)) if doc else 0
        return result
