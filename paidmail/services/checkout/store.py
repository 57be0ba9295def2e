"""Order intent storage with explicit expiry.

Pending orders live either in process memory (bounded, lossy on restart) or in
Redis. The same store also records which webhook events were already handled.
"""

import time
from collections import OrderedDict
from typing import Callable, Protocol

import redis.asyncio as aioredis

from paidmail.common.logging import logger
from paidmail.services.checkout.schemas import OrderIntent


ORDER_KEY_PREFIX = "paidmail:order:"
EVENT_KEY_PREFIX = "paidmail:event:"


class OrderStore(Protocol):
    """Storage seam injected into the checkout service."""

    async def put(self, order_id: str, intent: OrderIntent, ttl_seconds: int) -> None: ...

    async def get(self, order_id: str) -> OrderIntent | None: ...

    async def delete(self, order_id: str) -> None: ...

    async def claim_event(self, event_id: str, ttl_seconds: int) -> bool: ...

    async def release_event(self, event_id: str) -> None: ...

    async def close(self) -> None: ...


class MemoryOrderStore:
    """Bounded in-process store; oldest entries are evicted past capacity.

    Every call runs on the event loop thread, so no locking is needed.
    """

    def __init__(self, max_entries: int = 10_000, clock: Callable[[], float] = time.monotonic) -> None:
        self.max_entries = max_entries
        self.clock = clock
        self._entries: OrderedDict[str, tuple[float, object]] = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def _live(self, key: str):
        item = self._entries.get(key)
        if item is None:
            return None
        expires_at, value = item
        if expires_at <= self.clock():
            del self._entries[key]
            return None
        return value

    def _set(self, key: str, value: object, ttl_seconds: int) -> None:
        self._entries.pop(key, None)
        self._entries[key] = (self.clock() + ttl_seconds, value)
        self._evict()

    def _evict(self) -> None:
        now = self.clock()
        for key in [k for k, (expires_at, _) in self._entries.items() if expires_at <= now]:
            del self._entries[key]
        while len(self._entries) > self.max_entries:
            key, _ = self._entries.popitem(last=False)
            logger.warning("order store full, evicted key=%s", key)

    async def put(self, order_id: str, intent: OrderIntent, ttl_seconds: int) -> None:
        self._set(ORDER_KEY_PREFIX + order_id, intent, ttl_seconds)

    async def get(self, order_id: str) -> OrderIntent | None:
        return self._live(ORDER_KEY_PREFIX + order_id)

    async def delete(self, order_id: str) -> None:
        self._entries.pop(ORDER_KEY_PREFIX + order_id, None)

    async def claim_event(self, event_id: str, ttl_seconds: int) -> bool:
        key = EVENT_KEY_PREFIX + event_id
        if self._live(key) is not None:
            return False
        self._set(key, True, ttl_seconds)
        return True

    async def release_event(self, event_id: str) -> None:
        self._entries.pop(EVENT_KEY_PREFIX + event_id, None)

    async def close(self) -> None:
        self._entries.clear()


class RedisOrderStore:
    """Redis-backed store; intents are JSON strings with a server-side TTL."""

    def __init__(self, client: aioredis.Redis) -> None:
        self.client = client

    @classmethod
    def from_url(cls, url: str) -> "RedisOrderStore":
        return cls(aioredis.Redis.from_url(url, decode_responses=True))

    async def put(self, order_id: str, intent: OrderIntent, ttl_seconds: int) -> None:
        await self.client.set(ORDER_KEY_PREFIX + order_id, intent.model_dump_json(), ex=ttl_seconds)

    async def get(self, order_id: str) -> OrderIntent | None:
        raw = await self.client.get(ORDER_KEY_PREFIX + order_id)
        if raw is None:
            return None
        return OrderIntent.model_validate_json(raw)

    async def delete(self, order_id: str) -> None:
        await self.client.delete(ORDER_KEY_PREFIX + order_id)

    async def claim_event(self, event_id: str, ttl_seconds: int) -> bool:
        # SET NX returns None when the key already exists.
        claimed = await self.client.set(EVENT_KEY_PREFIX + event_id, "1", nx=True, ex=ttl_seconds)
        return bool(claimed)

    async def release_event(self, event_id: str) -> None:
        await self.client.delete(EVENT_KEY_PREFIX + event_id)

    async def close(self) -> None:
        await self.client.aclose()


def build_store(redis_url: str | None, max_entries: int) -> OrderStore:
    """Pick Redis when a URL is configured, process memory otherwise."""

    if redis_url:
        return RedisOrderStore.from_url(redis_url)
    return MemoryOrderStore(max_entries=max_entries)
