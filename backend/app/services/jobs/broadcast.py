from __future__ import annotations

import asyncio
import threading
from collections import deque
from contextlib import asynccontextmanager
from typing import AsyncContextManager, Optional, Protocol

import redis
import redis.asyncio as aioredis


def channel_name(job_id: str) -> str:
    return f"job_status_{job_id}"


class Subscription(Protocol):
    async def get_message(self, timeout: float) -> Optional[str]: ...


class Broadcaster(Protocol):
    def publish(self, channel: str, message: str) -> None: ...

    def subscribe(self, channel: str) -> AsyncContextManager[Subscription]: ...


class RedisSubscription:
    def __init__(self, pubsub):
        self._pubsub = pubsub

    async def get_message(self, timeout: float) -> Optional[str]:
        """Next published message, or None if nothing arrived within ``timeout`` seconds."""
        msg = await self._pubsub.get_message(ignore_subscribe_messages=True, timeout=timeout)
        if msg is None or msg.get("type") != "message":
            return None
        data = msg["data"]
        return data.decode() if isinstance(data, bytes) else data


class RedisBroadcaster:
    """Redis pub/sub: workers publish, API processes relay to websockets."""

    def __init__(self, url: str):
        self.url = url
        self._client = redis.Redis.from_url(url)

    def publish(self, channel: str, message: str) -> None:
        self._client.publish(channel, message)

    @asynccontextmanager
    async def subscribe(self, channel: str):
        client = aioredis.from_url(self.url)
        pubsub = client.pubsub()
        # subscribed once this returns; later publishes are not missed
        await pubsub.subscribe(channel)
        try:
            yield RedisSubscription(pubsub)
        finally:
            await pubsub.unsubscribe(channel)
            await pubsub.aclose()
            await client.aclose()


class MemorySubscription:
    def __init__(self):
        self.loop = asyncio.get_running_loop()
        self.queue: asyncio.Queue[str] = asyncio.Queue()

    async def get_message(self, timeout: float) -> Optional[str]:
        try:
            return await asyncio.wait_for(self.queue.get(), timeout)
        except asyncio.TimeoutError:
            return None


class MemoryBroadcaster:
    """Single-process fan-out; publishers may run in any thread.

    The last ``history`` messages are kept in ``published``.
    """

    def __init__(self, history: int = 100):
        self._subscribers: dict[str, list[MemorySubscription]] = {}
        self._lock = threading.Lock()
        self.published: deque[tuple[str, str]] = deque(maxlen=history)

    def publish(self, channel: str, message: str) -> None:
        with self._lock:
            self.published.append((channel, message))
            targets = list(self._subscribers.get(channel, []))
        for sub in targets:
            sub.loop.call_soon_threadsafe(sub.queue.put_nowait, message)

    def subscriber_count(self, channel: str) -> int:
        with self._lock:
            return len(self._subscribers.get(channel, []))

    @asynccontextmanager
    async def subscribe(self, channel: str):
        sub = MemorySubscription()
        with self._lock:
            self._subscribers.setdefault(channel, []).append(sub)
        try:
            yield sub
        finally:
            with self._lock:
                subs = self._subscribers.get(channel, [])
                if sub in subs:
                    subs.remove(sub)
                if not subs:
                    self._subscribers.pop(channel, None)
