"""Cache/broker client — Redis get/set/publish/subscribe that never raises.

Learn: Real-time delivery is best-effort. If Redis is down, a browser misses
an update and catches up on its next poll; a station booking must never fail
because of it. So callers get a `Broker` whose methods absorb every failure:

- LiveBroker wraps redis.asyncio. The first failed operation flips it to
  unavailable for the rest of the connection's life.
- DisabledBroker is what you get when Redis was never reachable. Every
  method is a no-op returning the cache-miss / zero-receivers value.

connect_broker() picks one at startup, so call sites don't branch on
connectivity.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Callable, Optional

import redis.asyncio as aioredis
import structlog
from redis.exceptions import RedisError

logger = structlog.get_logger()

MessageHandler = Callable[[str], None]

# Failures treated as "broker unavailable"
BROKER_ERRORS = (RedisError, OSError, asyncio.TimeoutError)


class Broker(ABC):
    """Capability interface shared by the live and disabled brokers."""

    @abstractmethod
    def is_available(self) -> bool: ...

    @abstractmethod
    async def get(self, key: str) -> Optional[str]: ...

    @abstractmethod
    async def set_with_expiry(self, key: str, ttl_seconds: int, value: str) -> bool: ...

    @abstractmethod
    async def publish(self, channel: str, message: str) -> int: ...

    @abstractmethod
    async def subscribe(self, channel: str, handler: MessageHandler) -> None:
        """Deliver every message on `channel` to `handler` until cancelled."""

    @abstractmethod
    async def ping(self) -> bool: ...

    @abstractmethod
    async def close(self) -> None: ...


class DisabledBroker(Broker):
    """Broker used when Redis is not configured or never connected."""

    def __init__(self, reason: str = "not configured"):
        self.reason = reason

    def is_available(self) -> bool:
        return False

    async def get(self, key: str) -> Optional[str]:
        return None

    async def set_with_expiry(self, key: str, ttl_seconds: int, value: str) -> bool:
        return False

    async def publish(self, channel: str, message: str) -> int:
        return 0

    async def subscribe(self, channel: str, handler: MessageHandler) -> None:
        logger.info("broker.subscribe_skipped", channel=channel, reason=self.reason)

    async def ping(self) -> bool:
        return False

    async def close(self) -> None:
        return None


class LiveBroker(Broker):
    """Redis-backed broker. Failures are logged and degrade to no-ops."""

    def __init__(self, client: aioredis.Redis):
        self._redis = client
        self._available = True
        self.failures = 0
        self.last_error: Optional[str] = None

    def is_available(self) -> bool:
        return self._available

    def _mark_failed(self, op: str, error: BaseException) -> None:
        self.failures += 1
        self.last_error = f"{op}: {error}"
        if self._available:
            logger.warning("broker.unavailable", op=op, error=str(error))
        self._available = False

    async def get(self, key: str) -> Optional[str]:
        if not self._available:
            return None
        try:
            return await self._redis.get(key)
        except BROKER_ERRORS as e:
            self._mark_failed("get", e)
            return None

    async def set_with_expiry(self, key: str, ttl_seconds: int, value: str) -> bool:
        if not self._available:
            return False
        try:
            await self._redis.set(key, value, ex=ttl_seconds)
            return True
        except BROKER_ERRORS as e:
            self._mark_failed("set", e)
            return False

    async def publish(self, channel: str, message: str) -> int:
        if not self._available:
            return 0
        try:
            return await self._redis.publish(channel, message)
        except BROKER_ERRORS as e:
            self._mark_failed("publish", e)
            logger.error("broker.publish_failed", channel=channel, error=str(e))
            return 0

    async def subscribe(self, channel: str, handler: MessageHandler) -> None:
        if not self._available:
            return
        pubsub = self._redis.pubsub()
        try:
            await pubsub.subscribe(channel)
            logger.info("broker.subscribed", channel=channel)
            async for message in pubsub.listen():
                if message["type"] == "message":
                    handler(message["data"])
        except BROKER_ERRORS as e:
            self._mark_failed("subscribe", e)
        finally:
            try:
                await pubsub.unsubscribe(channel)
                await pubsub.aclose()
            except BROKER_ERRORS as e:
                logger.debug("broker.unsubscribe_failed", channel=channel, error=str(e))

    async def ping(self) -> bool:
        try:
            await self._redis.ping()
            return True
        except BROKER_ERRORS:
            return False

    async def close(self) -> None:
        self._available = False
        await self._redis.aclose()


async def connect_broker(redis_url: str, timeout: float = 5.0) -> Broker:
    """Connect to Redis, falling back to a DisabledBroker on any failure."""
    if not redis_url:
        logger.info("broker.disabled", reason="no redis_url")
        return DisabledBroker()

    try:
        client = aioredis.from_url(
            redis_url,
            encoding="utf-8",
            decode_responses=True,
        )
    except ValueError as e:
        logger.warning("broker.invalid_url", error=str(e))
        return DisabledBroker(reason=f"invalid redis_url: {e}")

    try:
        await asyncio.wait_for(client.ping(), timeout=timeout)
    except BROKER_ERRORS as e:
        logger.warning("broker.connect_failed", error=str(e))
        await client.aclose()
        return DisabledBroker(reason=f"connect failed: {e}")

    logger.info("broker.connected")
    return LiveBroker(client)
