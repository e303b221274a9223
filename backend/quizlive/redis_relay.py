from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable
from typing import Any

from redis.asyncio import Redis
from redis.asyncio import from_url as redis_from_url

from .config import settings
from .runtime_utils import random_id

logger = logging.getLogger(__name__)

LocalDelivery = Callable[[str, dict[str, Any]], None]

RELAY_RETRY_MIN_SECONDS = 0.5
RELAY_RETRY_MAX_SECONDS = 30.0


class RedisRelay:
    """
    Cross-worker fan-out of room broadcasts over Redis pub/sub.

    Room state stays in the worker that owns the room; the relay only carries
    already-committed events to connections held by other workers.
    """

    def __init__(self, redis_url: str | None = None, channel_prefix: str | None = None) -> None:
        self.redis_url = (redis_url if redis_url is not None else settings.redis_url).strip()
        self.channel_prefix = channel_prefix or settings.redis_channel_prefix
        self.worker_id = random_id()
        self._redis: Redis | None = None
        self._listener: asyncio.Task[None] | None = None
        self.listener_failures = 0

    @property
    def is_configured(self) -> bool:
        return bool(self.redis_url)

    @property
    def is_connected(self) -> bool:
        return self._redis is not None

    def room_channel(self, room_id: str) -> str:
        return f"{self.channel_prefix}:room:{room_id}"

    def room_id_from_channel(self, channel: str) -> str | None:
        prefix = f"{self.channel_prefix}:room:"
        if not channel.startswith(prefix):
            return None
        return channel[len(prefix):] or None

    async def start(self, deliver: LocalDelivery) -> bool:
        if self._redis is not None:
            return True
        if not self.redis_url:
            logger.info("Redis URL is not configured, broadcast relay disabled")
            return False

        client = redis_from_url(self.redis_url, encoding="utf-8", decode_responses=True)
        try:
            await client.ping()
        except Exception:
            logger.exception("Failed to connect to Redis %s", self.redis_url)
            await client.aclose()
            return False

        self._redis = client
        self._listener = asyncio.create_task(self._listen(client, deliver), name="redis-relay")
        logger.info("Redis broadcast relay connected worker=%s", self.worker_id)
        return True

    async def stop(self) -> None:
        if self._listener is not None:
            self._listener.cancel()
            try:
                await self._listener
            except asyncio.CancelledError:
                pass
            except Exception:
                logger.exception("Redis relay listener exited with an error")
            self._listener = None
        if self._redis is None:
            return
        try:
            await self._redis.aclose()
        except Exception:
            logger.exception("Failed to close Redis relay connection")
        finally:
            self._redis = None

    async def ping(self) -> bool:
        if self._redis is None:
            return False
        try:
            await self._redis.ping()
            return True
        except Exception:
            logger.exception("Redis ping failed")
            return False

    def encode(self, message: dict[str, Any]) -> str:
        return json.dumps(
            {"origin": self.worker_id, "message": message},
            ensure_ascii=False,
            separators=(",", ":"),
        )

    def decode(self, raw: str) -> dict[str, Any] | None:
        try:
            envelope = json.loads(raw)
        except (TypeError, json.JSONDecodeError):
            return None
        if not isinstance(envelope, dict) or envelope.get("origin") == self.worker_id:
            return None
        message = envelope.get("message")
        return message if isinstance(message, dict) else None

    async def publish(self, room_id: str, message: dict[str, Any]) -> None:
        if self._redis is None:
            return
        await self._redis.publish(self.room_channel(room_id), self.encode(message))

    async def _listen(self, client: Redis, deliver: LocalDelivery) -> None:
        delay = RELAY_RETRY_MIN_SECONDS
        while True:
            try:
                await self._consume(client, deliver)
                return
            except Exception:
                self.listener_failures += 1
                logger.exception("Redis relay listener failed, resubscribing in %.1fs", delay)
            await asyncio.sleep(delay)
            delay = min(delay * 2, RELAY_RETRY_MAX_SECONDS)

    async def _consume(self, client: Redis, deliver: LocalDelivery) -> None:
        pubsub = client.pubsub()
        try:
            await pubsub.psubscribe(f"{self.channel_prefix}:room:*")
            async for item in pubsub.listen():
                if item.get("type") != "pmessage":
                    continue
                room_id = self.room_id_from_channel(str(item.get("channel") or ""))
                message = self.decode(item.get("data"))
                if room_id is None or message is None:
                    continue
                try:
                    deliver(room_id, message)
                except Exception:
                    logger.exception("Relay delivery failed for room %s", room_id)
        finally:
            await pubsub.aclose()
