"""
Battle event broadcasting.

Publishes fire-and-forget events on a battle-scoped topic
(``battle:<battle_id>``) for UI clients. The engine never consumes these
events, so publish failures are logged and dropped.
"""

import json
import logging
from datetime import UTC, datetime
from typing import Any, Protocol

from redis.asyncio import Redis

from cardarena.config import settings

logger = logging.getLogger(__name__)

# Event names
CARD_SELECTED = "card_selected"
CARDS_REVEALED = "cards_revealed"
BATTLE_RESOLVED = "battle_resolved"


class Broadcaster(Protocol):
    """Publish/subscribe channel used to notify UI clients."""

    async def publish(self, battle_id: str, event: str, payload: dict[str, Any]) -> None: ...

    async def ping(self) -> bool: ...

    async def close(self) -> None: ...


def topic_for(battle_id: str, prefix: str | None = None) -> str:
    """Topic name for a battle's events."""
    return f"{prefix or settings.broadcast_topic_prefix}:{battle_id}"


def encode_event(event: str, payload: dict[str, Any]) -> str:
    """JSON envelope sent on the wire."""
    return json.dumps(
        {
            "event": event,
            "payload": payload,
            "timestamp": datetime.now(UTC).isoformat(),
        },
        default=str,
    )


class RedisBroadcaster:
    """Broadcaster backed by Redis ``PUBLISH``."""

    def __init__(self, redis: Redis, prefix: str | None = None):
        self._redis = redis
        self._prefix = prefix

    @classmethod
    def from_url(cls, url: str, prefix: str | None = None) -> "RedisBroadcaster":
        return cls(Redis.from_url(url, decode_responses=True), prefix=prefix)

    async def publish(self, battle_id: str, event: str, payload: dict[str, Any]) -> None:
        channel = topic_for(battle_id, self._prefix)
        receivers = await self._redis.publish(channel, encode_event(event, payload))
        logger.debug("Published %s on %s to %d subscribers", event, channel, receivers)

    async def ping(self) -> bool:
        return bool(await self._redis.ping())

    async def close(self) -> None:
        await self._redis.aclose()


class LoggingBroadcaster:
    """Broadcaster used when no Redis is configured; events are only logged."""

    async def publish(self, battle_id: str, event: str, payload: dict[str, Any]) -> None:
        logger.info("Battle event %s on %s: %s", event, topic_for(battle_id), payload)

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        return None


async def broadcast(
    broadcaster: Broadcaster, battle_id: str, event: str, payload: dict[str, Any]
) -> bool:
    """
    Publish an event without letting transport errors reach the caller.

    Returns True if the event was handed to the transport.
    """
    try:
        await broadcaster.publish(battle_id, event, payload)
        return True
    except Exception as e:
        logger.warning("Failed to broadcast %s for battle %s: %s", event, battle_id, e)
        return False


_broadcaster: Broadcaster | None = None


def get_broadcaster() -> Broadcaster:
    """
    Dependency that provides the process-wide broadcaster.

    Uses Redis when ``settings.redis_url`` is set.
    """
    global _broadcaster
    if _broadcaster is None:
        if settings.redis_url:
            _broadcaster = RedisBroadcaster.from_url(settings.redis_url)
        else:
            _broadcaster = LoggingBroadcaster()
    return _broadcaster


async def close_broadcaster() -> None:
    """Release the broadcaster's connections. Called at shutdown."""
    global _broadcaster
    if _broadcaster is not None:
        await _broadcaster.close()
        _broadcaster = None
