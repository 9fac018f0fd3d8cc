"""
Redis Streams mirror for realtime events.

Every event the in-process bus delivers is also appended to a per-table
stream so other API instances (or external consumers) can follow along.
Publishing is fire-and-forget: failures are logged and reported as False.
"""

import logging
from typing import Any, Optional

import redis.asyncio as redis_lib

from licitadesk.core.config import settings
from .event_models import ChangeEvent

logger = logging.getLogger(__name__)


class RedisStreamsPublisher:
    """XADD with MAXLEN for bounded memory; the client is created lazily."""

    def __init__(self, url: Optional[str] = None, max_len: Optional[int] = None):
        self._url = url or settings.redis.url
        self._max_len = max_len or settings.redis.stream_max_len
        self._redis: Any = None

    async def _get_redis(self):
        if self._redis is None:
            self._redis = redis_lib.Redis.from_url(
                self._url,
                **settings.redis.redis_config,
                decode_responses=False,
            )
        return self._redis

    @staticmethod
    def stream_name(table: str) -> str:
        return f"{settings.redis.stream_prefix}{table}"

    async def publish(self, event: ChangeEvent) -> bool:
        stream = self.stream_name(event.table)
        try:
            client = await self._get_redis()
            entry_id = await client.xadd(
                stream,
                event.to_stream_dict(),
                maxlen=self._max_len,
                approximate=True,
            )
            logger.debug(
                f"RedisStreamsPublisher: Published {event.table}.{event.action.value} "
                f"to {stream} (entry_id: {entry_id})"
            )
            return True

        except (redis_lib.ConnectionError, redis_lib.TimeoutError) as e:
            logger.error(
                f"RedisStreamsPublisher: Redis connection failed while publishing "
                f"{event.table}.{event.action.value} to {stream} - {type(e).__name__}: {e}"
            )
            return False
        except redis_lib.RedisError as e:
            logger.error(
                f"RedisStreamsPublisher: Failed to publish {event.table}.{event.action.value} "
                f"to {stream} - {type(e).__name__}: {e}",
                exc_info=True,
            )
            return False

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None
