"""Redis Streams client for trade change notifications."""

from __future__ import annotations

import redis.asyncio as aioredis
import structlog
from pydantic import ValidationError as PydanticValidationError

from trade_ledger.models.messages import StreamMessage

logger = structlog.get_logger()

STREAM_START = "0-0"


class RedisClient:
    def __init__(
        self,
        redis_url: str = "redis://redis:6379",
        socket_timeout: float = 30.0,
        socket_connect_timeout: float = 10.0,
        retry_on_timeout: bool = True,
    ) -> None:
        self.redis_url = redis_url
        self.socket_timeout = socket_timeout
        self.socket_connect_timeout = socket_connect_timeout
        self.retry_on_timeout = retry_on_timeout
        self.client: aioredis.Redis | None = None

    async def connect(self) -> None:
        """Connect to Redis and verify with PING."""
        self.client = aioredis.from_url(
            self.redis_url,
            decode_responses=False,
            max_connections=20,
            socket_timeout=self.socket_timeout,
            socket_connect_timeout=self.socket_connect_timeout,
            retry_on_timeout=self.retry_on_timeout,
        )
        await self.client.ping()
        logger.info("redis_connected", url=self.redis_url)

    async def disconnect(self) -> None:
        """Close Redis connection."""
        if self.client:
            await self.client.aclose()
            logger.info("redis_disconnected")

    async def publish(self, stream: str, message: StreamMessage, maxlen: int | None = None) -> str:
        """XADD message to stream (approximately capped at maxlen). Returns message ID."""
        assert self.client is not None
        msg_id = await self.client.xadd(
            stream, message.to_redis(), maxlen=maxlen, approximate=True
        )
        logger.debug("redis_published", stream=stream, msg_id=msg_id, type=message.type)
        return msg_id.decode() if isinstance(msg_id, bytes) else msg_id

    async def last_id(self, stream: str) -> str:
        """ID of the newest entry in stream, or 0-0 when the stream is empty."""
        assert self.client is not None
        results = await self.client.xrevrange(stream, count=1)
        if not results:
            return STREAM_START
        msg_id, _data = results[0]
        return msg_id.decode() if isinstance(msg_id, bytes) else msg_id

    async def read(
        self, stream: str, after_id: str, block_ms: int = 5000, count: int = 10
    ) -> list[tuple[str, StreamMessage]]:
        """Blocking XREAD of entries newer than after_id. Empty list on timeout."""
        assert self.client is not None
        results = await self.client.xread({stream: after_id}, count=count, block=block_ms)
        entries: list[tuple[str, StreamMessage]] = []
        for _stream_name, messages in results or []:
            for msg_id, data in messages:
                msg_id = msg_id.decode() if isinstance(msg_id, bytes) else msg_id
                try:
                    message = StreamMessage.from_redis(data)
                except (PydanticValidationError, TypeError):
                    logger.warning("redis_malformed_message", stream=stream, msg_id=msg_id)
                    continue
                entries.append((msg_id, message))
        return entries
