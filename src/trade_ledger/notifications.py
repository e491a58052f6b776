"""Trade change channel: publish on mutation, subscribe to re-read.

Subscribers only see changes made after they subscribed. Nothing is
buffered across a disconnect; after losing its place a subscription
restarts at the stream tail and delivers a ResyncMessage so the consumer
re-fetches everything.
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

import structlog

from trade_ledger.models.messages import ResyncMessage, StreamMessage, TradeChangeMessage

if TYPE_CHECKING:
    from trade_ledger.redis_client import RedisClient

logger = structlog.get_logger()

ChangeCallback = Callable[[StreamMessage], Awaitable[None]]


class Subscription:
    """One consumer's live view of the change stream.

    Usable as ``async with channel.subscribe(cb):`` or via start()/unsubscribe().
    """

    def __init__(
        self,
        redis: RedisClient,
        stream: str,
        callback: ChangeCallback,
        block_ms: int = 5000,
        retry_delay: float = 1.0,
    ) -> None:
        self.redis = redis
        self.stream = stream
        self.callback = callback
        self.block_ms = block_ms
        self.retry_delay = retry_delay
        self.last_id: str | None = None
        self._needs_resync = False
        self._task: asyncio.Task | None = None

    @property
    def active(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Begin delivering changes made from now on."""
        if self.active:
            return
        self.last_id = await self.redis.last_id(self.stream)
        self._needs_resync = False
        self._task = asyncio.create_task(self._run())
        logger.info("subscription_started", stream=self.stream, from_id=self.last_id)

    async def unsubscribe(self) -> None:
        """Stop delivery. Safe to call more than once."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        logger.info("subscription_released", stream=self.stream)

    async def __aenter__(self) -> Subscription:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.unsubscribe()

    async def _run(self) -> None:
        while True:
            try:
                if self._needs_resync:
                    self.last_id = await self.redis.last_id(self.stream)
                    self._needs_resync = False
                    logger.info("subscription_resynced", stream=self.stream, from_id=self.last_id)
                    await self._dispatch(ResyncMessage())
                entries = await self.redis.read(
                    self.stream, self.last_id, block_ms=self.block_ms
                )
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("subscription_read_error", stream=self.stream)
                self._needs_resync = True
                await asyncio.sleep(self.retry_delay)
                continue

            for msg_id, message in entries:
                self.last_id = msg_id
                await self._dispatch(message)

    async def _dispatch(self, message: StreamMessage) -> None:
        try:
            await self.callback(message)
        except Exception:
            logger.exception(
                "subscription_callback_error", stream=self.stream, type=message.type
            )


class TradeChangeChannel:
    """Change-notification channel scoped to the trades collection."""

    def __init__(
        self,
        redis: RedisClient,
        stream: str = "trades:changes",
        maxlen: int | None = 1000,
        block_ms: int = 5000,
    ) -> None:
        self.redis = redis
        self.stream = stream
        self.maxlen = maxlen
        self.block_ms = block_ms

    async def publish(self, event: str, trade_id: str) -> str:
        """Announce an insert/update/delete of trade_id. Returns stream message ID."""
        message = TradeChangeMessage(payload={"event": event, "trade_id": trade_id})
        msg_id = await self.redis.publish(self.stream, message, maxlen=self.maxlen)
        logger.debug("trade_change_published", event=event, trade_id=trade_id, msg_id=msg_id)
        return msg_id

    def subscribe(self, callback: ChangeCallback) -> Subscription:
        """Create an (inactive) subscription; call start() or use ``async with``."""
        return Subscription(self.redis, self.stream, callback, block_ms=self.block_ms)
