"""Performance view: re-fetches trades and recomputes statistics on change.

The view owns no authoritative state. Its trades/statistics are a cache
that every change notification (and every resync) invalidates by a full
re-read through the ledger.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

import structlog
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from trade_ledger.errors import StoreUnavailable
from trade_ledger.models.statistics import PerformanceStatistics
from trade_ledger.statistics import compute_performance_statistics

if TYPE_CHECKING:
    from trade_ledger.ledger import TradeLedger
    from trade_ledger.models.messages import StreamMessage
    from trade_ledger.models.trade import Trade
    from trade_ledger.notifications import Subscription

logger = structlog.get_logger()

RefreshHook = Callable[[list["Trade"], PerformanceStatistics], Awaitable[None]]


class PerformanceView:
    def __init__(
        self,
        ledger: TradeLedger,
        on_refresh: RefreshHook | None = None,
        retry_attempts: int = 3,
        retry_multiplier: float = 1.0,
    ) -> None:
        self.ledger = ledger
        self.on_refresh = on_refresh
        self.retry_attempts = retry_attempts
        self.retry_multiplier = retry_multiplier
        self.trades: list[Trade] = []
        self.statistics = PerformanceStatistics()
        self.subscription: Subscription | None = None
        self._refresh_lock = asyncio.Lock()

    @property
    def active(self) -> bool:
        return self.subscription is not None

    async def activate(self) -> None:
        """Subscribe to trade changes, then load the current state."""
        if self.subscription is not None:
            return
        subscription = self.ledger.subscribe(self._on_change)
        await subscription.start()
        self.subscription = subscription
        await self.refresh()

    async def deactivate(self) -> None:
        """Release the subscription. Cached data stays but is no longer kept fresh."""
        subscription, self.subscription = self.subscription, None
        if subscription is not None:
            await subscription.unsubscribe()

    async def refresh(self) -> PerformanceStatistics:
        """Re-fetch all trades and recompute statistics.

        Retries StoreUnavailable with exponential backoff; re-raises after
        the last attempt.
        """
        async with self._refresh_lock:
            trades = await self._fetch_with_retry()
            statistics = compute_performance_statistics(trades)
            self.trades = trades
            self.statistics = statistics
            logger.info(
                "performance_refreshed",
                trades=len(trades),
                closed=statistics.total_trades,
                win_rate=statistics.win_rate,
                total_pnl=str(statistics.total_pnl),
            )
            if self.on_refresh is not None:
                await self.on_refresh(trades, statistics)
            return statistics

    async def _fetch_with_retry(self) -> list[Trade]:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.retry_attempts),
            wait=wait_exponential(multiplier=self.retry_multiplier, min=self.retry_multiplier, max=10),
            retry=retry_if_exception_type(StoreUnavailable),
            reraise=True,
        ):
            with attempt:
                return await self.ledger.list_trades()
        raise AssertionError("unreachable")  # pragma: no cover

    async def _on_change(self, message: StreamMessage) -> None:
        logger.debug("performance_view_invalidated", type=message.type, payload=message.payload)
        try:
            await self.refresh()
        except StoreUnavailable:
            logger.exception("performance_refresh_failed")
