"""Trade Ledger Service: trade lifecycle and P&L settlement.

The ledger keeps no trades in memory; every read is a fresh round trip to
the store. It does not retry and never swallows store failures.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Any

import structlog

from trade_ledger.errors import InvalidState, NotFound, ValidationError
from trade_ledger.mapping import new_trade_to_row, parse_decimal, row_to_trade, settlement_to_row
from trade_ledger.models.trade import Trade, TradeSide, TradeStatus
from trade_ledger.pnl import settle
from trade_ledger.statistics import compute_performance_statistics

if TYPE_CHECKING:
    from trade_ledger.db.store import TradeStore
    from trade_ledger.identity import IdentityProvider
    from trade_ledger.notifications import ChangeCallback, Subscription, TradeChangeChannel

__all__ = ["TradeLedger", "compute_performance_statistics"]

logger = structlog.get_logger()

_SIDE_ALIASES = {
    "long": TradeSide.LONG,
    "buy": TradeSide.LONG,
    "short": TradeSide.SHORT,
    "sell": TradeSide.SHORT,
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _to_decimal(name: str, value: Any) -> Decimal:
    try:
        number = parse_decimal(value)
    except (ValueError, InvalidOperation) as exc:
        raise ValidationError(f"{name} must be a number, got {value!r}") from exc
    if number is None or not number.is_finite():
        raise ValidationError(f"{name} must be a finite number, got {value!r}")
    return number


def _to_side(value: TradeSide | str) -> TradeSide:
    if isinstance(value, TradeSide):
        return value
    side = _SIDE_ALIASES.get(str(value).strip().lower())
    if side is None:
        raise ValidationError(f"side must be long/short (or buy/sell), got {value!r}")
    return side


class TradeLedger:
    """Create, list, close and delete the caller's trades."""

    def __init__(
        self,
        store: TradeStore,
        identity: IdentityProvider,
        channel: TradeChangeChannel | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.store = store
        self.identity = identity
        self.channel = channel
        self.clock = clock

    async def list_trades(self) -> list[Trade]:
        """All trades visible to the caller, most recently opened first."""
        owner_id = await self._caller()
        rows = await self.store.query_all(owner_id)
        trades = [row_to_trade(row) for row in rows]
        trades.sort(key=lambda t: t.opened_at, reverse=True)
        return trades

    async def create_trade(
        self,
        asset: str,
        side: TradeSide | str,
        entry_price: Decimal | float | int | str,
        position_size: Decimal | float | int | str,
    ) -> Trade:
        """Open a new trade for the caller."""
        asset = (asset or "").strip()
        if not asset:
            raise ValidationError("asset must not be empty")
        trade_side = _to_side(side)
        entry = _to_decimal("entry_price", entry_price)
        size = _to_decimal("position_size", position_size)
        if entry <= 0:
            raise ValidationError(f"entry_price must be positive, got {entry}")
        if size <= 0:
            raise ValidationError(f"position_size must be positive, got {size}")
        owner_id = await self._caller()
        if not owner_id:
            raise ValidationError("caller identity could not be resolved")

        row = new_trade_to_row(
            asset=asset,
            side=trade_side,
            entry_price=entry,
            position_size=size,
            opened_at=self.clock(),
            owner_id=owner_id,
        )
        trade = row_to_trade(await self.store.insert(row))
        logger.info(
            "trade_created",
            trade_id=trade.id,
            asset=trade.asset,
            side=trade.side.value,
            entry_price=str(trade.entry_price),
            position_size=str(trade.position_size),
        )
        return trade

    async def close_trade(
        self,
        trade_id: str,
        exit_price: Decimal | float | int | str,
        duration: str,
    ) -> Trade:
        """Settle an open trade at exit_price. Closing twice raises InvalidState."""
        exit_value = _to_decimal("exit_price", exit_price)
        if not isinstance(duration, str):
            raise ValidationError(f"duration must be a string, got {duration!r}")
        owner_id = await self._caller()

        row = await self.store.fetch(trade_id, owner_id)
        if row is None:
            raise NotFound(f"trade {trade_id} not found")
        trade = row_to_trade(row)
        if trade.status is not TradeStatus.OPEN:
            raise InvalidState(f"trade {trade_id} is already {trade.status.value}")

        settlement = settle(trade, exit_value, duration)
        updated = await self.store.update(
            trade_id,
            owner_id,
            settlement_to_row(settlement),
            expected_status=TradeStatus.OPEN.value,
        )
        if updated is None:
            # Lost a race between fetch and update: closed or deleted meanwhile.
            if await self.store.fetch(trade_id, owner_id) is None:
                raise NotFound(f"trade {trade_id} not found")
            raise InvalidState(f"trade {trade_id} is already closed")

        closed = row_to_trade(updated)
        logger.info(
            "trade_closed",
            trade_id=trade_id,
            exit_price=str(closed.exit_price),
            pnl=str(closed.pnl),
            pnl_percentage=str(closed.pnl_percentage),
        )
        return closed

    async def delete_trade(self, trade_id: str) -> None:
        """Remove a trade whether open or closed."""
        owner_id = await self._caller()
        if not await self.store.delete(trade_id, owner_id):
            raise NotFound(f"trade {trade_id} not found")
        logger.info("trade_deleted", trade_id=trade_id)

    def subscribe(self, callback: ChangeCallback) -> Subscription:
        """Subscription to trade changes; callers re-fetch on every message."""
        if self.channel is None:
            raise RuntimeError("TradeLedger was created without a change channel")
        return self.channel.subscribe(callback)

    async def _caller(self) -> str:
        return await self.identity.current_user_id()
