"""P&L settlement for closing a trade."""

from __future__ import annotations

from decimal import Decimal

from trade_ledger.models.trade import Settlement, Trade, TradeSide


def settle(trade: Trade, exit_price: Decimal, duration: str) -> Settlement:
    """Compute realized P&L for closing ``trade`` at ``exit_price``.

    long:  pnl = (exit - entry) * size, pct = (exit - entry) / entry * 100
    short: pnl = (entry - exit) * size, pct = (entry - exit) / entry * 100
    """
    if trade.side is TradeSide.LONG:
        move = exit_price - trade.entry_price
    else:
        move = trade.entry_price - exit_price
    return Settlement(
        exit_price=exit_price,
        pnl=move * trade.position_size,
        pnl_percentage=move / trade.entry_price * 100,
        duration=duration,
    )
