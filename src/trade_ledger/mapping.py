"""Explicit mapping between trade store rows and Trade models.

Store rows use snake_case column names from the ``trades`` table. Decimal
columns may arrive string-encoded and are always parsed to ``Decimal``;
``None`` means absent, so a zero value is kept.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from trade_ledger.errors import StoreUnavailable
from trade_ledger.models.trade import Settlement, Trade, TradeSide, TradeStatus

# Trade.side <-> trades.type
_SIDE_TO_COLUMN = {TradeSide.LONG: "buy", TradeSide.SHORT: "sell"}
_COLUMN_TO_SIDE = {v: k for k, v in _SIDE_TO_COLUMN.items()}


def parse_decimal(value: Any) -> Decimal | None:
    """Parse a decimal-bearing store value. Returns None for None."""
    if value is None:
        return None
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ValueError(f"not a decimal: {value!r}")
    if isinstance(value, (int, str)):
        return Decimal(value)
    if isinstance(value, float):
        return Decimal(str(value))
    raise ValueError(f"not a decimal: {value!r}")


def _parse_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


def row_to_trade(row: Mapping[str, Any]) -> Trade:
    """Convert a trades row to a Trade."""
    try:
        return Trade(
            id=str(row["id"]),
            asset=row["asset"],
            side=_COLUMN_TO_SIDE[row["type"]],
            entry_price=parse_decimal(row["entry_price"]),
            position_size=parse_decimal(row["position_size"]),
            status=TradeStatus(row["status"]),
            exit_price=parse_decimal(row.get("exit_price")),
            pnl=parse_decimal(row.get("pnl")),
            pnl_percentage=parse_decimal(row.get("pnl_percentage")),
            duration=row.get("duration"),
            opened_at=_parse_timestamp(row["timestamp"]),
            owner_id=str(row["user_id"]),
        )
    except (KeyError, ValueError, InvalidOperation, PydanticValidationError) as exc:
        raise StoreUnavailable(f"trade store returned a malformed row: {exc}") from exc


def new_trade_to_row(
    *,
    asset: str,
    side: TradeSide,
    entry_price: Decimal,
    position_size: Decimal,
    opened_at: datetime,
    owner_id: str,
) -> dict[str, Any]:
    """Row for inserting a freshly opened trade. The store assigns ``id``."""
    return {
        "asset": asset,
        "type": _SIDE_TO_COLUMN[side],
        "entry_price": entry_price,
        "position_size": position_size,
        "status": TradeStatus.OPEN.value,
        "timestamp": opened_at,
        "user_id": owner_id,
    }


def settlement_to_row(settlement: Settlement) -> dict[str, Any]:
    """Partial row applied by the close mutation."""
    return {
        "status": TradeStatus.CLOSED.value,
        "exit_price": settlement.exit_price,
        "pnl": settlement.pnl,
        "pnl_percentage": settlement.pnl_percentage,
        "duration": settlement.duration,
    }
