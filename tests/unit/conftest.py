"""Shared fixtures: in-memory trade store, fixed identity, trade builders."""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from trade_ledger.errors import StoreUnavailable
from trade_ledger.ledger import TradeLedger
from trade_ledger.models.trade import Trade, TradeSide, TradeStatus

OWNER = "user-1"
T0 = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


class InMemoryTradeStore:
    """TradeStore double holding rows the way the database returns them."""

    def __init__(self) -> None:
        self.rows: dict[str, dict] = {}
        self.fail = False
        self.calls: list[str] = []

    def _check(self, operation: str) -> None:
        self.calls.append(operation)
        if self.fail:
            raise StoreUnavailable(f"trade store {operation} failed: connection refused")

    async def query_all(self, owner_id):
        self._check("query_all")
        rows = [dict(r) for r in self.rows.values() if r["user_id"] == owner_id]
        return sorted(rows, key=lambda r: r["timestamp"], reverse=True)

    async def fetch(self, trade_id, owner_id):
        self._check("fetch")
        row = self.rows.get(trade_id)
        if row is None or row["user_id"] != owner_id:
            return None
        return dict(row)

    async def insert(self, row):
        self._check("insert")
        stored = {
            "exit_price": None,
            "pnl": None,
            "pnl_percentage": None,
            "duration": None,
            **row,
            "id": str(uuid.uuid4()),
        }
        # numeric columns come back string-encoded from some drivers
        for key in ("entry_price", "position_size"):
            stored[key] = str(stored[key])
        self.rows[stored["id"]] = stored
        return dict(stored)

    async def update(self, trade_id, owner_id, fields, expected_status=None):
        self._check("update")
        row = self.rows.get(trade_id)
        if row is None or row["user_id"] != owner_id:
            return None
        if expected_status is not None and row["status"] != expected_status:
            return None
        row.update(fields)
        return dict(row)

    async def delete(self, trade_id, owner_id):
        self._check("delete")
        row = self.rows.get(trade_id)
        if row is None or row["user_id"] != owner_id:
            return False
        del self.rows[trade_id]
        return True


class FixedIdentity:
    def __init__(self, user_id: str = OWNER) -> None:
        self.user_id = user_id

    async def current_user_id(self) -> str:
        return self.user_id


class StepClock:
    """Each call returns a time one minute later than the last."""

    def __init__(self, start: datetime = T0) -> None:
        self.now = start

    def __call__(self) -> datetime:
        current = self.now
        self.now += timedelta(minutes=1)
        return current


@pytest.fixture
def store() -> InMemoryTradeStore:
    return InMemoryTradeStore()


@pytest.fixture
def channel():
    ch = MagicMock()
    ch.subscribe = MagicMock()
    return ch


@pytest.fixture
def ledger(store, channel) -> TradeLedger:
    return TradeLedger(store=store, identity=FixedIdentity(), channel=channel, clock=StepClock())


def make_trade(
    *,
    pnl: str | None = None,
    asset: str = "BTC/USD",
    side: TradeSide = TradeSide.LONG,
    entry_price: str = "100",
    position_size: str = "1",
    opened_at: datetime = T0,
    trade_id: str | None = None,
) -> Trade:
    """Closed trade when pnl is given, open trade otherwise."""
    closed = pnl is not None
    return Trade(
        id=trade_id or str(uuid.uuid4()),
        asset=asset,
        side=side,
        entry_price=Decimal(entry_price),
        position_size=Decimal(position_size),
        status=TradeStatus.CLOSED if closed else TradeStatus.OPEN,
        exit_price=Decimal(entry_price) if closed else None,
        pnl=Decimal(pnl) if closed else None,
        pnl_percentage=Decimal("0") if closed else None,
        duration="1h 30m" if closed else None,
        opened_at=opened_at,
        owner_id=OWNER,
    )
