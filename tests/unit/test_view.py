"""Unit tests for view.py: subscription-driven refresh of statistics."""

from __future__ import annotations

from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from trade_ledger.errors import StoreUnavailable
from trade_ledger.models.messages import ResyncMessage, TradeChangeMessage
from trade_ledger.view import PerformanceView

from .conftest import make_trade


@pytest.fixture
def subscription():
    sub = MagicMock()
    sub.start = AsyncMock()
    sub.unsubscribe = AsyncMock()
    return sub


@pytest.fixture
def ledger(subscription):
    ledger = MagicMock()
    ledger.list_trades = AsyncMock(return_value=[])
    ledger.subscribe = MagicMock(return_value=subscription)
    return ledger


@pytest.fixture
def view(ledger):
    return PerformanceView(ledger, retry_attempts=3, retry_multiplier=0)


class TestActivation:
    async def test_activate_subscribes_then_loads(self, view, ledger, subscription):
        ledger.list_trades.return_value = [make_trade(pnl="10"), make_trade()]

        await view.activate()

        ledger.subscribe.assert_called_once_with(view._on_change)
        subscription.start.assert_awaited_once()
        ledger.list_trades.assert_awaited_once()
        assert view.active
        assert len(view.trades) == 2
        assert view.statistics.total_trades == 1
        assert view.statistics.total_pnl == Decimal("10")

    async def test_activate_twice_is_noop(self, view, ledger):
        await view.activate()
        await view.activate()
        ledger.subscribe.assert_called_once()

    async def test_failed_start_can_be_retried(self, view, ledger, subscription):
        subscription.start.side_effect = ConnectionError("redis down")
        with pytest.raises(ConnectionError):
            await view.activate()
        assert not view.active
        ledger.list_trades.assert_not_awaited()

        subscription.start.side_effect = None
        await view.activate()
        assert view.active
        assert subscription.start.await_count == 2
        ledger.list_trades.assert_awaited_once()

    async def test_deactivate_releases_subscription(self, view, subscription):
        await view.activate()
        await view.deactivate()
        subscription.unsubscribe.assert_awaited_once()
        assert not view.active

    async def test_deactivate_when_inactive(self, view, subscription):
        await view.deactivate()
        subscription.unsubscribe.assert_not_awaited()


class TestRefreshOnChange:
    async def test_change_refetches_everything(self, view, ledger):
        await view.activate()
        ledger.list_trades.return_value = [make_trade(pnl="5"), make_trade(pnl="-1")]

        await view._on_change(TradeChangeMessage(payload={"event": "update", "trade_id": "x"}))

        assert ledger.list_trades.await_count == 2
        assert view.statistics.total_trades == 2
        assert view.statistics.win_rate == 50

    async def test_resync_refetches(self, view, ledger):
        await view.activate()
        await view._on_change(ResyncMessage())
        assert ledger.list_trades.await_count == 2

    async def test_hook_receives_snapshot(self, ledger):
        hook = AsyncMock()
        trades = [make_trade(pnl="3")]
        ledger.list_trades.return_value = trades
        view = PerformanceView(ledger, on_refresh=hook, retry_multiplier=0)

        stats = await view.refresh()

        hook.assert_awaited_once_with(trades, stats)

    async def test_failed_refresh_on_change_is_logged_not_raised(self, view, ledger):
        ledger.list_trades.side_effect = StoreUnavailable("down")
        await view._on_change(TradeChangeMessage())
        assert ledger.list_trades.await_count == 3


class TestRetry:
    async def test_retries_store_unavailable(self, view, ledger):
        ledger.list_trades.side_effect = [
            StoreUnavailable("down"),
            StoreUnavailable("down"),
            [make_trade(pnl="1")],
        ]
        stats = await view.refresh()
        assert stats.total_trades == 1
        assert ledger.list_trades.await_count == 3

    async def test_reraises_after_last_attempt(self, view, ledger):
        ledger.list_trades.side_effect = StoreUnavailable("down")
        with pytest.raises(StoreUnavailable):
            await view.refresh()
        assert ledger.list_trades.await_count == 3

    async def test_keeps_previous_snapshot_on_failure(self, view, ledger):
        ledger.list_trades.return_value = [make_trade(pnl="7")]
        await view.refresh()
        ledger.list_trades.side_effect = StoreUnavailable("down")
        with pytest.raises(StoreUnavailable):
            await view.refresh()
        assert view.statistics.total_pnl == Decimal("7")

    async def test_other_errors_are_not_retried(self, view, ledger):
        ledger.list_trades.side_effect = RuntimeError("bug")
        with pytest.raises(RuntimeError):
            await view.refresh()
        assert ledger.list_trades.await_count == 1
