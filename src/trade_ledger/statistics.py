"""Aggregate performance statistics over closed trades.

Pure and clock-free: the same input sequence (including order) always
yields the same PerformanceStatistics.
"""

from __future__ import annotations

import math
from collections import Counter
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from decimal import Decimal

from trade_ledger.models.statistics import PerformanceStatistics
from trade_ledger.models.trade import Trade, TradeStatus

NO_CLOSED_TRADES = "No closed trades yet. Start trading to see performance metrics."

MAX_RECOMMENDATIONS = 3

FALLBACK_RECOMMENDATIONS = (
    "Consider taking profits earlier on volatile assets",
    "Your win rate is higher during morning sessions",
    "Reduce position size on trending tech stocks",
)


@dataclass(frozen=True)
class _RuleInput:
    win_rate: int
    total_pnl: Decimal
    most_traded_asset: str | None


def _low_win_rate(s: _RuleInput) -> str | None:
    if s.win_rate < 40:
        return "Your win rate is below average. Consider reviewing your entry criteria."
    return None


def _high_win_rate(s: _RuleInput) -> str | None:
    if s.win_rate > 60:
        return (
            "Your win rate is strong. "
            "Consider increasing position sizes on high-conviction trades."
        )
    return None


def _negative_pnl(s: _RuleInput) -> str | None:
    if s.total_pnl < 0:
        return "Your overall P&L is negative. Focus on cutting losses earlier."
    return None


def _positive_pnl(s: _RuleInput) -> str | None:
    if s.total_pnl > 0:
        return "Your strategy is profitable. Consider documenting what's working well."
    return None


def _specialization(s: _RuleInput) -> str | None:
    if s.most_traded_asset:
        return (
            f"You trade {s.most_traded_asset} frequently. "
            "Consider specializing in this asset."
        )
    return None


# Evaluated in this order; first MAX_RECOMMENDATIONS hits win.
RECOMMENDATION_RULES: tuple[Callable[[_RuleInput], str | None], ...] = (
    _low_win_rate,
    _high_win_rate,
    _negative_pnl,
    _positive_pnl,
    _specialization,
)


def _round_half_up(value: Decimal) -> int:
    return math.floor(value + Decimal("0.5"))


def _most_traded_asset(trades: Sequence[Trade]) -> str | None:
    """Most frequent asset; ties go to the asset seen first."""
    counts = Counter(t.asset for t in trades)
    if not counts:
        return None
    return counts.most_common(1)[0][0]


def generate_recommendations(
    win_rate: int, total_pnl: Decimal, closed: Sequence[Trade]
) -> list[str]:
    rule_input = _RuleInput(
        win_rate=win_rate,
        total_pnl=total_pnl,
        most_traded_asset=_most_traded_asset(closed),
    )
    recommendations = [
        message
        for rule in RECOMMENDATION_RULES
        if (message := rule(rule_input)) is not None
    ]
    for filler in FALLBACK_RECOMMENDATIONS:
        if len(recommendations) >= MAX_RECOMMENDATIONS:
            break
        recommendations.append(filler)
    return recommendations[:MAX_RECOMMENDATIONS]


def compute_performance_statistics(trades: Sequence[Trade]) -> PerformanceStatistics:
    """Compute win rate, P&L aggregates and recommendations from closed trades."""
    closed = [t for t in trades if t.status is TradeStatus.CLOSED and t.pnl is not None]
    if not closed:
        return PerformanceStatistics(recommendations=[NO_CLOSED_TRADES])

    pnls = [t.pnl for t in closed]
    wins = [p for p in pnls if p > 0]
    losses = [p for p in pnls if p <= 0]

    win_rate = _round_half_up(Decimal(len(wins)) * 100 / len(closed))
    total_pnl = sum(pnls, Decimal("0"))
    average_profit = sum(wins, Decimal("0")) / len(wins) if wins else Decimal("0")
    average_loss = (
        sum((abs(p) for p in losses), Decimal("0")) / len(losses) if losses else Decimal("0")
    )

    return PerformanceStatistics(
        win_rate=win_rate,
        total_pnl=total_pnl,
        average_profit=average_profit,
        average_loss=average_loss,
        best_trade=max(pnls),
        worst_trade=min(pnls),
        total_trades=len(closed),
        recommendations=generate_recommendations(win_rate, total_pnl, closed),
    )
