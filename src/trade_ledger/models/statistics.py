"""PerformanceStatistics Pydantic model."""

from decimal import Decimal

from pydantic import BaseModel


class PerformanceStatistics(BaseModel):
    win_rate: int = 0  # integer percent
    total_pnl: Decimal = Decimal("0")
    average_profit: Decimal = Decimal("0")
    average_loss: Decimal = Decimal("0")  # magnitude, always >= 0
    best_trade: Decimal = Decimal("0")
    worst_trade: Decimal = Decimal("0")
    total_trades: int = 0
    recommendations: list[str] = []
