"""Trade, Settlement Pydantic models."""

from __future__ import annotations

import enum
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field, model_validator


class TradeSide(enum.Enum):
    LONG = "long"
    SHORT = "short"


class TradeStatus(enum.Enum):
    OPEN = "open"
    CLOSED = "closed"


class Settlement(BaseModel):
    """Fields written in one mutation when a trade is closed."""

    exit_price: Decimal
    pnl: Decimal
    pnl_percentage: Decimal
    duration: str


class Trade(BaseModel):
    id: str
    asset: str = Field(min_length=1)
    side: TradeSide
    entry_price: Decimal = Field(gt=0)
    position_size: Decimal = Field(gt=0)
    status: TradeStatus = TradeStatus.OPEN
    exit_price: Decimal | None = None
    pnl: Decimal | None = None
    pnl_percentage: Decimal | None = None
    duration: str | None = None
    opened_at: datetime
    owner_id: str

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def _settlement_matches_status(self) -> Trade:
        settled = (self.exit_price, self.pnl, self.pnl_percentage, self.duration)
        if self.status is TradeStatus.OPEN and any(v is not None for v in settled):
            raise ValueError("open trade cannot carry exit_price/pnl/pnl_percentage/duration")
        if self.status is TradeStatus.CLOSED and any(v is None for v in settled):
            raise ValueError("closed trade requires exit_price, pnl, pnl_percentage and duration")
        return self

    @property
    def is_open(self) -> bool:
        return self.status is TradeStatus.OPEN
