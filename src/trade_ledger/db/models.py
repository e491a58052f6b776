"""SQLAlchemy ORM models for the trades and users tables."""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import CheckConstraint, DateTime, Index, Numeric, String, Text, text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class UserORM(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=text("now()")
    )


class TradeORM(Base):
    __tablename__ = "trades"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, server_default=text("gen_random_uuid()::text")
    )
    asset: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[str] = mapped_column(
        String(4),
        CheckConstraint("type IN ('buy', 'sell')"),
        nullable=False,
    )
    entry_price: Mapped[Decimal] = mapped_column(Numeric(), nullable=False)
    exit_price: Mapped[Decimal | None] = mapped_column(Numeric())
    position_size: Mapped[Decimal] = mapped_column(Numeric(), nullable=False)
    pnl: Mapped[Decimal | None] = mapped_column(Numeric())
    pnl_percentage: Mapped[Decimal | None] = mapped_column(Numeric())
    status: Mapped[str] = mapped_column(
        String(10),
        CheckConstraint("status IN ('open', 'closed')"),
        nullable=False,
        default="open",
    )
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    duration: Mapped[str | None] = mapped_column(Text)
    user_id: Mapped[str] = mapped_column(String(36), nullable=False)

    __table_args__ = (
        CheckConstraint("entry_price > 0", name="ck_trades_entry_price_positive"),
        CheckConstraint("position_size > 0", name="ck_trades_position_size_positive"),
        Index("idx_trades_timestamp", timestamp.desc()),
        Index("idx_trades_user_id", "user_id"),
    )


TRADE_COLUMNS = (
    "id",
    "asset",
    "type",
    "entry_price",
    "exit_price",
    "position_size",
    "pnl",
    "pnl_percentage",
    "status",
    "timestamp",
    "duration",
    "user_id",
)
