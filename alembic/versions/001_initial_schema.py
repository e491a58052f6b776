"""Initial schema: users, trades.

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # --- users ---
    op.create_table(
        "users",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("NOW()"),
        ),
    )

    # --- trades ---
    op.create_table(
        "trades",
        sa.Column(
            "id",
            sa.String(36),
            primary_key=True,
            server_default=sa.text("gen_random_uuid()::text"),
        ),
        sa.Column("asset", sa.Text, nullable=False),
        sa.Column(
            "type",
            sa.String(4),
            sa.CheckConstraint("type IN ('buy', 'sell')"),
            nullable=False,
        ),
        sa.Column("entry_price", sa.Numeric(), nullable=False),
        sa.Column("exit_price", sa.Numeric()),
        sa.Column("position_size", sa.Numeric(), nullable=False),
        sa.Column("pnl", sa.Numeric()),
        sa.Column("pnl_percentage", sa.Numeric()),
        sa.Column(
            "status",
            sa.String(10),
            sa.CheckConstraint("status IN ('open', 'closed')"),
            nullable=False,
            server_default="open",
        ),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("duration", sa.Text),
        sa.Column("user_id", sa.String(36), nullable=False),
        sa.CheckConstraint("entry_price > 0", name="ck_trades_entry_price_positive"),
        sa.CheckConstraint("position_size > 0", name="ck_trades_position_size_positive"),
    )
    op.create_index("idx_trades_timestamp", "trades", [sa.text("timestamp DESC")])
    op.create_index("idx_trades_user_id", "trades", ["user_id"])


def downgrade() -> None:
    op.drop_table("trades")
    op.drop_table("users")
