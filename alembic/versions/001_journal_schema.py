"""Create orderbooks, executed_trades and journal_day_stats tables.

Revision ID: 001_journal_schema
Revises:
Create Date: 2026-10-19 00:00:00.000000
"""
from __future__ import annotations

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "001_journal_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _money(name: str) -> sa.Column:
    return sa.Column(name, sa.Numeric(24, 8), nullable=False, server_default="0")


def upgrade() -> None:
    op.create_table(
        "orderbooks",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("file_hash", sa.String(64), nullable=False),
        sa.Column("source_name", sa.String(255), nullable=False, server_default=""),
        sa.Column("size", sa.Integer, nullable=False, server_default="0"),
        sa.Column("broker", sa.String(32), nullable=False, server_default="unknown"),
        sa.Column("uploaded_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("user_id", "file_hash", name="uq_orderbooks_user_hash"),
    )

    op.create_table(
        "executed_trades",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("trading_date", sa.Date, nullable=False),
        sa.Column("symbol", sa.String(64), nullable=False),
        sa.Column("trade_type", sa.String(8), nullable=False),
        sa.Column("price", sa.Numeric(24, 8), nullable=False),
        sa.Column("quantity", sa.Integer, nullable=False),
        sa.Column("trade_time", sa.Time, nullable=True),
        _money("charges"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint(
            "user_id", "trading_date", "symbol", "trade_type", "price", "quantity",
            name="uq_executed_trades_natural_key",
        ),
    )
    op.create_index(
        "ix_executed_trades_user_date", "executed_trades", ["user_id", "trading_date"],
    )

    op.create_table(
        "journal_day_stats",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("trading_date", sa.Date, nullable=False),
        sa.Column("source_id", sa.String(36), nullable=True),
        sa.Column("broker", sa.String(32), nullable=False, server_default="unknown"),
        sa.Column("version", sa.Integer, nullable=False, server_default="1"),
        sa.Column("is_superseded", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("frozen_at", sa.DateTime(timezone=True), server_default=sa.func.now()),

        # Aggregates
        sa.Column("trade_count", sa.Integer, nullable=False, server_default="0"),
        _money("net_pnl"),
        _money("gross_profit"),
        _money("gross_loss"),
        sa.Column("wins", sa.Integer, nullable=False, server_default="0"),
        sa.Column("losses", sa.Integer, nullable=False, server_default="0"),
        sa.Column("win_rate", sa.Float, nullable=False, server_default="0"),
        sa.Column("profit_factor", sa.Float, nullable=False, server_default="0"),
        _money("best_trade_pnl"),
        _money("worst_trade_pnl"),
        _money("fees"),
        sa.Column("symbol_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("long_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("short_count", sa.Integer, nullable=False, server_default="0"),
        sa.UniqueConstraint(
            "user_id", "trading_date", "version", name="uq_journal_day_stats_version",
        ),
    )

    # At most one active snapshot per user and day
    op.create_index(
        "uq_journal_day_stats_active",
        "journal_day_stats",
        ["user_id", "trading_date"],
        unique=True,
        postgresql_where=sa.text("NOT is_superseded"),
    )
    op.create_index(
        "ix_journal_day_stats_user_date", "journal_day_stats", ["user_id", "trading_date"],
    )


def downgrade() -> None:
    op.drop_table("journal_day_stats")
    op.drop_table("executed_trades")
    op.drop_table("orderbooks")
