"""Create daily_journal table.

Revision ID: 002_daily_journal
Revises: 001_journal_schema
Create Date: 2026-10-19 00:00:00.000000
"""
from __future__ import annotations

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "002_daily_journal"
down_revision: Union[str, None] = "001_journal_schema"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "daily_journal",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("plan_date", sa.Date, nullable=False),
        sa.Column("plan_notes", sa.Text, nullable=False, server_default=""),
        sa.Column("planned_trades", sa.JSON, nullable=False),

        # Mindset
        sa.Column("confidence_level", sa.Integer, nullable=True),
        sa.Column("stress_level", sa.Integer, nullable=True),
        sa.Column("distractions", sa.Text, nullable=True),
        sa.Column("sleep_hours", sa.Float, nullable=True),
        sa.Column("mood", sa.String(64), nullable=True),
        sa.Column("focus", sa.Integer, nullable=True),
        sa.Column("energy", sa.Integer, nullable=True),

        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("user_id", "plan_date", name="uq_daily_journal_user_date"),
    )


def downgrade() -> None:
    op.drop_table("daily_journal")
