"""add do today off log"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = "0003_add_do_today_off_log"
down_revision = "0002_add_sections"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "do_today_off_log",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("task_id", sa.String(length=64), nullable=False),
        sa.Column("off_date", sa.Date(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("user_id", "task_id", "off_date", name="uq_do_today_off"),
    )
    op.create_index("ix_do_today_off_log_user_id", "do_today_off_log", ["user_id"], unique=False)
    op.create_index("ix_do_today_off_log_off_date", "do_today_off_log", ["off_date"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_do_today_off_log_off_date", table_name="do_today_off_log")
    op.drop_index("ix_do_today_off_log_user_id", table_name="do_today_off_log")
    op.drop_table("do_today_off_log")
