"""add user settings"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = "0004_add_user_settings"
down_revision = "0003_add_do_today_off_log"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "user_settings",
        sa.Column("user_id", sa.String(length=64), primary_key=True),
        sa.Column("focused_task_id", sa.String(length=64), nullable=True),
        sa.Column(
            "future_tasks_days_visible",
            sa.Integer(),
            nullable=False,
            server_default="-1",
        ),
        sa.Column(
            "focus_tasks_only",
            sa.Boolean(),
            nullable=False,
            server_default=sa.text("false"),
        ),
    )


def downgrade() -> None:
    op.drop_table("user_settings")
