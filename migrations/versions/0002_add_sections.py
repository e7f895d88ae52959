"""add task sections"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = "0002_add_sections"
down_revision = "0001_create_tasks"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "task_sections",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "include_in_focus_mode",
            sa.Boolean(),
            nullable=False,
            server_default=sa.text("true"),
        ),
    )
    op.create_index("ix_task_sections_user_id", "task_sections", ["user_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_task_sections_user_id", table_name="task_sections")
    op.drop_table("task_sections")
