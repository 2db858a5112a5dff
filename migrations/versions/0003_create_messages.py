"""create messages and reactions tables"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = "0003_create_messages"
down_revision = "0002_create_tasks"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "messages",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "project_id",
            sa.Integer(),
            sa.ForeignKey("projects.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("sender_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("content", sa.Text(), nullable=False, server_default=""),
        sa.Column("kind", sa.String(length=30), nullable=False, server_default="regular"),
        sa.Column("is_system", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("referenced_task_id", sa.Integer(), sa.ForeignKey("tasks.id"), nullable=True),
        sa.Column("referenced_subtask_id", sa.Integer(), sa.ForeignKey("subtasks.id"), nullable=True),
        sa.Column("reference_task_id", sa.Integer(), nullable=True),
        sa.Column("reference_title", sa.String(length=200), nullable=True),
        sa.Column("quoted_message_id", sa.Integer(), sa.ForeignKey("messages.id"), nullable=True),
        sa.CheckConstraint(
            "referenced_task_id IS NULL OR referenced_subtask_id IS NULL",
            name="ck_messages_single_reference",
        ),
    )
    op.create_index("ix_messages_project_id", "messages", ["project_id"], unique=False)
    op.create_index("ix_messages_referenced_task_id", "messages", ["referenced_task_id"], unique=False)
    op.create_index("ix_messages_referenced_subtask_id", "messages", ["referenced_subtask_id"], unique=False)

    op.create_table(
        "reactions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "message_id",
            sa.Integer(),
            sa.ForeignKey("messages.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("emoji", sa.String(length=16), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("message_id", "user_id", "emoji", name="uq_reactions_message_user_emoji"),
    )
    op.create_index("ix_reactions_message_id", "reactions", ["message_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_reactions_message_id", table_name="reactions")
    op.drop_table("reactions")
    op.drop_index("ix_messages_referenced_subtask_id", table_name="messages")
    op.drop_index("ix_messages_referenced_task_id", table_name="messages")
    op.drop_index("ix_messages_project_id", table_name="messages")
    op.drop_table("messages")
