"""create attachments table"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = "0004_create_attachments"
down_revision = "0003_create_messages"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "attachments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "project_id",
            sa.Integer(),
            sa.ForeignKey("projects.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("type", sa.String(length=20), nullable=False),
        sa.Column("file_name", sa.String(length=255), nullable=False),
        sa.Column("file_size", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("uploaded_by_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("uploaded_at", sa.DateTime(), nullable=False),
        sa.Column("linked_task_id", sa.Integer(), sa.ForeignKey("tasks.id"), nullable=True),
        sa.Column("linked_subtask_id", sa.Integer(), sa.ForeignKey("subtasks.id"), nullable=True),
        sa.Column("caption", sa.Text(), nullable=True),
        sa.Column("is_instruction", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("message_id", sa.Integer(), sa.ForeignKey("messages.id"), nullable=True),
        sa.Column("image_data", sa.LargeBinary(), nullable=True),
        sa.CheckConstraint("file_size >= 0", name="ck_attachments_file_size"),
    )
    op.create_index("ix_attachments_project_id", "attachments", ["project_id"], unique=False)
    op.create_index("ix_attachments_type", "attachments", ["type"], unique=False)
    op.create_index("ix_attachments_linked_task_id", "attachments", ["linked_task_id"], unique=False)
    op.create_index("ix_attachments_message_id", "attachments", ["message_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_attachments_message_id", table_name="attachments")
    op.drop_index("ix_attachments_linked_task_id", table_name="attachments")
    op.drop_index("ix_attachments_type", table_name="attachments")
    op.drop_index("ix_attachments_project_id", table_name="attachments")
    op.drop_table("attachments")
