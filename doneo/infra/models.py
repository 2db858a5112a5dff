from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    LargeBinary,
    String,
    Table,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from .db import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


task_assignees = Table(
    "task_assignees",
    Base.metadata,
    Column("task_id", Integer, ForeignKey("tasks.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
)

# Users who have not yet acknowledged a task assigned to them.
task_pending_users = Table(
    "task_pending_users",
    Base.metadata,
    Column("task_id", Integer, ForeignKey("tasks.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
)

subtask_assignees = Table(
    "subtask_assignees",
    Base.metadata,
    Column("subtask_id", Integer, ForeignKey("subtasks.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
)


class UserModel(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    name = Column(String(200), nullable=False)
    phone_number = Column(String(40), nullable=False, default="")
    avatar_initials = Column(String(4), nullable=False, default="")
    created_at = Column(DateTime, nullable=False, default=utcnow)


class ProjectModel(Base):
    __tablename__ = "projects"

    id = Column(Integer, primary_key=True)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    is_muted = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    members = relationship(
        "ProjectMemberModel",
        order_by="ProjectMemberModel.position",
        cascade="all, delete-orphan",
    )
    tasks = relationship("TaskModel", order_by="TaskModel.id", cascade="all, delete-orphan")
    messages = relationship("MessageModel", order_by="MessageModel.id", cascade="all, delete-orphan")
    attachments = relationship(
        "AttachmentModel",
        order_by="AttachmentModel.id",
        cascade="all, delete-orphan",
    )


class ProjectMemberModel(Base):
    __tablename__ = "project_members"

    project_id = Column(Integer, ForeignKey("projects.id", ondelete="CASCADE"), primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    position = Column(Integer, nullable=False, default=0)

    user = relationship("UserModel")


class TaskModel(Base):
    __tablename__ = "tasks"

    id = Column(Integer, primary_key=True)
    project_id = Column(Integer, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    status = Column(String(20), nullable=False, default="pending", index=True)
    due_date = Column(Date, nullable=True)
    notes = Column(Text, nullable=True)
    created_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)
    completed_at = Column(DateTime, nullable=True)

    created_by = relationship("UserModel")
    assignees = relationship("UserModel", secondary=task_assignees, order_by="UserModel.id")
    pending_users = relationship("UserModel", secondary=task_pending_users, order_by="UserModel.id")
    subtasks = relationship(
        "SubtaskModel",
        order_by="SubtaskModel.sort_order",
        cascade="all, delete-orphan",
    )


class SubtaskModel(Base):
    __tablename__ = "subtasks"

    id = Column(Integer, primary_key=True)
    task_id = Column(Integer, ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    is_done = Column(Boolean, nullable=False, default=False)
    due_date = Column(Date, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)
    sort_order = Column(Integer, nullable=False, default=0)

    assignees = relationship("UserModel", secondary=subtask_assignees, order_by="UserModel.id")


class MessageModel(Base):
    __tablename__ = "messages"
    __table_args__ = (
        CheckConstraint(
            "referenced_task_id IS NULL OR referenced_subtask_id IS NULL",
            name="ck_messages_single_reference",
        ),
    )

    id = Column(Integer, primary_key=True)
    project_id = Column(Integer, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    sender_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    content = Column(Text, nullable=False, default="")
    kind = Column(String(30), nullable=False, default="regular")
    is_system = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    referenced_task_id = Column(Integer, ForeignKey("tasks.id"), nullable=True, index=True)
    referenced_subtask_id = Column(Integer, ForeignKey("subtasks.id"), nullable=True, index=True)
    reference_task_id = Column(Integer, nullable=True)
    reference_title = Column(String(200), nullable=True)
    quoted_message_id = Column(Integer, ForeignKey("messages.id"), nullable=True)

    sender = relationship("UserModel")
    reactions = relationship("ReactionModel", order_by="ReactionModel.id", cascade="all, delete-orphan")
    attachment = relationship("AttachmentModel", uselist=False, viewonly=True)


class ReactionModel(Base):
    __tablename__ = "reactions"
    __table_args__ = (
        UniqueConstraint("message_id", "user_id", "emoji", name="uq_reactions_message_user_emoji"),
    )

    id = Column(Integer, primary_key=True)
    message_id = Column(Integer, ForeignKey("messages.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    emoji = Column(String(16), nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    user = relationship("UserModel")


class AttachmentModel(Base):
    __tablename__ = "attachments"
    __table_args__ = (
        CheckConstraint("file_size >= 0", name="ck_attachments_file_size"),
    )

    id = Column(Integer, primary_key=True)
    project_id = Column(Integer, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(String(20), nullable=False, index=True)
    file_name = Column(String(255), nullable=False)
    file_size = Column(BigInteger, nullable=False, default=0)
    uploaded_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    uploaded_at = Column(DateTime, nullable=False, default=utcnow)
    linked_task_id = Column(Integer, ForeignKey("tasks.id"), nullable=True, index=True)
    linked_subtask_id = Column(Integer, ForeignKey("subtasks.id"), nullable=True)
    caption = Column(Text, nullable=True)
    is_instruction = Column(Boolean, nullable=False, default=False)
    message_id = Column(Integer, ForeignKey("messages.id"), nullable=True, index=True)
    image_data = Column(LargeBinary, nullable=True)

    uploaded_by = relationship("UserModel")
