"""Typed mutations accepted by ``ProjectService.execute``."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional

from .entities import NO_REFERENCE, ContextReference
from .enums import AttachmentType


@dataclass(frozen=True)
class AttachmentItem:
    type: AttachmentType
    file_name: str
    file_size: int = 0
    image_data: bytes | None = field(default=None, repr=False)


@dataclass(frozen=True)
class SubtaskDraft:
    title: str
    description: str | None = None
    assignee_ids: tuple[int, ...] = ()
    due_date: Optional[date] = None


@dataclass(frozen=True)
class RegisterUser:
    name: str
    phone_number: str = ""
    avatar_initials: str = ""


@dataclass(frozen=True)
class CreateProject:
    name: str
    description: str | None = None
    member_ids: tuple[int, ...] = ()


@dataclass(frozen=True)
class AddMember:
    project_id: int
    user_id: int


@dataclass(frozen=True)
class SetMuted:
    project_id: int
    muted: bool


@dataclass(frozen=True)
class CreateTask:
    project_id: int
    actor_id: int
    title: str
    assignee_ids: tuple[int, ...] = ()
    due_date: Optional[date] = None
    notes: str | None = None
    subtasks: tuple[SubtaskDraft, ...] = ()


@dataclass(frozen=True)
class AddSubtask:
    task_id: int
    actor_id: int
    draft: SubtaskDraft


@dataclass(frozen=True)
class ToggleTaskStatus:
    task_id: int
    actor_id: int


@dataclass(frozen=True)
class ToggleSubtaskStatus:
    task_id: int
    subtask_id: int
    actor_id: int


@dataclass(frozen=True)
class AcceptTask:
    task_id: int
    actor_id: int
    message: str | None = None


@dataclass(frozen=True)
class SendMessage:
    project_id: int
    sender_id: int
    content: str
    reference: ContextReference = NO_REFERENCE
    quoted_message_id: int | None = None


@dataclass(frozen=True)
class SendSystemMessage:
    project_id: int
    sender_id: int
    content: str


@dataclass(frozen=True)
class SendImageMessage:
    project_id: int
    sender_id: int
    image_data: bytes = field(repr=False)
    file_name: str | None = None


@dataclass(frozen=True)
class ToggleReaction:
    message_id: int
    user_id: int
    emoji: str


@dataclass(frozen=True)
class AddAttachments:
    project_id: int
    uploader_id: int
    items: tuple[AttachmentItem, ...]
    linked_task_id: int | None = None
    linked_subtask_id: int | None = None
    caption: str | None = None
    is_instruction: bool = False


Command = (
    RegisterUser
    | CreateProject
    | AddMember
    | SetMuted
    | CreateTask
    | AddSubtask
    | ToggleTaskStatus
    | ToggleSubtaskStatus
    | AcceptTask
    | SendMessage
    | SendSystemMessage
    | SendImageMessage
    | ToggleReaction
    | AddAttachments
)


@dataclass(frozen=True)
class AuditEntry:
    command: Command
    recorded_at: datetime
