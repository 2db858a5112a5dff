from __future__ import annotations

from enum import StrEnum


class TaskStatus(StrEnum):
    PENDING = "pending"
    DONE = "done"


class AttachmentType(StrEnum):
    IMAGE = "image"
    DOCUMENT = "document"
    VIDEO = "video"
    CONTACT = "contact"


class MessageKind(StrEnum):
    REGULAR = "regular"
    SUBTASK_COMPLETED = "subtask_completed"
    SUBTASK_REOPENED = "subtask_reopened"


class Action(StrEnum):
    EDIT_TASK = "edit_task"
    TOGGLE_SUBTASK = "toggle_subtask"
