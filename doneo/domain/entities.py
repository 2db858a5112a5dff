from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional

from .enums import AttachmentType, MessageKind, TaskStatus


def initials_for(name: str) -> str:
    parts = name.split()
    return "".join(part[0] for part in parts[:2]).upper()


@dataclass(frozen=True)
class User:
    id: int
    name: str
    phone_number: str = ""
    avatar_initials: str = ""

    @property
    def display_first_name(self) -> str:
        parts = self.name.split()
        return parts[0] if parts else self.name


# Context references. A message points at nothing, a task, or a subtask;
# titles are snapshots taken when the reference was made.


@dataclass(frozen=True)
class NoReference:
    @property
    def key(self) -> None:
        return None


@dataclass(frozen=True)
class TaskReference:
    task_id: int
    title: str

    @property
    def key(self) -> tuple[str, int]:
        return ("task", self.task_id)

    @classmethod
    def of(cls, task: Task) -> TaskReference:
        return cls(task_id=task.id, title=task.title)


@dataclass(frozen=True)
class SubtaskReference:
    subtask_id: int
    task_id: int
    title: str

    @property
    def key(self) -> tuple[str, int]:
        return ("subtask", self.subtask_id)

    @classmethod
    def of(cls, subtask: Subtask) -> SubtaskReference:
        return cls(subtask_id=subtask.id, task_id=subtask.task_id, title=subtask.title)


ContextReference = NoReference | TaskReference | SubtaskReference

NO_REFERENCE = NoReference()


# Message types.


@dataclass(frozen=True)
class Regular:
    kind = MessageKind.REGULAR


@dataclass(frozen=True)
class SubtaskCompleted:
    subtask: SubtaskReference
    kind = MessageKind.SUBTASK_COMPLETED


@dataclass(frozen=True)
class SubtaskReopened:
    subtask: SubtaskReference
    kind = MessageKind.SUBTASK_REOPENED


MessageType = Regular | SubtaskCompleted | SubtaskReopened

REGULAR = Regular()


def subtask_status_type(subtask: SubtaskReference, completed: bool) -> MessageType:
    return SubtaskCompleted(subtask) if completed else SubtaskReopened(subtask)


@dataclass(frozen=True)
class Attachment:
    id: int
    type: AttachmentType
    file_name: str
    file_size: int
    uploaded_by: Optional[User]
    uploaded_at: datetime
    linked_task_id: int | None = None
    linked_subtask_id: int | None = None
    caption: str | None = None
    is_instruction: bool = False
    message_id: int | None = None
    image_data: bytes | None = field(default=None, repr=False)


@dataclass(frozen=True)
class Subtask:
    id: int
    task_id: int
    title: str
    is_done: bool = False
    description: str | None = None
    assignees: tuple[User, ...] = ()
    due_date: Optional[date] = None
    instruction_attachments: tuple[Attachment, ...] = ()
    sort_order: int = 0

    @property
    def assignee_ids(self) -> frozenset[int]:
        return frozenset(user.id for user in self.assignees)


@dataclass(frozen=True)
class Task:
    id: int
    project_id: int
    title: str
    status: TaskStatus = TaskStatus.PENDING
    assignees: tuple[User, ...] = ()
    due_date: Optional[date] = None
    notes: str | None = None
    subtasks: tuple[Subtask, ...] = ()
    attachments: tuple[Attachment, ...] = ()
    created_by: Optional[User] = None
    pending_user_ids: frozenset[int] = frozenset()
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @property
    def is_done(self) -> bool:
        return self.status == TaskStatus.DONE

    @property
    def is_unassigned(self) -> bool:
        return not self.assignees

    @property
    def assignee_ids(self) -> frozenset[int]:
        return frozenset(user.id for user in self.assignees)

    def is_new_for(self, user_id: int) -> bool:
        """True while ``user_id`` has not acknowledged the assignment."""
        return user_id in self.pending_user_ids

    def is_overdue(self, today: Optional[date] = None) -> bool:
        if self.due_date is None or self.is_done:
            return False
        return self.due_date < (today or date.today())

    def sorted_subtasks(self) -> list[Subtask]:
        # sorted() is stable, so insertion order survives within each group.
        return sorted(self.subtasks, key=lambda subtask: subtask.is_done)

    @property
    def subtask_progress(self) -> tuple[int, int]:
        completed = sum(1 for subtask in self.subtasks if subtask.is_done)
        return completed, len(self.subtasks)

    @property
    def instruction_attachments(self) -> list[Attachment]:
        return [attachment for attachment in self.attachments if attachment.is_instruction]

    def find_subtask(self, subtask_id: int) -> Optional[Subtask]:
        return next((s for s in self.subtasks if s.id == subtask_id), None)


@dataclass(frozen=True)
class Reaction:
    emoji: str
    user: User


@dataclass(frozen=True)
class Message:
    id: int
    project_id: int
    sender: User
    content: str
    timestamp: datetime
    message_type: MessageType = REGULAR
    reference: ContextReference = NO_REFERENCE
    quoted_message: Optional[Message] = None
    attachment: Optional[Attachment] = None
    reactions: tuple[Reaction, ...] = ()
    is_system: bool = False

    @property
    def is_regular(self) -> bool:
        return isinstance(self.message_type, Regular)

    @property
    def referenced_task(self) -> Optional[TaskReference]:
        return self.reference if isinstance(self.reference, TaskReference) else None

    @property
    def referenced_subtask(self) -> Optional[SubtaskReference]:
        return self.reference if isinstance(self.reference, SubtaskReference) else None

    @property
    def reference_key(self) -> tuple[str, int] | None:
        return self.reference.key

    @property
    def grouped_reactions(self) -> dict[str, list[Reaction]]:
        grouped: dict[str, list[Reaction]] = {}
        for reaction in self.reactions:
            grouped.setdefault(reaction.emoji, []).append(reaction)
        return grouped


@dataclass(frozen=True)
class Project:
    id: int
    name: str
    description: str | None = None
    members: tuple[User, ...] = ()
    tasks: tuple[Task, ...] = ()
    messages: tuple[Message, ...] = ()
    attachments: tuple[Attachment, ...] = ()
    is_muted: bool = False

    @property
    def initials(self) -> str:
        return initials_for(self.name)

    @property
    def member_ids(self) -> frozenset[int]:
        return frozenset(user.id for user in self.members)

    def find_member(self, user_id: int) -> Optional[User]:
        return next((u for u in self.members if u.id == user_id), None)

    def find_task(self, task_id: int) -> Optional[Task]:
        return next((t for t in self.tasks if t.id == task_id), None)

    def find_subtask(self, subtask_id: int) -> Optional[tuple[Task, Subtask]]:
        for task in self.tasks:
            subtask = task.find_subtask(subtask_id)
            if subtask is not None:
                return task, subtask
        return None

    def find_message(self, message_id: int) -> Optional[Message]:
        return next((m for m in self.messages if m.id == message_id), None)

    @property
    def pending_tasks(self) -> list[Task]:
        return [task for task in self.tasks if not task.is_done]

    @property
    def completed_tasks(self) -> list[Task]:
        return [task for task in self.tasks if task.is_done]

    def new_tasks_for(self, user_id: int) -> list[Task]:
        return [task for task in self.tasks if task.is_new_for(user_id)]
