from __future__ import annotations

import logging
from typing import Any, Iterable, Optional, Sequence

from PySide6.QtCore import QObject, Signal

from doneo.domain.commands import (
    AcceptTask,
    AddAttachments,
    AttachmentItem,
    Command,
    SendImageMessage,
    SendMessage,
    SendSystemMessage,
    SetMuted,
    ToggleReaction,
    ToggleSubtaskStatus,
    ToggleTaskStatus,
)
from doneo.domain.entities import (
    NO_REFERENCE,
    Attachment,
    ContextReference,
    Message,
    Project,
    Subtask,
    SubtaskReference,
    Task,
    TaskReference,
    User,
)
from doneo.domain.enums import Action, AttachmentType
from doneo.domain.errors import DoneoError, InvalidReferenceError
from doneo.domain.feed import MessageRow, assignment_messages, build_message_rows, task_messages
from doneo.domain.filters import TaskFilters, filter_tasks
from doneo.domain.media import MediaGroup, group_by_task, partition_by_type
from doneo.services.media import (
    CapturedMedia,
    RecordingResult,
    collect_items,
    contact_notice,
    document_notice,
    voice_note_notice,
)
from doneo.services.project_service import ProjectService

logger = logging.getLogger(__name__)


class ProjectChatViewModel(QObject):
    """
    VM for one project's chat as seen by the current user.
    Emits:
      - projectChanged() after every successful mutation
      - composerChanged() when the quoted message or reference changes
      - errorOccurred(message: str) when an operation is rejected
    """

    projectChanged = Signal()
    composerChanged = Signal()
    errorOccurred = Signal(str)

    def __init__(self, service: ProjectService, project_id: int, current_user_id: int):
        super().__init__()
        self._service = service
        self._project_id = project_id
        self._current_user = service.get_user(current_user_id)
        self._project: Project = service.get_project(project_id)
        self._rows: list[MessageRow] = build_message_rows(self._project.messages)
        self._quoted_message: Optional[Message] = None
        self._reference: ContextReference = NO_REFERENCE

    # ---- published state ----
    @property
    def project(self) -> Project:
        return self._project

    @property
    def current_user(self) -> User:
        return self._current_user

    @property
    def messages(self) -> tuple[Message, ...]:
        return self._project.messages

    @property
    def message_rows(self) -> list[MessageRow]:
        return self._rows

    @property
    def new_tasks_for_current_user(self) -> list[Task]:
        return self._project.new_tasks_for(self._current_user.id)

    @property
    def new_tasks_count(self) -> int:
        return len(self.new_tasks_for_current_user)

    @property
    def pending_tasks(self) -> list[Task]:
        return self._project.pending_tasks

    @property
    def completed_tasks(self) -> list[Task]:
        return self._project.completed_tasks

    @property
    def is_muted(self) -> bool:
        return self._project.is_muted

    def tasks_matching(self, filters: TaskFilters) -> list[Task]:
        return filter_tasks(self._project.tasks, filters)

    def is_from_current_user(self, message: Message) -> bool:
        return message.sender.id == self._current_user.id

    def task(self, task_id: int) -> Optional[Task]:
        return self._project.find_task(task_id)

    def sorted_subtasks(self, task: Task) -> list[Subtask]:
        current = self._project.find_task(task.id) or task
        return current.sorted_subtasks()

    def task_messages(self, task: Task) -> list[Message]:
        current = self._project.find_task(task.id) or task
        return task_messages(self._project.messages, current)

    def assignment_messages(self, task: Task) -> list[Message]:
        return assignment_messages(self._project.messages, task.id)

    def media_groups(self, attachment_type: AttachmentType) -> list[MediaGroup]:
        partitions = partition_by_type(self._project.attachments)
        return group_by_task(partitions[attachment_type], self._project)

    # ---- permissions ----
    def can_edit_task(self, task: Task) -> bool:
        return self._allowed(Action.EDIT_TASK, task)

    def can_toggle_subtask(self, subtask: Subtask) -> bool:
        task = self._project.find_task(subtask.task_id)
        if task is None:
            return False
        return self._allowed(Action.TOGGLE_SUBTASK, task, subtask)

    def _allowed(self, action: Action, task: Task, subtask: Optional[Subtask] = None) -> bool:
        if self._current_user.id not in self._project.member_ids:
            return False
        return self._service.authorizer.can_perform(action, self._current_user, task, subtask)

    # ---- composer ----
    @property
    def quoted_message(self) -> Optional[Message]:
        return self._quoted_message

    @property
    def referenced_task(self) -> Optional[TaskReference]:
        return self._reference if isinstance(self._reference, TaskReference) else None

    @property
    def referenced_subtask(self) -> Optional[SubtaskReference]:
        return self._reference if isinstance(self._reference, SubtaskReference) else None

    def quote(self, message: Message) -> None:
        self._quoted_message = message
        self.composerChanged.emit()

    def reference_task(self, task: Task) -> None:
        self._reference = TaskReference.of(task)
        self.composerChanged.emit()

    def reference_subtask(self, subtask: Subtask) -> None:
        self._reference = SubtaskReference.of(subtask)
        self.composerChanged.emit()

    def clear_all_references(self) -> None:
        self._quoted_message = None
        self._reference = NO_REFERENCE
        self.composerChanged.emit()

    # ---- commands ----
    def send_message(
        self,
        content: str,
        referenced_task: Optional[TaskReference] = None,
        referenced_subtask: Optional[SubtaskReference] = None,
    ) -> Optional[Message]:
        text = content.strip()
        if not text:
            return None
        if referenced_task is not None and referenced_subtask is not None:
            self._report(InvalidReferenceError("a message references a task or a subtask, not both"))
            return None

        reference = referenced_task or referenced_subtask or self._reference
        quoted = self._quoted_message
        message = self._run(SendMessage(
            project_id=self._project_id,
            sender_id=self._current_user.id,
            content=text,
            reference=reference,
            quoted_message_id=quoted.id if quoted else None,
        ))
        if message is not None:
            self.clear_all_references()
        return message

    def send_system_message(self, content: str) -> Optional[Message]:
        return self._run(SendSystemMessage(
            project_id=self._project_id,
            sender_id=self._current_user.id,
            content=content,
        ))

    def send_image_message(self, image_data: bytes, file_name: str | None = None) -> Optional[Message]:
        return self._run(SendImageMessage(
            project_id=self._project_id,
            sender_id=self._current_user.id,
            image_data=image_data,
            file_name=file_name,
        ))

    def share_document(self, file_name: str) -> Optional[Message]:
        return self.send_system_message(document_notice(file_name))

    def share_contact(self, contact_name: str) -> Optional[Message]:
        return self.send_system_message(contact_notice(contact_name))

    def finish_voice_recording(self, recording: RecordingResult | None) -> Optional[Message]:
        try:
            notice = voice_note_notice(recording)
        except DoneoError as exc:
            self._report(exc)
            return None
        return self.send_system_message(notice)

    def add_reaction(self, emoji: str, message: Message) -> Optional[Message]:
        return self._run(ToggleReaction(message_id=message.id, user_id=self._current_user.id, emoji=emoji))

    def toggle_task_status(self, task: Task) -> Optional[Task]:
        return self._run(ToggleTaskStatus(task_id=task.id, actor_id=self._current_user.id))

    def toggle_subtask_status(self, task: Task, subtask: Subtask) -> Optional[Message]:
        if not self.can_toggle_subtask(subtask):
            logger.info("User %s may not toggle subtask %s", self._current_user.id, subtask.id)
            return None
        return self._run(ToggleSubtaskStatus(
            task_id=task.id,
            subtask_id=subtask.id,
            actor_id=self._current_user.id,
        ))

    def accept_task(self, task: Task, message: str | None = None) -> bool:
        result = self._run(
            AcceptTask(task_id=task.id, actor_id=self._current_user.id, message=message),
            default=False,
        )
        return result is not False

    def add_attachments(
        self,
        items: Sequence[AttachmentItem],
        linked_task_id: int | None = None,
        linked_subtask_id: int | None = None,
        caption: str | None = None,
        is_instruction: bool = False,
    ) -> list[Attachment]:
        return self._run(
            AddAttachments(
                project_id=self._project_id,
                uploader_id=self._current_user.id,
                items=tuple(items),
                linked_task_id=linked_task_id,
                linked_subtask_id=linked_subtask_id,
                caption=caption,
                is_instruction=is_instruction,
            ),
            default=[],
        )

    def add_captured_media(
        self,
        captured: Iterable[CapturedMedia],
        linked_task_id: int | None = None,
        linked_subtask_id: int | None = None,
        caption: str | None = None,
        is_instruction: bool = False,
    ) -> list[Attachment]:
        items, failures = collect_items(captured)
        for failure in failures:
            self._report(failure)
        if not items:
            return []
        return self.add_attachments(items, linked_task_id, linked_subtask_id, caption, is_instruction)

    def set_muted(self, muted: bool) -> None:
        self._run(SetMuted(project_id=self._project_id, muted=muted))

    # ---- internals ----
    def reload(self) -> None:
        self._project = self._service.get_project(self._project_id)
        self._rows = build_message_rows(self._project.messages)
        self.projectChanged.emit()

    def _run(self, command: Command, default: Any = None) -> Any:
        try:
            result = self._service.execute(command)
        except DoneoError as exc:
            self._report(exc)
            return default
        self.reload()
        return result

    def _report(self, exc: DoneoError) -> None:
        logger.warning("%s rejected: %s", type(exc).__name__, exc)
        self.errorOccurred.emit(str(exc))
