from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Iterable, Optional

from doneo.domain.commands import (
    AcceptTask,
    AddAttachments,
    AddMember,
    AddSubtask,
    AuditEntry,
    Command,
    CreateProject,
    CreateTask,
    RegisterUser,
    SendImageMessage,
    SendMessage,
    SendSystemMessage,
    SetMuted,
    SubtaskDraft,
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
    initials_for,
)
from doneo.domain.enums import Action, AttachmentType, MessageKind, TaskStatus
from doneo.domain.errors import (
    AttachmentLoadFailedError,
    InvalidReferenceError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from doneo.domain.policy import Authorizer, TaskRoleAuthorizer
from doneo.infra.models import utcnow
from doneo.infra.repository import ProjectRepository

logger = logging.getLogger(__name__)

TIMESTAMP_STEP = timedelta(microseconds=1)


def subtask_status_text(title: str, completed: bool) -> str:
    return f"{'completed' if completed else 'reopened'} {title}"


def _required_text(value: str | None, field_name: str) -> str:
    text = (value or "").strip()
    if not text:
        raise ValidationError(f"{field_name} must not be empty")
    return text


def _unique(ids: Iterable[int]) -> list[int]:
    return list(dict.fromkeys(ids))


class ProjectService:
    def __init__(
        self,
        repo: ProjectRepository,
        authorizer: Authorizer | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._repo = repo
        self._authorizer = authorizer or TaskRoleAuthorizer()
        self._clock = clock or utcnow
        self._audit: list[AuditEntry] = []
        self._handlers: dict[type, Callable[[Any], Any]] = {
            RegisterUser: self._register_user,
            CreateProject: self._create_project,
            AddMember: self._add_member,
            SetMuted: self._set_muted,
            CreateTask: self._create_task,
            AddSubtask: self._add_subtask,
            ToggleTaskStatus: self._toggle_task_status,
            ToggleSubtaskStatus: self._toggle_subtask_status,
            AcceptTask: self._accept_task,
            SendMessage: self._send_message,
            SendSystemMessage: self._send_system_message,
            SendImageMessage: self._send_image_message,
            ToggleReaction: self._toggle_reaction,
            AddAttachments: self._add_attachments,
        }

    @property
    def authorizer(self) -> Authorizer:
        return self._authorizer

    @property
    def audit_log(self) -> tuple[AuditEntry, ...]:
        return tuple(self._audit)

    def execute(self, command: Command) -> Any:
        handler = self._handlers.get(type(command))
        if handler is None:
            raise TypeError(f"Unsupported command: {type(command).__name__}")
        result = handler(command)
        self._audit.append(AuditEntry(command=command, recorded_at=self._clock()))
        logger.info("Executed %s", command)
        return result

    # queries

    def get_project(self, project_id: int) -> Project:
        project = self._repo.get_project(project_id)
        if project is None:
            raise NotFoundError("project", project_id)
        return project

    def get_task(self, task_id: int) -> Task:
        task = self._repo.get_task(task_id)
        if task is None:
            raise NotFoundError("task", task_id)
        return task

    def get_user(self, user_id: int) -> User:
        user = self._repo.get_user(user_id)
        if user is None:
            raise NotFoundError("user", user_id)
        return user

    def get_message(self, message_id: int) -> Message:
        message = self._repo.get_message(message_id)
        if message is None:
            raise NotFoundError("message", message_id)
        return message

    # users and projects

    def _register_user(self, command: RegisterUser) -> User:
        name = _required_text(command.name, "user name")
        return self._repo.create_user({
            "name": name,
            "phone_number": command.phone_number.strip(),
            "avatar_initials": command.avatar_initials.strip() or initials_for(name),
        })

    def _create_project(self, command: CreateProject) -> Project:
        name = _required_text(command.name, "project name")
        member_ids = _unique(command.member_ids)
        for user_id in member_ids:
            self.get_user(user_id)
        description = (command.description or "").strip() or None
        project = self._repo.create_project({"name": name, "description": description}, member_ids)
        logger.info("Created project %s with %d members", project.id, len(member_ids))
        return project

    def _add_member(self, command: AddMember) -> Project:
        self.get_project(command.project_id)
        self.get_user(command.user_id)
        if not self._repo.add_member(command.project_id, command.user_id):
            logger.debug("User %s already in project %s", command.user_id, command.project_id)
        return self.get_project(command.project_id)

    def _set_muted(self, command: SetMuted) -> bool:
        if not self._repo.set_muted(command.project_id, command.muted):
            raise NotFoundError("project", command.project_id)
        return command.muted

    # tasks

    def _create_task(self, command: CreateTask) -> Task:
        project = self.get_project(command.project_id)
        self._require_member(project.id, command.actor_id)
        title = _required_text(command.title, "task title")
        assignee_ids = self._member_ids(project, command.assignee_ids)
        pending_ids = list(assignee_ids)

        task = self._repo.create_task(
            project.id,
            {
                "title": title,
                "status": TaskStatus.PENDING.value,
                "due_date": command.due_date,
                "notes": (command.notes or "").strip() or None,
                "created_by_id": command.actor_id,
            },
            assignee_ids,
            pending_ids,
        )
        for draft in command.subtasks:
            self._create_subtask(project, task.id, draft)
        logger.info("Task %s created in project %s, pending for %s", task.id, project.id, pending_ids)
        return self.get_task(task.id)

    def _add_subtask(self, command: AddSubtask) -> Subtask:
        task = self.get_task(command.task_id)
        self._authorize(Action.EDIT_TASK, command.actor_id, task)
        return self._create_subtask(self.get_project(task.project_id), task.id, command.draft)

    def _create_subtask(self, project: Project, task_id: int, draft: SubtaskDraft) -> Subtask:
        title = _required_text(draft.title, "subtask title")
        return self._repo.create_subtask(
            task_id,
            {
                "title": title,
                "description": (draft.description or "").strip() or None,
                "due_date": draft.due_date,
            },
            self._member_ids(project, draft.assignee_ids),
        )

    def _toggle_task_status(self, command: ToggleTaskStatus) -> Task:
        task = self.get_task(command.task_id)
        self._authorize(Action.EDIT_TASK, command.actor_id, task)
        if task.is_done:
            data = {"status": TaskStatus.PENDING.value, "completed_at": None}
        else:
            data = {"status": TaskStatus.DONE.value, "completed_at": self._clock()}
        updated = self._repo.update_task(task.id, data)
        if updated is None:
            raise NotFoundError("task", task.id)
        return updated

    def _toggle_subtask_status(self, command: ToggleSubtaskStatus) -> Message:
        task = self.get_task(command.task_id)
        subtask = task.find_subtask(command.subtask_id)
        if subtask is None:
            raise NotFoundError("subtask", command.subtask_id)
        self._authorize(Action.TOGGLE_SUBTASK, command.actor_id, task, subtask)

        updated = self._repo.update_subtask(subtask.id, {"is_done": not subtask.is_done})
        if updated is None:
            raise NotFoundError("subtask", subtask.id)
        kind = MessageKind.SUBTASK_COMPLETED if updated.is_done else MessageKind.SUBTASK_REOPENED
        return self._post(
            task.project_id,
            command.actor_id,
            subtask_status_text(updated.title, updated.is_done),
            kind=kind,
            reference=SubtaskReference.of(updated),
        )

    def _accept_task(self, command: AcceptTask) -> Optional[Message]:
        task = self.get_task(command.task_id)
        self._require_member(task.project_id, command.actor_id)
        if not self._repo.clear_pending(task.id, command.actor_id):
            logger.debug("Task %s was not pending for user %s", task.id, command.actor_id)

        text = (command.message or "").strip()
        if not text:
            return None
        return self._post(task.project_id, command.actor_id, text, reference=TaskReference.of(task))

    # feed

    def _send_message(self, command: SendMessage) -> Message:
        content = _required_text(command.content, "message")
        self._require_member(command.project_id, command.sender_id)
        self._check_reference(command.project_id, command.reference)
        if command.quoted_message_id is not None:
            quoted = self.get_message(command.quoted_message_id)
            if quoted.project_id != command.project_id:
                raise InvalidReferenceError(f"message {quoted.id} belongs to another project")
        return self._post(
            command.project_id,
            command.sender_id,
            content,
            reference=command.reference,
            quoted_message_id=command.quoted_message_id,
        )

    def _send_system_message(self, command: SendSystemMessage) -> Message:
        content = _required_text(command.content, "message")
        self._require_member(command.project_id, command.sender_id)
        return self._post(command.project_id, command.sender_id, content, is_system=True)

    def _send_image_message(self, command: SendImageMessage) -> Message:
        self._require_member(command.project_id, command.sender_id)
        created_at = self._next_timestamp(command.project_id)
        file_name = command.file_name or f"Photo_{int(created_at.timestamp())}.jpg"
        if not command.image_data:
            raise AttachmentLoadFailedError(file_name)
        return self._repo.create_message(
            command.project_id,
            {
                "sender_id": command.sender_id,
                "content": "",
                "kind": MessageKind.REGULAR.value,
                "created_at": created_at,
            },
            attachment={
                "type": AttachmentType.IMAGE.value,
                "file_name": file_name,
                "file_size": len(command.image_data),
                "uploaded_by_id": command.sender_id,
                "uploaded_at": created_at,
                "image_data": command.image_data,
            },
        )

    def _toggle_reaction(self, command: ToggleReaction) -> Message:
        emoji = _required_text(command.emoji, "emoji")
        message = self.get_message(command.message_id)
        self._require_member(message.project_id, command.user_id)
        added = self._repo.toggle_reaction(message.id, command.user_id, emoji)
        logger.debug("Reaction %s %s on message %s", emoji, "added" if added else "removed", message.id)
        return self.get_message(message.id)

    # attachments

    def _add_attachments(self, command: AddAttachments) -> list[Attachment]:
        if not command.items:
            raise ValidationError("no attachments to add")
        self._require_member(command.project_id, command.uploader_id)
        task_id = self._resolve_link(command.project_id, command.linked_task_id, command.linked_subtask_id)

        uploaded_at = self._clock()
        caption = (command.caption or "").strip() or None
        rows = []
        for item in command.items:
            if item.file_size < 0:
                raise ValidationError(f"{item.file_name}: file size must not be negative")
            rows.append({
                "type": AttachmentType(item.type).value,
                "file_name": item.file_name,
                "file_size": item.file_size,
                "uploaded_by_id": command.uploader_id,
                "uploaded_at": uploaded_at,
                "linked_task_id": task_id,
                "linked_subtask_id": command.linked_subtask_id,
                "caption": caption,
                "is_instruction": command.is_instruction,
                "image_data": item.image_data,
            })
        return self._repo.create_attachments(command.project_id, rows)

    def _resolve_link(self, project_id: int, task_id: int | None, subtask_id: int | None) -> int | None:
        if subtask_id is not None:
            subtask = self._repo.get_subtask(subtask_id)
            if subtask is None:
                raise NotFoundError("subtask", subtask_id)
            if task_id is None:
                task_id = subtask.task_id
            elif task_id != subtask.task_id:
                raise InvalidReferenceError(f"subtask {subtask_id} does not belong to task {task_id}")
        if task_id is not None and self.get_task(task_id).project_id != project_id:
            raise InvalidReferenceError(f"task {task_id} belongs to another project")
        return task_id

    # helpers

    def _post(
        self,
        project_id: int,
        sender_id: int,
        content: str,
        kind: MessageKind = MessageKind.REGULAR,
        reference: ContextReference = NO_REFERENCE,
        quoted_message_id: int | None = None,
        is_system: bool = False,
    ) -> Message:
        return self._repo.create_message(
            project_id,
            {
                "sender_id": sender_id,
                "content": content,
                "kind": kind.value,
                "is_system": is_system,
                "created_at": self._next_timestamp(project_id),
                "quoted_message_id": quoted_message_id,
            },
            reference=reference,
        )

    def _next_timestamp(self, project_id: int) -> datetime:
        now = self._clock()
        last = self._repo.last_message_at(project_id)
        if last is not None and now <= last:
            return last + TIMESTAMP_STEP
        return now

    def _check_reference(self, project_id: int, reference: ContextReference) -> None:
        if isinstance(reference, TaskReference):
            task = self._repo.get_task(reference.task_id)
            if task is None or task.project_id != project_id:
                raise InvalidReferenceError(f"task {reference.task_id} is not in project {project_id}")
        elif isinstance(reference, SubtaskReference):
            subtask = self._repo.get_subtask(reference.subtask_id)
            task = self._repo.get_task(subtask.task_id) if subtask else None
            if task is None or task.project_id != project_id:
                raise InvalidReferenceError(f"subtask {reference.subtask_id} is not in project {project_id}")
            if reference.task_id != subtask.task_id:
                raise InvalidReferenceError(
                    f"subtask {reference.subtask_id} belongs to task {subtask.task_id}, not {reference.task_id}"
                )

    def _require_member(self, project_id: int, user_id: int) -> None:
        if not self._repo.is_member(project_id, user_id):
            raise PermissionDeniedError(f"act in project {project_id}", user_id)

    def _member_ids(self, project: Project, user_ids: Iterable[int]) -> list[int]:
        ids = _unique(user_ids)
        outsiders = [user_id for user_id in ids if user_id not in project.member_ids]
        if outsiders:
            raise ValidationError(f"users {outsiders} are not members of project {project.id}")
        return ids

    def _authorize(self, action: Action, user_id: int, task: Task, subtask: Subtask | None = None) -> None:
        self._require_member(task.project_id, user_id)
        user = self.get_user(user_id)
        if not self._authorizer.can_perform(action, user, task, subtask):
            raise PermissionDeniedError(action.value, user_id)
