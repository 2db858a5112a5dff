from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional, Sequence

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session, sessionmaker

from doneo.domain.entities import (
    NO_REFERENCE,
    REGULAR,
    Attachment,
    ContextReference,
    Message,
    MessageType,
    Project,
    Reaction,
    Subtask,
    SubtaskReference,
    Task,
    TaskReference,
    User,
    initials_for,
    subtask_status_type,
)
from doneo.domain.enums import AttachmentType, MessageKind, TaskStatus

from .db import SessionLocal
from .models import (
    AttachmentModel,
    MessageModel,
    ProjectMemberModel,
    ProjectModel,
    ReactionModel,
    SubtaskModel,
    TaskModel,
    UserModel,
    task_pending_users,
)


def _to_user(model: UserModel) -> User:
    return User(
        id=model.id,
        name=model.name,
        phone_number=model.phone_number or "",
        avatar_initials=model.avatar_initials or initials_for(model.name),
    )


def _to_attachment(model: AttachmentModel) -> Attachment:
    return Attachment(
        id=model.id,
        type=AttachmentType(model.type),
        file_name=model.file_name,
        file_size=model.file_size,
        uploaded_by=_to_user(model.uploaded_by) if model.uploaded_by else None,
        uploaded_at=model.uploaded_at,
        linked_task_id=model.linked_task_id,
        linked_subtask_id=model.linked_subtask_id,
        caption=model.caption,
        is_instruction=model.is_instruction,
        message_id=model.message_id,
        image_data=model.image_data,
    )


def _to_subtask(model: SubtaskModel, attachments: Sequence[Attachment]) -> Subtask:
    return Subtask(
        id=model.id,
        task_id=model.task_id,
        title=model.title,
        is_done=model.is_done,
        description=model.description,
        assignees=tuple(_to_user(user) for user in model.assignees),
        due_date=model.due_date,
        instruction_attachments=tuple(
            a for a in attachments if a.linked_subtask_id == model.id and a.is_instruction
        ),
        sort_order=model.sort_order,
    )


def _to_task(model: TaskModel, attachments: Sequence[Attachment]) -> Task:
    task_attachments = [a for a in attachments if a.linked_task_id == model.id]
    return Task(
        id=model.id,
        project_id=model.project_id,
        title=model.title,
        status=TaskStatus(model.status),
        assignees=tuple(_to_user(user) for user in model.assignees),
        due_date=model.due_date,
        notes=model.notes,
        subtasks=tuple(_to_subtask(subtask, task_attachments) for subtask in model.subtasks),
        attachments=tuple(task_attachments),
        created_by=_to_user(model.created_by) if model.created_by else None,
        pending_user_ids=frozenset(user.id for user in model.pending_users),
        created_at=model.created_at,
        completed_at=model.completed_at,
    )


def _to_reference(model: MessageModel) -> ContextReference:
    if model.referenced_task_id is not None:
        return TaskReference(task_id=model.referenced_task_id, title=model.reference_title or "")
    if model.referenced_subtask_id is not None:
        return SubtaskReference(
            subtask_id=model.referenced_subtask_id,
            task_id=model.reference_task_id,
            title=model.reference_title or "",
        )
    return NO_REFERENCE


def _to_message_type(model: MessageModel, reference: ContextReference) -> MessageType:
    kind = MessageKind(model.kind)
    if kind == MessageKind.REGULAR:
        return REGULAR
    if not isinstance(reference, SubtaskReference):
        raise ValueError(f"message {model.id} is a {kind} message without a subtask reference")
    return subtask_status_type(reference, completed=kind == MessageKind.SUBTASK_COMPLETED)


def _to_message(model: MessageModel, quoted: Optional[Message] = None) -> Message:
    reference = _to_reference(model)
    return Message(
        id=model.id,
        project_id=model.project_id,
        sender=_to_user(model.sender),
        content=model.content,
        timestamp=model.created_at,
        message_type=_to_message_type(model, reference),
        reference=reference,
        quoted_message=quoted,
        attachment=_to_attachment(model.attachment) if model.attachment else None,
        reactions=tuple(Reaction(emoji=r.emoji, user=_to_user(r.user)) for r in model.reactions),
        is_system=model.is_system,
    )


def _reference_columns(reference: ContextReference) -> dict:
    if isinstance(reference, TaskReference):
        return {"referenced_task_id": reference.task_id, "reference_title": reference.title}
    if isinstance(reference, SubtaskReference):
        return {
            "referenced_subtask_id": reference.subtask_id,
            "reference_task_id": reference.task_id,
            "reference_title": reference.title,
        }
    return {}


class ProjectRepository:
    def __init__(self, session_factory: sessionmaker | None = None) -> None:
        self._session_factory = session_factory or SessionLocal

    # users

    def create_user(self, data: dict) -> User:
        with self._session_factory() as session:
            user = UserModel(**data)
            session.add(user)
            session.commit()
            session.refresh(user)
            return _to_user(user)

    def get_user(self, user_id: int) -> Optional[User]:
        with self._session_factory() as session:
            user = session.get(UserModel, user_id)
            return _to_user(user) if user else None

    # projects

    def create_project(self, data: dict, member_ids: Iterable[int]) -> Project:
        with self._session_factory() as session:
            project = ProjectModel(**data)
            for position, user_id in enumerate(member_ids, start=1):
                project.members.append(ProjectMemberModel(user_id=user_id, position=position))
            session.add(project)
            session.commit()
            return self._load_project(session, project.id)

    def get_project(self, project_id: int) -> Optional[Project]:
        with self._session_factory() as session:
            return self._load_project(session, project_id)

    def add_member(self, project_id: int, user_id: int) -> bool:
        with self._session_factory() as session:
            if session.get(ProjectMemberModel, (project_id, user_id)) is not None:
                return False
            max_position = session.scalar(
                select(func.max(ProjectMemberModel.position)).where(ProjectMemberModel.project_id == project_id)
            )
            session.add(ProjectMemberModel(project_id=project_id, user_id=user_id, position=(max_position or 0) + 1))
            session.commit()
            return True

    def is_member(self, project_id: int, user_id: int) -> bool:
        with self._session_factory() as session:
            return session.get(ProjectMemberModel, (project_id, user_id)) is not None

    def set_muted(self, project_id: int, muted: bool) -> bool:
        with self._session_factory() as session:
            project = session.get(ProjectModel, project_id)
            if not project:
                return False
            project.is_muted = muted
            session.commit()
            return True

    # tasks

    def create_task(
        self,
        project_id: int,
        data: dict,
        assignee_ids: Iterable[int],
        pending_user_ids: Iterable[int],
    ) -> Task:
        with self._session_factory() as session:
            task = TaskModel(project_id=project_id, **data)
            task.assignees = self._users(session, assignee_ids)
            task.pending_users = self._users(session, pending_user_ids)
            session.add(task)
            session.commit()
            return self._load_task(session, task.id)

    def get_task(self, task_id: int) -> Optional[Task]:
        with self._session_factory() as session:
            return self._load_task(session, task_id)

    def update_task(self, task_id: int, data: dict) -> Optional[Task]:
        with self._session_factory() as session:
            task = session.get(TaskModel, task_id)
            if not task:
                return None
            for key, value in data.items():
                setattr(task, key, value)
            session.commit()
            return self._load_task(session, task_id)

    def clear_pending(self, task_id: int, user_id: int) -> bool:
        with self._session_factory() as session:
            result = session.execute(
                delete(task_pending_users).where(
                    task_pending_users.c.task_id == task_id,
                    task_pending_users.c.user_id == user_id,
                )
            )
            session.commit()
            return result.rowcount > 0

    # subtasks

    def create_subtask(self, task_id: int, data: dict, assignee_ids: Iterable[int]) -> Subtask:
        with self._session_factory() as session:
            if data.get("sort_order") is None:
                data = {**data, "sort_order": self._next_sort_order(session, task_id)}
            subtask = SubtaskModel(task_id=task_id, **data)
            subtask.assignees = self._users(session, assignee_ids)
            session.add(subtask)
            session.commit()
            session.refresh(subtask)
            return _to_subtask(subtask, self._task_attachments(session, task_id))

    def get_subtask(self, subtask_id: int) -> Optional[Subtask]:
        with self._session_factory() as session:
            subtask = session.get(SubtaskModel, subtask_id)
            if not subtask:
                return None
            return _to_subtask(subtask, self._task_attachments(session, subtask.task_id))

    def update_subtask(self, subtask_id: int, data: dict) -> Optional[Subtask]:
        with self._session_factory() as session:
            subtask = session.get(SubtaskModel, subtask_id)
            if not subtask:
                return None
            for key, value in data.items():
                setattr(subtask, key, value)
            session.commit()
            session.refresh(subtask)
            return _to_subtask(subtask, self._task_attachments(session, subtask.task_id))

    # messages

    def create_message(
        self,
        project_id: int,
        data: dict,
        reference: ContextReference = NO_REFERENCE,
        attachment: dict | None = None,
    ) -> Message:
        with self._session_factory() as session:
            message = MessageModel(project_id=project_id, **data, **_reference_columns(reference))
            session.add(message)
            session.flush()
            if attachment is not None:
                session.add(AttachmentModel(project_id=project_id, message_id=message.id, **attachment))
            session.commit()
            return self._load_message(session, message.id)

    def get_message(self, message_id: int) -> Optional[Message]:
        with self._session_factory() as session:
            return self._load_message(session, message_id)

    def last_message_at(self, project_id: int) -> Optional[datetime]:
        with self._session_factory() as session:
            return session.scalar(
                select(func.max(MessageModel.created_at)).where(MessageModel.project_id == project_id)
            )

    def toggle_reaction(self, message_id: int, user_id: int, emoji: str) -> bool:
        """Add the reaction, or remove it if present. Returns True when added."""
        with self._session_factory() as session:
            existing = session.scalar(
                select(ReactionModel).where(
                    ReactionModel.message_id == message_id,
                    ReactionModel.user_id == user_id,
                    ReactionModel.emoji == emoji,
                )
            )
            if existing is not None:
                session.delete(existing)
                added = False
            else:
                session.add(ReactionModel(message_id=message_id, user_id=user_id, emoji=emoji))
                added = True
            session.commit()
            return added

    # attachments

    def create_attachments(self, project_id: int, rows: Sequence[dict]) -> list[Attachment]:
        with self._session_factory() as session:
            models = [AttachmentModel(project_id=project_id, **row) for row in rows]
            session.add_all(models)
            session.commit()
            for model in models:
                session.refresh(model)
            return [_to_attachment(model) for model in models]

    # loading helpers

    def _load_project(self, session: Session, project_id: int) -> Optional[Project]:
        project = session.get(ProjectModel, project_id)
        if not project:
            return None

        attachments = [_to_attachment(a) for a in project.attachments]
        messages: dict[int, Message] = {}
        for model in project.messages:
            quoted = messages.get(model.quoted_message_id) if model.quoted_message_id else None
            messages[model.id] = _to_message(model, quoted)

        return Project(
            id=project.id,
            name=project.name,
            description=project.description,
            members=tuple(_to_user(member.user) for member in project.members),
            tasks=tuple(_to_task(task, attachments) for task in project.tasks),
            messages=tuple(messages.values()),
            attachments=tuple(attachments),
            is_muted=project.is_muted,
        )

    def _load_task(self, session: Session, task_id: int) -> Optional[Task]:
        task = session.get(TaskModel, task_id)
        if not task:
            return None
        return _to_task(task, self._task_attachments(session, task_id))

    def _load_message(self, session: Session, message_id: int) -> Optional[Message]:
        message = session.get(MessageModel, message_id)
        if not message:
            return None
        quoted = None
        if message.quoted_message_id:
            quoted_model = session.get(MessageModel, message.quoted_message_id)
            quoted = _to_message(quoted_model) if quoted_model else None
        return _to_message(message, quoted)

    @staticmethod
    def _task_attachments(session: Session, task_id: int) -> list[Attachment]:
        stmt = (
            select(AttachmentModel)
            .where(AttachmentModel.linked_task_id == task_id)
            .order_by(AttachmentModel.id)
        )
        return [_to_attachment(model) for model in session.scalars(stmt)]

    @staticmethod
    def _users(session: Session, user_ids: Iterable[int]) -> list[UserModel]:
        ids = list(dict.fromkeys(user_ids))
        if not ids:
            return []
        return list(session.scalars(select(UserModel).where(UserModel.id.in_(ids)).order_by(UserModel.id)))

    @staticmethod
    def _next_sort_order(session: Session, task_id: int) -> int:
        max_order = session.scalar(
            select(func.max(SubtaskModel.sort_order)).where(SubtaskModel.task_id == task_id)
        )
        return (max_order or 0) + 1
