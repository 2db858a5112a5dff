from __future__ import annotations

from typing import Optional, Protocol

from .entities import Subtask, Task, User
from .enums import Action


class Authorizer(Protocol):
    def can_perform(
        self,
        action: Action,
        user: User,
        task: Task,
        subtask: Optional[Subtask] = None,
    ) -> bool: ...


class TaskRoleAuthorizer:
    """Default task policy.

    Project membership is checked by the service. Members edit tasks they
    created, tasks assigned to them and unassigned tasks. Subtasks with
    assignees can only be toggled by those assignees; otherwise the task rule
    applies.
    """

    def can_perform(
        self,
        action: Action,
        user: User,
        task: Task,
        subtask: Optional[Subtask] = None,
    ) -> bool:
        if action == Action.TOGGLE_SUBTASK and subtask is not None and subtask.assignees:
            return user.id in subtask.assignee_ids
        return self._can_edit(user, task)

    @staticmethod
    def _can_edit(user: User, task: Task) -> bool:
        if task.is_unassigned:
            return True
        if task.created_by is not None and task.created_by.id == user.id:
            return True
        return user.id in task.assignee_ids
