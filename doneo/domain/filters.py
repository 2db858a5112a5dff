from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Iterable, Optional

from .entities import Task


@dataclass(frozen=True)
class TaskFilters:
    filter_key: str = "all"
    search: str | None = None
    user_id: int | None = None
    today: Optional[date] = None


def _matches(task: Task, filters: TaskFilters) -> bool:
    key = filters.filter_key
    if key == "pending" and task.is_done:
        return False
    if key == "done" and not task.is_done:
        return False
    if key == "overdue" and not task.is_overdue(filters.today):
        return False
    if key == "new":
        if filters.user_id is None or not task.is_new_for(filters.user_id):
            return False
    if key == "mine":
        if filters.user_id is None or filters.user_id not in task.assignee_ids:
            return False

    if filters.search:
        needle = filters.search.lower()
        haystack = f"{task.title} {task.notes or ''}".lower()
        if needle not in haystack:
            return False
    return True


def filter_tasks(tasks: Iterable[Task], filters: TaskFilters) -> list[Task]:
    return [task for task in tasks if _matches(task, filters)]
