from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

from .entities import Attachment, Project
from .enums import AttachmentType

GENERAL_LABEL = "General"


@dataclass(frozen=True)
class MediaGroup:
    task_id: int | None
    label: str
    attachments: tuple[Attachment, ...]


def partition_by_type(attachments: Sequence[Attachment]) -> dict[AttachmentType, list[Attachment]]:
    partitions: dict[AttachmentType, list[Attachment]] = {kind: [] for kind in AttachmentType}
    for attachment in attachments:
        partitions[attachment.type].append(attachment)
    return partitions


def group_by_task(
    attachments: Sequence[Attachment],
    project: Optional[Project] = None,
) -> list[MediaGroup]:
    """Group attachments by linked task, in order of first appearance.

    Unlinked attachments land in the ``None`` group labeled "General". When a
    project is given, task groups are labeled with the current task title.
    """
    buckets: dict[int | None, list[Attachment]] = {}
    for attachment in attachments:
        buckets.setdefault(attachment.linked_task_id, []).append(attachment)

    groups = []
    for task_id, items in buckets.items():
        groups.append(MediaGroup(task_id=task_id, label=_label(task_id, project), attachments=tuple(items)))
    return groups


def _label(task_id: int | None, project: Optional[Project]) -> str:
    if task_id is None:
        return GENERAL_LABEL
    task = project.find_task(task_id) if project is not None else None
    # A link to a task that is not in the project falls back to the general bucket label.
    return task.title if task is not None else GENERAL_LABEL
