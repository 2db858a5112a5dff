"""Read-side helpers for the chat feed.

Rows are computed in one pass over the ordered message list so the UI can
decide, per bubble, whether to draw the sender name, the task/subtask context
header and the bottom padding of a sender group.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

from .entities import Message, Task


@dataclass(frozen=True)
class MessageRow:
    message: Message
    is_first_in_group: bool
    is_last_in_group: bool
    show_task_context: bool

    @property
    def show_sender_name(self) -> bool:
        return self.is_first_in_group


def _breaks_group(message: Message, neighbour: Optional[Message]) -> bool:
    return (
        neighbour is None
        or neighbour.sender.id != message.sender.id
        or not neighbour.is_regular
        or not message.is_regular
    )


def build_message_rows(messages: Sequence[Message]) -> list[MessageRow]:
    rows: list[MessageRow] = []
    for index, message in enumerate(messages):
        previous = messages[index - 1] if index > 0 else None
        following = messages[index + 1] if index < len(messages) - 1 else None

        first = _breaks_group(message, previous)
        previous_key = previous.reference_key if previous is not None else None
        rows.append(
            MessageRow(
                message=message,
                is_first_in_group=first,
                is_last_in_group=_breaks_group(message, following),
                show_task_context=message.reference_key != previous_key or first,
            )
        )
    return rows


def reaction_counts(message: Message) -> list[tuple[str, int]]:
    """Emoji and count pairs, sorted by emoji for a stable chip order."""
    grouped = message.grouped_reactions
    return [(emoji, len(grouped[emoji])) for emoji in sorted(grouped)]


def task_messages(messages: Sequence[Message], task: Task) -> list[Message]:
    """Messages about ``task`` itself or any of its subtasks, oldest first."""
    subtask_ids = {subtask.id for subtask in task.subtasks}
    related = []
    for message in messages:
        task_ref = message.referenced_task
        subtask_ref = message.referenced_subtask
        if task_ref is not None and task_ref.task_id == task.id:
            related.append(message)
        elif subtask_ref is not None and subtask_ref.subtask_id in subtask_ids:
            related.append(message)
    return sorted(related, key=lambda m: m.timestamp)


def assignment_messages(messages: Sequence[Message], task_id: int) -> list[Message]:
    return [
        m for m in messages
        if m.referenced_task is not None and m.referenced_task.task_id == task_id
    ]
