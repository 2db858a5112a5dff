from __future__ import annotations

from datetime import date

import pytest

from doneo.domain.commands import (
    AcceptTask,
    AddAttachments,
    AddMember,
    AddSubtask,
    AttachmentItem,
    CreateProject,
    CreateTask,
    SendImageMessage,
    SendMessage,
    SendSystemMessage,
    SetMuted,
    SubtaskDraft,
    ToggleReaction,
    ToggleSubtaskStatus,
    ToggleTaskStatus,
)
from doneo.domain.entities import SubtaskCompleted, SubtaskReopened, SubtaskReference, TaskReference
from doneo.domain.enums import AttachmentType, TaskStatus
from doneo.domain.errors import (
    AttachmentLoadFailedError,
    InvalidReferenceError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from doneo.services.project_service import ProjectService


def _task(service, project, team, **overrides):
    fields = dict(
        project_id=project.id,
        actor_id=team.ana.id,
        title="Install cabinets",
        assignee_ids=(team.ben.id,),
        due_date=date(2026, 3, 10),
        subtasks=(SubtaskDraft("Measure"), SubtaskDraft("Drill"), SubtaskDraft("Mount")),
    )
    fields.update(overrides)
    return service.execute(CreateTask(**fields))


def test_create_project_dedupes_members_and_keeps_order(service, team) -> None:
    project = service.execute(
        CreateProject(name="  Office  ", member_ids=(team.cleo.id, team.ana.id, team.cleo.id))
    )

    assert project.name == "Office"
    assert [m.id for m in project.members] == [team.cleo.id, team.ana.id]


def test_create_project_requires_name(service, team) -> None:
    with pytest.raises(ValidationError):
        service.execute(CreateProject(name="   ", member_ids=(team.ana.id,)))


def test_add_member_appends_once(service, project, team) -> None:
    service.execute(AddMember(project_id=project.id, user_id=team.outsider.id))
    updated = service.execute(AddMember(project_id=project.id, user_id=team.outsider.id))

    assert [m.id for m in updated.members][-1] == team.outsider.id
    assert len(updated.members) == 4


def test_new_task_is_new_for_assignees_until_accepted(service, project, team) -> None:
    task = _task(service, project, team, assignee_ids=(team.ana.id, team.ben.id))

    assert task.is_new_for(team.ben.id)
    assert task.is_new_for(team.ana.id)
    assert not task.is_new_for(team.cleo.id)

    message = service.execute(AcceptTask(task_id=task.id, actor_id=team.ben.id, message="  On it  "))

    accepted = service.get_task(task.id)
    assert not accepted.is_new_for(team.ben.id)
    assert accepted.is_new_for(team.ana.id)
    assert message.content == "On it"
    assert message.referenced_task == TaskReference(task_id=task.id, title="Install cabinets")


def test_self_assigned_task_is_new_for_creator(service, project, team) -> None:
    task = _task(service, project, team, assignee_ids=(team.ana.id,))

    assert task.is_new_for(team.ana.id)

    service.execute(AcceptTask(task_id=task.id, actor_id=team.ana.id))

    assert not service.get_task(task.id).is_new_for(team.ana.id)


def test_accept_without_message_posts_nothing(service, project, team) -> None:
    task = _task(service, project, team)

    assert service.execute(AcceptTask(task_id=task.id, actor_id=team.ben.id)) is None
    assert service.execute(AcceptTask(task_id=task.id, actor_id=team.ben.id, message=" ")) is None
    assert service.get_project(project.id).messages == ()


@pytest.mark.parametrize("toggles", [1, 2, 5])
def test_subtask_toggles_post_one_status_message_each(service, project, team, clock, toggles) -> None:
    task = _task(service, project, team)
    subtask = task.subtasks[1]

    for _ in range(toggles):
        service.execute(ToggleSubtaskStatus(task_id=task.id, subtask_id=subtask.id, actor_id=team.ben.id))
        clock.advance(seconds=1)

    refreshed = service.get_project(project.id)
    assert refreshed.find_task(task.id).find_subtask(subtask.id).is_done is (toggles % 2 == 1)
    assert len(refreshed.messages) == toggles
    expected = [SubtaskCompleted, SubtaskReopened] * toggles
    assert [type(m.message_type) for m in refreshed.messages] == expected[:toggles]
    assert all(m.sender.id == team.ben.id for m in refreshed.messages)
    assert all(m.referenced_subtask.subtask_id == subtask.id for m in refreshed.messages)


def test_subtask_toggle_leaves_task_status_alone(service, project, team) -> None:
    task = _task(service, project, team)
    for subtask in task.subtasks:
        service.execute(ToggleSubtaskStatus(task_id=task.id, subtask_id=subtask.id, actor_id=team.ben.id))

    refreshed = service.get_task(task.id)
    assert refreshed.status == TaskStatus.PENDING
    assert refreshed.subtask_progress == (3, 3)


def test_subtask_toggle_is_guarded(service, project, team) -> None:
    task = _task(service, project, team)
    subtask = service.execute(
        AddSubtask(task_id=task.id, actor_id=team.ana.id, draft=SubtaskDraft("Seal", assignee_ids=(team.ben.id,)))
    )

    with pytest.raises(PermissionDeniedError):
        service.execute(ToggleSubtaskStatus(task_id=task.id, subtask_id=subtask.id, actor_id=team.cleo.id))
    with pytest.raises(PermissionDeniedError):
        service.execute(ToggleSubtaskStatus(task_id=task.id, subtask_id=subtask.id, actor_id=team.outsider.id))
    assert service.get_project(project.id).messages == ()


class _AllowAll:
    def can_perform(self, action, user, task, subtask=None) -> bool:
        return True


def test_custom_authorizer_is_consulted(repo, clock, project, team) -> None:
    service = ProjectService(repo, authorizer=_AllowAll(), clock=clock)
    task = _task(service, project, team)

    service.execute(ToggleTaskStatus(task_id=task.id, actor_id=team.cleo.id))

    assert service.get_task(task.id).is_done


def test_toggle_task_status_sets_completion_time(service, project, team, clock) -> None:
    task = _task(service, project, team)

    done = service.execute(ToggleTaskStatus(task_id=task.id, actor_id=team.ben.id))
    assert done.status == TaskStatus.DONE
    assert done.completed_at == clock.now

    reopened = service.execute(ToggleTaskStatus(task_id=task.id, actor_id=team.ben.id))
    assert reopened.status == TaskStatus.PENDING
    assert reopened.completed_at is None
    assert service.get_project(project.id).messages == ()


def test_toggle_unknown_subtask(service, project, team) -> None:
    task = _task(service, project, team)

    with pytest.raises(NotFoundError):
        service.execute(ToggleSubtaskStatus(task_id=task.id, subtask_id=9999, actor_id=team.ben.id))


def test_message_timestamps_increase_in_send_order(service, project, team) -> None:
    for text in ("one", "two", "three"):
        service.execute(SendMessage(project_id=project.id, sender_id=team.ana.id, content=text))

    messages = service.get_project(project.id).messages
    assert [m.content for m in messages] == ["one", "two", "three"]
    assert messages[0].timestamp < messages[1].timestamp < messages[2].timestamp


def test_send_message_validates_content_and_reference(service, project, team) -> None:
    other = service.execute(CreateProject(name="Elsewhere", member_ids=(team.outsider.id,)))
    foreign = service.execute(CreateTask(project_id=other.id, actor_id=team.outsider.id, title="Theirs"))

    with pytest.raises(ValidationError):
        service.execute(SendMessage(project_id=project.id, sender_id=team.ana.id, content="  "))
    with pytest.raises(InvalidReferenceError):
        service.execute(
            SendMessage(
                project_id=project.id,
                sender_id=team.ana.id,
                content="hi",
                reference=TaskReference.of(foreign),
            )
        )
    with pytest.raises(PermissionDeniedError):
        service.execute(SendMessage(project_id=project.id, sender_id=team.outsider.id, content="hi"))


def test_subtask_reference_and_quote(service, project, team) -> None:
    task = _task(service, project, team)
    first = service.execute(SendMessage(project_id=project.id, sender_id=team.ana.id, content="Ready?"))

    reply = service.execute(
        SendMessage(
            project_id=project.id,
            sender_id=team.ben.id,
            content="Measured",
            reference=SubtaskReference.of(task.subtasks[0]),
            quoted_message_id=first.id,
        )
    )

    assert reply.referenced_subtask.title == "Measure"
    assert reply.referenced_task is None
    assert reply.quoted_message.id == first.id
    loaded = service.get_project(project.id).find_message(reply.id)
    assert loaded.quoted_message.content == "Ready?"


def test_subtask_reference_must_name_its_parent_task(service, project, team) -> None:
    cabinets = _task(service, project, team)
    paint = _task(service, project, team, title="Paint", subtasks=())
    mislinked = SubtaskReference(subtask_id=cabinets.subtasks[0].id, task_id=paint.id, title="Measure")

    with pytest.raises(InvalidReferenceError):
        service.execute(
            SendMessage(project_id=project.id, sender_id=team.ana.id, content="hi", reference=mislinked)
        )
    assert service.get_project(project.id).messages == ()


def test_reactions_toggle(service, project, team) -> None:
    message = service.execute(SendMessage(project_id=project.id, sender_id=team.ana.id, content="Tiles arrived"))

    service.execute(ToggleReaction(message_id=message.id, user_id=team.ana.id, emoji="👍"))
    service.execute(ToggleReaction(message_id=message.id, user_id=team.ben.id, emoji="👍"))
    reacted = service.execute(ToggleReaction(message_id=message.id, user_id=team.ana.id, emoji="❤️"))

    assert {e: [r.user.id for r in rs] for e, rs in reacted.grouped_reactions.items()} == {
        "👍": [team.ana.id, team.ben.id],
        "❤️": [team.ana.id],
    }

    again = service.execute(ToggleReaction(message_id=message.id, user_id=team.ana.id, emoji="👍"))
    assert [r.user.id for r in again.grouped_reactions["👍"]] == [team.ben.id]


def test_system_and_image_messages(service, project, team) -> None:
    notice = service.execute(
        SendSystemMessage(project_id=project.id, sender_id=team.cleo.id, content="shared a contact: Pedro")
    )
    image = service.execute(
        SendImageMessage(project_id=project.id, sender_id=team.cleo.id, image_data=b"\xff\xd8jpeg")
    )

    assert notice.is_system
    assert image.attachment.type == AttachmentType.IMAGE
    assert image.attachment.file_size == 6
    assert image.attachment.message_id == image.id
    refreshed = service.get_project(project.id)
    assert [a.id for a in refreshed.attachments] == [image.attachment.id]

    with pytest.raises(AttachmentLoadFailedError):
        service.execute(SendImageMessage(project_id=project.id, sender_id=team.cleo.id, image_data=b""))


def test_add_attachments_share_link_and_caption(service, project, team, clock) -> None:
    task = _task(service, project, team)
    subtask = task.subtasks[2]
    items = (
        AttachmentItem(AttachmentType.IMAGE, "wall.jpg", 1200),
        AttachmentItem(AttachmentType.DOCUMENT, "specs.pdf", 4096),
    )

    added = service.execute(
        AddAttachments(
            project_id=project.id,
            uploader_id=team.ben.id,
            items=items,
            linked_subtask_id=subtask.id,
            caption=" Before mounting ",
        )
    )

    assert [a.file_name for a in added] == ["wall.jpg", "specs.pdf"]
    assert {a.linked_task_id for a in added} == {task.id}
    assert {a.linked_subtask_id for a in added} == {subtask.id}
    assert {a.caption for a in added} == {"Before mounting"}
    assert {a.uploaded_by.id for a in added} == {team.ben.id}
    assert {a.uploaded_at for a in added} == {clock.now}
    assert len(service.get_task(task.id).attachments) == 2


def test_add_attachments_rejects_mismatched_parent(service, project, team) -> None:
    first = _task(service, project, team)
    second = _task(service, project, team, title="Paint")

    with pytest.raises(InvalidReferenceError):
        service.execute(
            AddAttachments(
                project_id=project.id,
                uploader_id=team.ana.id,
                items=(AttachmentItem(AttachmentType.DOCUMENT, "a.pdf", 1),),
                linked_task_id=second.id,
                linked_subtask_id=first.subtasks[0].id,
            )
        )
    with pytest.raises(ValidationError):
        service.execute(
            AddAttachments(
                project_id=project.id,
                uploader_id=team.ana.id,
                items=(AttachmentItem(AttachmentType.DOCUMENT, "a.pdf", -5),),
            )
        )


def test_instruction_attachments_reach_subtasks(service, project, team) -> None:
    task = _task(service, project, team)
    subtask = task.subtasks[0]

    service.execute(
        AddAttachments(
            project_id=project.id,
            uploader_id=team.ana.id,
            items=(AttachmentItem(AttachmentType.IMAGE, "how-to.png", 10),),
            linked_subtask_id=subtask.id,
            is_instruction=True,
        )
    )

    refreshed = service.get_task(task.id)
    assert [a.file_name for a in refreshed.instruction_attachments] == ["how-to.png"]
    assert [a.file_name for a in refreshed.find_subtask(subtask.id).instruction_attachments] == ["how-to.png"]


def test_assignees_must_be_members(service, project, team) -> None:
    with pytest.raises(ValidationError):
        _task(service, project, team, assignee_ids=(team.outsider.id,))


def test_set_muted_and_audit_log(service, project, team) -> None:
    service.execute(SetMuted(project_id=project.id, muted=True))

    assert service.get_project(project.id).is_muted
    commands = [entry.command for entry in service.audit_log]
    assert isinstance(commands[-1], SetMuted)
    assert isinstance(commands[-2], CreateProject)

    with pytest.raises(NotFoundError):
        service.execute(SetMuted(project_id=999, muted=False))
    assert len(service.audit_log) == len(commands)


def test_unknown_command_is_rejected(service) -> None:
    with pytest.raises(TypeError):
        service.execute(object())
