from __future__ import annotations

from datetime import datetime

import pytest

from doneo.domain.entities import Attachment, Project, Task
from doneo.domain.enums import AttachmentType
from doneo.domain.errors import AttachmentLoadFailedError, RecordingDeviceUnavailableError
from doneo.domain.media import GENERAL_LABEL, group_by_task, partition_by_type
from doneo.services.media import (
    VOICE_NOTE_NOTICE,
    CapturedMedia,
    RecordingResult,
    collect_items,
    to_attachment_item,
    voice_note_notice,
)

UPLOADED = datetime(2026, 3, 2, 9, 0)


def _attachment(attachment_id: int, task_id: int | None, kind=AttachmentType.IMAGE) -> Attachment:
    return Attachment(
        id=attachment_id,
        type=kind,
        file_name=f"file{attachment_id}",
        file_size=10,
        uploaded_by=None,
        uploaded_at=UPLOADED,
        linked_task_id=task_id,
    )


def test_group_by_task_keeps_first_appearance_order() -> None:
    attachments = [_attachment(1, 1), _attachment(2, 1), _attachment(3, None), _attachment(4, 2)]
    project = Project(id=1, name="P", tasks=(Task(id=1, project_id=1, title="Tiles"),))

    groups = group_by_task(attachments, project)

    assert [g.task_id for g in groups] == [1, None, 2]
    assert [[a.id for a in g.attachments] for g in groups] == [[1, 2], [3], [4]]
    assert [g.label for g in groups] == ["Tiles", GENERAL_LABEL, GENERAL_LABEL]


def test_partition_by_type_covers_every_type() -> None:
    attachments = [
        _attachment(1, None),
        _attachment(2, None, AttachmentType.DOCUMENT),
        _attachment(3, None),
    ]

    partitions = partition_by_type(attachments)

    assert set(partitions) == set(AttachmentType)
    assert [a.id for a in partitions[AttachmentType.IMAGE]] == [1, 3]
    assert [a.id for a in partitions[AttachmentType.DOCUMENT]] == [2]
    assert partitions[AttachmentType.CONTACT] == []


def test_captured_image_uses_payload_size() -> None:
    item = to_attachment_item(CapturedMedia(type=AttachmentType.IMAGE, file_name="a.jpg", data=b"12345"))

    assert item.file_size == 5
    assert item.image_data == b"12345"


def test_collect_items_reports_failed_loads() -> None:
    captured = [
        CapturedMedia(type=AttachmentType.DOCUMENT, file_name="plan.pdf", file_size=2048),
        CapturedMedia(type=AttachmentType.IMAGE, file_name="broken.jpg"),
    ]

    items, failures = collect_items(captured)

    assert [i.file_name for i in items] == ["plan.pdf"]
    assert items[0].image_data is None
    assert len(failures) == 1
    assert failures[0].file_name == "broken.jpg"


def test_negative_size_fails_to_load() -> None:
    with pytest.raises(AttachmentLoadFailedError):
        to_attachment_item(CapturedMedia(type=AttachmentType.VIDEO, file_name="v.mov", file_size=-1))


def test_voice_note_requires_audio() -> None:
    assert voice_note_notice(RecordingResult(data=b"\x00\x01", duration_seconds=2.5)) == VOICE_NOTE_NOTICE
    with pytest.raises(RecordingDeviceUnavailableError):
        voice_note_notice(None)
    with pytest.raises(RecordingDeviceUnavailableError):
        voice_note_notice(RecordingResult(data=b""))
