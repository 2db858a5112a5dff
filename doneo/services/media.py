"""Turns payloads from platform pickers and recorders into catalog items.

Pickers and the microphone are outside this package; they hand over bytes
(or nothing, when loading failed) plus file metadata.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable

from doneo.domain.commands import AttachmentItem
from doneo.domain.enums import AttachmentType
from doneo.domain.errors import AttachmentLoadFailedError, RecordingDeviceUnavailableError

logger = logging.getLogger(__name__)

VOICE_NOTE_NOTICE = "sent a voice message"


@dataclass(frozen=True)
class CapturedMedia:
    type: AttachmentType
    file_name: str
    data: bytes | None = field(default=None, repr=False)
    file_size: int | None = None


@dataclass(frozen=True)
class RecordingResult:
    data: bytes | None = field(default=None, repr=False)
    duration_seconds: float = 0.0


def to_attachment_item(media: CapturedMedia) -> AttachmentItem:
    if media.data is None and media.file_size is None:
        raise AttachmentLoadFailedError(media.file_name)
    size = media.file_size if media.file_size is not None else len(media.data)
    if size < 0:
        raise AttachmentLoadFailedError(media.file_name, reason=f"invalid size {size}")
    image_data = media.data if media.type == AttachmentType.IMAGE else None
    return AttachmentItem(type=media.type, file_name=media.file_name, file_size=size, image_data=image_data)


def collect_items(
    captured: Iterable[CapturedMedia],
) -> tuple[list[AttachmentItem], list[AttachmentLoadFailedError]]:
    """Convert a batch of picks, keeping the ones that loaded."""
    items: list[AttachmentItem] = []
    failures: list[AttachmentLoadFailedError] = []
    for media in captured:
        try:
            items.append(to_attachment_item(media))
        except AttachmentLoadFailedError as exc:
            logger.warning("Dropping attachment: %s", exc)
            failures.append(exc)
    return items, failures


def document_notice(file_name: str) -> str:
    return f"shared a document: {file_name}"


def contact_notice(contact_name: str) -> str:
    return f"shared a contact: {contact_name}"


def voice_note_notice(recording: RecordingResult | None) -> str:
    if recording is None or not recording.data:
        raise RecordingDeviceUnavailableError("no audio was captured")
    return VOICE_NOTE_NOTICE
