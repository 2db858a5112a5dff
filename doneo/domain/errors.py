from __future__ import annotations


class DoneoError(Exception):
    """Base class for failures the UI can report to the user."""


class NotFoundError(DoneoError):
    def __init__(self, entity: str, entity_id: object) -> None:
        super().__init__(f"{entity} {entity_id} not found")
        self.entity = entity
        self.entity_id = entity_id


class ValidationError(DoneoError):
    pass


class InvalidReferenceError(DoneoError):
    pass


class PermissionDeniedError(DoneoError):
    def __init__(self, action: str, user_id: int) -> None:
        super().__init__(f"user {user_id} may not {action}")
        self.action = action
        self.user_id = user_id


class AttachmentLoadFailedError(DoneoError):
    def __init__(self, file_name: str, reason: str = "no data") -> None:
        super().__init__(f"could not load {file_name}: {reason}")
        self.file_name = file_name


class RecordingDeviceUnavailableError(DoneoError):
    pass
