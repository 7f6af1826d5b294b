"""
Fehler-Taxonomie des Task-Trackers.

Every error carries a stable machine-readable ``kind`` and the HTTP status the
boundary layer maps it to. Services raise these; ``main.py`` renders them as
``{"kind": ..., "detail": ...}``.
"""


class TaskTrackerError(Exception):
    kind = "error"
    status_code = 500

    def __init__(self, detail: str = ""):
        super().__init__(detail)
        self.detail = detail or self.kind

    def to_dict(self) -> dict:
        return {"kind": self.kind, "detail": self.detail}


class Unauthenticated(TaskTrackerError):
    kind = "unauthenticated"
    status_code = 401


class Forbidden(TaskTrackerError):
    kind = "forbidden"
    status_code = 403


class NotFound(TaskTrackerError):
    kind = "not_found"
    status_code = 404


class StoredFileMissing(NotFound):
    """Attachment metadata exists, but the blob behind it is gone."""
    kind = "stored_file_missing"


class ValidationError(TaskTrackerError):
    kind = "validation_error"
    status_code = 400


class PayloadSizeError(ValidationError):
    kind = "size_limit"
    status_code = 413


class Conflict(TaskTrackerError):
    kind = "conflict"
    status_code = 409


class StorageFailure(TaskTrackerError):
    kind = "storage_failure"
    status_code = 500
