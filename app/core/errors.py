"""
Domain errors for the tender service layer.

They carry a stable, client-safe message and do not depend on FastAPI;
app.main maps each class to an HTTP status.
"""


class DomainError(Exception):
    """Base for business errors."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ValidationError(DomainError):
    """Missing or malformed input."""


class InvalidStatus(ValidationError):
    """Requested status is not one of pending/approved/rejected."""


class LastDocumentError(ValidationError):
    """Removing the document would leave the tender without documents."""


class DuplicateTenderId(DomainError):
    """Another tender already uses this tenderId."""

    def __init__(self, tender_id: str) -> None:
        self.tender_id = tender_id
        super().__init__(f"Tender with id '{tender_id}' already exists")


class Forbidden(DomainError):
    """The principal is not allowed to perform the action."""


class NotFound(DomainError):
    """Tender or document does not exist."""


class StorageFailure(DomainError):
    """A single call to object storage failed."""

    def __init__(self, message: str, storage_ref: str | None = None) -> None:
        self.storage_ref = storage_ref
        super().__init__(message)


class UploadFailure(DomainError):
    """
    A document batch could not be stored.

    Compensation has already run when this is raised; `orphaned_refs` lists
    references whose compensating removal failed as well.
    """

    def __init__(self, message: str, cause: Exception | None = None, orphaned_refs: list[str] | None = None) -> None:
        self.cause = cause
        self.orphaned_refs = orphaned_refs or []
        super().__init__(message)


class StorageCleanupWarning:
    """Non-fatal outcome of a failed removal during release of documents."""

    def __init__(self, storage_ref: str, cause: Exception) -> None:
        self.storage_ref = storage_ref
        self.cause = cause

    def __repr__(self) -> str:
        return f"StorageCleanupWarning({self.storage_ref!r}, {self.cause!r})"


class StorageCleanupFailure(DomainError):
    """Raised instead of a warning when cleanup is configured as blocking."""

    def __init__(self, message: str, warnings: list[StorageCleanupWarning]) -> None:
        self.warnings = warnings
        super().__init__(message)
