"""
Custom Exceptions.

Application-specific exception classes for consistent error handling.

Entity-level errors (NotFoundError, DuplicateNameError, ValidationError,
AuthenticationError) are raised to the immediate caller. Systemic errors
(CorruptDataWarning, DrainFailure, StorageError) are recovered
locally and surfaced as status notifications; the in-memory store stays usable.
"""


class ApplicationError(Exception):
    """Base exception for all application errors."""

    def __init__(self, message: str, code: str = "SYS_INTERNAL_ERROR") -> None:
        self.message = message
        self.code = code
        super().__init__(self.message)


class NotFoundError(ApplicationError):
    """Raised when an operation references a note, tag or attachment that does not exist."""

    def __init__(self, message: str = "Resource not found") -> None:
        super().__init__(message, code="RES_NOT_FOUND")


class DuplicateNameError(ApplicationError):
    """Raised when a tag name collides case-insensitively with an existing tag."""

    def __init__(self, message: str = "Name already exists") -> None:
        super().__init__(message, code="RES_DUPLICATE_NAME")


class ValidationError(ApplicationError):
    """Raised when validation fails."""

    def __init__(self, message: str = "Validation failed", details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message, code="VAL_VALIDATION_ERROR")


class AuthenticationError(ApplicationError):
    """Raised when a locked note is opened with the wrong password."""

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(message, code="AUTH_UNAUTHORIZED")


class CorruptDataWarning(ApplicationError):
    """The persisted snapshot could not be parsed. An empty snapshot was used instead."""

    def __init__(self, message: str = "Persisted data is corrupt", path: str | None = None) -> None:
        self.path = path
        super().__init__(message, code="DATA_CORRUPT")


class DrainFailure(ApplicationError):
    """A sync drain stopped at a failing operation. The queue is left intact."""

    def __init__(
        self,
        message: str = "Sync drain failed",
        operation_id: str | None = None,
        operation_type: str | None = None,
    ) -> None:
        self.operation_id = operation_id
        self.operation_type = operation_type
        super().__init__(message, code="SYNC_DRAIN_FAILED")


class StorageError(ApplicationError):
    """The storage medium could not read, write or remove the snapshot."""

    def __init__(
        self,
        message: str = "Storage unavailable",
        size: int | None = None,
        code: str = "STORAGE_UNAVAILABLE",
    ) -> None:
        self.size = size
        super().__init__(message, code=code)


class StorageQuotaExceeded(StorageError):
    """The storage medium rejected a snapshot write for lack of space."""

    def __init__(self, message: str = "Storage quota exceeded", size: int | None = None) -> None:
        super().__init__(message, size=size, code="STORAGE_QUOTA")


class ExternalServiceError(ApplicationError):
    """Raised when the remote replica rejects or cannot serve a request."""

    def __init__(self, message: str = "External service error") -> None:
        super().__init__(message, code="SYS_EXTERNAL_SERVICE_ERROR")
