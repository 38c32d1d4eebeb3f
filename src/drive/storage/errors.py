"""Structured error taxonomy for file store operations."""

import uuid
from datetime import UTC, datetime

from drive.storage.schemas import ErrorResponse


class StoreError(Exception):
    """Base class for every failure a FileStore operation can report.

    Each instance is stamped with its own timestamp and request id when it
    is raised, so two failures of the same call never share an identifier.

    Attributes:
        message: Human-readable error description.
        debug: Lower-level diagnostic detail, not meant for end users.
        timestamp: RFC 3339 UTC timestamp of the failure.
        request_id: Fresh opaque identifier for this failure.
    """

    kind = "store_error"
    status_code = 500

    def __init__(self, message: str, debug: str | None = None) -> None:
        """Initialize store error.

        Args:
            message: Error description.
            debug: Optional diagnostic detail.
        """
        super().__init__(message)
        self.message = message
        self.debug = debug
        self.timestamp = datetime.now(UTC).isoformat()
        self.request_id = str(uuid.uuid4())

    def to_response(self) -> ErrorResponse:
        """Render the error as a wire-level error response.

        Returns:
            ErrorResponse carrying message, timestamp, request id and debug.
        """
        return ErrorResponse(
            error=self.message,
            timestamp=self.timestamp,
            request_id=self.request_id,
            debug=self.debug,
        )


class PathViolation(StoreError):
    """Raised when a path is dangerous, escapes the root, or is hidden."""

    kind = "path_violation"
    status_code = 400


class InvalidInput(StoreError):
    """Raised when a non-path argument is out of range."""

    kind = "invalid_input"
    status_code = 400


class NotFound(StoreError):
    """Raised when a file or directory does not exist."""

    kind = "not_found"
    status_code = 404


class AlreadyExists(StoreError):
    """Raised when a create, rename, move or copy destination exists."""

    kind = "already_exists"
    status_code = 409


class InvalidTarget(StoreError):
    """Raised when a file was given where a directory is expected, or the reverse."""

    kind = "invalid_target"
    status_code = 400


class UnsupportedType(StoreError):
    """Raised when editing a file whose extension is not editable text."""

    kind = "unsupported_type"
    status_code = 415


class SizeLimitExceeded(StoreError):
    """Raised when edit content or an upload stream exceeds its cap."""

    kind = "size_limit_exceeded"
    status_code = 413


class IOFailure(StoreError):
    """Raised when the underlying storage fails (disk full, permissions)."""

    kind = "io_failure"
    status_code = 500

    @classmethod
    def from_os_error(cls, action: str, error: OSError) -> "IOFailure":
        """Wrap an OSError raised while performing an action.

        Args:
            action: Short description such as "write file".
            error: The original OSError.

        Returns:
            IOFailure with the OS error detail in debug.
        """
        return cls(f"Failed to {action}: {error.strerror or error}", debug=repr(error))
