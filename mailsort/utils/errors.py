"""
Custom exceptions for the mailsort classifier.

Messages on the extraction and storage errors are written for the person
looking at the queue: they end up verbatim on a failed work item.
"""

from typing import Any, Optional


class MailsortException(Exception):
    """Base exception for all mailsort-specific errors."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


# =============================================================================
# Extraction Exceptions
# =============================================================================


class ExtractionError(MailsortException):
    """Base exception for document-understanding failures."""

    retryable = False


class InvalidInputError(ExtractionError):
    """Content is empty, corrupt or of an unsupported type."""

    pass


class UnsupportedMimeTypeError(InvalidInputError):
    """Mime type is not on the extraction allow-list."""

    def __init__(self, mime_type: str, supported: list[str]) -> None:
        if not mime_type or not mime_type.strip():
            message = (
                "Unknown File Type: The file extension is missing or invalid. "
                "Please rename the file with .pdf or .jpg."
            )
        else:
            message = (
                f'Unsupported Format: The classifier cannot process "{mime_type}". '
                "Please convert to PDF, JPG, or PNG."
            )
        super().__init__(message, {"mime_type": mime_type, "supported": supported})


class UnauthorizedError(ExtractionError):
    """The extraction service rejected our credentials."""

    pass


class RateLimitedError(ExtractionError):
    """The extraction service is throttling requests (HTTP 429)."""

    retryable = True


class ServiceUnavailableError(ExtractionError):
    """The extraction service had an upstream outage (HTTP 5xx)."""

    retryable = True


class ExtractionTimeoutError(ExtractionError):
    """The extraction call did not answer in time."""

    retryable = True


# =============================================================================
# Storage Exceptions
# =============================================================================


class StorageError(MailsortException):
    """Base exception for storage source operations."""

    pass


class ContentReadError(StorageError):
    """Local file content could not be read."""

    def __init__(self, path: str, reason: str) -> None:
        """Initialize with the offending path."""
        message = f"Local file read failed for '{path}': {reason}. Check permissions."
        super().__init__(message, {"path": path})


class GoogleDriveError(StorageError):
    """Drive API call failed."""

    pass


class DriveAuthenticationError(GoogleDriveError):
    """Drive credentials are missing, expired or lack access."""

    pass


class DriveQuotaExceededError(GoogleDriveError):
    """Drive is throttling requests (HTTP 429)."""

    def __init__(self, retry_after: Optional[int] = None) -> None:
        wait = f" (retry after {retry_after}s)" if retry_after else ""
        super().__init__(f"Drive rate limit hit{wait}", {"retry_after": retry_after} if retry_after else {})


class DriveFileNotFoundError(GoogleDriveError):
    """The scan no longer exists in Drive or is not shared with us."""

    def __init__(self, file_id: str) -> None:
        super().__init__(f"Drive file {file_id} is missing or not shared", {"file_id": file_id})


# =============================================================================
# Queue Exceptions
# =============================================================================


class QueueError(MailsortException):
    """Base exception for queue store operations."""

    pass


class ItemNotFoundError(QueueError):
    """No work item with the given id."""

    def __init__(self, item_id: str) -> None:
        """Initialize with item ID."""
        super().__init__(f"Work item '{item_id}' not found", {"item_id": item_id})


class InvalidTransitionError(QueueError):
    """A status change that the item state machine does not allow."""

    def __init__(self, item_id: str, current: str, target: str) -> None:
        """Initialize with transition information."""
        message = f"Work item '{item_id}' cannot move from {current} to {target}"
        super().__init__(message, {"item_id": item_id, "current": current, "target": target})


# =============================================================================
# Configuration Exceptions
# =============================================================================


class ConfigurationError(MailsortException):
    """Settings are invalid."""

    pass


class MissingConfigurationError(ConfigurationError):
    """A required setting has no value."""

    def __init__(self, config_name: str) -> None:
        super().__init__(f"{config_name} is not set; add it to the environment or .env", {"config_name": config_name})


# =============================================================================
# Export Exceptions
# =============================================================================


class ExportError(MailsortException):
    """Base exception for export and archive operations."""

    pass
