"""Error taxonomy for the Receipts Dashboard.

Every error raised by the services derives from :class:`DashboardError` and carries a message
that can be shown to the user as-is. The API layer maps each class to an HTTP status code.
"""


class DashboardError(Exception):
    """Base class for all domain errors."""

    status_code = 500

    def __init__(self, message: str) -> None:
        """Store a human-readable message."""
        super().__init__(message)
        self.message = message


class ValidationError(DashboardError):
    """Bad input shape or range."""

    status_code = 400


class InvalidArgument(ValidationError):
    """An argument is outside its permitted range."""


class NotFoundError(DashboardError):
    """A referenced record does not exist."""

    status_code = 404


class PermissionDenied(DashboardError):
    """The caller is not allowed to perform the operation."""

    status_code = 403


class InvalidStateTransition(DashboardError):
    """Attempted mutation of a transaction that is no longer pending."""

    status_code = 409


class StorageError(DashboardError):
    """The blob store is unreachable or rejected the file."""

    status_code = 503


class PersistenceError(DashboardError):
    """The database rejected the write or could not be reached."""

    status_code = 503


class ExtractionFailure(DashboardError):
    """The image-understanding call failed. Never surfaced to users."""

    status_code = 502
