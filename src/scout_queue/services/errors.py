"""Error taxonomy for the voting and funding services.

Every error carries a stable machine-readable ``reason`` alongside the
human-readable message so clients can branch without parsing text.
"""

from __future__ import annotations

# HTTP status codes
HTTP_BAD_REQUEST = 400
HTTP_NOT_FOUND = 404
HTTP_INTERNAL_SERVER_ERROR = 500
HTTP_SERVICE_UNAVAILABLE = 503

# Stable reason strings
REASON_BARCODE_REQUIRED = "barcode_required"
REASON_INVALID_VOTE_TYPE = "invalid_vote_type"
REASON_MISSING_FIELDS = "missing_fields"
REASON_IDENTITY_REQUIRED = "identity_required"
REASON_BARCODE_NOT_FOUND = "barcode_not_found"
REASON_CONCURRENCY_CONFLICT = "concurrency_conflict"
REASON_PERSISTENCE_FAILURE = "persistence_failure"


class VoteServiceError(RuntimeError):
    """Base exception raised by the voting services."""

    status_code: int = HTTP_INTERNAL_SERVER_ERROR
    retryable: bool = False

    def __init__(self, message: str, reason: str) -> None:
        super().__init__(message)
        self.message = message
        self.reason = reason

    def to_dict(self) -> dict[str, object]:
        """Return the JSON body for this error."""
        body: dict[str, object] = {"detail": self.message, "reason": self.reason}
        if self.retryable:
            body["retryable"] = True
        return body


class ValidationError(VoteServiceError):
    """Raised for malformed or missing caller input. Never retried."""

    status_code = HTTP_BAD_REQUEST


class NotFoundError(VoteServiceError):
    """Raised when an operation requires a vote record that does not exist."""

    status_code = HTTP_NOT_FOUND


class ConcurrencyConflict(VoteServiceError):
    """Raised when optimistic retries on a barcode's record are exhausted."""

    status_code = HTTP_SERVICE_UNAVAILABLE
    retryable = True

    def __init__(self, message: str = "Too many concurrent updates, please retry") -> None:
        super().__init__(message, REASON_CONCURRENCY_CONFLICT)


class PersistenceFailure(VoteServiceError):
    """Raised when the storage layer is unavailable or errors out."""

    status_code = HTTP_INTERNAL_SERVER_ERROR
    retryable = True

    def __init__(self, message: str = "Storage is temporarily unavailable") -> None:
        super().__init__(message, REASON_PERSISTENCE_FAILURE)
