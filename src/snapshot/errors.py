"""
Error definitions for the snapshot capture pipeline.

Error codes follow the outcome of a capture request:
- DUPLICATE_SNAPSHOT: same-day snapshot exists, request aborted up front
- NAVIGATION_FAILED: page load timed out or raised (attempt-level, retried)
- EXTRACTION_FAILED: parsing/extraction raised (attempt-level, retried)
- RETRIES_EXHAUSTED: every attempt failed (terminal)
- PERSISTENCE_FAILED: storage write failed after a successful capture (terminal)
"""

from enum import Enum
from typing import Any


class SnapshotErrorCode(str, Enum):
    """Error codes for capture outcomes."""

    DUPLICATE_SNAPSHOT = "DUPLICATE_SNAPSHOT"
    """A snapshot for this URL already exists for the current UTC day.
    Not retried; the next scheduled run will capture again."""

    NAVIGATION_FAILED = "NAVIGATION_FAILED"
    """Navigation exceeded its timeout or raised during load.
    Consumed by the retry loop."""

    EXTRACTION_FAILED = "EXTRACTION_FAILED"
    """Parsing or extraction raised. "No article found" is not this error;
    that case is handled by the raw-body fallback."""

    RETRIES_EXHAUSTED = "RETRIES_EXHAUSTED"
    """All capture attempts failed."""

    PERSISTENCE_FAILED = "PERSISTENCE_FAILED"
    """Snapshot insert or source update failed. The rendered content is lost."""


class SnapshotError(Exception):
    """
    Base exception for capture pipeline errors.

    Provides a structured representation for logs and CLI output.
    """

    def __init__(
        self,
        code: SnapshotErrorCode,
        message: str,
        *,
        details: dict[str, Any] | None = None,
    ):
        """
        Initialize snapshot error.

        Args:
            code: Error code from SnapshotErrorCode enum.
            message: Human-readable error message.
            details: Optional additional error details.
        """
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert error to a serializable dict."""
        result: dict[str, Any] = {
            "ok": False,
            "error_code": self.code.value,
            "error": self.message,
        }

        if self.details:
            result["details"] = self.details

        return result


class DuplicateSnapshotError(SnapshotError):
    """Raised when a same-day snapshot already exists for the URL."""

    def __init__(self, url: str, *, capture_date: str | None = None):
        details: dict[str, Any] = {"url": url}
        if capture_date:
            details["capture_date"] = capture_date

        super().__init__(
            SnapshotErrorCode.DUPLICATE_SNAPSHOT,
            f"A snapshot has already been taken today for {url}",
            details=details,
        )
        self.url = url


class NavigationError(SnapshotError):
    """Raised when page navigation or document retrieval fails."""

    def __init__(self, url: str, message: str, *, timeout_ms: int | None = None):
        details: dict[str, Any] = {"url": url}
        if timeout_ms is not None:
            details["timeout_ms"] = timeout_ms

        super().__init__(
            SnapshotErrorCode.NAVIGATION_FAILED,
            f"Navigation failed for {url}: {message}",
            details=details,
        )
        self.url = url


class ExtractionError(SnapshotError):
    """Raised when content extraction raises on a loaded document."""

    def __init__(self, url: str, message: str):
        super().__init__(
            SnapshotErrorCode.EXTRACTION_FAILED,
            f"Extraction failed for {url}: {message}",
            details={"url": url},
        )
        self.url = url


class RetriesExhaustedError(SnapshotError):
    """Raised when every capture attempt failed."""

    def __init__(
        self,
        url: str,
        attempts: int,
        *,
        failures: list[dict[str, Any]] | None = None,
        reason: str = "max_attempts",
    ):
        super().__init__(
            SnapshotErrorCode.RETRIES_EXHAUSTED,
            f"Failed to capture content for {url} after {attempts} attempts",
            details={
                "url": url,
                "attempts": attempts,
                "reason": reason,
                "failures": failures or [],
            },
        )
        self.url = url
        self.attempts = attempts


class PersistenceError(SnapshotError):
    """Raised when a storage write fails after a successful capture."""

    def __init__(
        self,
        url: str,
        operation: str,
        message: str,
        *,
        snapshot_id: str | None = None,
    ):
        details: dict[str, Any] = {"url": url, "operation": operation}
        if snapshot_id:
            details["snapshot_id"] = snapshot_id

        super().__init__(
            SnapshotErrorCode.PERSISTENCE_FAILED,
            f"{operation} failed for {url}: {message}",
            details=details,
        )
        self.url = url
        self.operation = operation
