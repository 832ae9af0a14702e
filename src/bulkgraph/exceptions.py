"""Exception hierarchy for bulk-load failures.

Every failure that can end an upload run is one of these classes. Each carries
a human-readable ``message`` plus an ordered list of ``details`` strings that
are surfaced verbatim to the caller.
"""

from typing import Any, Dict, List, Optional


class BulkGraphError(Exception):
    """Base exception for all bulkgraph errors.

    Attributes:
        message: Human-readable error description
        details: Ordered detail lines (missing columns, driver messages, ...)
        status_code: HTTP-equivalent status for request/response bindings
    """

    status_code = 500

    def __init__(self, message: str, details: Optional[List[str]] = None):
        """Initialize the base exception.

        Args:
            message: Error message describing what went wrong
            details: Optional ordered list of detail strings
        """
        super().__init__(message)
        self.message = message
        self.details = list(details or [])

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} ({'; '.join(self.details)})"
        return self.message

    def to_payload(self) -> Dict[str, Any]:
        """Return the ``{"message", "details"?}`` body used on the wire."""
        payload: Dict[str, Any] = {"message": self.message}
        if self.details:
            payload["details"] = list(self.details)
        return payload


class NoInputFiles(BulkGraphError):
    """Raised when an upload run is started without any files."""

    status_code = 400

    def __init__(self):
        super().__init__("No files provided")


class MissingConnectionCredentials(BulkGraphError):
    """Raised when the connection descriptor lacks a URI, user or password."""

    status_code = 400

    def __init__(self):
        super().__init__(
            "Neo4j connection information missing",
            ["Please ensure you are connected to Neo4j"],
        )


class MalformedCsv(BulkGraphError):
    """Raised when no header/rows can be recovered from a file."""

    status_code = 400

    def __init__(self, file_name: str, reason: str):
        self.file_name = file_name
        super().__init__(f"Failed to parse file: {file_name}", [reason])


class MissingHeaders(BulkGraphError):
    """Raised when a CSV file has no header columns."""

    status_code = 400

    def __init__(self, file_name: str):
        self.file_name = file_name
        super().__init__(
            f'File "{file_name}" has no headers',
            ["The CSV file must have a header row with column names."],
        )


class MissingRequiredColumn(BulkGraphError):
    """Raised when a file lacks one or more columns its entity kind requires.

    Attributes:
        file_name: Name of the offending file
        missing: Required column names absent from the header
        found: Header names that were present
    """

    status_code = 400

    def __init__(
        self,
        file_name: str,
        missing: List[str],
        found: List[str],
        message: str,
        details: List[str],
    ):
        self.file_name = file_name
        self.missing = list(missing)
        self.found = list(found)
        super().__init__(message, details)


class ConnectionValidationFailure(BulkGraphError):
    """Raised when connection parameters fail format validation."""

    status_code = 400

    def __init__(self, details: List[str]):
        super().__init__("Validation failed", details)


class StoreConnectionFailure(BulkGraphError):
    """Raised when the graph store rejects the endpoint or credentials."""

    status_code = 401


class StoreWriteFailure(BulkGraphError):
    """Raised when a batch write transaction fails."""


class InternalFailure(BulkGraphError):
    """Catch-all for unexpected exceptions inside a run."""

    def __init__(self, reason: str):
        super().__init__("Internal server error", [reason])
