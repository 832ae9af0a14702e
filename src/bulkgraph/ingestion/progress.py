"""Monotonic progress accounting and event construction for upload runs."""

import logging
from typing import Optional

from bulkgraph.exceptions import BulkGraphError
from bulkgraph.models import (
    EntityKind,
    ProgressUpdate,
    UploadFailure,
    UploadSummary,
)

logger = logging.getLogger(__name__)

PARSE_START = 5
PARSE_END = 15
CONNECT = 20
NODE_WRITE_START = 25
INDEX_STEP = 25
RELATIONSHIP_WRITE_START = 30
FINALIZE = 95
COMPLETE = 100


class ProgressReporter:
    """Builds the event sequence of a single run.

    Percentages never decrease: a request for a lower value re-emits the
    current one. Exactly one terminal event (failure or summary) may be built.

    Phase budget:
        parsing 5-15, connecting 20, index step 25 (relationships only),
        writing 25/30-95 in proportion to rows processed, finalize 95,
        complete 100.
    """

    def __init__(self, kind: EntityKind) -> None:
        self.kind = kind
        self.percent = 0
        self.terminal: Optional[object] = None
        self.noun = "nodes" if kind is EntityKind.NODE else "relationships"
        self.write_start = (
            NODE_WRITE_START if kind is EntityKind.NODE else RELATIONSHIP_WRITE_START
        )

    def progress(self, percent: float, message: str) -> ProgressUpdate:
        """Emit a progress event, clamped to [current, 100].

        Raises:
            RuntimeError: If the run already produced its terminal event
        """
        self._check_open()
        self.percent = max(self.percent, min(COMPLETE, int(round(percent))))
        logger.debug(f"{self.percent}%: {message}")
        return ProgressUpdate(percent=self.percent, message=message)

    def parsing_started(self) -> ProgressUpdate:
        return self.progress(PARSE_START, "Parsing CSV files...")

    def parsing_file(self, index: int, file_count: int, file_name: str) -> ProgressUpdate:
        span = PARSE_END - PARSE_START
        return self.progress(PARSE_START + (index / file_count) * span, f"Parsing {file_name}...")

    def parsing_finished(self, total_rows: int, file_count: int) -> ProgressUpdate:
        return self.progress(PARSE_END, f"Parsed {total_rows} rows from {file_count} file(s)")

    def connecting(self) -> ProgressUpdate:
        return self.progress(CONNECT, "Connecting to Neo4j...")

    def indexing(self) -> ProgressUpdate:
        return self.progress(INDEX_STEP, "Checking/creating indexes...")

    def writing_started(self) -> ProgressUpdate:
        if self.kind is EntityKind.NODE:
            return self.progress(self.write_start, "Starting data insertion...")
        return self.progress(self.write_start, "Starting relationship creation...")

    def batch_written(self, processed_rows: int, total_rows: int) -> ProgressUpdate:
        """Progress after a batch: linear in rows processed across all files."""
        span = FINALIZE - self.write_start
        fraction = processed_rows / total_rows if total_rows else 1.0
        verb = "Inserted" if self.kind is EntityKind.NODE else "Created"
        return self.progress(
            self.write_start + min(fraction, 1.0) * span,
            f"{verb} {processed_rows}/{total_rows} {self.noun}...",
        )

    def finalizing(self) -> ProgressUpdate:
        return self.progress(FINALIZE, "Finalizing...")

    def complete(self) -> ProgressUpdate:
        return self.progress(COMPLETE, "Upload complete!")

    def succeed(self, processed_files: int, total_created: int) -> UploadSummary:
        """Build the terminal summary event."""
        self._check_open()
        verb = "inserted" if self.kind is EntityKind.NODE else "created"
        summary = UploadSummary(
            processed_files=processed_files,
            total_rows=total_created,
            message=(
                f"Successfully {verb} {total_created} {self.noun} "
                f"from {processed_files} file(s)"
            ),
        )
        self.terminal = summary
        return summary

    def fail(self, error: BulkGraphError) -> UploadFailure:
        """Build the terminal error event from a pipeline error."""
        self._check_open()
        failure = UploadFailure(message=error.message, details=list(error.details))
        self.terminal = failure
        return failure

    @property
    def finished(self) -> bool:
        return self.terminal is not None

    def _check_open(self) -> None:
        if self.terminal is not None:
            raise RuntimeError("Run already produced its terminal event")
