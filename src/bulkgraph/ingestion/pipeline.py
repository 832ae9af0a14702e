"""Upload pipeline orchestrating parsing, grouping, batch writes and progress."""

import logging
from datetime import datetime
from enum import Enum
from typing import Callable, Iterator, List, Optional, Sequence

from neo4j.exceptions import DriverError, Neo4jError
from sqlalchemy.exc import SQLAlchemyError

from bulkgraph.exceptions import (
    BulkGraphError,
    InternalFailure,
    MissingConnectionCredentials,
    NoInputFiles,
    StoreConnectionFailure,
    StoreWriteFailure,
)
from bulkgraph.ingestion.batch_writer import BatchWriter
from bulkgraph.ingestion.progress import ProgressReporter
from bulkgraph.models import (
    TYPE_COLUMN,
    ConnectionDescriptor,
    EntityKind,
    ParsedTable,
    ProgressEvent,
    RawFile,
)
from bulkgraph.parsing.row_grouper import RowGrouper
from bulkgraph.storage.neo4j_client import Neo4jStorage
from bulkgraph.storage.models import utc_now
from bulkgraph.storage.run_log import RunLogDatabase
from bulkgraph.validation.csv_loader import CSVLoader

logger = logging.getLogger(__name__)

StorageFactory = Callable[[ConnectionDescriptor], Neo4jStorage]


class PipelineState(str, Enum):
    """Lifecycle of a single upload run."""

    IDLE = "idle"
    VALIDATING_INPUT = "validating_input"
    PARSING = "parsing"
    CONNECTING = "connecting"
    WRITING = "writing"
    FINALIZING = "finalizing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    ABORTED = "aborted"


TERMINAL_STATES = {PipelineState.SUCCEEDED, PipelineState.FAILED, PipelineState.ABORTED}


def describe_error(error: Exception) -> str:
    """Driver-facing message of an exception, without the Neo4j status code."""
    message = getattr(error, "message", None)
    return message if isinstance(message, str) and message else str(error)


class PipelineRun:
    """One upload run, driven by iterating its events.

    Work happens only while the consumer pulls events. Files are parsed and
    validated first, then written sequentially (file, group, batch) through
    one session. Closing the event iterator aborts the run. The store
    session is released on every exit path.
    """

    def __init__(
        self,
        kind: EntityKind,
        files: Sequence[RawFile],
        connection: Optional[ConnectionDescriptor],
        storage_factory: StorageFactory,
        loader: Optional[CSVLoader] = None,
        run_log: Optional[RunLogDatabase] = None,
    ) -> None:
        """Initialize the run.

        Args:
            kind: Node or relationship upload
            files: Uploaded files in processing order
            connection: Store credentials for this run
            storage_factory: Builds the run's storage from the credentials
            loader: CSV loader (a default CSVLoader if None)
            run_log: Optional run history database
        """
        self.kind = kind
        self.files = list(files or [])
        self.connection = connection
        self.storage_factory = storage_factory
        self.loader = loader or CSVLoader()
        self.run_log = run_log

        self.state = PipelineState.IDLE
        self.reporter = ProgressReporter(kind)
        self.storage = None
        self.processed_files = 0
        self.total_created = 0
        self.processed_rows = 0
        self.error: Optional[BulkGraphError] = None
        self.started_at: Optional[datetime] = None
        self._finished = False

    def events(self) -> Iterator[ProgressEvent]:
        """Run the pipeline, yielding progress events and one terminal event."""
        self.started_at = utc_now()
        try:
            yield from self._execute()
        except GeneratorExit:
            if self.state not in TERMINAL_STATES:
                logger.warning(
                    f"Event stream closed during {self.state.value}, aborting remaining work"
                )
                self._transition(PipelineState.ABORTED)
            self._finish()
            raise
        except BulkGraphError as e:
            yield self._fail(e)
        except Exception as e:
            logger.exception(f"Unexpected error during {self.kind.value} upload: {e}")
            yield self._fail(InternalFailure(str(e)))
        finally:
            self._release()

    def _execute(self) -> Iterator[ProgressEvent]:
        self._transition(PipelineState.VALIDATING_INPUT)
        if not self.files:
            raise NoInputFiles()
        if self.connection is None or not self.connection.is_complete:
            raise MissingConnectionCredentials()

        self._transition(PipelineState.PARSING)
        yield self.reporter.parsing_started()

        tables: List[ParsedTable] = []
        for index, raw_file in enumerate(self.files):
            yield self.reporter.parsing_file(index, len(self.files), raw_file.name)
            tables.append(self.loader.load(raw_file, self.kind))

        total_rows = sum(table.row_count for table in tables)
        yield self.reporter.parsing_finished(total_rows, len(tables))

        self._transition(PipelineState.CONNECTING)
        yield self.reporter.connecting()
        self._connect()

        writer = BatchWriter(self.storage, self.kind)
        if self.kind is EntityKind.RELATIONSHIP:
            yield self.reporter.indexing()
            writer.ensure_indexes(endpoint_labels(tables))

        self._transition(PipelineState.WRITING)
        yield self.reporter.writing_started()

        grouper = RowGrouper.for_kind(self.kind)
        for table in tables:
            logger.info(f"Writing {self.kind.value}s from {table.file_name}...")
            for key, rows in grouper.group(table).items():
                logger.info(f"Processing {len(rows)} {self.reporter.noun} with "
                            f"{self.kind.grouping_column.lower()}: {key}")
                try:
                    for result in writer.write_group(key, rows):
                        self.total_created += result.created
                        self.processed_rows += result.size
                        yield self.reporter.batch_written(self.processed_rows, total_rows)
                except (Neo4jError, DriverError) as e:
                    logger.error(f"Batch write for {key} in {table.file_name} failed: {e}")
                    raise StoreWriteFailure(self._write_failure_message(), [describe_error(e)]) from e
            self.processed_files += 1
            logger.info(f"Completed {table.file_name}: {table.row_count} rows processed")

        if grouper.dropped_count:
            logger.warning(
                f"Skipped {grouper.dropped_count} row(s) without {self.kind.grouping_column}"
            )

        self._transition(PipelineState.FINALIZING)
        yield self.reporter.finalizing()
        yield self.reporter.complete()

        self._transition(PipelineState.SUCCEEDED)
        self._finish()
        yield self.reporter.succeed(self.processed_files, self.total_created)

    def _connect(self) -> None:
        """Open the run's single driver and check the credentials."""
        try:
            self.storage = self.storage_factory(self.connection)
            self.storage.verify_connectivity()
        except (Neo4jError, DriverError, ValueError) as e:
            logger.error(f"Neo4j connection to {self.connection.uri} failed: {e}")
            raise StoreConnectionFailure("Failed to connect to Neo4j", [describe_error(e)]) from e

    def _write_failure_message(self) -> str:
        if self.kind is EntityKind.NODE:
            return "Failed to insert data into Neo4j"
        return "Failed to create relationships in Neo4j"

    def _fail(self, error: BulkGraphError):
        self.error = error
        self._transition(PipelineState.FAILED)
        logger.error(f"{self.kind.value.capitalize()} upload failed: {error}")
        self._finish()
        return self.reporter.fail(error)

    def _transition(self, state: PipelineState) -> None:
        logger.debug(f"{self.kind.value} run: {self.state.value} -> {state.value}")
        self.state = state

    def _finish(self) -> None:
        """Release the store and record the run, once."""
        if self._finished:
            return
        self._finished = True
        self._release()
        self._record()

    def _release(self) -> None:
        if self.storage is None:
            return
        storage, self.storage = self.storage, None
        try:
            storage.close()
        except (Neo4jError, DriverError) as e:
            logger.warning(f"Error closing Neo4j connection: {e}")

    def _record(self) -> None:
        if self.run_log is None:
            return
        duration_ms = None
        if self.started_at is not None:
            duration_ms = int((utc_now() - self.started_at).total_seconds() * 1000)
        try:
            self.run_log.log_run(
                kind=self.kind.value,
                status=self.state.value,
                file_names=[f.name for f in self.files],
                processed_files=self.processed_files,
                total_created=self.total_created,
                error_message=self.error.message if self.error else None,
                duration_ms=duration_ms,
                started_at=self.started_at,
            )
        except SQLAlchemyError as e:
            logger.warning(f"Could not record {self.kind.value} run in run log: {e}")


def endpoint_labels(tables: Sequence[ParsedTable]) -> List[str]:
    """Distinct non-empty FROM_LABEL/TO_LABEL values, in first-seen order.

    Rows without a TYPE are never written, so their labels are ignored.
    """
    labels: List[str] = []
    for table in tables:
        for row in table.rows:
            if not row.get(TYPE_COLUMN):
                continue
            for column in ("FROM_LABEL", "TO_LABEL"):
                label = row.get(column)
                if label and label not in labels:
                    labels.append(label)
    return labels


class UploadPipeline:
    """Entry point for node and relationship uploads.

    Every call starts an independent run with its own driver and session.

    Example:
        >>> pipeline = UploadPipeline()
        >>> for event in pipeline.upload_nodes(files, connection):
        ...     print(event.to_json_line(), end="")
    """

    def __init__(
        self,
        storage_factory: Optional[StorageFactory] = None,
        run_log: Optional[RunLogDatabase] = None,
        database: Optional[str] = None,
    ) -> None:
        """Initialize the upload pipeline.

        Args:
            storage_factory: Builds storage for a run (Neo4jStorage by default)
            run_log: Optional run history database
            database: Neo4j database name used by the default storage factory
        """
        if storage_factory is None:
            def storage_factory(connection: ConnectionDescriptor) -> Neo4jStorage:
                return Neo4jStorage.from_connection(connection, database=database)

        self.storage_factory = storage_factory
        self.run_log = run_log
        self.loader = CSVLoader()

    def start_run(
        self,
        kind: EntityKind,
        files: Sequence[RawFile],
        connection: Optional[ConnectionDescriptor],
    ) -> PipelineRun:
        """Create a run without starting it; iterate ``run.events()`` to drive it."""
        return PipelineRun(
            kind=kind,
            files=files,
            connection=connection,
            storage_factory=self.storage_factory,
            loader=self.loader,
            run_log=self.run_log,
        )

    def upload_nodes(
        self, files: Sequence[RawFile], connection: Optional[ConnectionDescriptor]
    ) -> Iterator[ProgressEvent]:
        """Stream the events of a node upload run."""
        return self.start_run(EntityKind.NODE, files, connection).events()

    def upload_relationships(
        self, files: Sequence[RawFile], connection: Optional[ConnectionDescriptor]
    ) -> Iterator[ProgressEvent]:
        """Stream the events of a relationship upload run."""
        return self.start_run(EntityKind.RELATIONSHIP, files, connection).events()
