"""Public API facade for uploads and connection checks."""

import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Sequence, Union

from neo4j.exceptions import DriverError, Neo4jError
from pydantic import ValidationError

from bulkgraph.exceptions import ConnectionValidationFailure, StoreConnectionFailure
from bulkgraph.ingestion.pipeline import StorageFactory, UploadPipeline, describe_error
from bulkgraph.models import (
    CheckConnectionRequest,
    ConnectionDescriptor,
    ProgressEvent,
    RawFile,
)
from bulkgraph.storage.neo4j_client import Neo4jStorage
from bulkgraph.storage.run_log import RunLogDatabase
from bulkgraph.validation.error_handler import validation_error_messages

logger = logging.getLogger(__name__)


@dataclass
class BulkGraphConfig:
    """Configuration for bulkgraph connections and services."""

    neo4j_uri: str = field(default_factory=lambda: os.getenv("NEO4J_URI", "bolt://localhost:7687"))
    neo4j_user: str = field(default_factory=lambda: os.getenv("NEO4J_USER", "neo4j"))
    neo4j_password: str = field(default_factory=lambda: os.getenv("NEO4J_PASSWORD", ""))
    neo4j_database: Optional[str] = field(
        default_factory=lambda: os.getenv("NEO4J_DATABASE") or None
    )
    run_log_path: str = field(default_factory=lambda: os.getenv("RUN_LOG_PATH", ""))
    host: str = field(default_factory=lambda: os.getenv("BULKGRAPH_HOST", "127.0.0.1"))
    port: int = field(default_factory=lambda: int(os.getenv("BULKGRAPH_PORT", "8000")))

    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> "BulkGraphConfig":
        """Create config from dictionary."""
        return cls(**{k: v for k, v in config.items() if k in cls.__dataclass_fields__})

    def connection(self) -> ConnectionDescriptor:
        """Connection descriptor built from the configured Neo4j settings."""
        return ConnectionDescriptor(
            uri=self.neo4j_uri, username=self.neo4j_user, password=self.neo4j_password
        )


class BulkGraphAPI:
    """Unified facade for CSV bulk uploads.

    Credentials are passed into every call; the facade holds no session
    state between calls.

    Example:
        >>> api = BulkGraphAPI()
        >>> files = [RawFile(name="people.csv", content=b"id,LABEL\\n1,Person\\n")]
        >>> for event in api.upload_nodes(files, api.config.connection()):
        ...     print(event.to_wire())
    """

    def __init__(
        self,
        config: Optional[Union[BulkGraphConfig, Dict[str, Any]]] = None,
        storage_factory: Optional[StorageFactory] = None,
    ):
        """Initialize the API.

        Args:
            config: Configuration object or dictionary. Uses environment variables if None.
            storage_factory: Optional storage builder (Neo4jStorage by default)
        """
        if config is None:
            self.config = BulkGraphConfig()
        elif isinstance(config, dict):
            self.config = BulkGraphConfig.from_dict(config)
        else:
            self.config = config

        if storage_factory is None:
            database = self.config.neo4j_database

            def storage_factory(connection: ConnectionDescriptor) -> Neo4jStorage:
                return Neo4jStorage.from_connection(connection, database=database)

        self.storage_factory = storage_factory
        self._run_log: Optional[RunLogDatabase] = None
        if self.config.run_log_path:
            self._run_log = RunLogDatabase(database_path=self.config.run_log_path)
            self._run_log.create_tables()
            logger.info(f"Recording upload runs in {self.config.run_log_path}")

        self.pipeline = UploadPipeline(storage_factory=self.storage_factory, run_log=self._run_log)

    @property
    def run_log(self) -> Optional[RunLogDatabase]:
        """Run history database, or None when run logging is disabled."""
        return self._run_log

    def upload_nodes(
        self, files: Sequence[RawFile], connection: Optional[ConnectionDescriptor]
    ) -> Iterator[ProgressEvent]:
        """Upload node CSV files, streaming progress events.

        Args:
            files: CSV files with a LABEL column
            connection: Target store credentials

        Returns:
            Iterator of progress events ending in one summary or failure
        """
        return self.pipeline.upload_nodes(files, connection)

    def upload_relationships(
        self, files: Sequence[RawFile], connection: Optional[ConnectionDescriptor]
    ) -> Iterator[ProgressEvent]:
        """Upload relationship CSV files, streaming progress events.

        Args:
            files: CSV files with TYPE, FROM_LABEL, FROM_ID, TO_LABEL, TO_ID columns
            connection: Target store credentials

        Returns:
            Iterator of progress events ending in one summary or failure
        """
        return self.pipeline.upload_relationships(files, connection)

    def check_connection(
        self, connection_url: Optional[str], username: Optional[str], password: Optional[str]
    ) -> Dict[str, Any]:
        """Validate connection parameters and test them against the store.

        Args:
            connection_url: neo4j/bolt URI
            username: Database username
            password: Database password

        Returns:
            ``{"data": {"isConnected": True}}`` on success

        Raises:
            ConnectionValidationFailure: Bad URL scheme or empty credential (400)
            StoreConnectionFailure: The store rejected the endpoint or credentials (401)
        """
        body = {"connectionUrl": connection_url, "username": username, "password": password}
        try:
            request = CheckConnectionRequest.model_validate(
                {k: v for k, v in body.items() if v is not None}
            )
        except ValidationError as e:
            raise ConnectionValidationFailure(validation_error_messages(e)) from e

        storage = None
        try:
            storage = self.storage_factory(request.to_descriptor())
            storage.verify_connectivity()
        except (Neo4jError, DriverError, ValueError) as e:
            logger.warning(f"Connection check for {request.connection_url} failed: {e}")
            raise StoreConnectionFailure("Connection failed", [describe_error(e)]) from e
        finally:
            if storage is not None:
                storage.close()

        logger.info(f"Connection check for {request.connection_url} succeeded")
        return {"data": {"isConnected": True}}

    def recent_runs(self, limit: int = 10) -> List[Dict]:
        """Most recent recorded runs, newest first (empty if run logging is off)."""
        if self._run_log is None:
            return []
        return self._run_log.recent_runs(limit=limit)
