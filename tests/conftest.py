"""Pytest configuration and fixtures for bulkgraph tests."""

import os
from typing import Callable, Dict, Generator, List, Optional, Set

import pytest

from bulkgraph.models import ConnectionDescriptor, RawFile


class RecordingStorage:
    """In-memory stand-in for Neo4jStorage that records every call.

    Nodes are kept as ``(label, properties)`` tuples. Relationship rows only
    count as created when both endpoint ids belong to an existing node, the
    way the ``MATCH ... CREATE`` query behaves against a real graph.
    """

    def __init__(self, existing_ids: Optional[Set[str]] = None):
        self.existing_ids: Set[str] = set(existing_ids or [])
        self.nodes: List[tuple] = []
        self.relationships: List[tuple] = []
        self.node_batches: List[tuple] = []
        self.relationship_batches: List[tuple] = []
        self.indexed_labels: List[str] = []
        self.connectivity_checks = 0
        self.close_calls = 0

        self.connect_error: Optional[Exception] = None
        self.index_error: Optional[Exception] = None
        self.write_error: Optional[Exception] = None
        self.fail_on_batch: Optional[int] = None

    @property
    def closed(self) -> bool:
        return self.close_calls > 0

    @property
    def write_calls(self) -> int:
        return len(self.node_batches) + len(self.relationship_batches)

    def verify_connectivity(self) -> None:
        self.connectivity_checks += 1
        if self.connect_error is not None:
            raise self.connect_error

    def ensure_id_index(self, label: str) -> None:
        if self.index_error is not None:
            raise self.index_error
        self.indexed_labels.append(label)

    def create_nodes(self, label: str, rows: List[Dict[str, str]]) -> int:
        self._maybe_fail()
        self.node_batches.append((label, len(rows)))
        for row in rows:
            self.nodes.append((label, dict(row)))
            if row.get("id"):
                self.existing_ids.add(row["id"])
        return len(rows)

    def create_relationships(self, rel_type: str, rows: List[Dict]) -> int:
        self._maybe_fail()
        self.relationship_batches.append((rel_type, len(rows)))
        created = 0
        for row in rows:
            if row["from_id"] in self.existing_ids and row["to_id"] in self.existing_ids:
                self.relationships.append((rel_type, row["from_id"], row["to_id"], dict(row["props"])))
                created += 1
        return created

    def close(self) -> None:
        self.close_calls += 1

    def _maybe_fail(self) -> None:
        if self.write_error is None:
            return
        if self.fail_on_batch is None or self.write_calls == self.fail_on_batch:
            raise self.write_error


@pytest.fixture
def storage() -> RecordingStorage:
    """Provide a fresh recording storage double."""
    return RecordingStorage()


@pytest.fixture
def storage_factory(storage: RecordingStorage) -> Callable:
    """Provide a storage factory that always hands out the same double.

    The connections it was called with are collected on ``factory.connections``.
    """

    def factory(connection: ConnectionDescriptor) -> RecordingStorage:
        factory.connections.append(connection)
        return storage

    factory.connections = []
    return factory


@pytest.fixture
def connection() -> ConnectionDescriptor:
    """Provide a complete connection descriptor."""
    return ConnectionDescriptor(uri="bolt://localhost:7687", username="neo4j", password="secret")


@pytest.fixture
def csv_file() -> Callable[..., RawFile]:
    """Build RawFile objects from CSV text."""

    def build(text: str, name: str = "data.csv") -> RawFile:
        return RawFile(name=name, content=text.encode("utf-8"))

    return build


@pytest.fixture
def node_csv(csv_file) -> RawFile:
    """Provide the two-person node file."""
    return csv_file("id,LABEL,name\n1,Person,Ann\n2,Person,Bo\n", name="people.csv")


@pytest.fixture
def relationship_csv(csv_file) -> RawFile:
    """Provide a one-row KNOWS relationship file."""
    return csv_file(
        "TYPE,FROM_LABEL,FROM_ID,TO_LABEL,TO_ID\nKNOWS,Person,1,Person,2\n",
        name="knows.csv",
    )


@pytest.fixture
def temp_db_path(tmp_path) -> Generator[str, None, None]:
    """Provide a temporary run log database path."""
    yield str(tmp_path / "runs.db")


@pytest.fixture
def neo4j_uri() -> str:
    """Return Neo4j URI from environment or default."""
    return os.getenv("NEO4J_URI", "bolt://localhost:7687")


@pytest.fixture
def neo4j_user() -> str:
    """Return Neo4j user from environment or default."""
    return os.getenv("NEO4J_USER", "neo4j")


@pytest.fixture
def neo4j_password() -> str:
    """Return Neo4j password from environment or default."""
    return os.getenv("NEO4J_PASSWORD", "password")
