"""Neo4j graph database client for bulk node and relationship creation."""

import logging
from typing import Any, Dict, Iterable, List, Optional

from neo4j import GraphDatabase

from bulkgraph.models import ConnectionDescriptor

logger = logging.getLogger(__name__)


def quote_identifier(name: str) -> str:
    """Quote a label or relationship type for safe use in Cypher.

    Args:
        name: Raw label/type text taken from a CSV cell

    Returns:
        Backtick-quoted identifier with embedded backticks doubled

    Examples:
        >>> quote_identifier('Person')
        '`Person`'
        >>> quote_identifier('Odd`Label')
        '`Odd``Label`'
    """
    return "`" + name.replace("`", "``") + "`"


class Neo4jStorage:
    """Owns one driver and one session against a Neo4j endpoint.

    A storage instance serves exactly one upload run: the session is opened
    once and reused for every batch, then released by ``close()``.
    """

    def __init__(self, uri: str, user: str, password: str, database: Optional[str] = None):
        """Initialize the Neo4j driver.

        Args:
            uri: Neo4j connection URI (e.g., bolt://localhost:7687)
            user: Database username
            password: Database password
            database: Optional database name (server default if None)
        """
        self.driver = GraphDatabase.driver(uri, auth=(user, password))
        self.database = database
        self._session = None

    @classmethod
    def from_connection(
        cls, connection: ConnectionDescriptor, database: Optional[str] = None
    ) -> "Neo4jStorage":
        """Create storage from a ConnectionDescriptor."""
        return cls(
            uri=connection.uri,
            user=connection.username,
            password=connection.password,
            database=database,
        )

    def verify_connectivity(self) -> None:
        """Check that the endpoint is reachable and accepts the credentials.

        Raises:
            neo4j.exceptions.ServiceUnavailable: Endpoint unreachable
            neo4j.exceptions.AuthError: Credentials rejected
        """
        self.driver.verify_connectivity()

    @property
    def session(self):
        """The run's session, opened on first use."""
        if self._session is None:
            if self.database:
                self._session = self.driver.session(database=self.database)
            else:
                self._session = self.driver.session()
        return self._session

    def ensure_id_index(self, label: str) -> None:
        """Create a range index on ``id`` for one label if it does not exist.

        The index only serves label-scoped lookups such as
        ``MATCH (n:Label {id: ...})``. The endpoint lookups in
        ``create_relationships`` carry no label, so they do not use it.

        Args:
            label: Node label whose ``id`` property is indexed
        """
        query = f"CREATE INDEX IF NOT EXISTS FOR (n:{quote_identifier(label)}) ON (n.id)"
        self.session.run(query).consume()

    def create_nodes(self, label: str, rows: List[Dict[str, str]]) -> int:
        """Create one node per row in a single write transaction.

        Each row map becomes the full property set of a new node. Nothing is
        matched or merged, so repeated loads duplicate nodes.

        Args:
            label: Label applied to every node in the batch
            rows: Property maps, one per node

        Returns:
            int: Number of nodes the server reports as created

        Example:
            >>> storage.create_nodes('Person', [{'id': '1', 'name': 'Ann'}])
            1
        """
        query = f"""
        UNWIND $batch AS row
        CREATE (n:{quote_identifier(label)})
        SET n = row
        RETURN count(n) AS created
        """
        return self.session.execute_write(self._run_counted, query, rows)

    def create_relationships(self, rel_type: str, rows: List[Dict[str, Any]]) -> int:
        """Create one relationship per row in a single write transaction.

        Endpoints are looked up by their ``id`` property alone, without a
        label. Rows whose endpoints are not found create nothing.

        Args:
            rel_type: Relationship type for every row in the batch
            rows: Dicts with keys ``from_id``, ``to_id`` and ``props``

        Returns:
            int: Number of relationships the server reports as created
        """
        query = f"""
        UNWIND $batch AS row
        MATCH (from {{id: row.from_id}})
        MATCH (to {{id: row.to_id}})
        CREATE (from)-[r:{quote_identifier(rel_type)}]->(to)
        SET r = row.props
        RETURN count(r) AS created
        """
        return self.session.execute_write(self._run_counted, query, rows)

    @staticmethod
    def _run_counted(tx, query: str, batch: Iterable[Dict[str, Any]]) -> int:
        result = tx.run(query, batch=list(batch))
        record = result.single()
        return record["created"] if record else 0

    def close(self) -> None:
        """Close the session (if opened) and the Neo4j driver connection."""
        try:
            if self._session is not None:
                self._session.close()
                self._session = None
        finally:
            self.driver.close()
