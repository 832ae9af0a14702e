"""Slice grouped rows into fixed-size batches and write each in one transaction."""

import logging
from typing import Any, Dict, Iterable, Iterator, List, Optional

from neo4j.exceptions import DriverError, Neo4jError

from bulkgraph.models import (
    LABEL_COLUMN,
    RELATIONSHIP_COLUMNS,
    BatchResult,
    EntityKind,
)

logger = logging.getLogger(__name__)


def iter_batches(rows: List[Dict[str, str]], batch_size: int) -> Iterator[List[Dict[str, str]]]:
    """Yield consecutive slices of ``batch_size`` rows (the last may be shorter)."""
    if batch_size < 1:
        raise ValueError(f"batch_size must be positive, got {batch_size}")
    for i in range(0, len(rows), batch_size):
        yield rows[i:i + batch_size]


def node_properties(row: Dict[str, str]) -> Dict[str, str]:
    """Property map for a node row: every column except LABEL, verbatim."""
    return {key: value for key, value in row.items() if key != LABEL_COLUMN}


def relationship_payload(row: Dict[str, str]) -> Dict[str, Any]:
    """Endpoint ids plus property map for a relationship row.

    The five structural columns are excluded from the properties.
    """
    return {
        "from_id": row.get("FROM_ID"),
        "to_id": row.get("TO_ID"),
        "props": {
            key: value for key, value in row.items() if key not in RELATIONSHIP_COLUMNS
        },
    }


class BatchWriter:
    """Writes one group at a time through a storage backend.

    The storage object must provide ``create_nodes(label, rows)``,
    ``create_relationships(rel_type, rows)`` and ``ensure_id_index(label)``,
    as ``Neo4jStorage`` does.
    """

    def __init__(self, storage, kind: EntityKind, batch_size: Optional[int] = None) -> None:
        """Initialize the writer.

        Args:
            storage: Storage backend owning the run's session
            kind: Node or relationship upload
            batch_size: Rows per transaction (defaults to the kind's fixed size)
        """
        self.storage = storage
        self.kind = kind
        self.batch_size = batch_size or kind.batch_size
        self.indexes_ready = False

    def ensure_indexes(self, labels: Iterable[str]) -> List[str]:
        """Create ``id`` indexes for the given labels, ignoring failures.

        Index creation only speeds up endpoint lookups; a failure is logged
        and the run continues without it.

        Args:
            labels: Node labels referenced by FROM_LABEL/TO_LABEL

        Returns:
            Labels whose index was created or already present
        """
        indexed = []
        for label in labels:
            try:
                self.storage.ensure_id_index(label)
                indexed.append(label)
            except (Neo4jError, DriverError) as e:
                logger.warning(f"Index creation for :{label}(id) failed, continuing: {e}")
        self.indexes_ready = True
        logger.info(f"Index created/verified for id property on {len(indexed)} label(s)")
        return indexed

    def write_batch(self, key: str, batch: List[Dict[str, str]]) -> BatchResult:
        """Execute one write transaction for a batch.

        Args:
            key: Label (nodes) or relationship type
            batch: Rows of the batch, in input order

        Returns:
            BatchResult with the submitted size and the created count
        """
        if self.kind is EntityKind.NODE:
            created = self.storage.create_nodes(key, [node_properties(row) for row in batch])
        else:
            created = self.storage.create_relationships(
                key, [relationship_payload(row) for row in batch]
            )
        return BatchResult(key=key, size=len(batch), created=created)

    def write_group(self, key: str, rows: List[Dict[str, str]]) -> Iterator[BatchResult]:
        """Write a group batch by batch, yielding after every transaction.

        Store errors propagate unchanged; nothing is retried.

        Args:
            key: Label or relationship type shared by the rows
            rows: Rows of the group in input order

        Yields:
            BatchResult per batch, in slice order
        """
        done = 0
        for batch in iter_batches(rows, self.batch_size):
            result = self.write_batch(key, batch)
            done += result.size
            logger.debug(
                f"Processed {done} / {len(rows)} rows for "
                f"{self.kind.grouping_column.lower()} \"{key}\""
            )
            yield result
