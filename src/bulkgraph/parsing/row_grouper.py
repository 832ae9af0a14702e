"""Partition parsed rows by label or relationship type."""

import logging
from typing import Dict, List

from bulkgraph.models import EntityKind, ParsedTable

logger = logging.getLogger(__name__)


class RowGrouper:
    """Groups rows of a ParsedTable by the value of one key column.

    Groups keep first-seen key order and, within a group, input row order.
    Rows whose key is empty or absent are dropped and only logged.
    """

    def __init__(self, key_column: str) -> None:
        """Initialize the grouper.

        Args:
            key_column: Column holding the grouping key (``LABEL`` or ``TYPE``)
        """
        self.key_column = key_column
        self.dropped_count = 0

    @classmethod
    def for_kind(cls, kind: EntityKind) -> "RowGrouper":
        """Create a grouper keyed on the grouping column of an entity kind."""
        return cls(kind.grouping_column)

    def group(self, table: ParsedTable) -> Dict[str, List[Dict[str, str]]]:
        """Group the rows of a table.

        Args:
            table: Parsed and validated table

        Returns:
            Insertion-ordered mapping of key value -> rows sharing it
        """
        groups: Dict[str, List[Dict[str, str]]] = {}
        dropped = 0

        for row in table.rows:
            key = row.get(self.key_column)
            if not key:
                dropped += 1
                logger.warning(
                    f"Row without {self.key_column} in {table.file_name}, skipping: {row}"
                )
                continue
            groups.setdefault(key, []).append(row)

        self.dropped_count += dropped
        logger.debug(
            f"Grouped {table.row_count - dropped} rows from {table.file_name} "
            f"into {len(groups)} {self.key_column} group(s)"
        )
        return groups
