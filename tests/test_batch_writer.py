"""Tests for batch slicing and per-batch writes."""

import pytest
from neo4j.exceptions import ServiceUnavailable, SessionExpired

from bulkgraph.ingestion.batch_writer import (
    BatchWriter,
    iter_batches,
    node_properties,
    relationship_payload,
)
from bulkgraph.models import EntityKind


def test_iter_batches_slices_in_order():
    rows = [{"id": str(i)} for i in range(7)]

    batches = list(iter_batches(rows, 3))

    assert [len(b) for b in batches] == [3, 3, 1]
    assert [row["id"] for row in batches[2]] == ["6"]


def test_iter_batches_rejects_non_positive_size():
    with pytest.raises(ValueError):
        list(iter_batches([{"id": "1"}], 0))


def test_node_properties_excludes_label():
    assert node_properties({"id": "1", "LABEL": "Person", "name": "Ann"}) == {
        "id": "1",
        "name": "Ann",
    }


def test_relationship_payload_excludes_structural_columns():
    row = {
        "TYPE": "KNOWS",
        "FROM_LABEL": "Person",
        "FROM_ID": "1",
        "TO_LABEL": "Person",
        "TO_ID": "2",
        "since": "2020",
    }

    assert relationship_payload(row) == {"from_id": "1", "to_id": "2", "props": {"since": "2020"}}


def test_group_of_2500_nodes_writes_three_batches(storage):
    """Test that 2500 rows at batch size 1000 give batches of 1000, 1000, 500."""
    rows = [{"id": str(i), "LABEL": "Person"} for i in range(2500)]
    writer = BatchWriter(storage, EntityKind.NODE)

    results = list(writer.write_group("Person", rows))

    assert storage.node_batches == [("Person", 1000), ("Person", 1000), ("Person", 500)]
    assert [r.size for r in results] == [1000, 1000, 500]
    assert sum(r.created for r in results) == 2500
    assert all("LABEL" not in props for _, props in storage.nodes)


def test_default_batch_sizes():
    assert BatchWriter(None, EntityKind.NODE).batch_size == 1000
    assert BatchWriter(None, EntityKind.RELATIONSHIP).batch_size == 5000


def test_relationship_batch_reports_created_count(storage):
    """Test that unmatched endpoints reduce the created count."""
    storage.existing_ids = {"1", "2"}
    rows = [
        {"TYPE": "KNOWS", "FROM_LABEL": "P", "FROM_ID": "1", "TO_LABEL": "P", "TO_ID": "2"},
        {"TYPE": "KNOWS", "FROM_LABEL": "P", "FROM_ID": "9", "TO_LABEL": "P", "TO_ID": "2"},
    ]
    writer = BatchWriter(storage, EntityKind.RELATIONSHIP)

    result = writer.write_batch("KNOWS", rows)

    assert result.size == 2
    assert result.created == 1


def test_write_errors_propagate(storage):
    storage.write_error = SessionExpired("session expired")
    writer = BatchWriter(storage, EntityKind.NODE)

    with pytest.raises(SessionExpired):
        list(writer.write_group("Person", [{"id": "1", "LABEL": "Person"}]))


def test_ensure_indexes(storage):
    writer = BatchWriter(storage, EntityKind.RELATIONSHIP)

    indexed = writer.ensure_indexes(["Person", "City"])

    assert indexed == ["Person", "City"]
    assert storage.indexed_labels == ["Person", "City"]
    assert writer.indexes_ready


def test_index_failure_is_not_fatal(storage):
    storage.index_error = ServiceUnavailable("index creation refused")
    writer = BatchWriter(storage, EntityKind.RELATIONSHIP)

    indexed = writer.ensure_indexes(["Person"])

    assert indexed == []
    assert writer.indexes_ready
