"""Tests for grouping rows by label or relationship type."""

from bulkgraph.models import EntityKind, ParsedTable
from bulkgraph.parsing.row_grouper import RowGrouper


def make_table(rows, headers=("id", "LABEL")):
    return ParsedTable(file_name="test.csv", headers=list(headers), rows=rows)


def test_groups_keep_first_seen_order():
    """Test that group order follows the first occurrence of each key."""
    table = make_table([
        {"id": "1", "LABEL": "City"},
        {"id": "2", "LABEL": "Person"},
        {"id": "3", "LABEL": "City"},
        {"id": "4", "LABEL": "Person"},
    ])

    groups = RowGrouper("LABEL").group(table)

    assert list(groups) == ["City", "Person"]
    assert [row["id"] for row in groups["City"]] == ["1", "3"]
    assert [row["id"] for row in groups["Person"]] == ["2", "4"]


def test_rows_without_key_are_dropped():
    table = make_table([
        {"id": "1", "LABEL": ""},
        {"id": "2"},
        {"id": "3", "LABEL": "Person"},
    ])
    grouper = RowGrouper("LABEL")

    groups = grouper.group(table)

    assert groups == {"Person": [{"id": "3", "LABEL": "Person"}]}
    assert grouper.dropped_count == 2


def test_dropped_count_accumulates_across_tables():
    grouper = RowGrouper("LABEL")
    grouper.group(make_table([{"id": "1", "LABEL": ""}]))
    grouper.group(make_table([{"id": "2", "LABEL": ""}, {"id": "3", "LABEL": "A"}]))

    assert grouper.dropped_count == 2


def test_for_kind_uses_grouping_column():
    assert RowGrouper.for_kind(EntityKind.NODE).key_column == "LABEL"
    assert RowGrouper.for_kind(EntityKind.RELATIONSHIP).key_column == "TYPE"


def test_empty_table():
    assert RowGrouper("TYPE").group(make_table([], headers=("TYPE",))) == {}
