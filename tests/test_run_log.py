"""Tests for the SQLite upload run log."""

from datetime import datetime

import pytest
from sqlalchemy import text

from bulkgraph.storage.run_log import RunLogDatabase


@pytest.fixture
def tmp_db(temp_db_path):
    """Create a temporary run log database for testing."""
    db = RunLogDatabase(temp_db_path)
    db.create_tables()
    yield db


def test_create_tables(tmp_db):
    """Test that the upload_run table is created."""
    session = tmp_db.session_factory()
    try:
        result = session.execute(
            text("SELECT name FROM sqlite_master WHERE type='table'")
        ).fetchall()
        assert "upload_run" in [row[0] for row in result]
    finally:
        session.close()


def test_log_run(tmp_db):
    started = datetime(2024, 5, 1, 12, 0, 0)

    record = tmp_db.log_run(
        kind="node",
        status="succeeded",
        file_names=["people.csv", "cities.csv"],
        processed_files=2,
        total_created=42,
        duration_ms=1500,
        started_at=started,
    )

    assert record.id is not None
    assert record.kind == "node"
    assert record.total_created == 42
    assert record.started_at == started


def test_recent_runs_newest_first(tmp_db):
    tmp_db.log_run("node", "succeeded", ["a.csv"], 1, 3)
    tmp_db.log_run("relationship", "failed", ["b.csv"], 0, 0, error_message="Failed to connect to Neo4j")

    runs = tmp_db.recent_runs()

    assert [r["kind"] for r in runs] == ["relationship", "node"]
    assert runs[0]["error_message"] == "Failed to connect to Neo4j"
    assert runs[0]["file_names"] == ["b.csv"]
    assert runs[1]["error_message"] is None


def test_recent_runs_limit(tmp_db):
    for i in range(5):
        tmp_db.log_run("node", "succeeded", [f"{i}.csv"], 1, i)

    runs = tmp_db.recent_runs(limit=2)

    assert [r["total_created"] for r in runs] == [4, 3]


def test_recent_runs_empty(tmp_db):
    assert tmp_db.recent_runs() == []
