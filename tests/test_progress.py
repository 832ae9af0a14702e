"""Tests for progress accounting."""

import pytest

from bulkgraph.exceptions import NoInputFiles
from bulkgraph.ingestion.progress import ProgressReporter
from bulkgraph.models import EntityKind, UploadFailure, UploadSummary


def test_percent_never_decreases():
    reporter = ProgressReporter(EntityKind.NODE)

    assert reporter.progress(40, "forty").percent == 40
    assert reporter.progress(10, "ten").percent == 40
    assert reporter.progress(120, "too much").percent == 100


def test_parsing_file_spreads_over_parse_phase():
    reporter = ProgressReporter(EntityKind.NODE)
    reporter.parsing_started()

    assert reporter.parsing_file(0, 2, "a.csv").percent == 5
    assert reporter.parsing_file(1, 2, "b.csv").percent == 10
    assert reporter.parsing_finished(10, 2).message == "Parsed 10 rows from 2 file(s)"


def test_node_write_phase():
    reporter = ProgressReporter(EntityKind.NODE)

    assert reporter.writing_started().percent == 25
    update = reporter.batch_written(50, 100)
    assert update.percent == 60
    assert update.message == "Inserted 50/100 nodes..."


def test_relationship_write_phase():
    reporter = ProgressReporter(EntityKind.RELATIONSHIP)

    assert reporter.indexing().percent == 25
    assert reporter.writing_started().percent == 30
    update = reporter.batch_written(100, 100)
    assert update.percent == 95
    assert update.message == "Created 100/100 relationships..."


def test_batch_written_with_no_rows():
    reporter = ProgressReporter(EntityKind.NODE)

    assert reporter.batch_written(0, 0).percent == 95


def test_succeed_message():
    summary = ProgressReporter(EntityKind.NODE).succeed(processed_files=2, total_created=7)

    assert isinstance(summary, UploadSummary)
    assert summary.total_rows == 7
    assert summary.message == "Successfully inserted 7 nodes from 2 file(s)"


def test_fail_carries_error_details():
    failure = ProgressReporter(EntityKind.RELATIONSHIP).fail(NoInputFiles())

    assert isinstance(failure, UploadFailure)
    assert failure.message == "No files provided"
    assert failure.details == []


def test_only_one_terminal_event():
    reporter = ProgressReporter(EntityKind.NODE)
    reporter.succeed(1, 1)

    assert reporter.finished
    with pytest.raises(RuntimeError):
        reporter.fail(NoInputFiles())
    with pytest.raises(RuntimeError):
        reporter.progress(100, "late")
