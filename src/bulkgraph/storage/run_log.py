"""SQLite run history for upload pipeline runs."""

import json
import logging
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from bulkgraph.storage.models import Base, UploadRunRecord, utc_now

logger = logging.getLogger(__name__)


class RunLogDatabase:
    """Records one row per upload run for later inspection."""

    def __init__(self, database_path: str):
        """Initialize the run log database.

        Args:
            database_path: Path to SQLite database file
        """
        self.engine = create_engine(f"sqlite:///{database_path}")
        self.session_factory = sessionmaker(bind=self.engine, expire_on_commit=False)

    def create_tables(self) -> None:
        """Create all database tables if they don't exist."""
        Base.metadata.create_all(self.engine)

    def log_run(
        self,
        kind: str,
        status: str,
        file_names: List[str],
        processed_files: int,
        total_created: int,
        error_message: Optional[str] = None,
        duration_ms: Optional[int] = None,
        started_at: Optional[datetime] = None,
    ) -> UploadRunRecord:
        """Insert a run record.

        Args:
            kind: ``node`` or ``relationship``
            status: ``succeeded``, ``failed`` or ``aborted``
            file_names: Names of the uploaded files, in input order
            processed_files: Number of files fully written
            total_created: Entities the store reported as created
            error_message: Terminal error message for failed runs
            duration_ms: Run duration in milliseconds
            started_at: Run start time in UTC (defaults to now)

        Returns:
            The persisted UploadRunRecord
        """
        session = self.session_factory()
        try:
            record = UploadRunRecord(
                kind=kind,
                status=status,
                started_at=started_at or utc_now(),
                file_names=json.dumps(file_names),
                processed_files=processed_files,
                total_created=total_created,
                error_message=error_message,
                duration_ms=duration_ms,
            )
            session.add(record)
            session.commit()
            session.expunge(record)
            return record
        finally:
            session.close()

    def recent_runs(self, limit: int = 10) -> List[Dict]:
        """Return the most recent runs, newest first.

        Args:
            limit: Maximum number of runs to return

        Returns:
            List of run dictionaries
        """
        session = self.session_factory()
        try:
            records = (
                session.query(UploadRunRecord)
                .order_by(UploadRunRecord.id.desc())
                .limit(limit)
                .all()
            )
            return [
                {
                    "id": r.id,
                    "kind": r.kind,
                    "status": r.status,
                    "started_at": r.started_at.isoformat() if r.started_at else None,
                    "file_names": json.loads(r.file_names) if r.file_names else [],
                    "processed_files": r.processed_files,
                    "total_created": r.total_created,
                    "error_message": r.error_message,
                    "duration_ms": r.duration_ms,
                }
                for r in records
            ]
        finally:
            session.close()
