"""SQLAlchemy ORM models for upload run history."""

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Integer, String, Text
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


class UploadRunRecord(Base):
    """One pipeline run: what was loaded, how it ended, how long it took."""

    __tablename__ = "upload_run"

    id = Column(Integer, primary_key=True, autoincrement=True)
    kind = Column(String(20), nullable=False)
    status = Column(String(20), nullable=False)
    started_at = Column(DateTime, default=utc_now)
    file_names = Column(Text)
    processed_files = Column(Integer, default=0)
    total_created = Column(Integer, default=0)
    error_message = Column(Text)
    duration_ms = Column(Integer)
