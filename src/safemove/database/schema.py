"""SQLite schema for the SafeMove transfer journal."""

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Integer, String, Text
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TransferRecord(Base):
    """One transfer outcome. Paths are zone-relative, as the caller supplied them."""

    __tablename__ = "transfers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    batch_id = Column(String(32), nullable=False, index=True)
    timestamp = Column(DateTime, default=_utcnow, nullable=False)

    operation = Column(String(10), nullable=False)
    source_path = Column(Text, nullable=False)
    destination_path = Column(Text, nullable=False)

    status = Column(String(20), nullable=False, index=True)
    method = Column(String(10))
    reason = Column(Text)
    error_code = Column(String(20))

    def __repr__(self):
        return (
            f"<TransferRecord(id={self.id}, batch='{self.batch_id}', "
            f"status='{self.status}', destination='{self.destination_path}')>"
        )
