"""Database connection, session management and journal writes."""

from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from ..mover import TransferOutcome, TransferRequest
from ..utils.logging import get_logger
from .schema import Base, TransferRecord

logger = get_logger(__name__)


class Database:
    """Database connection and session management."""

    def __init__(self, db_path: Path):
        """
        Initialize database connection.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self.engine = create_engine(
            f"sqlite:///{self.db_path}",
            echo=False,
            connect_args={"check_same_thread": False},
        )
        self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)

    def create_all_tables(self):
        """Create all tables if they don't exist."""
        Base.metadata.create_all(bind=self.engine)

    def get_session(self) -> Session:
        """Get a new database session."""
        return self.SessionLocal()

    def close(self):
        """Close database connection."""
        self.engine.dispose()


class TransferJournal:
    """Records transfer outcomes. Write failures are logged, never raised."""

    def __init__(self, session: Session):
        self.session = session

    def record(
        self,
        batch_id: str,
        request: TransferRequest,
        outcome: TransferOutcome,
    ) -> int | None:
        """
        Record one outcome.

        Args:
            batch_id: Identifier shared by every item of a batch
            request: The caller's (zone-relative) request
            outcome: What happened to it

        Returns:
            Row ID if recorded, None otherwise
        """
        try:
            row = TransferRecord(
                batch_id=batch_id,
                operation=request.operation.value,
                source_path=request.source_path,
                destination_path=request.destination_path,
                status=outcome.status.value,
                method=outcome.method,
                reason=outcome.reason,
                error_code=outcome.error_code,
            )
            self.session.add(row)
            self.session.commit()
            return row.id
        except Exception as e:
            logger.error(f"Failed to record transfer: {e}")
            self.session.rollback()
            return None

    def recent(self, limit: int = 20) -> list[TransferRecord]:
        """Most recent journal rows, newest first."""
        return (
            self.session.query(TransferRecord)
            .order_by(TransferRecord.timestamp.desc(), TransferRecord.id.desc())
            .limit(limit)
            .all()
        )

