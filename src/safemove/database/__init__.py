"""Transfer journal for SafeMove."""

from .models import Database, TransferJournal
from .schema import Base, TransferRecord

__all__ = [
    "Base",
    "TransferRecord",
    "Database",
    "TransferJournal",
]
