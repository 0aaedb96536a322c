from .audit_log import AuditLog
from .base import RatingStore, StoreConflict, StoreTransaction
from .db_store import DBRatingStore
from .memory_store import MemoryRatingStore
from .repository import AsyncStore

__all__ = [
    "AsyncStore",
    "AuditLog",
    "DBRatingStore",
    "MemoryRatingStore",
    "RatingStore",
    "StoreConflict",
    "StoreTransaction",
]
