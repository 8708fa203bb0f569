from .backup import BackupManager
from .hashing import content_hash
from .history import HistoryStore
from .models import (
    BackupMetadata,
    BackupStatistics,
    HistoryStatistics,
    MigrationHistoryEntry,
    RollbackData,
)

__all__ = [
    "BackupManager",
    "content_hash",
    "HistoryStore",
    "BackupMetadata",
    "BackupStatistics",
    "HistoryStatistics",
    "MigrationHistoryEntry",
    "RollbackData",
]
