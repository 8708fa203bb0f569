"""Data models for backups and migration history."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .schemas import BackupRecordSchema, HistoryEntrySchema, RollbackSchema


@dataclass
class BackupMetadata:
    """Metadata for one backup copy of one file."""

    id: str
    original_path: str
    backup_path: str
    created_at: str
    content_hash: str
    size: int
    migration_id: Optional[str] = None
    description: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return BackupRecordSchema(
            id=self.id,
            original_path=self.original_path,
            backup_path=self.backup_path,
            created_at=self.created_at,
            content_hash=self.content_hash,
            size=self.size,
            migration_id=self.migration_id,
            description=self.description,
        ).model_dump(by_alias=True)

    @classmethod
    def from_schema(cls, record: BackupRecordSchema) -> "BackupMetadata":
        return cls(
            id=record.id,
            original_path=record.original_path,
            backup_path=record.backup_path,
            created_at=record.created_at,
            content_hash=record.content_hash,
            size=record.size,
            migration_id=record.migration_id,
            description=record.description,
        )


@dataclass
class BackupStatistics:
    total_backups: int = 0
    files_with_backups: int = 0
    total_size: int = 0
    oldest_backup: Optional[str] = None
    newest_backup: Optional[str] = None


@dataclass(frozen=True)
class RollbackData:
    """Pre-migration content of the whole file, plus its hash."""

    original_content: str
    content_hash: str


@dataclass
class MigrationHistoryEntry:
    id: str
    timestamp: str
    file_path: str
    line_number: int
    endpoint_type: str
    original_code: str
    migrated_code: Optional[str]
    success: bool
    error: Optional[str] = None
    confidence: Optional[float] = None
    rollback: Optional[RollbackData] = None
    rolled_back: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return HistoryEntrySchema(
            id=self.id,
            timestamp=self.timestamp,
            file_path=self.file_path,
            line_number=self.line_number,
            endpoint_type=self.endpoint_type,
            original_code=self.original_code,
            migrated_code=self.migrated_code,
            success=self.success,
            error=self.error,
            confidence=self.confidence,
            rollback=RollbackSchema(
                original_content=self.rollback.original_content,
                content_hash=self.rollback.content_hash,
            ) if self.rollback else None,
            rolled_back=self.rolled_back,
        ).model_dump(by_alias=True)

    @classmethod
    def from_schema(cls, record: HistoryEntrySchema) -> "MigrationHistoryEntry":
        return cls(
            id=record.id,
            timestamp=record.timestamp,
            file_path=record.file_path,
            line_number=record.line_number,
            endpoint_type=record.endpoint_type,
            original_code=record.original_code,
            migrated_code=record.migrated_code,
            success=record.success,
            error=record.error,
            confidence=record.confidence,
            rollback=RollbackData(
                original_content=record.rollback.original_content,
                content_hash=record.rollback.content_hash,
            ) if record.rollback else None,
            rolled_back=record.rolled_back,
        )


@dataclass
class HistoryStatistics:
    """Aggregates derived from the history on demand.

    ``success_proxy_confidence`` credits 0.8 per successful migration and
    0 per failure. ``mean_result_confidence`` is the plain mean of the
    field-coverage confidences stored on successful entries.
    """

    total_migrations: int = 0
    successful_migrations: int = 0
    failed_migrations: int = 0
    success_proxy_confidence: float = 0.0
    mean_result_confidence: float = 0.0
    recent_migrations: List[MigrationHistoryEntry] = field(default_factory=list)
    top_endpoint_types: List[Dict[str, Any]] = field(default_factory=list)
