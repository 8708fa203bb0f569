"""Pydantic schemas for the persisted safety-net documents.

Both documents are validated as a whole on load and on import. Anything
that fails validation is rejected; nothing is partially merged.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


# ── Backup metadata ──────────────────────────────────────────────────


class BackupRecordSchema(_CamelModel):
    """One backup copy of one file."""
    id: str = Field(..., description="Backup identifier", min_length=1)
    original_path: str = Field(..., alias="originalPath", description="File that was backed up")
    backup_path: str = Field(..., alias="backupPath", description="Location of the copy")
    created_at: str = Field(..., alias="timestamp", description="ISO-8601 creation time")
    content_hash: str = Field(..., alias="fileHash", description="Hash of the original content")
    size: int = Field(0, alias="fileSize", description="Size of the original content in bytes")
    migration_id: Optional[str] = Field(None, alias="migrationId")
    description: Optional[str] = Field(None)


class BackupBucketSchema(_CamelModel):
    """All backups of a single original file, newest last."""
    file_path: str = Field(..., alias="filePath")
    backups: List[BackupRecordSchema] = Field(default_factory=list)


class BackupDocumentSchema(_CamelModel):
    """Top-level ``backup-metadata.json`` document."""
    version: str = Field(..., description="Schema version tag")
    last_updated: str = Field(..., alias="lastUpdated")
    backups: List[BackupBucketSchema] = Field(default_factory=list)


# ── Migration history ────────────────────────────────────────────────


class RollbackSchema(_CamelModel):
    original_content: str = Field(..., alias="originalContent")
    content_hash: str = Field(..., alias="contentHash")


class HistoryEntrySchema(_CamelModel):
    """One migration attempt."""
    id: str = Field(..., min_length=1)
    timestamp: str = Field(..., description="ISO-8601 time of the attempt")
    file_path: str = Field(..., alias="filePath")
    line_number: int = Field(..., alias="lineNumber")
    endpoint_type: str = Field(..., alias="endpointType")
    original_code: str = Field("", alias="originalCode")
    migrated_code: Optional[str] = Field(None, alias="migratedCode")
    success: bool = Field(...)
    error: Optional[str] = Field(None)
    confidence: Optional[float] = Field(None, description="Field-coverage confidence of the result")
    rollback: Optional[RollbackSchema] = Field(None)
    rolled_back: bool = Field(False, alias="rolledBack")

    @model_validator(mode="after")
    def _success_needs_rollback(self) -> "HistoryEntrySchema":
        if self.success and self.rollback is None:
            raise ValueError(f"Successful migration {self.id} has no rollback data")
        return self


class HistoryDocumentSchema(_CamelModel):
    """Export / persistence document for the history store."""
    version: str = Field("1.0")
    export_date: Optional[str] = Field(None, alias="exportDate")
    total_migrations: Optional[int] = Field(None, alias="totalMigrations")
    migrations: List[HistoryEntrySchema] = Field(...)
