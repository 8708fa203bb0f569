"""Backup and restore of source files around a migration.

Every backup is a full copy of the file written to a dedicated backup
directory, plus a metadata record keyed by the original path. Restoring
copies the bytes back and then re-hashes the restored file: a hash that
no longer matches the one recorded at backup time means the restore
failed, even though bytes were written.

All metadata lives in one JSON document (``backup-metadata.json``) inside
the backup directory. A missing or unreadable document means "no
backups" and is never fatal.
"""

import asyncio
import json
import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import ValidationError

from ..constants import BACKUP_METADATA_FILENAME, BACKUP_SCHEMA_VERSION, MAX_BACKUPS_PER_FILE
from ..errors import BackupError
from .hashing import content_hash
from .models import BackupMetadata, BackupStatistics
from .schemas import BackupBucketSchema, BackupDocumentSchema, BackupRecordSchema

logger = logging.getLogger(__name__)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _backup_id() -> str:
    millis = int(datetime.now(timezone.utc).timestamp() * 1000)
    return f"backup_{millis}_{uuid.uuid4().hex[:9]}"


def _decode(data: bytes) -> str:
    return data.decode("utf-8", errors="replace")


class BackupManager:
    """Owns backup files and their metadata for one backup directory."""

    def __init__(self, backup_dir: str):
        self.backup_dir = Path(backup_dir)
        self.metadata_file = self.backup_dir / BACKUP_METADATA_FILENAME
        self._backups: Dict[str, List[BackupMetadata]] = {}
        self._load_metadata()

    # ── Create / restore ────────────────────────────────────────────

    async def create_backup(
        self,
        file_path: str,
        migration_id: Optional[str] = None,
        description: Optional[str] = None,
    ) -> BackupMetadata:
        """Copy ``file_path`` into the backup directory.

        Raises:
            BackupError: If the file cannot be read or the copy written.
        """
        source = Path(file_path)
        try:
            data = await asyncio.to_thread(source.read_bytes)
            backup_path = self._backup_path_for(source)
            await asyncio.to_thread(self.backup_dir.mkdir, parents=True, exist_ok=True)
            await asyncio.to_thread(backup_path.write_bytes, data)
        except OSError as e:
            raise BackupError(f"Failed to create backup for {file_path}: {e}") from e

        metadata = BackupMetadata(
            id=_backup_id(),
            original_path=str(source),
            backup_path=str(backup_path),
            created_at=_now_iso(),
            content_hash=content_hash(_decode(data)),
            size=len(data),
            migration_id=migration_id,
            description=description,
        )
        self._backups.setdefault(metadata.original_path, []).append(metadata)
        await self._save_metadata()

        logger.info(f"Backed up {file_path} to {backup_path}")
        return metadata

    async def restore(self, metadata: BackupMetadata) -> bool:
        """Restore a backup over its original file.

        Returns:
            True only if the restored file hashes to the value recorded at
            backup time. Any I/O failure or hash mismatch returns False.
        """
        backup_path = Path(metadata.backup_path)
        original_path = Path(metadata.original_path)
        try:
            data = await asyncio.to_thread(backup_path.read_bytes)
            await asyncio.to_thread(original_path.write_bytes, data)
            restored = await asyncio.to_thread(original_path.read_bytes)
        except OSError as e:
            logger.error(f"Failed to restore {metadata.original_path} from {metadata.backup_path}: {e}")
            return False

        restored_hash = content_hash(_decode(restored))
        if restored_hash != metadata.content_hash:
            logger.error(
                f"Hash mismatch after restoring {metadata.original_path}: "
                f"expected {metadata.content_hash}, got {restored_hash}"
            )
            return False

        logger.info(f"Restored {metadata.original_path} from backup {metadata.id}")
        return True

    # ── Lookup ──────────────────────────────────────────────────────

    def get_backups_for_file(self, file_path: str) -> List[BackupMetadata]:
        return list(self._backups.get(str(Path(file_path)), []))

    def get_latest_backup(self, file_path: str) -> Optional[BackupMetadata]:
        backups = self.get_backups_for_file(file_path)
        if not backups:
            return None
        return max(backups, key=lambda b: b.created_at)

    def get_backup_by_id(self, backup_id: str) -> Optional[BackupMetadata]:
        for backups in self._backups.values():
            for backup in backups:
                if backup.id == backup_id:
                    return backup
        return None

    # ── Deletion / retention ────────────────────────────────────────

    async def delete_backup(self, backup_id: str) -> bool:
        """Delete one backup; the file's bucket goes away with its last backup."""
        for file_path, backups in list(self._backups.items()):
            for backup in backups:
                if backup.id != backup_id:
                    continue
                await self._unlink(backup)
                backups.remove(backup)
                if not backups:
                    del self._backups[file_path]
                await self._save_metadata()
                return True
        return False

    async def cleanup_old_backups(self, max_per_file: int = MAX_BACKUPS_PER_FILE) -> int:
        """Keep the newest ``max_per_file`` backups of each file.

        Returns:
            Number of backups deleted.
        """
        deleted = 0
        for file_path, backups in list(self._backups.items()):
            ordered = sorted(backups, key=lambda b: b.created_at, reverse=True)
            for stale in ordered[max_per_file:]:
                await self._unlink(stale)
                deleted += 1
            keep = ordered[:max_per_file]
            if keep:
                self._backups[file_path] = sorted(keep, key=lambda b: b.created_at)
            else:
                del self._backups[file_path]

        if deleted:
            await self._save_metadata()
            logger.info(f"Cleaned up {deleted} old backups")
        return deleted

    async def clear_all_backups(self) -> int:
        count = 0
        for backups in self._backups.values():
            for backup in backups:
                await self._unlink(backup)
                count += 1
        self._backups.clear()
        await self._save_metadata()
        logger.info(f"Cleared {count} backups")
        return count

    # ── Statistics / export ─────────────────────────────────────────

    def statistics(self) -> BackupStatistics:
        all_backups = [b for backups in self._backups.values() for b in backups]
        if not all_backups:
            return BackupStatistics()
        timestamps = sorted(b.created_at for b in all_backups)
        return BackupStatistics(
            total_backups=len(all_backups),
            files_with_backups=len(self._backups),
            total_size=sum(b.size for b in all_backups),
            oldest_backup=timestamps[0],
            newest_backup=timestamps[-1],
        )

    def export_metadata(self) -> str:
        return json.dumps(self._document().model_dump(by_alias=True), indent=2)

    async def import_metadata(self, metadata_json: str) -> bool:
        """Replace all metadata with an exported document.

        Invalid documents are rejected wholesale and leave state untouched.
        """
        try:
            document = BackupDocumentSchema.model_validate_json(metadata_json)
        except ValidationError as e:
            logger.error(f"Rejected backup metadata import: {e}")
            return False

        self._backups = self._from_document(document)
        await self._save_metadata()
        return True

    # ── Internals ───────────────────────────────────────────────────

    def _backup_path_for(self, source: Path) -> Path:
        stamp = datetime.now(timezone.utc).isoformat().replace(":", "-").replace(".", "-")
        candidate = self.backup_dir / f"{source.stem}.backup.{stamp}{source.suffix}"
        suffix = 1
        while candidate.exists():
            candidate = self.backup_dir / f"{source.stem}.backup.{stamp}-{suffix}{source.suffix}"
            suffix += 1
        return candidate

    async def _unlink(self, backup: BackupMetadata) -> None:
        try:
            await asyncio.to_thread(Path(backup.backup_path).unlink, missing_ok=True)
        except OSError as e:
            logger.warning(f"Could not delete backup file {backup.backup_path}: {e}")

    def _document(self) -> BackupDocumentSchema:
        return BackupDocumentSchema(
            version=BACKUP_SCHEMA_VERSION,
            last_updated=_now_iso(),
            backups=[
                BackupBucketSchema(
                    file_path=file_path,
                    backups=[BackupRecordSchema(**b.to_dict()) for b in backups],
                )
                for file_path, backups in self._backups.items()
            ],
        )

    @staticmethod
    def _from_document(document: BackupDocumentSchema) -> Dict[str, List[BackupMetadata]]:
        return {
            bucket.file_path: [BackupMetadata.from_schema(r) for r in bucket.backups]
            for bucket in document.backups
            if bucket.backups
        }

    def _load_metadata(self) -> None:
        if not self.metadata_file.exists():
            return
        try:
            raw = self.metadata_file.read_text(encoding="utf-8")
            document = BackupDocumentSchema.model_validate_json(raw)
        except (OSError, UnicodeDecodeError, ValidationError) as e:
            logger.warning(f"Ignoring unreadable backup metadata {self.metadata_file}: {e}")
            return
        self._backups = self._from_document(document)
        logger.debug(f"Loaded metadata for {len(self._backups)} backed-up files")

    async def _save_metadata(self) -> None:
        payload = self.export_metadata()
        try:
            await asyncio.to_thread(self.backup_dir.mkdir, parents=True, exist_ok=True)
            await asyncio.to_thread(self.metadata_file.write_text, payload)
        except OSError as e:
            logger.error(f"Failed to save backup metadata: {e}", exc_info=True)
