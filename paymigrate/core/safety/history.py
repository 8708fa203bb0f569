"""Bounded migration history with JSON export/import.

New entries go to the head of the list. When the list grows past
``max_entries`` the tail is dropped, so eviction follows insertion
order, not timestamps. Statistics are recomputed on every call.
"""

import asyncio
import json
import logging
from collections import Counter
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from pydantic import ValidationError

from ..constants import HISTORY_SCHEMA_VERSION, MAX_HISTORY_ENTRIES
from .models import HistoryStatistics, MigrationHistoryEntry
from .schemas import HistoryDocumentSchema

logger = logging.getLogger(__name__)

SUCCESS_PROXY_CREDIT = 0.8
RECENT_LIMIT = 10
TOP_ENDPOINT_TYPES = 5


class HistoryStore:
    """In-memory migration history, optionally persisted to a JSON file.

    Args:
        path: JSON file to load from and save to. ``None`` keeps the
            history in memory only.
        max_entries: Cap on retained entries.
    """

    def __init__(self, path: Optional[str] = None, max_entries: int = MAX_HISTORY_ENTRIES):
        self.path = Path(path) if path else None
        self.max_entries = max_entries
        self._entries: List[MigrationHistoryEntry] = []
        self._load()

    # ── Mutation ────────────────────────────────────────────────────

    async def record(self, entry: MigrationHistoryEntry) -> None:
        """Insert ``entry`` at the head, evict past the cap, then persist."""
        self._entries.insert(0, entry)
        del self._entries[self.max_entries:]
        await self._save()

    async def mark_rolled_back(self, entry_id: str) -> bool:
        entry = self.get_entry(entry_id)
        if entry is None:
            return False
        entry.rolled_back = True
        await self._save()
        return True

    async def clear(self) -> None:
        self._entries = []
        await self._save()

    # ── Queries ─────────────────────────────────────────────────────

    def get_migration_history(self) -> List[MigrationHistoryEntry]:
        """Entries newest-first."""
        return list(self._entries)

    def get_entry(self, entry_id: str) -> Optional[MigrationHistoryEntry]:
        return next((e for e in self._entries if e.id == entry_id), None)

    def statistics(self) -> HistoryStatistics:
        total = len(self._entries)
        if total == 0:
            return HistoryStatistics()

        successful = [e for e in self._entries if e.success]
        confidences = [e.confidence for e in successful if e.confidence is not None]
        type_counts = Counter(e.endpoint_type for e in self._entries)

        return HistoryStatistics(
            total_migrations=total,
            successful_migrations=len(successful),
            failed_migrations=total - len(successful),
            success_proxy_confidence=SUCCESS_PROXY_CREDIT * len(successful) / total,
            mean_result_confidence=sum(confidences) / len(confidences) if confidences else 0.0,
            recent_migrations=self._entries[:RECENT_LIMIT],
            top_endpoint_types=[
                {"endpoint_type": t, "count": n}
                for t, n in type_counts.most_common(TOP_ENDPOINT_TYPES)
            ],
        )

    # ── Export / import ─────────────────────────────────────────────

    def export_history(self) -> str:
        document = {
            "version": HISTORY_SCHEMA_VERSION,
            "exportDate": datetime.now(timezone.utc).isoformat(),
            "totalMigrations": len(self._entries),
            "migrations": [e.to_dict() for e in self._entries],
        }
        return json.dumps(document, indent=2)

    async def import_history(self, history_json: str) -> bool:
        """Replace the history with an exported document.

        The document must carry a ``migrations`` array of valid entries.
        Anything else is rejected and the current history is kept.
        """
        entries = self._parse(history_json)
        if entries is None:
            return False
        self._entries = entries[: self.max_entries]
        await self._save()
        logger.info(f"Imported {len(self._entries)} migration history entries")
        return True

    # ── Persistence ─────────────────────────────────────────────────

    @staticmethod
    def _parse(history_json: str) -> Optional[List[MigrationHistoryEntry]]:
        try:
            document = HistoryDocumentSchema.model_validate_json(history_json)
        except ValidationError as e:
            logger.error(f"Rejected migration history document: {e}")
            return None
        return [MigrationHistoryEntry.from_schema(m) for m in document.migrations]

    def _load(self) -> None:
        if self.path is None or not self.path.exists():
            return
        try:
            raw = self.path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Could not read history file {self.path}: {e}")
            return
        entries = self._parse(raw)
        if entries is not None:
            self._entries = entries[: self.max_entries]

    async def _save(self) -> None:
        if self.path is None:
            return
        payload = self.export_history()
        try:
            await asyncio.to_thread(self.path.parent.mkdir, parents=True, exist_ok=True)
            await asyncio.to_thread(self.path.write_text, payload)
        except OSError as e:
            logger.error(f"Failed to persist migration history: {e}", exc_info=True)
