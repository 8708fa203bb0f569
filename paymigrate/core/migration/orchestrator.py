"""Single-endpoint migration pipeline.

``MigrationOrchestrator.migrate_endpoint`` drives one detected endpoint
through ANALYZING → GENERATING → VALIDATING → APPLYING → COMPLETE and
reports every transition through the progress callback. It never raises
for transformer, drift or configuration problems: those come back as a
failed ``MigrationResult``.

The live file is only written in APPLYING, and only when the exact
original snippet is still present. That substring check is the sole
concurrency guard; the detection-time content hash is advisory.
"""

import asyncio
import logging
import time
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..constants import (
    CONTEXT_LINES_AFTER,
    CONTEXT_LINES_BEFORE,
    DEFAULT_LLM_MAX_TOKENS,
    DEFAULT_LLM_TEMPERATURE,
)
from ..detection.models import DetectedEndpoint
from ..detection.utils import extract_block
from ..errors import BackupError
from ..mapping.models import EndpointMapping
from ..mapping.resolver import MappingResolver, flatten_rules
from ..safety.backup import BackupManager
from ..safety.hashing import content_hash
from ..safety.history import HistoryStore
from ..safety.models import MigrationHistoryEntry, RollbackData
from ..validation.changes import compute_line_diff
from ..validation.models import LineDiff, LiveValidationResult, ValidationOutcome
from ..validation.processor import ResponseValidator
from ..validation.sandbox import SandboxValidator
from .models import (
    PHASE_PROGRESS,
    MigrationMetadata,
    MigrationOptions,
    MigrationPhase,
    MigrationProgress,
    MigrationResult,
    TransformationRequest,
    emit_progress,
)
from .transformer import CodeTransformer

logger = logging.getLogger(__name__)

CONFIDENCE_BASE = 0.5
CONFIDENCE_PER_FIELD = 0.05
CONFIDENCE_FIELD_CAP = 0.3
CONFIDENCE_COVERAGE_WEIGHT = 0.2

LOCATE_ERROR = "Could not locate original code in file"


def migration_confidence(fields: List[str], mapping: EndpointMapping) -> float:
    """Field-coverage confidence for a migrated endpoint.

    0.5 base, +0.05 per detected field up to +0.3, +0.2 scaled by the share
    of detected fields the mapping knows about. No fields means no coverage
    credit.
    """
    n = len(fields)
    score = CONFIDENCE_BASE + min(n * CONFIDENCE_PER_FIELD, CONFIDENCE_FIELD_CAP)
    if n:
        mapped = sum(1 for f in fields if mapping.has_source_field(f))
        score += CONFIDENCE_COVERAGE_WEIGHT * (mapped / n)
    return min(score, 1.0)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _migration_id() -> str:
    return f"migration_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


def _read_text(path: Path) -> str:
    return path.read_text(encoding="utf-8")


def _write_text(path: Path, text: str) -> None:
    path.write_text(text, encoding="utf-8")


class MigrationOrchestrator:
    """Migrates one detected endpoint at a time.

    Args:
        resolver: Mapping lookups for the endpoint type.
        transformer: Proposes the migrated snippet.
        validator: Scores the proposal. Defaults to a ``ResponseValidator``
            sharing ``resolver``.
        history: Where every attempt past ANALYZING is recorded.
        backup_manager: Optional; required for ``create_backup``.
        live_validator: Optional sandbox smoke test run while VALIDATING.
    """

    def __init__(
        self,
        resolver: MappingResolver,
        transformer: CodeTransformer,
        history: HistoryStore,
        validator: Optional[ResponseValidator] = None,
        backup_manager: Optional[BackupManager] = None,
        live_validator: Optional[SandboxValidator] = None,
        context_before: int = CONTEXT_LINES_BEFORE,
        context_after: int = CONTEXT_LINES_AFTER,
        temperature: float = DEFAULT_LLM_TEMPERATURE,
        max_tokens: int = DEFAULT_LLM_MAX_TOKENS,
    ):
        self.resolver = resolver
        self.transformer = transformer
        self.history = history
        self.validator = validator or ResponseValidator(resolver)
        self.backup_manager = backup_manager
        self.live_validator = live_validator
        self.context_before = context_before
        self.context_after = context_after
        self.temperature = temperature
        self.max_tokens = max_tokens

    # ── Public API ──────────────────────────────────────────────────

    async def migrate_endpoint(
        self,
        endpoint: DetectedEndpoint,
        options: Optional[MigrationOptions] = None,
    ) -> MigrationResult:
        options = options or MigrationOptions()
        started = time.perf_counter()
        run = _Run(self, endpoint, options, started)

        # ANALYZING
        await run.progress(MigrationPhase.ANALYZING, f"Analyzing {endpoint.endpoint_type.value} endpoint")
        mapping = self.resolver.resolve_mapping(endpoint.endpoint_type)
        if mapping is None:
            # configuration problem: nothing is persisted
            return await run.fail(
                f"No mapping found for endpoint type: {endpoint.endpoint_type.value}",
                record=False,
            )

        # GENERATING
        await run.progress(MigrationPhase.GENERATING, "Generating migrated code")
        surrounding = await self._surrounding_code(endpoint)
        request = TransformationRequest(
            code=endpoint.code,
            language=endpoint.language,
            endpoint_type=endpoint.endpoint_type,
            mapping_rules=flatten_rules(mapping),
            surrounding_code=surrounding,
            file_path=endpoint.file_path,
            line_number=endpoint.line_number,
            max_tokens=self.max_tokens,
            temperature=self.temperature,
        )
        response = await self.transformer.transform(request)
        if not response.success or not response.code:
            return await run.fail(f"Code generation failed: {response.error or 'empty response'}")

        migrated = self.validator.extract(response.code)
        if not migrated:
            return await run.fail("Code generation failed: no code found in transformer response")

        # VALIDATING
        validation: Optional[ValidationOutcome] = None
        live: Optional[LiveValidationResult] = None
        if options.validate_after_migration:
            await run.progress(MigrationPhase.VALIDATING, "Validating migrated code")
            validation = self.validator.process(response, endpoint.code, endpoint.language)
            if validation.success:
                migrated = validation.migrated_code
                for warning in validation.warnings:
                    logger.debug(f"{endpoint.id}: {warning}")
            else:
                logger.warning(f"Validation of {endpoint.id} reported: {validation.error}")
            live = await self._live_validate(endpoint)

        # backup happens once, before APPLYING
        backup_id = None
        if options.create_backup and self.backup_manager is not None:
            try:
                backup = await self.backup_manager.create_backup(
                    endpoint.file_path,
                    migration_id=run.migration_id,
                    description=f"Before migrating {endpoint.endpoint_type.value} at line {endpoint.line_number}",
                )
                backup_id = backup.id
            except BackupError as e:
                return await run.fail(str(e), validation=validation, live=live)

        # APPLYING
        await run.progress(MigrationPhase.APPLYING, "Applying migrated code")
        path = Path(endpoint.file_path)
        try:
            before = await asyncio.to_thread(_read_text, path)
        except (OSError, UnicodeDecodeError) as e:
            logger.error(f"Cannot read {endpoint.file_path}: {e}")
            return await run.fail(LOCATE_ERROR, validation=validation, live=live, backup_id=backup_id)

        if endpoint.content_hash and content_hash(before) != endpoint.content_hash:
            logger.warning(f"{endpoint.file_path} changed since detection; relying on snippet match")

        index = before.find(endpoint.code)
        if not endpoint.code or index < 0:
            return await run.fail(LOCATE_ERROR, validation=validation, live=live, backup_id=backup_id)

        after = before[:index] + migrated + before[index + len(endpoint.code):]
        try:
            await asyncio.to_thread(_write_text, path, after)
        except OSError as e:
            return await run.fail(
                f"Failed to write {endpoint.file_path}: {e}",
                validation=validation, live=live, backup_id=backup_id,
            )

        # COMPLETE
        confidence = migration_confidence(list(endpoint.ssl_fields), mapping)
        entry = MigrationHistoryEntry(
            id=run.migration_id,
            timestamp=_now_iso(),
            file_path=endpoint.file_path,
            line_number=endpoint.line_number,
            endpoint_type=endpoint.endpoint_type.value,
            original_code=endpoint.code,
            migrated_code=migrated,
            success=True,
            confidence=confidence,
            rollback=RollbackData(original_content=before, content_hash=content_hash(before)),
        )
        await self.history.record(entry)

        result = MigrationResult(
            success=True,
            original_code=endpoint.code,
            migrated_code=migrated,
            diff=compute_line_diff(endpoint.code, migrated),
            metadata=run.metadata(MigrationPhase.COMPLETE, confidence),
            validation=validation,
            live_validation=live,
            history_id=entry.id,
            backup_id=backup_id,
        )
        await run.progress(
            MigrationPhase.COMPLETE, "Migration complete",
            {"confidence": confidence, "historyId": entry.id},
        )
        logger.info(
            f"Migrated {endpoint.endpoint_type.value} in {endpoint.file_path}:{endpoint.line_number} "
            f"(confidence {confidence:.2f})"
        )
        return result

    async def rollback_migration(self, entry: MigrationHistoryEntry) -> bool:
        """Put the original snippet of a successful entry back in its file.

        Returns False when the entry was a failure, is already rolled back,
        or the migrated snippet can no longer be found.
        """
        if not entry.success or entry.rolled_back or not entry.migrated_code:
            return False

        path = Path(entry.file_path)
        try:
            current = await asyncio.to_thread(_read_text, path)
        except (OSError, UnicodeDecodeError) as e:
            logger.error(f"Rollback of {entry.id} failed reading {entry.file_path}: {e}")
            return False

        index = current.find(entry.migrated_code)
        if index < 0:
            logger.warning(f"Rollback of {entry.id}: migrated code no longer present in {entry.file_path}")
            return False

        restored = current[:index] + entry.original_code + current[index + len(entry.migrated_code):]
        try:
            await asyncio.to_thread(_write_text, path, restored)
        except OSError as e:
            logger.error(f"Rollback of {entry.id} failed writing {entry.file_path}: {e}")
            return False

        await self.history.mark_rolled_back(entry.id)
        logger.info(f"Rolled back migration {entry.id} in {entry.file_path}")
        return True

    # ── Helpers ─────────────────────────────────────────────────────

    async def _surrounding_code(self, endpoint: DetectedEndpoint) -> str:
        try:
            text = await asyncio.to_thread(_read_text, Path(endpoint.file_path))
        except (OSError, UnicodeDecodeError) as e:
            logger.debug(f"No surrounding context for {endpoint.file_path}: {e}")
            return ""
        return extract_block(
            text.splitlines(), endpoint.line_number, self.context_before, self.context_after
        )

    async def _live_validate(self, endpoint: DetectedEndpoint) -> Optional[LiveValidationResult]:
        if self.live_validator is None or not self.live_validator.is_available():
            return None
        live = await self.live_validator.validate_endpoint(endpoint.endpoint_type, endpoint.file_path)
        if not live.success:
            logger.warning(f"Live validation for {endpoint.id} failed: {live.error or live.status_code}")
        return live


class _Run:
    """Per-call state shared by the phases of one ``migrate_endpoint``."""

    def __init__(
        self,
        orchestrator: MigrationOrchestrator,
        endpoint: DetectedEndpoint,
        options: MigrationOptions,
        started: float,
    ):
        self.orchestrator = orchestrator
        self.endpoint = endpoint
        self.options = options
        self.started = started
        self.phase = MigrationPhase.ANALYZING
        self.migration_id = _migration_id()

    async def progress(
        self, phase: MigrationPhase, message: str, details: Optional[Dict[str, Any]] = None
    ) -> None:
        self.phase = phase
        await emit_progress(
            self.options.progress_callback,
            MigrationProgress(phase=phase, percent=PHASE_PROGRESS[phase], message=message, details=details or {}),
        )

    def metadata(self, phase: MigrationPhase, confidence: float) -> MigrationMetadata:
        return MigrationMetadata(
            endpoint_type=self.endpoint.endpoint_type,
            confidence=confidence,
            elapsed_ms=(time.perf_counter() - self.started) * 1000,
            file_path=self.endpoint.file_path,
            line_number=self.endpoint.line_number,
            phase_reached=phase,
        )

    async def fail(
        self,
        error: str,
        record: bool = True,
        validation: Optional[ValidationOutcome] = None,
        live: Optional[LiveValidationResult] = None,
        backup_id: Optional[str] = None,
    ) -> MigrationResult:
        endpoint = self.endpoint
        reached = self.phase
        logger.error(f"Migration of {endpoint.id} failed during {reached.value}: {error}")

        history_id = None
        if record:
            entry = MigrationHistoryEntry(
                id=self.migration_id,
                timestamp=_now_iso(),
                file_path=endpoint.file_path,
                line_number=endpoint.line_number,
                endpoint_type=endpoint.endpoint_type.value,
                original_code=endpoint.code,
                migrated_code=None,
                success=False,
                error=error,
            )
            await self.orchestrator.history.record(entry)
            history_id = entry.id

        await self.progress(MigrationPhase.FAILED, error, {"phase": reached.value})
        return MigrationResult(
            success=False,
            original_code=endpoint.code,
            migrated_code="",
            diff=LineDiff(),
            metadata=self.metadata(reached, 0.0),
            validation=validation,
            live_validation=live,
            error=error,
            history_id=history_id,
            backup_id=backup_id,
        )
