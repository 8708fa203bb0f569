"""Sequential bulk migration over many detected endpoints.

Endpoints are processed one at a time, in order. Running two migrations
on the same file concurrently would race on the snippet lookup, so there
is no parallelism here. ``group_by_file`` is offered for callers that
want to order a batch file by file before handing it over.
"""

import logging
import time
from collections import OrderedDict
from typing import Dict, List, Optional, Sequence

from ..constants import BULK_SAMPLE_VALIDATION_SIZE
from ..detection.models import DetectedEndpoint
from ..errors import BulkMigrationError, MigrationError
from ..validation.sandbox import SandboxValidator
from .models import (
    BulkFailure,
    BulkMigrationResult,
    BulkOptions,
    BulkProgress,
    BulkSummary,
    MigrationOptions,
    emit_progress,
)
from .orchestrator import MigrationOrchestrator

logger = logging.getLogger(__name__)


def group_by_file(endpoints: Sequence[DetectedEndpoint]) -> Dict[str, List[DetectedEndpoint]]:
    """Group endpoints by file path, keeping first-seen file order and line order within a file."""
    groups: Dict[str, List[DetectedEndpoint]] = OrderedDict()
    for endpoint in endpoints:
        groups.setdefault(endpoint.file_path, []).append(endpoint)
    for items in groups.values():
        items.sort(key=lambda e: e.line_number)
    return groups


class BulkCoordinator:
    """Runs an orchestrator over a batch and aggregates the outcome.

    Args:
        orchestrator: Performs each single-endpoint migration.
        live_validator: Used for the post-run sample smoke test. Falls back
            to the orchestrator's live validator.
        sample_size: Maximum number of successful results revalidated.
    """

    def __init__(
        self,
        orchestrator: MigrationOrchestrator,
        live_validator: Optional[SandboxValidator] = None,
        sample_size: int = BULK_SAMPLE_VALIDATION_SIZE,
    ):
        self.orchestrator = orchestrator
        self.live_validator = live_validator or orchestrator.live_validator
        self.sample_size = sample_size

    async def migrate_bulk(
        self,
        endpoints: Sequence[DetectedEndpoint],
        options: Optional[BulkOptions] = None,
    ) -> BulkMigrationResult:
        """Migrate ``endpoints`` in order.

        Raises:
            BulkMigrationError: With ``stop_on_error`` set, on the first
                failed endpoint. ``partial_result`` holds everything
                processed up to and including that failure.
        """
        options = options or BulkOptions()
        started = time.perf_counter()
        total = len(endpoints)
        result = BulkMigrationResult(success=False, total_endpoints=total)

        logger.info(f"Starting bulk migration of {total} endpoints")

        for i, endpoint in enumerate(endpoints):
            if options.cancellation is not None and options.cancellation.is_cancelled:
                logger.info(f"Bulk migration cancelled after {i}/{total} endpoints")
                result.cancelled = True
                break

            await emit_progress(
                options.progress_callback,
                BulkProgress(
                    current=i + 1,
                    total=total,
                    endpoint=endpoint,
                    message=f"Migrating {endpoint.endpoint_type.value} in {endpoint.file_path}:{endpoint.line_number}",
                ),
            )

            single = MigrationOptions(
                validate_after_migration=options.validate_after_migration,
                # one snapshot per batch
                create_backup=options.create_backup and i == 0,
            )
            migration = await self.orchestrator.migrate_endpoint(endpoint, single)
            result.results.append(migration)

            if migration.success:
                result.successful_migrations += 1
                continue

            result.failed_migrations += 1
            error = migration.error or "Unknown error"
            result.errors.append(BulkFailure(endpoint=endpoint, error=error))

            if options.stop_on_error:
                self._finalize(result, started)
                raise BulkMigrationError(
                    f"Migration stopped due to error: {error}", partial_result=result
                ) from MigrationError(error, phase=migration.metadata.phase_reached.value)

        if options.validate_after_migration and result.successful_migrations:
            await self._validate_sample(result)

        self._finalize(result, started)

        await emit_progress(
            options.progress_callback,
            BulkProgress(
                current=len(result.results),
                total=total,
                endpoint=None,
                message=(
                    f"Bulk migration finished: {result.successful_migrations} succeeded, "
                    f"{result.failed_migrations} failed"
                ),
            ),
        )
        logger.info(
            f"Bulk migration done: {result.successful_migrations}/{total} succeeded, "
            f"{result.failed_migrations} failed, cancelled={result.cancelled}"
        )
        return result

    async def _validate_sample(self, result: BulkMigrationResult) -> None:
        if self.live_validator is None or not self.live_validator.is_available():
            return
        sample = [r for r in result.results if r.success][: self.sample_size]
        for migration in sample:
            live = await self.live_validator.validate(migration)
            if not live.success:
                logger.warning(
                    f"Sample validation failed for {migration.metadata.file_path}:"
                    f"{migration.metadata.line_number}: {live.error or live.status_code}"
                )

    @staticmethod
    def _finalize(result: BulkMigrationResult, started: float) -> None:
        successes = [r for r in result.results if r.success]
        files: List[str] = []
        for r in successes:
            if r.metadata.file_path not in files:
                files.append(r.metadata.file_path)

        result.success = result.failed_migrations == 0
        result.summary = BulkSummary(
            elapsed_ms=(time.perf_counter() - started) * 1000,
            average_confidence=(
                sum(r.metadata.confidence for r in successes) / len(successes) if successes else 0.0
            ),
            files_modified=files,
        )
