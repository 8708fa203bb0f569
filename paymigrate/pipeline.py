"""Composition root wiring detection, migration and safety components.

``MigrationPipeline.from_settings`` builds every collaborator from
``PayMigrateSettings``; tests and embedding hosts can instead pass their
own instances to the constructor.
"""

import logging
from pathlib import Path
from typing import List, Optional, Sequence

from .core.config import (
    CredentialProvider,
    EnvCredentialProvider,
    PayMigrateSettings,
    get_config_path,
    get_settings,
)
from .core.detection import DetectedEndpoint, Detector, EndpointScanner, build_pattern_library
from .core.mapping import MappingResolver
from .core.migration import (
    BulkCoordinator,
    BulkMigrationResult,
    BulkOptions,
    CodeTransformer,
    LLMCodeTransformer,
    MigrationOptions,
    MigrationOrchestrator,
    MigrationResult,
)
from .core.reporting import ReportService
from .core.safety import BackupManager, HistoryStore
from .core.validation import ResponseValidator, SandboxValidator

logger = logging.getLogger(__name__)


def _resolve_project_path(path: str) -> str:
    """Relative paths in config are relative to the project root, not the cwd."""
    candidate = Path(path)
    if candidate.is_absolute():
        return str(candidate)
    return str(get_config_path().parent / candidate)


class MigrationPipeline:
    """Scan → migrate → report over one workspace."""

    def __init__(
        self,
        scanner: EndpointScanner,
        orchestrator: MigrationOrchestrator,
        bulk: BulkCoordinator,
        reports: Optional[ReportService] = None,
        max_backups_per_file: Optional[int] = None,
    ):
        self.scanner = scanner
        self.orchestrator = orchestrator
        self.bulk = bulk
        self.reports = reports or ReportService()
        self.max_backups_per_file = max_backups_per_file

    @classmethod
    def from_settings(
        cls,
        settings: Optional[PayMigrateSettings] = None,
        transformer: Optional[CodeTransformer] = None,
        credentials: Optional[CredentialProvider] = None,
    ) -> "MigrationPipeline":
        settings = settings or get_settings()

        patterns = build_pattern_library(
            settings.source_api_name, settings.source_api_domain, settings.target_api_name,
        )
        scanner = EndpointScanner(
            Detector(patterns, proximity_lines=settings.proximity_lines),
            context_lines=settings.context_lines,
            max_file_size=settings.max_file_size,
        )

        resolver = MappingResolver.from_file(_resolve_project_path(settings.mapping_file))
        live = SandboxValidator(
            credentials or EnvCredentialProvider(),
            resolver=resolver,
            base_url=settings.sandbox_url,
            timeout=settings.sandbox_timeout,
        )
        orchestrator = MigrationOrchestrator(
            resolver=resolver,
            transformer=transformer or LLMCodeTransformer(
                source_name=settings.source_api_name,
                target_name=settings.target_api_name,
                target_domain=settings.target_api_domain,
            ),
            history=HistoryStore(settings.history_file, max_entries=settings.max_history_entries),
            validator=ResponseValidator(resolver),
            backup_manager=BackupManager(settings.backup_dir),
            live_validator=live,
            context_before=settings.context_before,
            context_after=settings.context_after,
            temperature=settings.llm_temperature,
            max_tokens=settings.llm_max_tokens,
        )
        logger.info(
            f"Pipeline ready: {settings.source_api_name} → {settings.target_api_name}, "
            f"live validation {'enabled' if live.is_available() else 'disabled'}"
        )
        return cls(
            scanner=scanner,
            orchestrator=orchestrator,
            bulk=BulkCoordinator(orchestrator, live, sample_size=settings.sample_size),
            max_backups_per_file=settings.max_backups_per_file,
        )

    async def scan(self, root: str) -> List[DetectedEndpoint]:
        return await self.scanner.scan_directory(root)

    async def migrate(
        self, endpoint: DetectedEndpoint, options: Optional[MigrationOptions] = None
    ) -> MigrationResult:
        result = await self.orchestrator.migrate_endpoint(endpoint, options)
        await self.prune_backups()
        return result

    async def migrate_all(
        self, endpoints: Sequence[DetectedEndpoint], options: Optional[BulkOptions] = None
    ) -> BulkMigrationResult:
        result = await self.bulk.migrate_bulk(endpoints, options)
        await self.prune_backups()
        return result

    async def prune_backups(self) -> int:
        """Apply the per-file backup retention limit, if one is configured."""
        if self.max_backups_per_file is None:
            return 0
        backups = self.orchestrator.backup_manager
        if backups is None:
            return 0
        return await backups.cleanup_old_backups(self.max_backups_per_file)

    def report(self, fmt: str = "markdown") -> str:
        history = self.orchestrator.history.get_migration_history()
        return self.reports.export(self.reports.generate(history), fmt)
