from .bulk import BulkCoordinator, group_by_file
from .models import (
    PHASE_PROGRESS,
    BulkFailure,
    BulkMigrationResult,
    BulkOptions,
    BulkProgress,
    BulkSummary,
    CancellationToken,
    MigrationMetadata,
    MigrationOptions,
    MigrationPhase,
    MigrationProgress,
    MigrationResult,
    TransformationRequest,
    TransformationResponse,
)
from .orchestrator import MigrationOrchestrator, migration_confidence
from .transformer import CodeTransformer, LLMCodeTransformer, parse_completion

__all__ = [
    "BulkCoordinator",
    "group_by_file",
    "PHASE_PROGRESS",
    "BulkFailure",
    "BulkMigrationResult",
    "BulkOptions",
    "BulkProgress",
    "BulkSummary",
    "CancellationToken",
    "MigrationMetadata",
    "MigrationOptions",
    "MigrationPhase",
    "MigrationProgress",
    "MigrationResult",
    "TransformationRequest",
    "TransformationResponse",
    "MigrationOrchestrator",
    "migration_confidence",
    "CodeTransformer",
    "LLMCodeTransformer",
    "parse_completion",
]
