"""Migration pipeline models.

``TransformationRequest`` / ``TransformationResponse`` are the contract
with the external Code Transformer. ``MigrationResult`` is produced once
per endpoint migration attempt and never mutated afterwards.
"""

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from ..constants import DEFAULT_LLM_MAX_TOKENS, DEFAULT_LLM_TEMPERATURE
from ..detection.models import DetectedEndpoint, EndpointType
from ..validation.models import LineDiff, LiveValidationResult, ValidationOutcome


# ── Phases ───────────────────────────────────────────────────────────


class MigrationPhase(str, Enum):
    ANALYZING = "analyzing"
    GENERATING = "generating"
    VALIDATING = "validating"
    APPLYING = "applying"
    COMPLETE = "complete"
    FAILED = "failed"


PHASE_PROGRESS: Dict[MigrationPhase, int] = {
    MigrationPhase.ANALYZING: 10,
    MigrationPhase.GENERATING: 30,
    MigrationPhase.VALIDATING: 70,
    MigrationPhase.APPLYING: 90,
    MigrationPhase.COMPLETE: 100,
    MigrationPhase.FAILED: 100,
}


@dataclass
class MigrationProgress:
    phase: MigrationPhase
    percent: int
    message: str
    details: Dict[str, Any] = field(default_factory=dict)


ProgressCallback = Callable[[Any], Union[None, Awaitable[None]]]


async def emit_progress(callback: Optional[ProgressCallback], progress: Any) -> None:
    """Invoke a sync or async progress callback."""
    if callback is None:
        return
    outcome = callback(progress)
    if asyncio.iscoroutine(outcome) or isinstance(outcome, asyncio.Future):
        await outcome


# ── Transformer contract ─────────────────────────────────────────────


@dataclass
class TransformationRequest:
    code: str
    language: str
    endpoint_type: EndpointType
    mapping_rules: List[str] = field(default_factory=list)
    """Flattened ``"source → destination"`` strings."""

    surrounding_code: str = ""
    file_path: Optional[str] = None
    line_number: Optional[int] = None
    max_tokens: int = DEFAULT_LLM_MAX_TOKENS
    temperature: float = DEFAULT_LLM_TEMPERATURE


@dataclass
class TransformationResponse:
    success: bool
    code: Optional[str] = None
    confidence: Optional[float] = None
    error: Optional[str] = None
    explanation: Optional[str] = None


# ── Single migration ─────────────────────────────────────────────────


@dataclass
class MigrationOptions:
    validate_after_migration: bool = True
    create_backup: bool = True
    progress_callback: Optional[ProgressCallback] = None


@dataclass(frozen=True)
class MigrationMetadata:
    endpoint_type: EndpointType
    confidence: float
    """Field-coverage confidence: how well the mapping covers the endpoint's fields."""

    elapsed_ms: float
    file_path: str
    line_number: int
    phase_reached: MigrationPhase


@dataclass(frozen=True)
class MigrationResult:
    success: bool
    original_code: str
    migrated_code: str
    diff: LineDiff
    metadata: MigrationMetadata
    validation: Optional[ValidationOutcome] = None
    live_validation: Optional[LiveValidationResult] = None
    error: Optional[str] = None
    history_id: Optional[str] = None
    backup_id: Optional[str] = None


# ── Bulk migration ───────────────────────────────────────────────────


class CancellationToken:
    """Cooperative cancellation flag, polled between endpoints."""

    def __init__(self):
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled


@dataclass
class BulkProgress:
    current: int
    total: int
    endpoint: Optional[DetectedEndpoint]
    message: str
    phase: Optional[MigrationPhase] = None


@dataclass
class BulkOptions:
    validate_after_migration: bool = True
    create_backup: bool = True
    stop_on_error: bool = False
    progress_callback: Optional[ProgressCallback] = None
    cancellation: Optional[CancellationToken] = None


@dataclass
class BulkFailure:
    endpoint: DetectedEndpoint
    error: str


@dataclass
class BulkSummary:
    elapsed_ms: float = 0.0
    average_confidence: float = 0.0
    files_modified: List[str] = field(default_factory=list)


@dataclass
class BulkMigrationResult:
    success: bool
    total_endpoints: int
    successful_migrations: int = 0
    failed_migrations: int = 0
    results: List[MigrationResult] = field(default_factory=list)
    errors: List[BulkFailure] = field(default_factory=list)
    summary: BulkSummary = field(default_factory=BulkSummary)
    cancelled: bool = False
