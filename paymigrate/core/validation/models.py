"""Result models for response validation and live sandbox checks."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from ..mapping.models import FieldMapping


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"


class IssueCategory(str, Enum):
    SECURITY = "security"
    PERFORMANCE = "performance"
    MAINTAINABILITY = "maintainability"
    STYLE = "style"


class IssueSeverity(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


# ── Syntax ───────────────────────────────────────────────────────────


@dataclass
class SyntaxFinding:
    line: int
    column: int
    message: str
    severity: Severity


@dataclass
class SyntaxValidation:
    findings: List[SyntaxFinding] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        """Valid iff no error-severity finding exists; warnings don't count."""
        return not any(f.severity == Severity.ERROR for f in self.findings)

    @property
    def errors(self) -> List[SyntaxFinding]:
        return [f for f in self.findings if f.severity == Severity.ERROR]

    @property
    def warnings(self) -> List[SyntaxFinding]:
        return [f for f in self.findings if f.severity == Severity.WARNING]


# ── Quality ──────────────────────────────────────────────────────────


@dataclass
class QualityIssue:
    category: IssueCategory
    severity: IssueSeverity
    message: str
    line: Optional[int] = None
    suggestion: Optional[str] = None


@dataclass
class QualityAnalysis:
    score: int = 100
    issues: List[QualityIssue] = field(default_factory=list)

    @property
    def has_high_security_issue(self) -> bool:
        return any(
            i.category == IssueCategory.SECURITY and i.severity == IssueSeverity.HIGH
            for i in self.issues
        )


# ── Changes ──────────────────────────────────────────────────────────


@dataclass
class LineDiff:
    added: List[str] = field(default_factory=list)
    removed: List[str] = field(default_factory=list)
    modified: List[str] = field(default_factory=list)
    """``"old line → new line"`` for lines present on both sides."""


@dataclass
class FieldChange:
    source: str
    destination: str
    line: int


@dataclass
class UrlChange:
    source: str
    destination: str
    line: int


@dataclass
class ChangeSummary:
    field_changes: List[FieldChange] = field(default_factory=list)
    url_changes: List[UrlChange] = field(default_factory=list)
    added_lines: List[str] = field(default_factory=list)
    removed_lines: List[str] = field(default_factory=list)


# ── Outcome ──────────────────────────────────────────────────────────


@dataclass
class ValidationOutcome:
    """Everything the response validator learned about one proposal.

    ``confidence`` here is output-quality confidence. It is unrelated to
    the field-coverage confidence on ``MigrationMetadata``.
    """

    success: bool
    migrated_code: str
    original_code: str
    language: str
    syntax: SyntaxValidation = field(default_factory=SyntaxValidation)
    quality: QualityAnalysis = field(default_factory=QualityAnalysis)
    applied_mappings: List[FieldMapping] = field(default_factory=list)
    missing_mappings: List[str] = field(default_factory=list)
    changes: ChangeSummary = field(default_factory=ChangeSummary)
    confidence: float = 0.0
    complexity: str = "low"
    review_required: bool = True
    warnings: List[str] = field(default_factory=list)
    security_issues: List[str] = field(default_factory=list)
    processing_ms: float = 0.0
    error: Optional[str] = None


@dataclass
class LiveValidationResult:
    """Outcome of a smoke test against the target sandbox."""

    success: bool
    status_code: Optional[int] = None
    response: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    elapsed_ms: float = 0.0
