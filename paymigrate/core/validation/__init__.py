from .changes import compute_line_diff, summarize_changes
from .extraction import extract_code
from .models import (
    ChangeSummary,
    FieldChange,
    IssueCategory,
    IssueSeverity,
    LineDiff,
    LiveValidationResult,
    QualityAnalysis,
    QualityIssue,
    Severity,
    SyntaxFinding,
    SyntaxValidation,
    UrlChange,
    ValidationOutcome,
)
from .processor import ResponseValidator, validate_outcome
from .quality import analyze_quality
from .sandbox import SandboxValidator
from .syntax import check_syntax

__all__ = [
    "compute_line_diff",
    "summarize_changes",
    "extract_code",
    "ChangeSummary",
    "FieldChange",
    "IssueCategory",
    "IssueSeverity",
    "LineDiff",
    "LiveValidationResult",
    "QualityAnalysis",
    "QualityIssue",
    "Severity",
    "SyntaxFinding",
    "SyntaxValidation",
    "UrlChange",
    "ValidationOutcome",
    "ResponseValidator",
    "validate_outcome",
    "analyze_quality",
    "SandboxValidator",
    "check_syntax",
]
