"""Post-processing and scoring of Code Transformer output.

``ResponseValidator.process`` turns a raw transformer reply into a
``ValidationOutcome`` in eight steps:

1. extract pure code from fenced / prose-wrapped text
2. run the language's syntax heuristics
3. check which known field renames were applied
4. run quality heuristics and score them
5. classify line-level field and URL changes
6. derive output-quality confidence
7. derive a complexity tier
8. decide whether human review is required

Validation never raises for bad input; it returns an outcome with
``success=False`` instead.
"""

import logging
import re
import time
from typing import TYPE_CHECKING, List, Optional, Sequence, Tuple

from ..mapping.models import FieldMapping
from .changes import summarize_changes
from .extraction import extract_code
from .models import (
    IssueCategory,
    IssueSeverity,
    QualityAnalysis,
    SyntaxValidation,
    ValidationOutcome,
)
from .quality import analyze_quality
from .syntax import check_syntax

if TYPE_CHECKING:
    from ..mapping.resolver import MappingResolver
    from ..migration.models import TransformationResponse

logger = logging.getLogger(__name__)

DEFAULT_TRANSFORMER_CONFIDENCE = 0.5
INVALID_SYNTAX_FACTOR = 0.5
REVIEW_CONFIDENCE_THRESHOLD = 0.7
REVIEW_QUALITY_THRESHOLD = 60

COMPLEXITY_LOW_MAX = 15
COMPLEXITY_MEDIUM_MAX = 40

_FUNCTIONS = re.compile(r"\b(?:function|def|func|public|private|protected)\b")
_CONDITIONALS = re.compile(r"\b(?:if|else|elif|switch|case|try|catch|except)\b")
_LOOPS = re.compile(r"\b(?:for|foreach|while)\b")


def code_contains_field(code: str, field: str) -> bool:
    """True if ``field`` appears as an identifier, string key or assignment target."""
    name = re.escape(field)
    patterns = (
        rf"\b{name}\b",
        rf"[\"']{name}[\"']",
        rf"{name}\s*[:=]",
        rf"\[[\"']{name}[\"']\]",
    )
    return any(re.search(p, code, re.IGNORECASE) for p in patterns)


def complexity_score(code: str) -> float:
    lines = len(code.split("\n"))
    functions = len(_FUNCTIONS.findall(code))
    conditionals = len(_CONDITIONALS.findall(code))
    loops = len(_LOOPS.findall(code))
    return lines * 0.5 + functions * 3 + conditionals * 2 + loops * 2


def complexity_tier(code: str) -> str:
    score = complexity_score(code)
    if score < COMPLEXITY_LOW_MAX:
        return "low"
    if score < COMPLEXITY_MEDIUM_MAX:
        return "medium"
    return "high"


def compute_confidence(
    base: Optional[float],
    syntax: SyntaxValidation,
    applied: int,
    missing: int,
    quality: QualityAnalysis,
) -> float:
    confidence = DEFAULT_TRANSFORMER_CONFIDENCE if base is None else base
    if not syntax.valid:
        confidence *= INVALID_SYNTAX_FACTOR
    total = applied + missing
    if total > 0:
        confidence *= 0.5 + 0.5 * (applied / total)
    confidence *= quality.score / 100
    return max(0.0, min(1.0, confidence))


def requires_review(syntax: SyntaxValidation, quality: QualityAnalysis, confidence: float) -> bool:
    return (
        not syntax.valid
        or quality.has_high_security_issue
        or confidence < REVIEW_CONFIDENCE_THRESHOLD
        or quality.score < REVIEW_QUALITY_THRESHOLD
    )


class ResponseValidator:
    """Scores a transformer's proposed code against the original.

    Args:
        resolver: Supplies the known field renames. Without one, mapping
            analysis reports nothing applied and nothing missing.
    """

    def __init__(self, resolver: Optional["MappingResolver"] = None):
        self.resolver = resolver

    def _field_pairs(self) -> List[FieldMapping]:
        return self.resolver.common_field_pairs() if self.resolver else []

    def extract(self, raw: Optional[str]) -> Optional[str]:
        return extract_code(raw)

    def analyze_mappings(
        self,
        original_code: str,
        migrated_code: str,
        pairs: Optional[Sequence[FieldMapping]] = None,
    ) -> Tuple[List[FieldMapping], List[str]]:
        """Split known renames present in the original into applied / missing."""
        applied: List[FieldMapping] = []
        missing: List[str] = []
        for fm in self._field_pairs() if pairs is None else pairs:
            if not code_contains_field(original_code, fm.source_field):
                continue
            if (
                code_contains_field(migrated_code, fm.destination_field)
                and not code_contains_field(migrated_code, fm.source_field)
            ):
                applied.append(fm)
            else:
                missing.append(fm.source_field)
        return applied, missing

    def process(
        self,
        response: "TransformationResponse",
        original_code: str,
        language: str,
    ) -> ValidationOutcome:
        started = time.perf_counter()

        migrated = extract_code(response.code) if response.success else None
        if not migrated:
            return self._error_outcome(
                "No valid migrated code found in transformer response",
                original_code, language, started,
            )

        pairs = self._field_pairs()
        syntax = check_syntax(migrated, language)
        applied, missing = self.analyze_mappings(original_code, migrated, pairs)
        quality = analyze_quality(migrated)
        changes = summarize_changes(original_code, migrated, pairs)
        confidence = compute_confidence(
            response.confidence, syntax, len(applied), len(missing), quality,
        )

        warnings = [f"Line {f.line}: {f.message}" for f in syntax.warnings]
        warnings += [
            i.message for i in quality.issues
            if i.severity in (IssueSeverity.MEDIUM, IssueSeverity.HIGH)
        ]

        outcome = ValidationOutcome(
            success=True,
            migrated_code=migrated,
            original_code=original_code,
            language=language,
            syntax=syntax,
            quality=quality,
            applied_mappings=applied,
            missing_mappings=missing,
            changes=changes,
            confidence=confidence,
            complexity=complexity_tier(migrated),
            review_required=requires_review(syntax, quality, confidence),
            warnings=warnings,
            security_issues=[i.message for i in quality.issues if i.category == IssueCategory.SECURITY],
            processing_ms=(time.perf_counter() - started) * 1000,
        )
        logger.debug(
            f"Validated {language} migration: confidence={confidence:.2f}, "
            f"quality={quality.score}, review={outcome.review_required}"
        )
        return outcome

    @staticmethod
    def _error_outcome(
        error: str, original_code: str, language: str, started: float
    ) -> ValidationOutcome:
        return ValidationOutcome(
            success=False,
            migrated_code="",
            original_code=original_code,
            language=language,
            quality=QualityAnalysis(score=0),
            confidence=0.0,
            complexity="low",
            review_required=True,
            processing_ms=(time.perf_counter() - started) * 1000,
            error=error,
        )


def validate_outcome(outcome: ValidationOutcome) -> Tuple[bool, List[str]]:
    """Check the structural invariants of an outcome.

    Returns:
        ``(valid, issues)``
    """
    issues: List[str] = []
    if not outcome.success and not outcome.error:
        issues.append("Failed outcome must include an error message")
    if outcome.success and not outcome.migrated_code:
        issues.append("Successful outcome must include migrated code")
    if not 0.0 <= outcome.confidence <= 1.0:
        issues.append("Confidence must be between 0 and 1")
    if not 0 <= outcome.quality.score <= 100:
        issues.append("Quality score must be between 0 and 100")
    return not issues, issues
