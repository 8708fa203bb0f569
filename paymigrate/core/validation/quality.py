"""Security, performance and maintainability heuristics for migrated code."""

import re
from typing import List

from .models import IssueCategory, IssueSeverity, QualityAnalysis, QualityIssue

SEVERITY_PENALTY = {
    IssueSeverity.HIGH: 20,
    IssueSeverity.MEDIUM: 10,
    IssueSeverity.LOW: 5,
}

MAX_FUNCTIONS = 10

_HARDCODED_CREDENTIAL = re.compile(
    r"\b\w*(?:password|passwd|secret|key|token)\w*[\"']?\s*(?:=>|[:=])\s*[\"'][^\"'\s]{3,}[\"']",
    re.IGNORECASE,
)
_SQL_STATEMENT = re.compile(
    r"\b(?:select\s.+\sfrom|insert\s+into|update\s+\w+\s+set|delete\s+from)\b",
    re.IGNORECASE,
)
_STRING_BUILDING = re.compile(r"[\"']\s*\+|\+\s*[\"']|\$\{|\$\w|[\"']\s*\.\s*\$|%s")
_DEBUG_STATEMENT = re.compile(
    r"console\.log|\bprint\(|\becho\s|System\.out\.print|\bvar_dump\(|Console\.WriteLine|\bputs\s"
)
_FUNCTION_DEFINITION = re.compile(
    r"\bfunction\s+\w+|\bdef\s+\w+|\b(?:public|private|protected)\s+[\w<>\[\]]+\s+\w+\s*\(|\bfunc\s+\w+"
)


def quality_score(issues: List[QualityIssue]) -> int:
    score = 100 - sum(SEVERITY_PENALTY[i.severity] for i in issues)
    return max(0, min(100, score))


def analyze_quality(code: str) -> QualityAnalysis:
    """Flag risky patterns and derive a 0-100 quality score."""
    issues: List[QualityIssue] = []

    for line_no, line in enumerate(code.split("\n"), start=1):
        if _HARDCODED_CREDENTIAL.search(line):
            issues.append(QualityIssue(
                category=IssueCategory.SECURITY,
                severity=IssueSeverity.HIGH,
                message="Potential hardcoded credential detected",
                line=line_no,
                suggestion="Use environment variables or secure credential storage",
            ))
        if _SQL_STATEMENT.search(line) and _STRING_BUILDING.search(line):
            issues.append(QualityIssue(
                category=IssueCategory.SECURITY,
                severity=IssueSeverity.HIGH,
                message="Potential SQL injection vulnerability",
                line=line_no,
                suggestion="Use parameterized queries",
            ))

    debug = _DEBUG_STATEMENT.search(code)
    if debug:
        issues.append(QualityIssue(
            category=IssueCategory.PERFORMANCE,
            severity=IssueSeverity.LOW,
            message="Debug statements found in code",
            line=code.count("\n", 0, debug.start()) + 1,
            suggestion="Remove debug statements before production",
        ))

    if len(_FUNCTION_DEFINITION.findall(code)) > MAX_FUNCTIONS:
        issues.append(QualityIssue(
            category=IssueCategory.MAINTAINABILITY,
            severity=IssueSeverity.MEDIUM,
            message="High number of functions detected",
            suggestion="Consider breaking into smaller modules",
        ))

    return QualityAnalysis(score=quality_score(issues), issues=issues)
