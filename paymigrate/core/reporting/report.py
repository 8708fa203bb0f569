"""Migration reports derived purely from in-memory history and bulk results.

``ReportService.generate`` summarises a list of history entries into a
``ReportData``; ``export`` renders it as JSON, Markdown, CSV, SARIF or a
structured results analysis. ``analyze_bulk_result`` does the same kind
of breakdown for a single bulk run.
"""

import csv
import io
import json
import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Sequence

from ... import __version__
from ..errors import UnsupportedFormatError
from ..safety.models import MigrationHistoryEntry

logger = logging.getLogger(__name__)

RECENT_LIMIT = 10
LOW_SUCCESS_RATE = 0.8
LOW_CONFIDENCE = 0.7

CSV_HEADERS = ["Endpoint Type", "File Path", "Line Number", "Success", "Timestamp", "Error"]
SARIF_SCHEMA = "https://raw.githubusercontent.com/oasis-tcs/sarif-spec/master/Schemata/sarif-schema-2.1.0.json"


@dataclass
class ReportData:
    generated_at: str
    total_migrations: int
    successful_migrations: int
    failed_migrations: int
    success_rate: float
    """Successful / total, 0 when there is no history."""

    mean_confidence: float
    """Mean field-coverage confidence over successful entries."""

    endpoint_breakdown: Dict[str, Dict[str, int]] = field(default_factory=dict)
    recent_migrations: List[MigrationHistoryEntry] = field(default_factory=list)
    migration_history: List[MigrationHistoryEntry] = field(default_factory=list)

    @property
    def failures(self) -> List[MigrationHistoryEntry]:
        return [m for m in self.migration_history if not m.success]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "generatedAt": self.generated_at,
            "totalMigrations": self.total_migrations,
            "successfulMigrations": self.successful_migrations,
            "failedMigrations": self.failed_migrations,
            "successRate": self.success_rate,
            "meanConfidence": self.mean_confidence,
            "endpointBreakdown": self.endpoint_breakdown,
            "recentMigrations": [m.to_dict() for m in self.recent_migrations],
            "migrationHistory": [m.to_dict() for m in self.migration_history],
        }


def _timestamp_key(entry: MigrationHistoryEntry) -> datetime:
    try:
        parsed = datetime.fromisoformat(entry.timestamp.replace("Z", "+00:00"))
    except ValueError:
        return datetime.min.replace(tzinfo=timezone.utc)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class ReportService:
    """Builds and renders migration reports."""

    def __init__(self):
        self._exporters: Dict[str, Callable[[ReportData], str]] = {
            "json": self._export_json,
            "markdown": self._export_markdown,
            "csv": self._export_csv,
            "sarif": self._export_sarif,
            "analysis": self._export_analysis,
        }

    @property
    def formats(self) -> List[str]:
        return list(self._exporters)

    def generate(self, history: Sequence[MigrationHistoryEntry]) -> ReportData:
        entries = list(history)
        total = len(entries)
        successes = [e for e in entries if e.success]
        confidences = [e.confidence for e in successes if e.confidence is not None]

        breakdown: Dict[str, Dict[str, int]] = {}
        for e in entries:
            bucket = breakdown.setdefault(e.endpoint_type or "unknown", {"total": 0, "successful": 0, "failed": 0})
            bucket["total"] += 1
            bucket["successful" if e.success else "failed"] += 1

        return ReportData(
            generated_at=datetime.now(timezone.utc).isoformat(),
            total_migrations=total,
            successful_migrations=len(successes),
            failed_migrations=total - len(successes),
            success_rate=len(successes) / total if total else 0.0,
            mean_confidence=sum(confidences) / len(confidences) if confidences else 0.0,
            endpoint_breakdown=breakdown,
            recent_migrations=sorted(entries, key=_timestamp_key, reverse=True)[:RECENT_LIMIT],
            migration_history=entries,
        )

    def export(self, report: ReportData, fmt: str) -> str:
        """Render ``report``.

        Raises:
            UnsupportedFormatError: If ``fmt`` is not one of ``formats``.
        """
        exporter = self._exporters.get((fmt or "").lower())
        if exporter is None:
            raise UnsupportedFormatError(fmt)
        logger.debug(f"Exporting report with {report.total_migrations} migrations as {fmt}")
        return exporter(report)

    # ── Exporters ───────────────────────────────────────────────────

    @staticmethod
    def _export_json(report: ReportData) -> str:
        return json.dumps(report.to_dict(), indent=2)

    @staticmethod
    def _export_csv(report: ReportData) -> str:
        buf = io.StringIO()
        writer = csv.writer(buf, quoting=csv.QUOTE_ALL, lineterminator="\n")
        writer.writerow(CSV_HEADERS)
        for m in report.migration_history:
            writer.writerow([
                m.endpoint_type or "Unknown",
                m.file_path,
                m.line_number,
                "Yes" if m.success else "No",
                m.timestamp,
                m.error or "",
            ])
        return buf.getvalue().rstrip("\n")

    @staticmethod
    def _export_markdown(report: ReportData) -> str:
        lines = [
            "# Migration Report",
            "",
            f"Generated: {report.generated_at}",
            "",
            "## Summary",
            "",
            f"- **Total Migrations**: {report.total_migrations}",
            f"- **Successful**: {report.successful_migrations}",
            f"- **Failed**: {report.failed_migrations}",
            f"- **Success Rate**: {round(report.success_rate * 100)}%",
            f"- **Mean Confidence**: {report.mean_confidence:.2f}",
            "",
            "## Recent Migrations",
            "",
        ]
        if not report.recent_migrations:
            lines += ["No migrations recorded", ""]
        for m in report.recent_migrations:
            lines += [
                f"### {m.endpoint_type or 'Unknown Endpoint'}",
                f"- **File**: {m.file_path}:{m.line_number}",
                f"- **Status**: {'Success' if m.success else 'Failed'}",
                f"- **Timestamp**: {m.timestamp}",
            ]
            if m.error:
                lines.append(f"- **Error**: {m.error}")
            lines.append("")

        failures = report.failures
        if failures:
            lines += ["## Failed Migrations", ""]
            for m in failures:
                lines += [
                    f"### {m.endpoint_type or 'Unknown Endpoint'}",
                    f"- **File**: {m.file_path}:{m.line_number}",
                    f"- **Error**: {m.error or 'Unknown error'}",
                    f"- **Timestamp**: {m.timestamp}",
                    "",
                ]
        return "\n".join(lines)

    @staticmethod
    def _export_sarif(report: ReportData) -> str:
        results = []
        for m in report.migration_history:
            results.append({
                "ruleId": "migration-success" if m.success else "migration-failure",
                "level": "note" if m.success else "error",
                "message": {
                    "text": (
                        f"Successfully migrated {m.endpoint_type}" if m.success
                        else f"Failed to migrate {m.endpoint_type}: {m.error or 'Unknown error'}"
                    ),
                },
                "locations": [{
                    "physicalLocation": {
                        "artifactLocation": {"uri": m.file_path},
                        "region": {"startLine": m.line_number, "endLine": m.line_number},
                    },
                }],
                "properties": {
                    "endpointType": m.endpoint_type,
                    "timestamp": m.timestamp,
                    "success": m.success,
                },
            })
        sarif = {
            "$schema": SARIF_SCHEMA,
            "version": "2.1.0",
            "runs": [{
                "tool": {"driver": {"name": "PayMigrate", "version": __version__}},
                "results": results,
            }],
        }
        return json.dumps(sarif, indent=2)

    @staticmethod
    def _export_analysis(report: ReportData) -> str:
        return json.dumps(analyze_history(report), indent=2)


# ── Results analysis ─────────────────────────────────────────────────


def _recommendations(success_rate: float, confidence: float, failures: int, review: int = 0) -> List[str]:
    recs = []
    if failures and success_rate < LOW_SUCCESS_RATE:
        recs.append(
            f"Success rate {success_rate:.0%} is low; check the mapping dictionary "
            f"for the failing endpoint types"
        )
    if confidence and confidence < LOW_CONFIDENCE:
        recs.append("Average confidence is low; review migrated code before deploying")
    if review:
        recs.append(f"{review} migrations were flagged for manual review")
    if not recs:
        recs.append("No issues found; run the test suite against the target sandbox")
    return recs


def _error_categories(errors: Sequence[str]) -> Dict[str, int]:
    counts: Counter = Counter()
    for error in errors:
        lowered = error.lower()
        if "no mapping" in lowered:
            counts["mapping"] += 1
        elif "could not locate" in lowered:
            counts["drift"] += 1
        elif "code generation" in lowered:
            counts["transformer"] += 1
        elif "backup" in lowered:
            counts["backup"] += 1
        else:
            counts["other"] += 1
    return dict(counts)


def analyze_history(report: ReportData) -> Dict[str, Any]:
    failures = report.failures
    by_file: Dict[str, int] = Counter(m.file_path for m in report.migration_history)
    return {
        "summary": {
            "total": report.total_migrations,
            "successful": report.successful_migrations,
            "failed": report.failed_migrations,
            "successRate": report.success_rate,
            "meanConfidence": report.mean_confidence,
        },
        "byEndpointType": report.endpoint_breakdown,
        "byFile": dict(by_file),
        "errorCategories": _error_categories([m.error or "" for m in failures]),
        "recommendations": _recommendations(
            report.success_rate, report.mean_confidence, len(failures)
        ),
    }


def analyze_bulk_result(bulk: Any) -> Dict[str, Any]:
    """Structured breakdown of a ``BulkMigrationResult``."""
    total = bulk.total_endpoints
    processed = len(bulk.results)
    success_rate = bulk.successful_migrations / processed if processed else 0.0

    by_type: Dict[str, Dict[str, int]] = {}
    review = 0
    for r in bulk.results:
        key = r.metadata.endpoint_type.value
        bucket = by_type.setdefault(key, {"total": 0, "successful": 0, "failed": 0})
        bucket["total"] += 1
        bucket["successful" if r.success else "failed"] += 1
        if r.validation is not None and r.validation.review_required:
            review += 1

    return {
        "summary": {
            "total": total,
            "processed": processed,
            "successful": bulk.successful_migrations,
            "failed": bulk.failed_migrations,
            "successRate": success_rate,
            "averageConfidence": bulk.summary.average_confidence,
            "elapsedMs": bulk.summary.elapsed_ms,
            "cancelled": bulk.cancelled,
        },
        "byEndpointType": by_type,
        "filesModified": list(bulk.summary.files_modified),
        "errors": [
            {
                "filePath": f.endpoint.file_path,
                "lineNumber": f.endpoint.line_number,
                "endpointType": f.endpoint.endpoint_type.value,
                "error": f.error,
            }
            for f in bulk.errors
        ],
        "errorCategories": _error_categories([f.error for f in bulk.errors]),
        "reviewRequired": review,
        "recommendations": _recommendations(
            success_rate, bulk.summary.average_confidence, bulk.failed_migrations, review
        ),
    }
