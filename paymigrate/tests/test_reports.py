"""Tests for ReportService exports and results analysis."""

import csv
import io
import json

import pytest

from paymigrate.core.detection import DetectedEndpoint, EndpointType
from paymigrate.core.errors import UnsupportedFormatError
from paymigrate.core.migration import (
    BulkFailure,
    BulkMigrationResult,
    BulkSummary,
    MigrationMetadata,
    MigrationPhase,
    MigrationResult,
)
from paymigrate.core.reporting import ReportService, analyze_bulk_result
from paymigrate.core.safety import MigrationHistoryEntry, RollbackData
from paymigrate.core.validation import LineDiff


def _make_entry(i: int, success: bool = True, error: str = None, **overrides) -> MigrationHistoryEntry:
    fields = dict(
        id=f"migration_{i}",
        timestamp=f"2026-03-{i + 1:02d}T10:00:00+00:00",
        file_path=f"src/file{i}.js",
        line_number=10 + i,
        endpoint_type="hosted-payments",
        original_code="old",
        migrated_code="new" if success else None,
        success=success,
        error=error,
        confidence=0.8 if success else None,
        rollback=RollbackData("old\n", "abc") if success else None,
    )
    fields.update(overrides)
    return MigrationHistoryEntry(**fields)


def _make_history():
    return [
        _make_entry(0),
        _make_entry(1, success=False, error='No mapping found for endpoint type: "Checkout.js"',
                    endpoint_type="Checkout.js"),
        _make_entry(2),
    ]


# ── Tests: Generate ───────────────────────────────────────────────────────


class TestGenerate:
    def test_counts(self):
        report = ReportService().generate(_make_history())

        assert report.total_migrations == 3
        assert report.successful_migrations == 2
        assert report.failed_migrations == 1
        assert abs(report.success_rate - 2 / 3) < 1e-9
        assert report.mean_confidence == 0.8
        assert report.endpoint_breakdown["Checkout.js"] == {"total": 1, "successful": 0, "failed": 1}

    def test_recent_sorted_newest_first_and_capped(self):
        history = [_make_entry(i) for i in range(12)]
        report = ReportService().generate(history)
        assert len(report.recent_migrations) == 10
        assert report.recent_migrations[0].id == "migration_11"

    def test_empty_history(self):
        report = ReportService().generate([])
        assert report.success_rate == 0.0
        assert report.mean_confidence == 0.0


# ── Tests: Export ─────────────────────────────────────────────────────────


class TestExport:
    def test_formats(self):
        assert ReportService().formats == ["json", "markdown", "csv", "sarif", "analysis"]

    def test_unsupported_format(self):
        service = ReportService()
        with pytest.raises(UnsupportedFormatError, match="Unsupported export format: xml"):
            service.export(service.generate([]), "xml")

    def test_json(self):
        service = ReportService()
        data = json.loads(service.export(service.generate(_make_history()), "json"))
        assert data["totalMigrations"] == 3
        assert data["migrationHistory"][1]["success"] is False

    def test_csv_quotes_every_cell(self):
        service = ReportService()
        text = service.export(service.generate(_make_history()), "csv")
        lines = text.split("\n")

        assert lines[0] == '"Endpoint Type","File Path","Line Number","Success","Timestamp","Error"'
        assert lines[1].startswith('"hosted-payments","src/file0.js","10","Yes"')
        rows = list(csv.reader(io.StringIO(text)))
        assert rows[2][3] == "No"
        assert rows[2][5] == 'No mapping found for endpoint type: "Checkout.js"'
        assert '""Checkout.js""' in lines[2]

    def test_markdown(self):
        service = ReportService()
        text = service.export(service.generate(_make_history()), "markdown")

        assert text.startswith("# Migration Report")
        assert "- **Total Migrations**: 3" in text
        assert "- **Success Rate**: 67%" in text
        assert "## Failed Migrations" in text
        assert "- **File**: src/file1.js:11" in text

    def test_markdown_without_history(self):
        service = ReportService()
        text = service.export(service.generate([]), "markdown")
        assert "No migrations recorded" in text
        assert "## Failed Migrations" not in text

    def test_sarif(self):
        service = ReportService()
        sarif = json.loads(service.export(service.generate(_make_history()), "sarif"))

        run = sarif["runs"][0]
        assert sarif["version"] == "2.1.0"
        assert run["tool"]["driver"]["name"] == "PayMigrate"
        levels = [r["level"] for r in run["results"]]
        assert levels == ["note", "error", "note"]
        region = run["results"][1]["locations"][0]["physicalLocation"]["region"]
        assert region["startLine"] == 11

    def test_analysis(self):
        service = ReportService()
        analysis = json.loads(service.export(service.generate(_make_history()), "analysis"))
        assert analysis["errorCategories"] == {"mapping": 1}
        assert analysis["byFile"]["src/file0.js"] == 1
        assert any("Success rate" in r for r in analysis["recommendations"])


# ── Tests: Bulk analysis ──────────────────────────────────────────────────


def _make_result(path: str, endpoint_type: EndpointType, success: bool) -> MigrationResult:
    return MigrationResult(
        success=success,
        original_code="old",
        migrated_code="new" if success else "",
        diff=LineDiff(),
        metadata=MigrationMetadata(
            endpoint_type=endpoint_type,
            confidence=0.75 if success else 0.0,
            elapsed_ms=1.0,
            file_path=path,
            line_number=1,
            phase_reached=MigrationPhase.COMPLETE if success else MigrationPhase.APPLYING,
        ),
        error=None if success else "Could not locate original code in file",
    )


class TestAnalyzeBulkResult:
    def test_breakdown(self):
        failed = DetectedEndpoint(
            id="b.js:1", file_path="b.js", line_number=1,
            endpoint_type=EndpointType.BATCH_PROCESSING, code="old",
        )
        bulk = BulkMigrationResult(
            success=False,
            total_endpoints=3,
            successful_migrations=1,
            failed_migrations=1,
            results=[
                _make_result("a.js", EndpointType.HOSTED_PAYMENTS, True),
                _make_result("b.js", EndpointType.BATCH_PROCESSING, False),
            ],
            errors=[BulkFailure(endpoint=failed, error="Could not locate original code in file")],
            summary=BulkSummary(elapsed_ms=5.0, average_confidence=0.75, files_modified=["a.js"]),
            cancelled=True,
        )

        analysis = analyze_bulk_result(bulk)

        assert analysis["summary"]["processed"] == 2
        assert analysis["summary"]["successRate"] == 0.5
        assert analysis["summary"]["cancelled"] is True
        assert analysis["byEndpointType"]["batch-processing"]["failed"] == 1
        assert analysis["errorCategories"] == {"drift": 1}
        assert analysis["errors"][0]["endpointType"] == "batch-processing"
        assert analysis["filesModified"] == ["a.js"]
