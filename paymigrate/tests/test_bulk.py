"""Tests for BulkCoordinator: aggregation, stop-on-error, cancellation, sampling."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from paymigrate.core.detection import DetectedEndpoint, EndpointType
from paymigrate.core.errors import BulkMigrationError, MigrationError
from paymigrate.core.mapping import MappingResolver, parse_mapping_dictionary
from paymigrate.core.migration import (
    BulkCoordinator,
    BulkOptions,
    CancellationToken,
    MigrationOrchestrator,
    TransformationResponse,
)
from paymigrate.core.migration.bulk import group_by_file
from paymigrate.core.safety import BackupManager, HistoryStore
from paymigrate.core.validation import LiveValidationResult

SNIPPETS = {
    EndpointType.HOSTED_PAYMENTS: 'post("https://api.sourcepay.com/hosted-payments", {ssl_pin: pin});',
    EndpointType.CHECKOUT: "ConvergeEmbeddedPayment.pay({ssl_txn_auth_token: token});",
    EndpointType.BATCH_PROCESSING: 'post("https://api.sourcepay.com/batch-processing", {ssl_batch_id: id});',
}


# ── Fixtures ──────────────────────────────────────────────────────────────


def _make_resolver() -> MappingResolver:
    return MappingResolver(parse_mapping_dictionary({
        "version": "1.0.0",
        "lastUpdated": "2026-01-01",
        "mappings": [
            {
                "sourceEndpoint": "hosted-payments",
                "targetEndpoint": "/api/v1/payments/hosted",
                "fieldMappings": {"ssl_pin": "apiKey"},
            },
            {
                "sourceEndpoint": "batch-processing",
                "targetEndpoint": "/api/v1/batch",
                "fieldMappings": {"ssl_batch_id": "batchId"},
            },
        ],
    }))


async def _rename_fields(request):
    return TransformationResponse(
        success=True,
        code=request.code.replace("ssl_pin", "apiKey").replace("ssl_batch_id", "batchId"),
        confidence=0.9,
    )


def _make_endpoint(tmp_path, name: str, endpoint_type: EndpointType) -> DetectedEndpoint:
    code = SNIPPETS[endpoint_type]
    path = tmp_path / name
    path.write_text(code + "\n")
    fields = ("ssl_pin",) if endpoint_type == EndpointType.HOSTED_PAYMENTS else ("ssl_batch_id",)
    return DetectedEndpoint(
        id=f"{name}:1:{endpoint_type.value}",
        file_path=str(path),
        line_number=1,
        endpoint_type=endpoint_type,
        code=code,
        ssl_fields=fields,
        language="javascript",
        confidence=0.9,
    )


def _make_coordinator(tmp_path, live_validator=None):
    transformer = MagicMock()
    transformer.transform = AsyncMock(side_effect=_rename_fields)
    orchestrator = MigrationOrchestrator(
        resolver=_make_resolver(),
        transformer=transformer,
        history=HistoryStore(),
        backup_manager=BackupManager(str(tmp_path / "backups")),
    )
    return BulkCoordinator(orchestrator, live_validator=live_validator)


def _three_files(tmp_path):
    return [
        _make_endpoint(tmp_path, "a.js", EndpointType.HOSTED_PAYMENTS),
        _make_endpoint(tmp_path, "b.js", EndpointType.CHECKOUT),
        _make_endpoint(tmp_path, "c.js", EndpointType.BATCH_PROCESSING),
    ]


# ── Tests: Aggregation ────────────────────────────────────────────────────


class TestAggregation:
    def test_one_unsupported_endpoint(self, tmp_path):
        coordinator = _make_coordinator(tmp_path)
        endpoints = _three_files(tmp_path)

        result = asyncio.run(coordinator.migrate_bulk(endpoints))

        assert result.total_endpoints == 3
        assert result.successful_migrations == 2
        assert result.failed_migrations == 1
        assert not result.success
        assert len(result.results) == 3
        assert result.errors[0].endpoint is endpoints[1]
        assert "No mapping found" in result.errors[0].error
        assert (tmp_path / "b.js").read_text() == SNIPPETS[EndpointType.CHECKOUT] + "\n"
        assert "apiKey" in (tmp_path / "a.js").read_text()

    def test_summary(self, tmp_path):
        coordinator = _make_coordinator(tmp_path)
        result = asyncio.run(coordinator.migrate_bulk(_three_files(tmp_path)))

        assert result.summary.files_modified == [str(tmp_path / "a.js"), str(tmp_path / "c.js")]
        # one field, fully mapped: 0.5 + 0.05 + 0.2
        assert abs(result.summary.average_confidence - 0.75) < 1e-9
        assert result.summary.elapsed_ms >= 0

    def test_all_successful(self, tmp_path):
        coordinator = _make_coordinator(tmp_path)
        endpoints = [
            _make_endpoint(tmp_path, "a.js", EndpointType.HOSTED_PAYMENTS),
            _make_endpoint(tmp_path, "c.js", EndpointType.BATCH_PROCESSING),
        ]
        result = asyncio.run(coordinator.migrate_bulk(endpoints))
        assert result.success
        assert result.errors == []

    def test_empty_batch(self, tmp_path):
        result = asyncio.run(_make_coordinator(tmp_path).migrate_bulk([]))
        assert result.success
        assert result.total_endpoints == 0
        assert result.summary.average_confidence == 0.0

    def test_single_backup_per_batch(self, tmp_path):
        coordinator = _make_coordinator(tmp_path)
        endpoints = [
            _make_endpoint(tmp_path, "a.js", EndpointType.HOSTED_PAYMENTS),
            _make_endpoint(tmp_path, "c.js", EndpointType.BATCH_PROCESSING),
        ]
        result = asyncio.run(coordinator.migrate_bulk(endpoints))

        assert result.results[0].backup_id is not None
        assert result.results[1].backup_id is None
        assert coordinator.orchestrator.backup_manager.statistics().total_backups == 1

    def test_progress_per_endpoint(self, tmp_path):
        seen = []
        coordinator = _make_coordinator(tmp_path)
        asyncio.run(coordinator.migrate_bulk(
            _three_files(tmp_path), BulkOptions(progress_callback=seen.append),
        ))

        assert [p.current for p in seen] == [1, 2, 3, 3]
        assert all(p.total == 3 for p in seen)
        assert seen[-1].endpoint is None


# ── Tests: Stop on error ──────────────────────────────────────────────────


class TestStopOnError:
    def test_raises_with_partial_result(self, tmp_path):
        coordinator = _make_coordinator(tmp_path)
        endpoints = _three_files(tmp_path)

        with pytest.raises(BulkMigrationError) as exc_info:
            asyncio.run(coordinator.migrate_bulk(endpoints, BulkOptions(stop_on_error=True)))

        err = exc_info.value
        assert str(err).startswith("Migration stopped due to error: No mapping found")
        assert len(err.partial_result.results) == 2
        assert err.partial_result.successful_migrations == 1
        assert err.partial_result.failed_migrations == 1
        assert isinstance(err.__cause__, MigrationError)
        assert err.__cause__.phase == "analyzing"
        # the third endpoint was never attempted
        assert (tmp_path / "c.js").read_text() == SNIPPETS[EndpointType.BATCH_PROCESSING] + "\n"


# ── Tests: Cancellation ───────────────────────────────────────────────────


class TestCancellation:
    def test_cancel_between_endpoints(self, tmp_path):
        token = CancellationToken()

        def on_progress(progress):
            if progress.current == 1:
                token.cancel()

        coordinator = _make_coordinator(tmp_path)
        result = asyncio.run(coordinator.migrate_bulk(
            _three_files(tmp_path),
            BulkOptions(progress_callback=on_progress, cancellation=token),
        ))

        assert result.cancelled
        assert len(result.results) == 1
        assert result.successful_migrations == 1
        assert result.success

    def test_cancelled_before_start(self, tmp_path):
        token = CancellationToken()
        token.cancel()
        result = asyncio.run(_make_coordinator(tmp_path).migrate_bulk(
            _three_files(tmp_path), BulkOptions(cancellation=token),
        ))
        assert result.cancelled
        assert result.results == []


# ── Tests: Sample validation ──────────────────────────────────────────────


class TestSampleValidation:
    def _live(self, available=True):
        live = MagicMock()
        live.is_available.return_value = available
        live.validate = AsyncMock(return_value=LiveValidationResult(success=False, error="sandbox down"))
        return live

    def _four_successes(self, tmp_path):
        return [
            _make_endpoint(tmp_path, f"f{i}.js", EndpointType.HOSTED_PAYMENTS) for i in range(4)
        ]

    def test_at_most_three_sampled(self, tmp_path):
        live = self._live()
        coordinator = _make_coordinator(tmp_path, live_validator=live)
        result = asyncio.run(coordinator.migrate_bulk(self._four_successes(tmp_path)))

        assert live.validate.await_count == 3
        # sample failures are only logged
        assert result.success

    def test_skipped_without_credentials(self, tmp_path):
        live = self._live(available=False)
        coordinator = _make_coordinator(tmp_path, live_validator=live)
        asyncio.run(coordinator.migrate_bulk(self._four_successes(tmp_path)))
        live.validate.assert_not_awaited()

    def test_skipped_when_validation_disabled(self, tmp_path):
        live = self._live()
        coordinator = _make_coordinator(tmp_path, live_validator=live)
        asyncio.run(coordinator.migrate_bulk(
            self._four_successes(tmp_path), BulkOptions(validate_after_migration=False),
        ))
        live.validate.assert_not_awaited()


# ── Tests: Grouping ───────────────────────────────────────────────────────


class TestGroupByFile:
    def test_groups_and_sorts(self, tmp_path):
        a = _make_endpoint(tmp_path, "a.js", EndpointType.HOSTED_PAYMENTS)
        b = _make_endpoint(tmp_path, "b.js", EndpointType.CHECKOUT)
        a_later = DetectedEndpoint(
            id="a.js:9:batch", file_path=a.file_path, line_number=9,
            endpoint_type=EndpointType.BATCH_PROCESSING, code="x",
        )
        groups = group_by_file([a_later, b, a])

        assert list(groups) == [a.file_path, b.file_path]
        assert [e.line_number for e in groups[a.file_path]] == [1, 9]
