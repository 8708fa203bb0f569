"""Tests for MigrationOrchestrator: phases, failures, drift, rollback."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from paymigrate.core.detection import DetectedEndpoint, EndpointType
from paymigrate.core.errors import BackupError
from paymigrate.core.mapping import MappingResolver, parse_mapping_dictionary
from paymigrate.core.migration import (
    MigrationOptions,
    MigrationOrchestrator,
    MigrationPhase,
    TransformationResponse,
    migration_confidence,
)
from paymigrate.core.safety import BackupManager, HistoryStore, content_hash
from paymigrate.core.validation import LiveValidationResult

ORIGINAL = (
    'fetch("https://api.sourcepay.com/hosted-payments/transaction_token", '
    '{ssl_account_id: "1", ssl_pin: "2"});'
)
MIGRATED = 'fetch("https://api.targetpay.com/api/v1/payments/hosted", {accountId: "1", apiKey: "2"});'
FILE_TEXT = "// checkout page\n" + ORIGINAL + "\nmodule.exports = {};\n"


# ── Fixtures ──────────────────────────────────────────────────────────────


def _make_resolver() -> MappingResolver:
    return MappingResolver(parse_mapping_dictionary({
        "version": "1.0.0",
        "lastUpdated": "2026-01-01",
        "mappings": [
            {
                "sourceEndpoint": "hosted-payments",
                "targetEndpoint": "/api/v1/payments/hosted",
                "fieldMappings": {"ssl_account_id": "accountId", "ssl_pin": "apiKey"},
            },
            {
                "sourceEndpoint": "batch-processing",
                "targetEndpoint": "/api/v1/batch",
                "fieldMappings": {"ssl_batch_id": "batchId"},
            },
        ],
    }))


def _make_file(tmp_path, name: str = "pay.js", text: str = FILE_TEXT):
    path = tmp_path / name
    path.write_text(text)
    return path


def _make_endpoint(
    path,
    endpoint_type: EndpointType = EndpointType.HOSTED_PAYMENTS,
    code: str = ORIGINAL,
    fields=("ssl_account_id", "ssl_pin"),
    file_hash=None,
) -> DetectedEndpoint:
    return DetectedEndpoint(
        id=f"{path.name}:2:{endpoint_type.value}",
        file_path=str(path),
        line_number=2,
        endpoint_type=endpoint_type,
        code=code,
        ssl_fields=tuple(fields),
        language="javascript",
        confidence=0.9,
        content_hash=file_hash,
    )


def _make_transformer(code: str = MIGRATED, success: bool = True, error: str = None):
    transformer = MagicMock()
    transformer.transform = AsyncMock(return_value=TransformationResponse(
        success=success,
        code=f"```javascript\n{code}\n```" if success else None,
        confidence=0.9 if success else None,
        error=error,
    ))
    return transformer


def _make_orchestrator(tmp_path, transformer=None, **kwargs) -> MigrationOrchestrator:
    kwargs.setdefault("backup_manager", BackupManager(str(tmp_path / "backups")))
    return MigrationOrchestrator(
        resolver=_make_resolver(),
        transformer=transformer or _make_transformer(),
        history=HistoryStore(),
        **kwargs,
    )


# ── Tests: Happy path ─────────────────────────────────────────────────────


class TestSuccessfulMigration:
    def test_file_is_rewritten(self, tmp_path):
        path = _make_file(tmp_path)
        orchestrator = _make_orchestrator(tmp_path)

        result = asyncio.run(orchestrator.migrate_endpoint(_make_endpoint(path)))

        assert result.success, result.error
        assert result.migrated_code == MIGRATED
        assert path.read_text() == FILE_TEXT.replace(ORIGINAL, MIGRATED)
        assert result.metadata.phase_reached == MigrationPhase.COMPLETE
        assert result.diff.modified == [f"{ORIGINAL} → {MIGRATED}"]

    def test_field_coverage_confidence(self, tmp_path):
        path = _make_file(tmp_path)
        result = asyncio.run(_make_orchestrator(tmp_path).migrate_endpoint(_make_endpoint(path)))
        # 0.5 + 2 * 0.05 + 0.2 * (2 / 2)
        assert abs(result.metadata.confidence - 0.8) < 1e-9

    def test_history_entry_carries_rollback(self, tmp_path):
        path = _make_file(tmp_path)
        orchestrator = _make_orchestrator(tmp_path)
        result = asyncio.run(orchestrator.migrate_endpoint(_make_endpoint(path)))

        entry = orchestrator.history.get_entry(result.history_id)
        assert entry.success
        assert entry.migrated_code == MIGRATED
        assert entry.rollback.original_content == FILE_TEXT
        assert entry.rollback.content_hash == content_hash(FILE_TEXT)

    def test_backup_taken_before_applying(self, tmp_path):
        path = _make_file(tmp_path)
        orchestrator = _make_orchestrator(tmp_path)
        result = asyncio.run(orchestrator.migrate_endpoint(_make_endpoint(path)))

        backup = orchestrator.backup_manager.get_backup_by_id(result.backup_id)
        assert backup.migration_id == result.history_id
        with open(backup.backup_path) as f:
            assert f.read() == FILE_TEXT

    def test_no_backup_when_disabled(self, tmp_path):
        path = _make_file(tmp_path)
        orchestrator = _make_orchestrator(tmp_path)
        options = MigrationOptions(create_backup=False)
        result = asyncio.run(orchestrator.migrate_endpoint(_make_endpoint(path), options))
        assert result.backup_id is None
        assert orchestrator.backup_manager.statistics().total_backups == 0

    def test_request_contents(self, tmp_path):
        path = _make_file(tmp_path)
        transformer = _make_transformer()
        orchestrator = _make_orchestrator(tmp_path, transformer, temperature=0.1, max_tokens=500)
        asyncio.run(orchestrator.migrate_endpoint(_make_endpoint(path)))

        request = transformer.transform.call_args[0][0]
        assert request.code == ORIGINAL
        assert request.mapping_rules == ["ssl_account_id → accountId", "ssl_pin → apiKey"]
        assert request.surrounding_code == FILE_TEXT.rstrip("\n")
        assert request.temperature == 0.1
        assert request.max_tokens == 500

    def test_stale_content_hash_still_applies_when_snippet_present(self, tmp_path):
        path = _make_file(tmp_path)
        endpoint = _make_endpoint(path, file_hash="stale")
        result = asyncio.run(_make_orchestrator(tmp_path).migrate_endpoint(endpoint))
        assert result.success


# ── Tests: Progress ───────────────────────────────────────────────────────


class TestProgress:
    def test_phase_sequence(self, tmp_path):
        path = _make_file(tmp_path)
        seen = []
        options = MigrationOptions(progress_callback=seen.append)
        asyncio.run(_make_orchestrator(tmp_path).migrate_endpoint(_make_endpoint(path), options))

        assert [p.phase for p in seen] == [
            MigrationPhase.ANALYZING,
            MigrationPhase.GENERATING,
            MigrationPhase.VALIDATING,
            MigrationPhase.APPLYING,
            MigrationPhase.COMPLETE,
        ]
        assert [p.percent for p in seen] == [10, 30, 70, 90, 100]

    def test_validation_can_be_skipped(self, tmp_path):
        path = _make_file(tmp_path)
        seen = []
        options = MigrationOptions(validate_after_migration=False, progress_callback=seen.append)
        result = asyncio.run(
            _make_orchestrator(tmp_path).migrate_endpoint(_make_endpoint(path), options)
        )
        assert MigrationPhase.VALIDATING not in [p.phase for p in seen]
        assert result.validation is None
        assert result.success

    def test_async_callback(self, tmp_path):
        path = _make_file(tmp_path)
        callback = AsyncMock()
        options = MigrationOptions(progress_callback=callback)
        asyncio.run(_make_orchestrator(tmp_path).migrate_endpoint(_make_endpoint(path), options))
        assert callback.await_count == 5


# ── Tests: Failures ───────────────────────────────────────────────────────


class TestFailures:
    def test_no_mapping(self, tmp_path):
        path = _make_file(tmp_path)
        transformer = _make_transformer()
        orchestrator = _make_orchestrator(tmp_path, transformer)
        seen = []

        result = asyncio.run(orchestrator.migrate_endpoint(
            _make_endpoint(path, EndpointType.CHECKOUT), MigrationOptions(progress_callback=seen.append),
        ))

        assert not result.success
        assert result.error == "No mapping found for endpoint type: Checkout.js"
        assert seen[-1].phase == MigrationPhase.FAILED
        transformer.transform.assert_not_awaited()
        assert orchestrator.history.get_migration_history() == []
        assert path.read_text() == FILE_TEXT

    def test_transformer_failure(self, tmp_path):
        path = _make_file(tmp_path)
        orchestrator = _make_orchestrator(
            tmp_path, _make_transformer(success=False, error="rate limited"),
        )
        result = asyncio.run(orchestrator.migrate_endpoint(_make_endpoint(path)))

        assert result.error == "Code generation failed: rate limited"
        assert result.metadata.phase_reached == MigrationPhase.GENERATING
        entry = orchestrator.history.get_entry(result.history_id)
        assert not entry.success
        assert entry.rollback is None
        assert path.read_text() == FILE_TEXT
        assert orchestrator.backup_manager.statistics().total_backups == 0

    def test_snippet_edited_out_before_applying(self, tmp_path):
        path = _make_file(tmp_path)
        edited = "// rewritten by someone else\nmodule.exports = {};\n"

        async def _transform(request):
            path.write_text(edited)
            return TransformationResponse(success=True, code=MIGRATED, confidence=0.9)

        transformer = MagicMock()
        transformer.transform = AsyncMock(side_effect=_transform)
        orchestrator = _make_orchestrator(tmp_path, transformer)

        result = asyncio.run(orchestrator.migrate_endpoint(_make_endpoint(path)))

        assert not result.success
        assert "could not locate" in result.error.lower()
        assert path.read_text() == edited
        assert not any(e.success for e in orchestrator.history.get_migration_history())

    def test_backup_failure_leaves_file_untouched(self, tmp_path):
        path = _make_file(tmp_path)
        backups = MagicMock()
        backups.create_backup = AsyncMock(side_effect=BackupError("disk full"))
        orchestrator = _make_orchestrator(tmp_path, backup_manager=backups)

        result = asyncio.run(orchestrator.migrate_endpoint(_make_endpoint(path)))
        assert not result.success
        assert result.error == "disk full"
        assert path.read_text() == FILE_TEXT

    def test_live_validation_failure_is_not_fatal(self, tmp_path):
        path = _make_file(tmp_path)
        live = MagicMock()
        live.is_available.return_value = True
        live.validate_endpoint = AsyncMock(
            return_value=LiveValidationResult(success=False, status_code=503, error="unavailable"),
        )
        orchestrator = _make_orchestrator(tmp_path, live_validator=live)

        result = asyncio.run(orchestrator.migrate_endpoint(_make_endpoint(path)))
        assert result.success
        assert result.live_validation.status_code == 503
        live.validate_endpoint.assert_awaited_once_with(EndpointType.HOSTED_PAYMENTS, str(path))


# ── Tests: Rollback ───────────────────────────────────────────────────────


class TestRollback:
    def test_rollback_restores_snippet(self, tmp_path):
        path = _make_file(tmp_path)
        orchestrator = _make_orchestrator(tmp_path)
        result = asyncio.run(orchestrator.migrate_endpoint(_make_endpoint(path)))
        entry = orchestrator.history.get_entry(result.history_id)

        assert asyncio.run(orchestrator.rollback_migration(entry)) is True
        assert path.read_text() == FILE_TEXT
        assert entry.rolled_back
        assert asyncio.run(orchestrator.rollback_migration(entry)) is False

    def test_rollback_of_failed_entry(self, tmp_path):
        path = _make_file(tmp_path)
        orchestrator = _make_orchestrator(tmp_path, _make_transformer(success=False, error="x"))
        result = asyncio.run(orchestrator.migrate_endpoint(_make_endpoint(path)))
        entry = orchestrator.history.get_entry(result.history_id)
        assert asyncio.run(orchestrator.rollback_migration(entry)) is False


# ── Tests: Confidence formula ─────────────────────────────────────────────


class TestMigrationConfidence:
    def _mapping(self):
        return _make_resolver().resolve_mapping(EndpointType.HOSTED_PAYMENTS)

    def test_no_fields(self):
        assert migration_confidence([], self._mapping()) == 0.5

    def test_unmapped_fields(self):
        assert abs(migration_confidence(["ssl_foo"], self._mapping()) - 0.55) < 1e-9

    def test_case_insensitive_mapping(self):
        assert abs(migration_confidence(["SSL_PIN"], self._mapping()) - 0.75) < 1e-9

    @pytest.mark.parametrize("n", [6, 10, 40])
    def test_capped_at_one(self, n):
        fields = ["ssl_pin"] * n
        assert migration_confidence(fields, self._mapping()) <= 1.0
