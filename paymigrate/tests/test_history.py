"""Tests for HistoryStore: capping, statistics, persistence, export/import."""

import asyncio
import json

from paymigrate.core.safety import HistoryStore, MigrationHistoryEntry, RollbackData


def _make_entry(
    n: int = 0,
    success: bool = True,
    endpoint_type: str = "hosted-payments",
    confidence: float = 0.9,
) -> MigrationHistoryEntry:
    return MigrationHistoryEntry(
        id=f"migration_{n}",
        timestamp=f"2026-03-01T10:00:{n % 60:02d}+00:00",
        file_path="src/pay.js",
        line_number=10 + n,
        endpoint_type=endpoint_type,
        original_code="ssl_pin: pin",
        migrated_code="apiKey: key" if success else None,
        success=success,
        error=None if success else "Code generation failed: timeout",
        confidence=confidence if success else None,
        rollback=RollbackData("ssl_pin: pin\n", "abc") if success else None,
    )


def _record_all(store: HistoryStore, entries) -> None:
    async def _run():
        for entry in entries:
            await store.record(entry)

    asyncio.run(_run())


# ── Tests: Capping ─────────────────────────────────────────────────────────


class TestCapping:
    def test_history_capped_newest_first(self):
        store = HistoryStore(max_entries=100)
        _record_all(store, [_make_entry(i) for i in range(105)])

        history = store.get_migration_history()
        assert len(history) == 100
        assert history[0].id == "migration_104"
        assert history[-1].id == "migration_5"

    def test_get_entry(self):
        store = HistoryStore()
        _record_all(store, [_make_entry(1), _make_entry(2)])
        assert store.get_entry("migration_1").line_number == 11
        assert store.get_entry("missing") is None

    def test_mark_rolled_back(self):
        store = HistoryStore()
        _record_all(store, [_make_entry(1)])
        assert asyncio.run(store.mark_rolled_back("migration_1")) is True
        assert store.get_entry("migration_1").rolled_back is True
        assert asyncio.run(store.mark_rolled_back("nope")) is False

    def test_clear(self):
        store = HistoryStore()
        _record_all(store, [_make_entry(1)])
        asyncio.run(store.clear())
        assert store.get_migration_history() == []


# ── Tests: Statistics ──────────────────────────────────────────────────────


class TestStatistics:
    def test_empty_history(self):
        stats = HistoryStore().statistics()
        assert stats.total_migrations == 0
        assert stats.success_proxy_confidence == 0.0
        assert stats.mean_result_confidence == 0.0

    def test_proxy_and_mean_confidence_are_separate(self):
        store = HistoryStore()
        _record_all(store, [
            _make_entry(1, confidence=0.6),
            _make_entry(2, confidence=1.0),
            _make_entry(3, success=False),
            _make_entry(4, success=False),
        ])
        stats = store.statistics()
        assert stats.successful_migrations == 2
        assert stats.failed_migrations == 2
        assert stats.success_proxy_confidence == 0.4
        assert abs(stats.mean_result_confidence - 0.8) < 1e-9

    def test_top_endpoint_types(self):
        store = HistoryStore()
        _record_all(store, [
            _make_entry(1, endpoint_type="Checkout.js"),
            _make_entry(2, endpoint_type="hosted-payments"),
            _make_entry(3, endpoint_type="hosted-payments"),
        ])
        top = store.statistics().top_endpoint_types
        assert top[0] == {"endpoint_type": "hosted-payments", "count": 2}

    def test_recent_limited_to_ten(self):
        store = HistoryStore()
        _record_all(store, [_make_entry(i) for i in range(15)])
        recent = store.statistics().recent_migrations
        assert len(recent) == 10
        assert recent[0].id == "migration_14"


# ── Tests: Persistence and export ──────────────────────────────────────────


class TestPersistence:
    def test_persisted_document_shape(self, tmp_path):
        path = tmp_path / "state" / "history.json"
        store = HistoryStore(str(path))
        _record_all(store, [_make_entry(1)])

        document = json.loads(path.read_text())
        assert document["version"] == "1.0"
        assert document["totalMigrations"] == 1
        assert "exportDate" in document
        record = document["migrations"][0]
        assert record["filePath"] == "src/pay.js"
        assert record["rollback"]["originalContent"] == "ssl_pin: pin\n"

    def test_reload_from_disk(self, tmp_path):
        path = tmp_path / "history.json"
        _record_all(HistoryStore(str(path)), [_make_entry(1), _make_entry(2, success=False)])

        reloaded = HistoryStore(str(path))
        assert [e.id for e in reloaded.get_migration_history()] == ["migration_2", "migration_1"]
        assert reloaded.get_entry("migration_1").rollback.content_hash == "abc"

    def test_corrupt_file_loads_empty(self, tmp_path):
        path = tmp_path / "history.json"
        path.write_text("[[[ not json")
        assert HistoryStore(str(path)).get_migration_history() == []

    def test_non_utf8_file_loads_empty(self, tmp_path):
        path = tmp_path / "history.json"
        path.write_bytes(b"\xff\xfe\x00garbage\x80")
        assert HistoryStore(str(path)).get_migration_history() == []

    def test_export_import_round_trip(self):
        source = HistoryStore()
        _record_all(source, [_make_entry(1), _make_entry(2, success=False), _make_entry(3)])

        target = HistoryStore()
        assert asyncio.run(target.import_history(source.export_history())) is True

        original = source.get_migration_history()
        imported = target.get_migration_history()
        assert len(imported) == len(original)
        assert [e.id for e in imported] == [e.id for e in original]
        assert [e.success for e in imported] == [e.success for e in original]

    def test_import_without_migrations_is_rejected(self):
        store = HistoryStore()
        _record_all(store, [_make_entry(1)])
        assert asyncio.run(store.import_history('{"version": "1.0"}')) is False
        assert asyncio.run(store.import_history("not json")) is False
        assert len(store.get_migration_history()) == 1

    def test_import_with_bad_entry_is_rejected_wholesale(self):
        store = HistoryStore()
        document = {"version": "1.0", "migrations": [_make_entry(1).to_dict(), {"id": "broken"}]}
        assert asyncio.run(store.import_history(json.dumps(document))) is False
        assert store.get_migration_history() == []

    def test_import_of_success_without_rollback_is_rejected(self):
        store = HistoryStore()
        _record_all(store, [_make_entry(1)])
        record = _make_entry(2).to_dict()
        record["rollback"] = None
        document = {"version": "1.0", "migrations": [record]}

        assert asyncio.run(store.import_history(json.dumps(document))) is False
        assert [e.id for e in store.get_migration_history()] == ["migration_1"]

    def test_persisted_success_without_rollback_loads_empty(self, tmp_path):
        record = _make_entry(1).to_dict()
        record["rollback"] = None
        path = tmp_path / "history.json"
        path.write_text(json.dumps({"version": "1.0", "migrations": [record]}))
        assert HistoryStore(str(path)).get_migration_history() == []
