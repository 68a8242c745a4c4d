"""
Metadata store and activity log tests (memory, JSON and SQLite backends).
"""

import json

import pytest

from filemanager.core.filetypes import Category
from filemanager.models.activity import ActivityEntry
from filemanager.models.database import make_session_factory
from filemanager.models.records import ActionKind, ActivityRecord, from_millis, utcnow
from filemanager.services.activity import ActivityLog, JsonActivityLog, SqlActivityLog
from filemanager.services.metadata import JsonMetadataStore, MetadataStore, SqlMetadataStore


def _record_fields(**overrides):
    fields = dict(
        original_name="report.pdf",
        uploaded_at=from_millis(1700000000000),
        size=10,
        type=Category.PDF,
        path="docs/1700000000000-abc123-report.pdf",
    )
    fields.update(overrides)
    return fields


@pytest.fixture
def session_factory(tmp_path):
    return make_session_factory(f"sqlite:///{tmp_path / 'filemanager.db'}")


class TestMetadataStore:

    def test_upsert_creates_then_merges(self):
        store = MetadataStore()
        store.upsert("abc123", **_record_fields())
        updated = store.upsert("abc123", downloads=3)

        assert updated.downloads == 3
        assert updated.original_name == "report.pdf"
        assert updated.last_accessed is None
        assert len(store) == 1
        assert "abc123" in store

    def test_remove(self):
        store = MetadataStore()
        store.upsert("abc123", **_record_fields())
        assert store.remove("abc123").id == "abc123"
        assert store.remove("abc123") is None
        assert store.get("abc123") is None


class TestJsonMetadataStore:

    def test_survives_reload(self, tmp_path):
        path = tmp_path / "file_metadata.json"
        store = JsonMetadataStore(path)
        store.upsert("abc123", **_record_fields(downloads=2))

        reloaded = JsonMetadataStore(path)
        record = reloaded.get("abc123")
        assert record.downloads == 2
        assert record.type == Category.PDF
        assert record.uploaded_at == from_millis(1700000000000)

    def test_document_is_keyed_by_id(self, tmp_path):
        path = tmp_path / "file_metadata.json"
        JsonMetadataStore(path).upsert("abc123", **_record_fields())

        document = json.loads(path.read_text(encoding="utf-8"))
        assert list(document) == ["abc123"]
        assert document["abc123"]["original_name"] == "report.pdf"

    def test_missing_file_starts_empty(self, tmp_path):
        assert len(JsonMetadataStore(tmp_path / "nope.json")) == 0

    @pytest.mark.parametrize("content", ["{not json", "[1, 2, 3]", '{"abc": {"size": "big"}}'])
    def test_malformed_document_starts_empty(self, tmp_path, content):
        path = tmp_path / "file_metadata.json"
        path.write_text(content, encoding="utf-8")
        assert len(JsonMetadataStore(path)) == 0

    def test_deferred_writes_once_at_the_end(self, tmp_path):
        path = tmp_path / "file_metadata.json"
        store = JsonMetadataStore(path)
        with store.deferred():
            store.upsert("a", **_record_fields(path="a"))
            store.upsert("b", **_record_fields(path="b"))
            assert not path.exists()
        assert set(json.loads(path.read_text(encoding="utf-8"))) == {"a", "b"}


class TestSqlMetadataStore:

    def test_survives_reload(self, session_factory):
        store = SqlMetadataStore(session_factory)
        accessed = utcnow()
        store.upsert("abc123", **_record_fields(downloads=4, last_accessed=accessed))

        record = SqlMetadataStore(session_factory).get("abc123")
        assert record.downloads == 4
        assert record.type == Category.PDF
        assert record.last_accessed == accessed
        assert record.uploaded_at.tzinfo is not None

    def test_remove_deletes_row(self, session_factory):
        store = SqlMetadataStore(session_factory)
        store.upsert("a", **_record_fields(path="a"))
        store.upsert("b", **_record_fields(path="b"))
        store.remove("a")

        reloaded = SqlMetadataStore(session_factory)
        assert reloaded.get("a") is None
        assert reloaded.get("b") is not None


def _entry(n, action=ActionKind.UPLOAD):
    return ActivityRecord(action=action, filename=f"file{n}.txt")


class TestActivityLog:

    def test_newest_first_and_capped(self):
        log = ActivityLog(limit=3)
        for n in range(5):
            log.record(_entry(n))

        assert len(log) == 3
        assert [e.filename for e in log.list()] == ["file4.txt", "file3.txt", "file2.txt"]

    def test_filter_and_limit(self):
        log = ActivityLog()
        log.record(_entry(1, ActionKind.UPLOAD))
        log.record(_entry(2, ActionKind.DOWNLOAD))
        log.record(_entry(3, ActionKind.DOWNLOAD))

        downloads = log.list(ActionKind.DOWNLOAD)
        assert [e.filename for e in downloads] == ["file3.txt", "file2.txt"]
        assert len(log.list(limit=1)) == 1

    def test_json_log_survives_reload(self, tmp_path):
        path = tmp_path / "activity_history.json"
        log = JsonActivityLog(path, limit=2)
        for n in range(3):
            log.record(_entry(n))

        reloaded = JsonActivityLog(path, limit=2)
        assert [e.filename for e in reloaded.list()] == ["file2.txt", "file1.txt"]

    def test_json_log_malformed_starts_empty(self, tmp_path):
        path = tmp_path / "activity_history.json"
        path.write_text("nonsense", encoding="utf-8")
        assert len(JsonActivityLog(path)) == 0

    def test_sql_log_shrinks_table_when_limit_is_lowered(self, session_factory):
        log = SqlActivityLog(session_factory, limit=10)
        for n in range(6):
            log.record(_entry(n))

        smaller = SqlActivityLog(session_factory, limit=2)
        smaller.record(_entry(6))

        db = session_factory()
        try:
            assert db.query(ActivityEntry).count() == 2
        finally:
            db.close()
        reloaded = SqlActivityLog(session_factory, limit=10)
        assert [e.filename for e in reloaded.list()] == ["file6.txt", "file5.txt"]

    def test_sql_log_trims_oldest_rows(self, session_factory):
        log = SqlActivityLog(session_factory, limit=3)
        for n in range(5):
            log.record(_entry(n))

        reloaded = SqlActivityLog(session_factory, limit=10)
        assert [e.filename for e in reloaded.list()] == ["file4.txt", "file3.txt", "file2.txt"]
