import pytest

from arc.config import ConfigError
from arc.registry.notifications import NO_TABLE_NOTE, NotificationBroadcaster


class TestFromConfig:
    def test_no_table(self, backend):
        broadcaster = NotificationBroadcaster.from_config(backend, None)
        assert broadcaster.table is None
        assert backend.calls == []

    def test_existing_table_checked(self, backend):
        backend.add_table("section_notifications", [])
        broadcaster = NotificationBroadcaster.from_config(backend, "section_notifications")
        assert broadcaster.table == "section_notifications"
        assert backend.queried_tables() == ["section_notifications"]

    def test_missing_table_is_config_error(self, backend):
        with pytest.raises(ConfigError, match="section_notifications"):
            NotificationBroadcaster.from_config(backend, "section_notifications")


class TestBroadcast:
    def test_without_table_is_noop_success(self, backend):
        result = NotificationBroadcaster(backend).broadcast(" q ", ["NAME"])
        assert result.success
        assert result.note == NO_TABLE_NOTE
        assert result.data == {"section": "Q", "fields": ["NAME"]}
        assert backend.calls == []

    def test_inserts_one_row(self, backend):
        backend.add_table("section_notifications", [])
        result = NotificationBroadcaster(backend, "section_notifications").broadcast("q", ["NAME", "DEPT"])
        assert result.success
        assert result.note is None
        (row,) = backend.tables["section_notifications"]
        assert row["section"] == "Q"
        assert row["fields"] == ["NAME", "DEPT"]
        assert row["created_at"]

    def test_insert_failure_still_succeeds(self, backend):
        backend.add_table("section_notifications", [])
        backend.fail("insert", "section_notifications", "permission denied")
        result = NotificationBroadcaster(backend, "section_notifications").broadcast("Q", ["NAME"])
        assert result.success
        assert result.note == "broadcast failed"
