"""
Tests for the audit trail.

Covers entry models and checksums, the SQL storage backend, best-effort and
transactional recording, paginated listing, integrity verification, trace id
propagation and rollback of DELETE entries.
"""

import logging
from datetime import timedelta
from unittest.mock import patch

import pytest
from pydantic import ValidationError
from sqlalchemy import text
from sqlalchemy.exc import OperationalError

from campus_leasing.audit_trail import (
    Actor,
    AuditAction,
    AuditEntry,
    AuditRecorder,
    RollbackSafety,
    RollbackService,
    SQLAuditStorage,
    TraceIdFilter,
    get_trace_id,
    trace_context,
)
from campus_leasing.config import LeasingConfig
from campus_leasing.exceptions import (
    InvalidStateError,
    NotFoundError,
    RollbackNotSupportedError,
    StoreError,
)
from campus_leasing.store import AuditLogEntry, Block, Campus
from campus_leasing.store.mixins import utcnow
from campus_leasing.store.schemas import BlockOut, LeaseOut

from helpers import at, audit_count, audit_entries, get_row, mark_deleted


def make_entry(**overrides):
    fields = {
        "entity_type": "campus",
        "action": AuditAction.DELETE,
        "details": "Campus 'North' deleted (soft delete).",
        "user_name": "ayse.admin",
        "user_role": "ADMIN",
    }
    fields.update(overrides)
    return AuditEntry(**fields).with_checksum()


@pytest.fixture
def rollback(recorder, lifecycle):
    return RollbackService(recorder, lifecycle)


class TestAuditModels:
    """Test audit trail data models."""

    def test_entry_defaults(self):
        entry = make_entry()

        assert entry.id
        assert entry.trace_id
        assert entry.timestamp.tzinfo is None
        assert entry.entity_type == "CAMPUS"
        assert entry.action == "DELETE"

    def test_entry_is_immutable(self):
        entry = make_entry()
        with pytest.raises(ValidationError):
            entry.details = "changed"

    def test_checksum_detects_changes(self):
        """Any change to a checksummed field invalidates the checksum."""
        entry = make_entry()
        assert entry.verify_checksum()

        tampered = entry.model_copy(update={"details": "nothing happened"})
        assert not tampered.verify_checksum()

    def test_missing_checksum_fails_verification(self):
        entry = AuditEntry(
            entity_type="block", action="RESTORE", user_name="ayse.admin"
        )
        assert entry.checksum is None
        assert not entry.verify_checksum()

    def test_unknown_action_rejected(self):
        with pytest.raises(ValidationError):
            AuditEntry(entity_type="block", action="ARCHIVE", user_name="x")

    def test_actor_role_normalized(self):
        assert Actor(username="jane", role=" manager ").role == "MANAGER"
        assert Actor(username="jane").role is None
        with pytest.raises(ValidationError):
            Actor(username="")


class TestSQLAuditStorage:
    """Test the SQL storage backend."""

    def test_store_and_get(self, store):
        storage = SQLAuditStorage(store)
        entry = make_entry(rollback_data={"entityType": "campus", "id": "c1"})

        storage.store(entry)
        loaded = storage.get_by_id(entry.id)

        assert loaded == entry
        assert loaded.rollback_data == {"entityType": "campus", "id": "c1"}
        assert storage.count() == 1

    def test_get_missing(self, store):
        assert SQLAuditStorage(store).get_by_id("nope") is None

    def test_query_newest_first(self, store):
        storage = SQLAuditStorage(store)
        for day in (2, 1, 3):
            storage.store(make_entry(timestamp=at(day), details=f"day {day}"))

        assert [e.details for e in storage.query()] == ["day 3", "day 2", "day 1"]
        assert [e.details for e in storage.query(offset=1, limit=1)] == ["day 2"]

    def test_rows_are_append_only(self, store):
        storage = SQLAuditStorage(store)
        entry = make_entry()
        storage.store(entry)

        with pytest.raises(RuntimeError, match="append-only"):
            with store.transaction() as session:
                session.get(AuditLogEntry, entry.id).details = "rewritten"

        with pytest.raises(RuntimeError, match="append-only"):
            with store.transaction() as session:
                session.delete(session.get(AuditLogEntry, entry.id))

        assert storage.get_by_id(entry.id).details == entry.details

    def test_verify_integrity_detects_tampering(self, store):
        storage = SQLAuditStorage(store)
        entries = [make_entry(timestamp=at(day)) for day in (1, 2, 3)]
        for entry in entries:
            storage.store(entry)

        # Raw SQL bypasses the ORM guard, as a direct database edit would
        with store.transaction() as session:
            session.execute(
                text("UPDATE audit_logs SET details = :details WHERE id = :id"),
                {"details": "nothing to see", "id": entries[1].id},
            )

        results = storage.verify_integrity()

        assert results["total_checked"] == 3
        assert results["valid"] == 2
        assert results["invalid"] == 1
        assert results["invalid_entries"][0]["id"] == entries[1].id


class TestAuditRecorder:
    """Test recording and listing."""

    def test_record_uses_default_actor(self, store, recorder):
        entry = recorder.record("campus", AuditAction.CREATE, "Campus created.")

        assert entry.user_name == "System"
        assert entry.user_role == "ADMIN"
        assert entry.verify_checksum()
        assert audit_count(store) == 1

    def test_record_disabled(self, store):
        recorder = AuditRecorder(store, config=LeasingConfig(audit_enabled=False))

        assert recorder.record("campus", "CREATE", "Campus created.") is None
        assert audit_count(store) == 0

    def test_best_effort_failure_is_logged(self, store, recorder, caplog):
        """Outside a transaction a failed write returns None and is logged."""
        error = OperationalError("INSERT INTO audit_logs", {}, Exception("locked"))
        with patch.object(SQLAuditStorage, "store", side_effect=error):
            with caplog.at_level(logging.ERROR):
                result = recorder.record("campus", "CREATE", "Campus created.")

        assert result is None
        assert "Failed to create audit log" in caplog.text

    def test_failed_write_does_not_undo_restore(
        self, store, lifecycle, hierarchy, admin
    ):
        mark_deleted(store, Block, hierarchy.block_id)
        error = OperationalError("INSERT INTO audit_logs", {}, Exception("locked"))

        with patch.object(SQLAuditStorage, "store", side_effect=error):
            lifecycle.restore("block", hierarchy.block_id, admin)

        assert get_row(store, Block, hierarchy.block_id).deleted_at is None
        assert audit_count(store) == 0

    def test_unexpected_error_does_not_fail_restore(
        self, store, lifecycle, hierarchy, admin, caplog
    ):
        """Any storage failure is logged, never raised to the caller."""
        mark_deleted(store, Block, hierarchy.block_id)

        with patch.object(SQLAuditStorage, "store", side_effect=TypeError("boom")):
            with caplog.at_level(logging.ERROR):
                block = lifecycle.restore("block", hierarchy.block_id, admin)

        assert isinstance(block, BlockOut)
        assert block.id == hierarchy.block_id
        assert block.deleted_at is None
        assert "Failed to create audit log for BLOCK RESTORE" in caplog.text
        assert audit_count(store) == 0

    def test_storage_writes_through_store(self, store, recorder):
        entry = recorder.record("campus", "CREATE", "Campus created.")

        assert entry is not None
        assert recorder.get(entry.id).details == "Campus created."

    def test_transactional_write_ignores_disabled_flag(self, store):
        recorder = AuditRecorder(store, config=LeasingConfig(audit_enabled=False))

        with store.transaction() as session:
            entry = recorder.record("lease", "DELETE", "x", session=session)

        assert entry is not None
        assert audit_count(store) == 1

    def test_transactional_write_propagates(self, store, recorder):
        """Inside a transaction the failure aborts the caller's work."""
        error = OperationalError("INSERT INTO audit_logs", {}, Exception("locked"))

        with patch.object(SQLAuditStorage, "store", side_effect=error):
            with pytest.raises(StoreError):
                with store.transaction() as session:
                    session.add(Campus(name="South"))
                    recorder.record("campus", "CREATE", "x", session=session)

        with store.session() as session:
            assert session.query(Campus).count() == 0

    def test_get_missing(self, recorder):
        with pytest.raises(NotFoundError):
            recorder.get("nope")

    def test_list_entries_paginates(self, recorder):
        for day in range(1, 6):
            recorder.storage.store(make_entry(timestamp=at(day), details=f"day {day}"))

        result = recorder.list_entries(page=3, limit=2)

        assert result["pagination"] == {
            "page": 3,
            "limit": 2,
            "totalCount": 5,
            "totalPages": 3,
        }
        assert [e["details"] for e in result["data"]] == ["day 1"]

    def test_list_entries_public_shape(self, recorder, admin):
        recorder.record("campus", "DELETE", "Campus deleted.", actor=admin)

        entry = recorder.list_entries()["data"][0]

        assert entry["user"] == "ayse.admin"
        assert entry["userRole"] == "ADMIN"
        assert entry["entityType"] == "CAMPUS"
        assert "traceId" in entry

    def test_list_entries_clamps_bad_values(self, recorder):
        recorder.record("campus", "CREATE", "Campus created.")

        result = recorder.list_entries(page="-4", limit="lots")

        assert result["pagination"]["page"] == 1
        assert result["pagination"]["limit"] == 50
        assert recorder.list_entries(limit=999999)["pagination"]["limit"] == 10000

    def test_empty_listing(self, recorder):
        result = recorder.list_entries()

        assert result["data"] == []
        assert result["pagination"]["totalPages"] == 0

    def test_verify_integrity_warns(self, store, recorder, caplog):
        entry = recorder.record("campus", "CREATE", "Campus created.")
        with store.transaction() as session:
            session.execute(
                text("UPDATE audit_logs SET user_name = 'mallory' WHERE id = :id"),
                {"id": entry.id},
            )

        with caplog.at_level(logging.WARNING):
            results = recorder.verify_integrity()

        assert results["invalid"] == 1
        assert "failed checksum verification" in caplog.text


class TestTraceContext:
    """Test trace id propagation."""

    def test_entry_carries_request_trace_id(self, store, lifecycle, hierarchy, admin):
        with trace_context("req-42") as trace_id:
            lifecycle.soft_delete("block", hierarchy.block_id, admin)

        assert trace_id == "req-42"
        assert audit_entries(store)[0].trace_id == "req-42"
        assert get_trace_id() is None

    def test_new_trace_id_without_context(self, recorder):
        first = recorder.record("campus", "CREATE", "one")
        second = recorder.record("campus", "CREATE", "two")

        assert first.trace_id != second.trace_id

    def test_generated_trace_id(self):
        with trace_context() as trace_id:
            assert get_trace_id() == trace_id
        assert get_trace_id() is None

    def test_filter_adds_trace_id(self):
        record = logging.LogRecord("x", logging.INFO, __file__, 1, "msg", None, None)
        with trace_context("req-7"):
            TraceIdFilter().filter(record)
        assert record.trace_id == "req-7"


class TestRollback:
    """Rollback is a direct restore of a DELETE entry's target."""

    def test_preview_delete_is_safe(self, store, lifecycle, rollback, hierarchy, admin):
        lifecycle.soft_delete("block", hierarchy.block_id, admin)
        entry = audit_entries(store)[0]

        preview = rollback.preview(entry.id)

        assert preview.type == RollbackSafety.SAFE
        assert preview.is_safe
        assert preview.messages == [f"Block {hierarchy.block_id} will be restored."]

    def test_execute_restores_target(
        self, store, lifecycle, rollback, hierarchy, admin
    ):
        lifecycle.soft_delete("block", hierarchy.block_id, admin)
        entry = audit_entries(store)[0]

        restored = rollback.execute(entry.id, admin)

        assert isinstance(restored, BlockOut)
        assert get_row(store, Block, hierarchy.block_id).deleted_at is None
        assert [e.action for e in audit_entries(store)] == ["DELETE", "RESTORE"]

    def test_execute_twice_rejected(self, store, lifecycle, rollback, hierarchy, admin):
        lifecycle.soft_delete("block", hierarchy.block_id, admin)
        entry = audit_entries(store)[0]
        rollback.execute(entry.id, admin)

        with pytest.raises(InvalidStateError):
            rollback.execute(entry.id, admin)

    def test_rollback_termination(
        self, store, terminator, rollback, hierarchy, admin
    ):
        summary = terminator.terminate(hierarchy.company_id, admin)

        restored = rollback.execute(summary.audit_entry_id, admin)

        assert isinstance(restored, LeaseOut)
        assert restored.company_id == hierarchy.company_id

    def test_entry_without_payload_unsafe(self, recorder, rollback):
        entry = recorder.record("campus", "RESTORE", "Campus 'North' restored.")

        preview = rollback.preview(entry.id)

        assert preview.type == RollbackSafety.UNSAFE
        assert preview.messages == ["No rollback data is available for this action."]
        with pytest.raises(RollbackNotSupportedError):
            rollback.execute(entry.id)

    def test_non_delete_entry_unsafe(self, recorder, rollback):
        entry = recorder.record(
            "campus",
            "CREATE",
            "Campus created.",
            rollback_data={"entityType": "campus", "id": "c1"},
        )

        preview = rollback.preview(entry.id)

        assert not preview.is_safe
        assert "CREATE actions cannot be rolled back." in preview.messages

    def test_entry_outside_window_unsafe(self, recorder, rollback):
        entry = make_entry(
            timestamp=utcnow() - timedelta(days=8),
            rollback_data={"entityType": "campus", "id": "c1"},
        )
        recorder.storage.store(entry)

        preview = rollback.preview(entry.id)

        assert not preview.is_safe
        assert "Entries older than 7 days cannot be rolled back." in preview.messages
        with pytest.raises(RollbackNotSupportedError, match="older than 7 days"):
            rollback.execute(entry.id)

    def test_unknown_entry(self, rollback):
        with pytest.raises(NotFoundError):
            rollback.preview("nope")
