"""
Tests for lease termination.

Termination must vacate units, retire the lease, company and dependents and
append exactly one audit entry, all or nothing.
"""

from decimal import Decimal
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from campus_leasing.audit_trail import AuditRecorder, SQLAuditStorage
from campus_leasing.config import LeasingConfig
from campus_leasing.exceptions import NotFoundError, StoreError
from campus_leasing.store import (
    Company,
    CompanyDocument,
    CompanyScoreEntry,
    Lease,
    Unit,
    UnitStatus,
)
from campus_leasing.store.mixins import utcnow
from campus_leasing.termination import TerminationOrchestrator, TerminationSummary

from helpers import at, audit_count, audit_entries, get_row, mark_deleted


def add_unit(store, block_id, number, **fields):
    with store.transaction() as session:
        unit = Unit(
            block_id=block_id,
            number=number,
            floor="2",
            area_sqm=Decimal("60"),
            **fields,
        )
        session.add(unit)
        session.flush()
        return unit.id


def add_company(store, name):
    with store.transaction() as session:
        company = Company(name=name)
        session.add(company)
        session.flush()
        return company.id


class TestTerminate:
    """Test the happy path of a termination."""

    def test_vacates_unit_and_retires_everything(
        self, store, terminator, hierarchy, admin
    ):
        summary = terminator.terminate(hierarchy.company_id, admin)

        assert isinstance(summary, TerminationSummary)
        assert summary.company_name == "Acme"
        assert summary.units_vacated == 1
        assert summary.leases_retired == 1
        assert summary.documents_retired == 2
        assert summary.score_entries_retired == 3

        unit = get_row(store, Unit, hierarchy.unit_id)
        assert unit.status == UnitStatus.VACANT
        assert unit.company_id is None
        assert unit.deleted_at is None

        stamp = summary.terminated_at
        assert get_row(store, Company, hierarchy.company_id).deleted_at == stamp
        assert get_row(store, Lease, hierarchy.lease_id).deleted_at == stamp
        for doc_id in hierarchy.document_ids:
            assert get_row(store, CompanyDocument, doc_id).deleted_at == stamp
        for score_id in hierarchy.score_ids:
            assert get_row(store, CompanyScoreEntry, score_id).deleted_at == stamp

    def test_writes_one_delete_entry(self, store, terminator, hierarchy, admin):
        summary = terminator.terminate(hierarchy.company_id, admin)

        entries = audit_entries(store)
        assert len(entries) == 1
        entry = entries[0]
        assert entry.id == summary.audit_entry_id
        assert entry.entity_type == "LEASE"
        assert entry.action == "DELETE"
        assert entry.user_name == "ayse.admin"
        assert entry.user_role == "ADMIN"
        assert entry.details == "Lease and company deleted (soft delete): Acme"
        payload = {"entityType": "lease", "id": hierarchy.company_id}
        assert entry.rollback_data == payload
        assert entry.impact["unitsVacated"] == 1

    def test_audit_entry_written_when_auditing_disabled(
        self, store, hierarchy, admin
    ):
        config = LeasingConfig(environment="test", audit_enabled=False)
        terminator = TerminationOrchestrator(
            store, AuditRecorder(store, config=config)
        )

        summary = terminator.terminate(hierarchy.company_id, admin)

        entries = audit_entries(store)
        assert len(entries) == 1
        assert entries[0].action == "DELETE"
        assert entries[0].id == summary.audit_entry_id

    def test_previously_deleted_rows_keep_their_timestamp(
        self, store, terminator, hierarchy, admin
    ):
        earlier = at(1)
        mark_deleted(store, CompanyDocument, hierarchy.document_ids[0], earlier)

        summary = terminator.terminate(hierarchy.company_id, admin)

        assert summary.documents_retired == 1
        retired = get_row(store, CompanyDocument, hierarchy.document_ids[0])
        assert retired.deleted_at == earlier

    def test_releases_reservation_on_free_unit(
        self, store, terminator, hierarchy, admin
    ):
        reserved_id = add_unit(
            store,
            hierarchy.block_id,
            "U2",
            status=UnitStatus.RESERVED,
            reservation_company_id=hierarchy.company_id,
            reservation_fee=Decimal("250"),
            reserved_at=utcnow(),
        )

        summary = terminator.terminate(hierarchy.company_id, admin)

        unit = get_row(store, Unit, reserved_id)
        assert summary.reservations_released == 1
        assert unit.status == UnitStatus.VACANT
        assert unit.reservation_company_id is None
        assert unit.reservation_fee is None
        assert unit.reserved_at is None

    def test_reservation_on_occupied_unit_keeps_occupant(
        self, store, terminator, hierarchy, admin
    ):
        """Another company occupying the unit stays in place."""
        globex_id = add_company(store, "Globex")
        unit_id = add_unit(
            store,
            hierarchy.block_id,
            "U3",
            status=UnitStatus.OCCUPIED,
            company_id=globex_id,
            reservation_company_id=hierarchy.company_id,
        )

        terminator.terminate(hierarchy.company_id, admin)

        unit = get_row(store, Unit, unit_id)
        assert unit.status == UnitStatus.OCCUPIED
        assert unit.company_id == globex_id
        assert unit.reservation_company_id is None

    def test_other_companies_untouched(self, store, terminator, hierarchy, admin):
        globex_id = add_company(store, "Globex")

        terminator.terminate(hierarchy.company_id, admin)

        assert get_row(store, Company, globex_id).deleted_at is None

    def test_default_actor_recorded(self, store, terminator, hierarchy):
        terminator.terminate(hierarchy.company_id)

        entry = audit_entries(store)[0]
        assert entry.user_name == "System"
        assert entry.user_role == "ADMIN"


class TestTerminateFailures:
    """Any failure leaves the store exactly as it was."""

    def test_unknown_company(self, store, terminator, admin):
        with pytest.raises(NotFoundError):
            terminator.terminate("no-such-company", admin)
        assert audit_count(store) == 0

    def test_already_terminated_company(self, store, terminator, hierarchy, admin):
        terminator.terminate(hierarchy.company_id, admin)

        with pytest.raises(NotFoundError):
            terminator.terminate(hierarchy.company_id, admin)
        assert audit_count(store) == 1

    def test_failure_mid_way_rolls_back(self, store, terminator, hierarchy, admin):
        """A failure after the units were vacated undoes the vacate too."""
        with patch.object(
            TerminationOrchestrator,
            "_retire_leases",
            side_effect=RuntimeError("disk full"),
        ):
            with pytest.raises(RuntimeError, match="disk full"):
                terminator.terminate(hierarchy.company_id, admin)

        unit = get_row(store, Unit, hierarchy.unit_id)
        assert unit.status == UnitStatus.OCCUPIED
        assert unit.company_id == hierarchy.company_id
        assert get_row(store, Company, hierarchy.company_id).deleted_at is None
        assert audit_count(store) == 0

    def test_failed_audit_write_rolls_back(self, store, terminator, hierarchy, admin):
        """The audit write is part of the transaction."""
        error = OperationalError("INSERT INTO audit_logs", {}, Exception("locked"))
        with patch.object(SQLAuditStorage, "store", side_effect=error):
            with pytest.raises(StoreError):
                terminator.terminate(hierarchy.company_id, admin)

        assert get_row(store, Company, hierarchy.company_id).deleted_at is None
        assert get_row(store, Lease, hierarchy.lease_id).deleted_at is None
        assert get_row(store, Unit, hierarchy.unit_id).status == UnitStatus.OCCUPIED


class TestTerminateThenRestore:
    """A terminated lease can be restored by company id."""

    def test_lease_restore_revives_company_and_dependents(
        self, store, terminator, lifecycle, hierarchy, admin
    ):
        terminator.terminate(hierarchy.company_id, admin)

        restored = lifecycle.restore("lease", hierarchy.company_id, admin)

        assert restored.id == hierarchy.lease_id
        assert get_row(store, Company, hierarchy.company_id).deleted_at is None
        for doc_id in hierarchy.document_ids:
            assert get_row(store, CompanyDocument, doc_id).deleted_at is None
        for score_id in hierarchy.score_ids:
            assert get_row(store, CompanyScoreEntry, score_id).deleted_at is None

        # Occupancy is not re-established by a restore
        unit = get_row(store, Unit, hierarchy.unit_id)
        assert unit.status == UnitStatus.VACANT
        assert unit.company_id is None

    def test_company_restore_revives_lease(
        self, store, terminator, lifecycle, hierarchy, admin
    ):
        terminator.terminate(hierarchy.company_id, admin)

        lifecycle.restore("company", hierarchy.company_id, admin)

        assert get_row(store, Lease, hierarchy.lease_id).deleted_at is None
        assert [e.action for e in audit_entries(store)] == ["DELETE", "RESTORE"]
