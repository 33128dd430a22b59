"""
Termination of a company's lease.

One transaction vacates the company's units, retires its lease, the company
itself and its documents and score entries, and appends the audit entry. The
units are vacated before anything else becomes inactive so no reader can see an
occupied unit pointing at a deleted company.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy import and_, select, update
from sqlalchemy.orm import Session

from .audit_trail.context import log_extra
from .audit_trail.models import Actor, AuditAction
from .audit_trail.recorder import AuditRecorder
from .exceptions import NotFoundError
from .store.database import Store
from .store.mixins import utcnow
from .store.models import (
    Company,
    CompanyDocument,
    CompanyScoreEntry,
    Lease,
    Unit,
    UnitStatus,
)

logger = logging.getLogger(__name__)


@dataclass
class TerminationSummary:
    """Rows touched by one termination."""

    company_id: str
    company_name: str
    terminated_at: datetime
    units_vacated: int = 0
    reservations_released: int = 0
    leases_retired: int = 0
    documents_retired: int = 0
    score_entries_retired: int = 0
    audit_entry_id: Optional[str] = None


class TerminationOrchestrator:
    """Ends a company's lease atomically.

    Every step runs inside one store transaction and the audit write is part
    of it: any failure, including a failed audit write, rolls back all of it
    and the original error reaches the caller.
    """

    def __init__(self, store: Store, recorder: Optional[AuditRecorder] = None):
        self.store = store
        self.recorder = recorder or AuditRecorder(store)

    def terminate(
        self, company_id: str, actor: Optional[Actor] = None
    ) -> TerminationSummary:
        """
        Terminate the lease of an active company.

        Args:
            company_id: ID of the company whose lease ends
            actor: Acting user

        Returns:
            Counts of the rows changed

        Raises:
            NotFoundError: No active company with that id exists
            StoreError: A statement failed; nothing was changed
        """
        with self.store.transaction() as session:
            company = self._load_company(session, company_id)
            summary = TerminationSummary(
                company_id=company.id,
                company_name=company.name,
                terminated_at=utcnow(),
            )

            self._vacate_units(session, summary)
            self._retire_leases(session, summary)
            self._retire_company(session, company, summary)
            self._retire_dependents(session, summary)
            self._audit(session, summary, actor)

        logger.info(
            "Terminated lease of company %s: %d units vacated, %d leases retired",
            company_id,
            summary.units_vacated,
            summary.leases_retired,
            extra=log_extra(),
        )
        return summary

    def _load_company(self, session: Session, company_id: str) -> Company:
        company = session.scalars(
            select(Company)
            .where(Company.id == company_id, Company.deleted_at.is_(None))
            .with_for_update()
        ).first()
        if company is None:
            logger.warning(
                "Termination rejected: company %s not found",
                company_id,
                extra=log_extra(),
            )
            raise NotFoundError("company", company_id)
        return company

    def _vacate_units(self, session: Session, summary: TerminationSummary) -> None:
        """Release units the company occupies, then reservations it holds."""
        occupied = session.execute(
            update(Unit)
            .where(Unit.company_id == summary.company_id)
            .values(
                company_id=None,
                reservation_company_id=None,
                reservation_fee=None,
                reserved_at=None,
                status=UnitStatus.VACANT,
            )
            .execution_options(synchronize_session="fetch")
        )
        summary.units_vacated = occupied.rowcount or 0

        # A reservation on a unit someone else occupies leaves that occupant alone
        reserved = session.execute(
            update(Unit)
            .where(
                and_(
                    Unit.reservation_company_id == summary.company_id,
                    Unit.company_id.is_(None),
                )
            )
            .values(
                reservation_company_id=None,
                reservation_fee=None,
                reserved_at=None,
                status=UnitStatus.VACANT,
            )
            .execution_options(synchronize_session="fetch")
        )
        held = session.execute(
            update(Unit)
            .where(
                and_(
                    Unit.reservation_company_id == summary.company_id,
                    Unit.company_id.is_not(None),
                )
            )
            .values(reservation_company_id=None, reservation_fee=None, reserved_at=None)
            .execution_options(synchronize_session="fetch")
        )
        summary.reservations_released = (reserved.rowcount or 0) + (held.rowcount or 0)

    def _retire_leases(self, session: Session, summary: TerminationSummary) -> None:
        result = session.execute(
            update(Lease)
            .where(Lease.company_id == summary.company_id, Lease.deleted_at.is_(None))
            .values(deleted_at=summary.terminated_at)
            .execution_options(synchronize_session="fetch")
        )
        summary.leases_retired = result.rowcount or 0

    def _retire_company(
        self, session: Session, company: Company, summary: TerminationSummary
    ) -> None:
        company.mark_deleted(summary.terminated_at)
        session.flush()

    def _retire_dependents(
        self, session: Session, summary: TerminationSummary
    ) -> None:
        for model, field in (
            (CompanyDocument, "documents_retired"),
            (CompanyScoreEntry, "score_entries_retired"),
        ):
            result = session.execute(
                update(model)
                .where(
                    model.company_id == summary.company_id,
                    model.deleted_at.is_(None),
                )
                .values(deleted_at=summary.terminated_at)
                .execution_options(synchronize_session="fetch")
            )
            setattr(summary, field, result.rowcount or 0)

    def _audit(
        self,
        session: Session,
        summary: TerminationSummary,
        actor: Optional[Actor],
    ) -> None:
        entry = self.recorder.record(
            "LEASE",
            AuditAction.DELETE,
            f"Lease and company deleted (soft delete): {summary.company_name}",
            rollback_data={"entityType": "lease", "id": summary.company_id},
            impact={
                "unitsVacated": summary.units_vacated,
                "reservationsReleased": summary.reservations_released,
                "leasesRetired": summary.leases_retired,
                "documentsRetired": summary.documents_retired,
                "scoreEntriesRetired": summary.score_entries_retired,
            },
            actor=actor,
            session=session,
        )
        summary.audit_entry_id = entry.id if entry is not None else None
