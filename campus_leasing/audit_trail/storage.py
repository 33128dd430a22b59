"""
Storage backends for audit trail data.

Entries are appended to the ``audit_logs`` table of the shared store, either
inside the caller's transaction or in a transaction of their own.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..store.database import Store
from ..store.models import AuditLogEntry
from .models import AuditEntry


class AuditStorage(ABC):
    """Abstract base class for audit trail storage backends."""

    @abstractmethod
    def store(self, entry: AuditEntry, session: Optional[Session] = None) -> None:
        """
        Append a single audit entry.

        Args:
            entry: Audit entry to store
            session: Open transaction to join; a new one is used when omitted
        """

    @abstractmethod
    def count(self) -> int:
        """Total number of stored entries."""

    @abstractmethod
    def query(self, offset: int = 0, limit: Optional[int] = None) -> List[AuditEntry]:
        """
        Entries ordered newest first.

        Args:
            offset: Rows to skip
            limit: Maximum rows to return, all when None
        """

    @abstractmethod
    def get_by_id(self, entry_id: str) -> Optional[AuditEntry]:
        """Get a specific audit entry, or None."""

    def verify_integrity(self) -> Dict[str, Any]:
        """
        Recalculate every entry's checksum.

        Returns:
            Counts of valid and invalid entries with details of the invalid ones
        """
        results: Dict[str, Any] = {
            "total_checked": 0,
            "valid": 0,
            "invalid": 0,
            "invalid_entries": [],
        }

        for entry in self.query():
            results["total_checked"] += 1
            if entry.verify_checksum():
                results["valid"] += 1
            else:
                results["invalid"] += 1
                results["invalid_entries"].append(
                    {
                        "id": entry.id,
                        "timestamp": entry.timestamp.isoformat(),
                        "stored_checksum": entry.checksum,
                        "calculated_checksum": entry.calculate_checksum(),
                    }
                )

        return results


class SQLAuditStorage(AuditStorage):
    """SQL database storage backend for audit trails."""

    def __init__(self, store: Store):
        """
        Initialize SQL audit storage.

        Args:
            store: Open store holding the audit table
        """
        self._store = store

    def _entry_to_db(self, entry: AuditEntry) -> AuditLogEntry:
        """Convert AuditEntry to database model."""
        if not entry.checksum:
            entry = entry.with_checksum()

        return AuditLogEntry(
            id=entry.id,
            trace_id=entry.trace_id,
            timestamp=entry.timestamp,
            entity_type=entry.entity_type,
            action=entry.action,
            details=entry.details,
            user_name=entry.user_name,
            user_role=entry.user_role,
            rollback_data=entry.rollback_data,
            impact=entry.impact,
            checksum=entry.checksum,
        )

    def _db_to_entry(self, db_entry: AuditLogEntry) -> AuditEntry:
        """Convert database model to AuditEntry."""
        return AuditEntry(
            id=db_entry.id,
            trace_id=db_entry.trace_id,
            timestamp=db_entry.timestamp,
            entity_type=db_entry.entity_type,
            action=db_entry.action,
            details=db_entry.details,
            user_name=db_entry.user_name,
            user_role=db_entry.user_role,
            rollback_data=db_entry.rollback_data,
            impact=db_entry.impact,
            checksum=db_entry.checksum,
        )

    def store(self, entry: AuditEntry, session: Optional[Session] = None) -> None:
        """Store a single audit entry."""
        db_entry = self._entry_to_db(entry)

        if session is not None:
            session.add(db_entry)
            # Surface constraint errors inside the caller's transaction
            session.flush()
            return

        with self._store.transaction() as own_session:
            own_session.add(db_entry)

    def count(self) -> int:
        with self._store.session() as session:
            return session.scalar(select(func.count()).select_from(AuditLogEntry)) or 0

    def query(self, offset: int = 0, limit: Optional[int] = None) -> List[AuditEntry]:
        stmt = (
            select(AuditLogEntry)
            .order_by(AuditLogEntry.timestamp.desc(), AuditLogEntry.id)
            .offset(offset)
        )
        if limit is not None:
            stmt = stmt.limit(limit)

        with self._store.session() as session:
            return [self._db_to_entry(row) for row in session.scalars(stmt)]

    def get_by_id(self, entry_id: str) -> Optional[AuditEntry]:
        with self._store.session() as session:
            db_entry = session.get(AuditLogEntry, entry_id)
            if db_entry:
                return self._db_to_entry(db_entry)
            return None
