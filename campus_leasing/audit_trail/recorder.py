"""
Core audit recorder implementation.

Provides the AuditRecorder class that appends one immutable entry per
mutating action and serves the paginated audit listing.
"""

import logging
from typing import Any, Dict, Optional, Union

from sqlalchemy.orm import Session

from ..config import LeasingConfig, get_config
from ..exceptions import NotFoundError
from ..pagination import PaginationParams, build_paginated_response
from ..store.database import Store
from ..store.schemas import AuditEntryOut
from .context import get_trace_id, log_extra, new_trace_id
from .models import Actor, AuditAction, AuditEntry
from .storage import AuditStorage, SQLAuditStorage

logger = logging.getLogger(__name__)


class AuditRecorder:
    """Append-only recorder for the leasing audit trail.

    Outside a transaction a write is best effort: a failure is logged and
    reported by returning ``None`` so the triggering request still succeeds.
    Inside a transaction (``session`` passed) the write is part of that
    transaction and any failure propagates, aborting it.

    Example:
        >>> recorder = AuditRecorder(store)
        >>> recorder.record(
        ...     "CAMPUS",
        ...     AuditAction.RESTORE,
        ...     "North campus restored.",
        ...     actor=Actor(username="jane", role="ADMIN"),
        ... )
    """

    def __init__(
        self,
        store: Store,
        storage: Optional[AuditStorage] = None,
        config: Optional[LeasingConfig] = None,
    ):
        """
        Initialize the audit recorder.

        Args:
            store: Open store holding the audit table
            storage: Storage backend; SQL storage on ``store`` when omitted
            config: Configuration; the global configuration when omitted
        """
        self.store = store
        self.storage = storage or SQLAuditStorage(store)
        self.config = config or get_config()

    def default_actor(self) -> Actor:
        return Actor(
            username=self.config.audit_default_actor,
            role=self.config.audit_default_role,
        )

    def build_entry(
        self,
        entity_type: str,
        action: Union[str, AuditAction],
        details: str,
        rollback_data: Optional[Dict[str, Any]] = None,
        impact: Optional[Dict[str, Any]] = None,
        actor: Optional[Actor] = None,
    ) -> AuditEntry:
        """Create a checksummed entry stamped with the current trace id."""
        actor = actor or self.default_actor()
        entry = AuditEntry(
            trace_id=get_trace_id() or new_trace_id(),
            entity_type=entity_type,
            action=AuditAction(action),
            details=details,
            user_name=actor.username,
            user_role=actor.role,
            rollback_data=rollback_data,
            impact=impact,
        )
        return entry.with_checksum()

    def record(
        self,
        entity_type: str,
        action: Union[str, AuditAction],
        details: str,
        rollback_data: Optional[Dict[str, Any]] = None,
        impact: Optional[Dict[str, Any]] = None,
        actor: Optional[Actor] = None,
        session: Optional[Session] = None,
    ) -> Optional[AuditEntry]:
        """
        Append one audit entry.

        Args:
            entity_type: Type of entity affected (CAMPUS, LEASE, ...)
            action: Action performed
            details: Human-readable description
            rollback_data: Payload needed to reverse the action
            impact: Structured summary of the rows affected
            actor: Acting user; the configured default actor when omitted
            session: Transaction to join; errors then propagate to the caller

        Returns:
            The stored entry, or None when a best-effort write was skipped
            because auditing is disabled or failed
        """
        if session is None and not self.config.audit_enabled:
            return None

        entry = self.build_entry(
            entity_type, action, details, rollback_data, impact, actor
        )

        if session is not None:
            # Transactional writes are mandatory even with auditing disabled
            self.storage.store(entry, session=session)
            return entry

        try:
            self.storage.store(entry)
        except Exception:
            logger.error(
                "Failed to create audit log for %s %s",
                entry.entity_type,
                entry.action,
                exc_info=True,
                extra=log_extra(),
            )
            return None

        return entry

    def get(self, entry_id: str) -> AuditEntry:
        """
        Get a specific audit entry.

        Raises:
            NotFoundError: No entry with that id exists
        """
        entry = self.storage.get_by_id(entry_id)
        if entry is None:
            raise NotFoundError("audit log", entry_id)
        return entry

    def list_entries(
        self, page: Union[int, str, None] = None, limit: Union[int, str, None] = None
    ) -> Dict[str, Any]:
        """
        One page of entries, newest first.

        Returns:
            ``{"data": [...], "pagination": {...}}`` with camelCase entries
        """
        params = PaginationParams.from_query(
            page,
            limit,
            default_limit=self.config.pagination_default_limit,
            max_limit=self.config.pagination_max_limit,
        )
        total_count = self.storage.count()
        entries = self.storage.query(offset=params.offset, limit=params.limit)
        data = [AuditEntryOut.model_validate(entry).to_public() for entry in entries]
        return build_paginated_response(data, total_count, params)

    def verify_integrity(self) -> Dict[str, Any]:
        results = self.storage.verify_integrity()
        if results["invalid"]:
            logger.warning(
                "%d audit entries failed checksum verification",
                results["invalid"],
                extra=log_extra(),
            )
        return results
