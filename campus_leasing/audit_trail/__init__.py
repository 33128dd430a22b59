"""
Audit Trail Module - append-only record of mutating actions.

Every soft delete, restore, termination and business-area change appends one
checksummed entry carrying the request's trace id and the acting user.
"""

from .context import (
    TraceIdFilter,
    get_trace_id,
    log_extra,
    new_trace_id,
    set_trace_id,
    trace_context,
)
from .models import Actor, AuditAction, AuditEntry, RollbackPreview, RollbackSafety
from .recorder import AuditRecorder
from .rollback import RollbackService
from .storage import AuditStorage, SQLAuditStorage

__all__ = [
    # Core
    "AuditRecorder",
    "RollbackService",
    # Models
    "Actor",
    "AuditAction",
    "AuditEntry",
    "RollbackPreview",
    "RollbackSafety",
    # Storage
    "AuditStorage",
    "SQLAuditStorage",
    # Context
    "TraceIdFilter",
    "trace_context",
    "get_trace_id",
    "set_trace_id",
    "new_trace_id",
    "log_extra",
]
