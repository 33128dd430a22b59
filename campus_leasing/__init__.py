"""
Campus Leasing - office leasing across campuses with recoverable deletions.

Campuses own blocks, blocks own floor-scoped units, and units are leased to
companies. Business rows are never physically removed: they are soft deleted
and can later be restored together with whatever their state depends on, while
an append-only audit trail records every mutating action.

Key Features
------------
* **Soft Delete & Restore**: Cascade-up through deleted ancestors and
  cascade-down into owned dependents, in one transaction
* **Termination**: Atomically vacate a company's units and retire its lease,
  the company and its dependents
* **Audit Trail**: Checksummed, append-only entries carrying the request trace id
* **Restore Gateway**: FastAPI routes for restore, termination and audit review
* **Operator CLI**: Inspect deletions, restore, terminate and export the audit trail

Quick Start
-----------
>>> from campus_leasing import Store, LifecycleService, TerminationOrchestrator
>>>
>>> with Store("sqlite:///./data/leasing.db") as store:
...     TerminationOrchestrator(store).terminate(company_id)
...     LifecycleService(store).restore("lease", company_id)
"""

__version__ = "1.0.0"

# Import main components for easy access
from .audit_trail import Actor, AuditAction, AuditRecorder, RollbackService
from .config import LeasingConfig, configure, get_config
from .exceptions import (
    AuthorizationError,
    InvalidStateError,
    LeasingError,
    NotFoundError,
    RollbackNotSupportedError,
    StoreError,
)
from .soft_delete import LifecycleService
from .store import SoftDeleteMixin, Store
from .termination import TerminationOrchestrator, TerminationSummary

__all__ = [
    # Store
    "Store",
    "SoftDeleteMixin",
    # Lifecycle
    "LifecycleService",
    "TerminationOrchestrator",
    "TerminationSummary",
    # Audit Trail
    "AuditRecorder",
    "AuditAction",
    "Actor",
    "RollbackService",
    # Configuration
    "LeasingConfig",
    "get_config",
    "configure",
    # Exceptions
    "LeasingError",
    "NotFoundError",
    "InvalidStateError",
    "StoreError",
    "AuthorizationError",
    "RollbackNotSupportedError",
]
