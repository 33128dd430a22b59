"""
Entity Store - persisted campus and leasing hierarchy.

Provides the ORM models, the soft delete mixin, the owned ``Store`` resource
and the checked public schemas built from stored rows.
"""

from .database import Store
from .mixins import SoftDeleteMixin, register_store_listeners, utcnow
from .models import (
    AuditLogEntry,
    Base,
    Block,
    BusinessArea,
    Campus,
    Company,
    CompanyDocument,
    CompanyScoreEntry,
    Lease,
    Unit,
    UnitStatus,
)
from .schemas import (
    AuditEntryOut,
    BlockOut,
    BusinessAreaIn,
    BusinessAreaOut,
    CampusOut,
    CompanyOut,
    DeletedItem,
    LeaseOut,
    UnitOut,
)

__all__ = [
    # Resource
    "Store",
    # Mixins
    "SoftDeleteMixin",
    "register_store_listeners",
    "utcnow",
    # Models
    "Base",
    "Campus",
    "Block",
    "Unit",
    "UnitStatus",
    "Company",
    "Lease",
    "CompanyDocument",
    "CompanyScoreEntry",
    "BusinessArea",
    "AuditLogEntry",
    # Schemas
    "CampusOut",
    "BlockOut",
    "BusinessAreaIn",
    "BusinessAreaOut",
    "UnitOut",
    "CompanyOut",
    "LeaseOut",
    "DeletedItem",
    "AuditEntryOut",
]
