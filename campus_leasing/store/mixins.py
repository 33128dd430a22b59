"""
SQLAlchemy mixins and listeners for soft delete functionality.

Every business table carries a nullable ``deleted_at`` column: NULL means the
row is active, a timestamp means it was soft deleted at that moment.
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Optional, Type

from sqlalchemy import DateTime, Select, String, event, select
from sqlalchemy.orm import Mapped, mapped_column


def utcnow() -> datetime:
    """Naive UTC timestamp, the form every timestamp column stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_id() -> str:
    return str(uuid.uuid4())


class SoftDeleteMixin:
    """
    Mixin adding a soft delete timestamp to SQLAlchemy models.

    Usage:
        class Campus(Base, SoftDeleteMixin):
            __tablename__ = 'campuses'
            id: Mapped[str] = mapped_column(String(36), primary_key=True)
    """

    deleted_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime, nullable=True, default=None, index=True
    )

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def mark_deleted(self, when: Optional[datetime] = None) -> None:
        self.deleted_at = when or utcnow()

    def clear_deleted(self) -> None:
        self.deleted_at = None

    @classmethod
    def select_active(cls) -> Select[Any]:
        """Select active (non-deleted) rows only."""
        return select(cls).where(cls.deleted_at.is_(None))

    @classmethod
    def select_deleted(cls) -> Select[Any]:
        """Select soft-deleted rows only."""
        return select(cls).where(cls.deleted_at.is_not(None))


class IdMixin:
    """String UUID primary key shared by every table."""

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)


def prevent_hard_delete(mapper: Any, connection: Any, target: Any) -> None:
    """
    Prevent hard deletes on models with SoftDeleteMixin.

    Connected to SQLAlchemy's before_delete event.
    """
    raise RuntimeError(
        f"Hard delete attempted on {target.__class__.__name__}. "
        "Set deleted_at instead."
    )


def prevent_audit_mutation(mapper: Any, connection: Any, target: Any) -> None:
    """Reject UPDATE and DELETE on append-only tables."""
    raise RuntimeError(
        f"{target.__class__.__name__} rows are append-only and cannot be changed"
    )


def register_store_listeners(base_class: Type[Any]) -> None:
    """
    Register SQLAlchemy event listeners for soft delete and append-only tables.

    Args:
        base_class: The declarative base class
    """
    for mapper in base_class.registry.mappers:
        cls = mapper.class_
        if issubclass(cls, SoftDeleteMixin):
            if not event.contains(cls, "before_delete", prevent_hard_delete):
                event.listen(cls, "before_delete", prevent_hard_delete)
        if getattr(cls, "__append_only__", False):
            for name in ("before_update", "before_delete"):
                if not event.contains(cls, name, prevent_audit_mutation):
                    event.listen(cls, name, prevent_audit_mutation)
