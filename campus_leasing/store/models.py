"""
ORM models for the persisted leasing hierarchy.

Campus -> Block -> Unit is the physical hierarchy; Company owns its Lease,
documents and score entries. Every business table is soft-deletable; the audit
table is append-only.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from .mixins import IdMixin, SoftDeleteMixin, new_id, utcnow


class Base(DeclarativeBase):
    pass


class UnitStatus:
    VACANT = "VACANT"
    RESERVED = "RESERVED"
    OCCUPIED = "OCCUPIED"

    ALL = (VACANT, RESERVED, OCCUPIED)


class Campus(IdMixin, SoftDeleteMixin, Base):
    __tablename__ = "campuses"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    address: Mapped[str] = mapped_column(Text, nullable=False, default="")
    max_office_cap: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    max_area_cap: Mapped[Decimal] = mapped_column(
        Numeric(10, 2), nullable=False, default=Decimal("0")
    )
    max_floors_cap: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    campus_code: Mapped[Optional[str]] = mapped_column(String(20), unique=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)


class Block(IdMixin, SoftDeleteMixin, Base):
    __tablename__ = "blocks"

    campus_id: Mapped[str] = mapped_column(
        ForeignKey("campuses.id"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    max_floors: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    max_offices: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    max_area_sqm: Mapped[Decimal] = mapped_column(
        Numeric(10, 2), nullable=False, default=Decimal("0")
    )
    default_operating_fee: Mapped[Decimal] = mapped_column(
        Numeric(10, 2), default=Decimal("400")
    )
    sqm_per_employee: Mapped[Decimal] = mapped_column(
        Numeric(5, 2), default=Decimal("5.0")
    )
    # [{"floor": "1", "totalSqM": 500}, ...]
    floor_capacities: Mapped[List[Dict[str, Any]]] = mapped_column(
        JSON, default=list
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)


class Company(IdMixin, SoftDeleteMixin, Base):
    __tablename__ = "companies"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    registration_number: Mapped[Optional[str]] = mapped_column(String(100))
    sector: Mapped[Optional[str]] = mapped_column(String(255))
    business_areas: Mapped[List[str]] = mapped_column(JSON, default=list)
    work_area: Mapped[Optional[str]] = mapped_column(String(255))
    manager_name: Mapped[Optional[str]] = mapped_column(String(255))
    manager_phone: Mapped[Optional[str]] = mapped_column(String(50))
    manager_email: Mapped[Optional[str]] = mapped_column(String(255))
    employee_count: Mapped[int] = mapped_column(Integer, default=0)
    score: Mapped[Decimal] = mapped_column(Numeric(5, 2), default=Decimal("0"))
    # Draft terms while waiting for a unit: {"rentPerSqM", "startDate", "endDate"}
    contract_template: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)


class Unit(IdMixin, SoftDeleteMixin, Base):
    __tablename__ = "units"

    block_id: Mapped[str] = mapped_column(
        ForeignKey("blocks.id"), nullable=False, index=True
    )
    number: Mapped[str] = mapped_column(String(50), nullable=False)
    floor: Mapped[str] = mapped_column(String(50), nullable=False)
    area_sqm: Mapped[Decimal] = mapped_column(
        Numeric(10, 2), nullable=False, default=Decimal("0")
    )
    status: Mapped[str] = mapped_column(
        String(50), nullable=False, default=UnitStatus.VACANT
    )
    is_maintenance: Mapped[bool] = mapped_column(Boolean, default=False)
    company_id: Mapped[Optional[str]] = mapped_column(
        ForeignKey("companies.id"), index=True
    )
    reservation_company_id: Mapped[Optional[str]] = mapped_column(
        ForeignKey("companies.id"), index=True
    )
    reservation_fee: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2))
    reserved_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)


class Lease(IdMixin, SoftDeleteMixin, Base):
    __tablename__ = "leases"

    company_id: Mapped[str] = mapped_column(
        ForeignKey("companies.id"), nullable=False, index=True
    )
    unit_id: Mapped[Optional[str]] = mapped_column(ForeignKey("units.id"), index=True)
    start_date: Mapped[Optional[date]] = mapped_column(Date)
    end_date: Mapped[Optional[date]] = mapped_column(Date)
    monthly_rent: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0")
    )
    operating_fee: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2))
    contract_url: Mapped[Optional[str]] = mapped_column(Text)
    # Ordered, unique by name: [{"name", "url", "type"}, ...]
    documents: Mapped[List[Dict[str, Any]]] = mapped_column(JSON, default=list)
    unit_price_per_sqm: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), default=Decimal("0")
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)


class CompanyDocument(IdMixin, SoftDeleteMixin, Base):
    __tablename__ = "company_documents"

    company_id: Mapped[str] = mapped_column(
        ForeignKey("companies.id"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    url: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[Optional[str]] = mapped_column(String(50))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)


class CompanyScoreEntry(IdMixin, SoftDeleteMixin, Base):
    __tablename__ = "company_score_entries"

    company_id: Mapped[str] = mapped_column(
        ForeignKey("companies.id"), nullable=False, index=True
    )
    type: Mapped[str] = mapped_column(String(50), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    points: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    date: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    note: Mapped[Optional[str]] = mapped_column(Text)


class BusinessArea(IdMixin, SoftDeleteMixin, Base):
    __tablename__ = "business_areas"

    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)


class AuditLogEntry(Base):
    """Append-only audit record. Rows are never updated or deleted."""

    __tablename__ = "audit_logs"
    __append_only__ = True

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    trace_id: Mapped[str] = mapped_column(String(64), nullable=False, default=new_id)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow
    )
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    details: Mapped[Optional[str]] = mapped_column(Text)
    user_name: Mapped[str] = mapped_column(String(255), nullable=False)
    user_role: Mapped[Optional[str]] = mapped_column(String(50))
    rollback_data: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON)
    impact: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON)
    checksum: Mapped[str] = mapped_column(String(128), nullable=False)

    __table_args__ = (
        Index("idx_audit_timestamp", "timestamp"),
        Index("idx_audit_entity_action", "entity_type", "action"),
    )
