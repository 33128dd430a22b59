"""
Checked public shapes for stored rows.

Each schema is built from an ORM row with ``model_validate(row)`` and
serialises with camelCase keys (``model_dump(by_alias=True)``).
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from .models import Company, Lease, Unit, UnitStatus

MAX_BUSINESS_AREAS = 10
PENDING_LEASE_ID = "PENDING"


def check_business_areas(v: List[str]) -> List[str]:
    """Trim tags and require at most ten unique values."""
    tags = [tag.strip() for tag in v if tag and tag.strip()]
    if len(tags) > MAX_BUSINESS_AREAS:
        raise ValueError(
            f"A company may have at most {MAX_BUSINESS_AREAS} business areas"
        )
    if len(set(tag.lower() for tag in tags)) != len(tags):
        raise ValueError("Business areas must be unique")
    return tags


def _to_float(v: Any) -> Any:
    if isinstance(v, Decimal):
        return float(v)
    return v


class OutModel(BaseModel):
    """Base for read shapes: built from attributes, dumped in camelCase."""

    model_config = ConfigDict(
        from_attributes=True, alias_generator=to_camel, populate_by_name=True
    )

    def to_public(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


class CampusOut(OutModel):
    id: str
    name: str
    address: str = ""
    max_office_cap: int = 0
    max_area_cap: float = 0.0
    max_floors_cap: int = 0
    campus_code: Optional[str] = None
    created_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None

    @field_validator("max_area_cap", mode="before")
    @classmethod
    def decimals_as_float(cls, v: Any) -> Any:
        return _to_float(v)


class FloorCapacity(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    floor: str
    total_sqm: float = Field(0.0, alias="totalSqM", ge=0)

    @field_validator("floor", mode="before")
    @classmethod
    def floor_as_text(cls, v: Any) -> str:
        return str(v)


class BlockOut(OutModel):
    id: str
    campus_id: str
    name: str
    max_floors: int = 0
    max_offices: int = 0
    max_area_sqm: float = 0.0
    default_operating_fee: Optional[float] = None
    sqm_per_employee: Optional[float] = None
    floor_capacities: List[FloorCapacity] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None

    @field_validator(
        "max_area_sqm", "default_operating_fee", "sqm_per_employee", mode="before"
    )
    @classmethod
    def decimals_as_float(cls, v: Any) -> Any:
        return _to_float(v)

    @field_validator("floor_capacities", mode="before")
    @classmethod
    def default_capacities(cls, v: Any) -> Any:
        return v or []


class UnitOut(OutModel):
    id: str
    block_id: str
    number: str
    floor: str
    area_sqm: float = 0.0
    status: str = UnitStatus.VACANT
    is_maintenance: bool = False
    company_id: Optional[str] = None
    reservation_company_id: Optional[str] = None
    reservation_fee: Optional[float] = None
    reserved_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None

    @field_validator("area_sqm", "reservation_fee", mode="before")
    @classmethod
    def decimals_as_float(cls, v: Any) -> Any:
        return _to_float(v)

    @field_validator("status")
    @classmethod
    def validate_status(cls, v: str) -> str:
        if v not in UnitStatus.ALL:
            raise ValueError(f"Unit status must be one of: {', '.join(UnitStatus.ALL)}")
        return v

    @model_validator(mode="after")
    def occupant_requires_status(self) -> "UnitOut":
        """An occupant may only be recorded on a non-vacant unit."""
        if self.company_id is not None and self.status == UnitStatus.VACANT:
            raise ValueError("A vacant unit cannot have an occupant company")
        return self


class ContractTemplate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    rent_per_sqm: float = Field(0.0, alias="rentPerSqM", ge=0)
    start_date: Optional[date] = Field(None, alias="startDate")
    end_date: Optional[date] = Field(None, alias="endDate")


class CompanyOut(OutModel):
    id: str
    name: str
    registration_number: Optional[str] = None
    sector: Optional[str] = None
    business_areas: List[str] = Field(default_factory=list)
    work_area: Optional[str] = None
    manager_name: Optional[str] = None
    manager_phone: Optional[str] = None
    manager_email: Optional[str] = None
    employee_count: int = 0
    score: float = 0.0
    contract_template: Optional[ContractTemplate] = None
    created_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None

    @field_validator("score", mode="before")
    @classmethod
    def decimals_as_float(cls, v: Any) -> Any:
        return _to_float(v)

    @field_validator("business_areas", mode="before")
    @classmethod
    def validate_business_areas(cls, v: Any) -> List[str]:
        return check_business_areas(v or [])


class LeaseDocument(BaseModel):
    name: str = Field(..., min_length=1)
    url: str
    type: Optional[str] = None


class LeaseOut(OutModel):
    id: str
    company_id: str
    unit_id: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    monthly_rent: float = 0.0
    operating_fee: Optional[float] = None
    contract_url: Optional[str] = None
    documents: List[LeaseDocument] = Field(default_factory=list)
    unit_price_per_sqm: Optional[float] = None
    deleted_at: Optional[datetime] = None

    @field_validator(
        "monthly_rent", "operating_fee", "unit_price_per_sqm", mode="before"
    )
    @classmethod
    def decimals_as_float(cls, v: Any) -> Any:
        return _to_float(v)

    @field_validator("documents", mode="before")
    @classmethod
    def default_documents(cls, v: Any) -> Any:
        return v or []

    @field_validator("documents")
    @classmethod
    def unique_document_names(cls, v: List[LeaseDocument]) -> List[LeaseDocument]:
        names = [doc.name for doc in v]
        if len(set(names)) != len(names):
            raise ValueError("Lease documents must be unique by name")
        return v

    @classmethod
    def from_row(cls, lease: Lease, unit: Optional[Unit] = None) -> "LeaseOut":
        """
        Build the public lease, deriving the price per square metre.

        Args:
            lease: Stored lease row
            unit: The leased unit, when known

        Returns:
            Checked lease shape
        """
        out = cls.model_validate(lease)
        if unit is not None and unit.area_sqm and unit.area_sqm > 0:
            out.unit_price_per_sqm = round(
                float(lease.monthly_rent) / float(unit.area_sqm), 2
            )
        return out

    @classmethod
    def pending(cls, company: Company, unit: Optional[Unit] = None) -> "LeaseOut":
        """
        Represent a company's draft contract template as a synthetic lease.

        Raises:
            ValueError: The company has no contract template
        """
        if not company.contract_template:
            raise ValueError(f"Company {company.id} has no contract template")

        template = ContractTemplate.model_validate(company.contract_template)
        area = float(unit.area_sqm) if unit is not None and unit.area_sqm else 0.0
        rent = area * template.rent_per_sqm if area > 0 else template.rent_per_sqm
        return cls(
            id=PENDING_LEASE_ID,
            company_id=company.id,
            unit_id=unit.id if unit is not None else None,
            start_date=template.start_date,
            end_date=template.end_date,
            monthly_rent=rent,
            unit_price_per_sqm=template.rent_per_sqm,
        )


class BusinessAreaOut(OutModel):
    id: str
    name: str
    created_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None


class BusinessAreaIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Business area name cannot be blank")
        return v


class DeletedItem(OutModel):
    """One row of the merged listing of soft-deleted entities."""

    id: str
    name: str
    deleted_at: datetime
    type: str


class AuditEntryOut(OutModel):
    id: str
    trace_id: str
    timestamp: datetime
    entity_type: str
    action: str
    details: Optional[str] = None
    user_name: str = Field(..., alias="user")
    user_role: Optional[str] = None
    rollback_data: Optional[Dict[str, Any]] = None
    impact: Optional[Dict[str, Any]] = None
    checksum: Optional[str] = None
