"""Shared fixtures: in-memory stores, services and a seeded leasing hierarchy."""

from datetime import date
from decimal import Decimal
from types import SimpleNamespace

import pytest

from campus_leasing.audit_trail import Actor, AuditRecorder
from campus_leasing.config import LeasingConfig, set_config
from campus_leasing.soft_delete import LifecycleService
from campus_leasing.store import (
    Block,
    Campus,
    Company,
    CompanyDocument,
    CompanyScoreEntry,
    Lease,
    Store,
    Unit,
    UnitStatus,
)
from campus_leasing.termination import TerminationOrchestrator


@pytest.fixture(autouse=True)
def reset_global_config():
    """Keep the process-wide configuration from leaking between tests."""
    set_config(None)
    yield
    set_config(None)


@pytest.fixture
def config():
    return LeasingConfig(environment="test", database_url="sqlite://")


@pytest.fixture
def store():
    """Create an in-memory SQLite store for testing."""
    with Store("sqlite://") as store:
        yield store


@pytest.fixture
def recorder(store, config):
    return AuditRecorder(store, config=config)


@pytest.fixture
def lifecycle(store, recorder):
    return LifecycleService(store, recorder)


@pytest.fixture
def terminator(store, recorder):
    return TerminationOrchestrator(store, recorder)


@pytest.fixture
def admin():
    return Actor(username="ayse.admin", role="ADMIN")


@pytest.fixture
def hierarchy(store):
    """
    One campus, block and unit; company Acme occupying the unit under an
    active lease, with two documents and three score entries.
    """
    with store.transaction() as session:
        campus = Campus(name="North", address="1 Campus Way", max_office_cap=40)
        session.add(campus)
        session.flush()

        block = Block(
            campus_id=campus.id,
            name="A",
            max_floors=3,
            floor_capacities=[{"floor": "1", "totalSqM": 500}],
        )
        session.add(block)
        session.flush()

        acme = Company(
            name="Acme",
            sector="Software",
            business_areas=["AI", "Robotics"],
            employee_count=12,
        )
        session.add(acme)
        session.flush()

        unit = Unit(
            block_id=block.id,
            number="U1",
            floor="1",
            area_sqm=Decimal("100"),
            status=UnitStatus.OCCUPIED,
            company_id=acme.id,
        )
        session.add(unit)
        session.flush()

        lease = Lease(
            company_id=acme.id,
            unit_id=unit.id,
            start_date=date(2025, 1, 1),
            end_date=date(2027, 12, 31),
            monthly_rent=Decimal("5000"),
            operating_fee=Decimal("400"),
        )
        session.add(lease)

        documents = [
            CompanyDocument(company_id=acme.id, name=name, url=f"/docs/{name}")
            for name in ("contract.pdf", "permit.pdf")
        ]
        scores = [
            CompanyScoreEntry(company_id=acme.id, type=kind, points=Decimal(points))
            for kind, points in (("PATENT", "5"), ("EXPORT", "3"), ("EMPLOYMENT", "2"))
        ]
        session.add_all(documents + scores)
        session.flush()

        return SimpleNamespace(
            campus_id=campus.id,
            block_id=block.id,
            unit_id=unit.id,
            company_id=acme.id,
            lease_id=lease.id,
            document_ids=[doc.id for doc in documents],
            score_ids=[score.id for score in scores],
        )

