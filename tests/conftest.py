"""
Shared pytest fixtures.

Every test gets its own SQLite file so separate sessions see each other's
commits, the way separate transactions do against Postgres.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import AsyncGenerator, Dict, List, Optional, Tuple

import pytest
import pytest_asyncio
from sqlalchemy import insert, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from pharmacy_orders.application.interfaces import EventPublisher, PharmacyDirectory
from pharmacy_orders.application.medicine_catalog import MedicineCatalog
from pharmacy_orders.application.stock_reservation import StockReservationCoordinator
from pharmacy_orders.database import create_tables
from pharmacy_orders.domain.models import (
    DeliveryAddress, DeliveryTerms, Pharmacy, Principal, PrincipalKind,
)
from pharmacy_orders.infrastructure.db_schema import medicines_tbl, outbox_events_tbl
from pharmacy_orders.infrastructure.unit_of_work import UnitOfWork


# ============================================================================
# DATABASE FIXTURES
# ============================================================================


@pytest_asyncio.fixture
async def async_engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'orders.db'}")
    await create_tables(engine)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def async_session_factory(async_engine) -> async_sessionmaker:
    return async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def uow(async_session_factory) -> UnitOfWork:
    return UnitOfWork(async_session_factory)


@pytest_asyncio.fixture
async def db_session(async_session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with async_session_factory() as session:
        yield session


# ============================================================================
# SEED DATA
# ============================================================================


@pytest.fixture
def seed_medicine(async_session_factory):
    """Insert a medicine row directly and return its id."""

    async def _seed(
        medicine_id: str,
        pharmacy_id: str = "ph-1",
        price: str = "10.00",
        quantity: int = 10,
        min_threshold: int = 10,
        is_active: bool = True,
        name: Optional[str] = None,
    ) -> str:
        async with async_session_factory() as session:
            await session.execute(
                insert(medicines_tbl).values(
                    id=medicine_id,
                    pharmacy_id=pharmacy_id,
                    name=name or f"Medicine {medicine_id}",
                    price=Decimal(price),
                    current_quantity=quantity,
                    min_threshold=min_threshold,
                    unit="Units",
                    is_active=is_active,
                    created_at=datetime.now(timezone.utc),
                    updated_at=datetime.now(timezone.utc),
                )
            )
            await session.commit()
        return medicine_id

    return _seed


@pytest.fixture
def stock_of(async_session_factory):
    """Read a medicine's current quantity straight from the table."""

    async def _stock(medicine_id: str) -> int:
        async with async_session_factory() as session:
            result = await session.execute(
                select(medicines_tbl.c.current_quantity).where(medicines_tbl.c.id == medicine_id)
            )
            return result.scalar_one()

    return _stock


@pytest.fixture
def outbox_events(async_session_factory):
    async def _events(event_type: Optional[str] = None) -> List[dict]:
        stmt = select(outbox_events_tbl).order_by(outbox_events_tbl.c.created_at.asc())
        if event_type:
            stmt = stmt.where(outbox_events_tbl.c.event_type == event_type)
        async with async_session_factory() as session:
            rows = (await session.execute(stmt)).fetchall()
        return [dict(row._mapping) for row in rows]

    return _events


# ============================================================================
# FAKE COLLABORATORS
# ============================================================================


class FakePharmacyDirectory(PharmacyDirectory):
    def __init__(self, pharmacies: Optional[Dict[str, Pharmacy]] = None):
        self.pharmacies = pharmacies or {}

    async def get_pharmacy(self, pharmacy_id: str) -> Optional[Pharmacy]:
        return self.pharmacies.get(pharmacy_id)


class FakePublisher(EventPublisher):
    def __init__(self, fail_on: Optional[str] = None):
        self.fail_on = fail_on
        self.published: List[Tuple[str, dict, str]] = []

    async def publish(self, event_type: str, payload: dict, key: str) -> bool:
        if event_type == self.fail_on:
            return False
        self.published.append((event_type, payload, key))
        return True


@pytest.fixture
def pharmacies() -> FakePharmacyDirectory:
    return FakePharmacyDirectory({
        "ph-1": Pharmacy(id="ph-1", name="Central Pharmacy"),
        "ph-2": Pharmacy(id="ph-2", name="Riverside Pharmacy"),
        "ph-closed": Pharmacy(id="ph-closed", name="Closed Pharmacy", is_active=False),
    })


@pytest.fixture
def delivery_terms() -> DeliveryTerms:
    return DeliveryTerms()


@pytest.fixture
def catalog(uow) -> MedicineCatalog:
    return MedicineCatalog(uow)


@pytest.fixture
def reservations(catalog) -> StockReservationCoordinator:
    return StockReservationCoordinator(catalog)


@pytest.fixture
def address() -> DeliveryAddress:
    return DeliveryAddress(street="1 Main St", city="Springfield", state="IL", zip_code="62701")


@pytest.fixture
def customer() -> Principal:
    return Principal(kind=PrincipalKind.CUSTOMER, id="cust-1")


@pytest.fixture
def other_customer() -> Principal:
    return Principal(kind=PrincipalKind.CUSTOMER, id="cust-2")


@pytest.fixture
def pharmacy_ph1() -> Principal:
    return Principal(kind=PrincipalKind.PHARMACY, id="ph-1")


@pytest.fixture
def pharmacy_ph2() -> Principal:
    return Principal(kind=PrincipalKind.PHARMACY, id="ph-2")


@pytest.fixture
def admin() -> Principal:
    return Principal(kind=PrincipalKind.ADMIN, id="admin-1")


@pytest.fixture
def publisher() -> FakePublisher:
    return FakePublisher()
