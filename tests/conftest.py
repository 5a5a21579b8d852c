"""Pytest configuration and fixtures."""

from datetime import date, datetime, time, timezone
from decimal import Decimal
from typing import List

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from yari_api.database.models import AvailabilitySlot, Base, SlotKind
from yari_api.models.auth import Principal, Role
from yari_api.models.availability import SlotCreateRequest
from yari_api.services.slot_service import SlotService


# Test database URL (in-memory SQLite for unit tests)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# Default "now" for service clocks: comfortably before the 2024-01 slots used in tests
NOW = datetime(2023, 12, 31, 12, 0, tzinfo=timezone.utc)


def fixed_clock(moment: datetime = NOW):
    """Clock returning a fixed instant."""
    return lambda: moment


class RecordingPublisher:
    """Stand-in for SessionEventPublisher that keeps published events in memory."""

    def __init__(self, fail: bool = False):
        self.events: List = []
        self.fail = fail

    async def publish(self, event) -> None:
        if self.fail:
            raise ConnectionError("broker unavailable")
        self.events.append(event)

    @property
    def routing_keys(self) -> List[str]:
        return [event.routing_key for event in self.events]


@pytest.fixture
async def engine():
    """Create test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # Create all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    # Cleanup
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
async def session(engine):
    """Create test database session."""
    async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with async_session() as session:
        yield session
        await session.rollback()


@pytest.fixture
def expert() -> Principal:
    return Principal(user_id="expert-1", role=Role.EXPERT)


@pytest.fixture
def other_expert() -> Principal:
    return Principal(user_id="expert-2", role=Role.EXPERT)


@pytest.fixture
def client_user() -> Principal:
    return Principal(user_id="client-1", role=Role.CLIENT)


@pytest.fixture
def other_client() -> Principal:
    return Principal(user_id="client-2", role=Role.CLIENT)


@pytest.fixture
def admin() -> Principal:
    return Principal(user_id="admin-1", role=Role.ADMIN)


@pytest.fixture
def publisher() -> RecordingPublisher:
    return RecordingPublisher()


def slot_request(
    day: date = date(2024, 1, 2),
    start: time = time(9, 0),
    end: time = time(10, 0),
    kind: SlotKind = SlotKind.PAID,
    price: Decimal = Decimal("75.00"),
    **extra,
) -> SlotCreateRequest:
    """Build a slot creation request with sensible defaults."""
    if kind != SlotKind.PAID and price == Decimal("75.00"):
        price = None
    return SlotCreateRequest(date=day, start_time=start, end_time=end, kind=kind, price=price, **extra)


async def publish_slot(session, expert: Principal, clock=None, **kwargs) -> AvailabilitySlot:
    """Publish one non-recurring slot for ``expert`` and return it."""
    service = SlotService(session, clock=clock or fixed_clock())
    created = await service.create_slot(expert, slot_request(**kwargs))
    return created[0]
