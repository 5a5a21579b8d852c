"""Tests for BookingService, including concurrent bookings of one slot."""

import asyncio
from datetime import datetime, time, timezone
from decimal import Decimal
from unittest.mock import patch

import pytest
from sqlalchemy import event, func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from conftest import fixed_clock, publish_slot
from yari_api.database.models import Base, ExpertSession, SessionStatus, SlotKind
from yari_api.exceptions import ConflictError, NotFoundError, PolicyError, ValidationError
from yari_api.models.auth import Principal, Role
from yari_api.models.availability import AvailabilitySettingsUpdateRequest
from yari_api.repositories.slots_repository import SlotsRepository
from yari_api.services.availability_settings_service import AvailabilitySettingsService
from yari_api.services.booking_service import BookingService
from yari_api.services.slot_service import SlotService
from yari_api.utils.timeutils import ensure_utc


@pytest.fixture
def booking(session):
    return BookingService(session, clock=fixed_clock())


@pytest.fixture
def slots(session):
    return SlotService(session, clock=fixed_clock())


class TestBook:
    """Tests for booking a single slot."""

    @pytest.mark.asyncio
    async def test_book_creates_pending_session_and_claims_slot(
        self, session, booking, slots, expert, client_user
    ):
        slot = await publish_slot(session, expert)
        booked = await booking.book(client_user, expert.user_id, slot.id, "Career chat", "Ask about roles")

        assert booked.status == SessionStatus.PENDING
        assert booked.expert_id == expert.user_id
        assert booked.client_id == client_user.user_id
        assert booked.title == "Career chat"
        assert booked.description == "Ask about roles"
        assert booked.duration_minutes == 60
        assert booked.price == Decimal("75.00")
        assert booked.source_slot_id == slot.id
        assert booked.meeting_link is None

        reloaded = await slots.get_slot(slot.id)
        assert reloaded.is_booked is True
        assert reloaded.booked_session_id == booked.id

    @pytest.mark.asyncio
    async def test_scheduled_at_uses_expert_timezone(self, session, booking, expert, client_user):
        await AvailabilitySettingsService(session).update_settings(
            expert, expert.user_id, AvailabilitySettingsUpdateRequest(timezone="America/New_York")
        )
        slot = await publish_slot(session, expert, start=time(9, 0), end=time(10, 0))
        booked = await booking.book(client_user, expert.user_id, slot.id, "Intro")

        scheduled = ensure_utc(booked.scheduled_at)
        # 09:00 in New York on 2024-01-02 (EST, UTC-5)
        assert scheduled == datetime(2024, 1, 2, 14, 0, tzinfo=timezone.utc)

    @pytest.mark.asyncio
    async def test_expert_cannot_book_own_slot(self, session, booking, expert):
        slot = await publish_slot(session, expert)
        with pytest.raises(ValidationError):
            await booking.book(expert, expert.user_id, slot.id, "Self")

    @pytest.mark.asyncio
    async def test_blank_title_rejected(self, session, booking, expert, client_user):
        slot = await publish_slot(session, expert)
        with pytest.raises(ValidationError):
            await booking.book(client_user, expert.user_id, slot.id, "   ")

    @pytest.mark.asyncio
    async def test_unknown_slot_or_wrong_expert(self, session, booking, expert, other_expert, client_user):
        slot = await publish_slot(session, expert)
        with pytest.raises(NotFoundError):
            await booking.book(client_user, expert.user_id, "missing-slot", "Intro")
        with pytest.raises(NotFoundError):
            await booking.book(client_user, other_expert.user_id, slot.id, "Intro")

    @pytest.mark.asyncio
    async def test_blocked_slot_conflicts(self, session, booking, expert, client_user):
        slot = await publish_slot(session, expert, kind=SlotKind.BLOCKED)
        with pytest.raises(ConflictError):
            await booking.book(client_user, expert.user_id, slot.id, "Intro")

    @pytest.mark.asyncio
    async def test_booked_slot_conflicts(self, session, booking, slots, expert, client_user, other_client):
        slot = await publish_slot(session, expert)
        first = await booking.book(client_user, expert.user_id, slot.id, "Intro")

        with pytest.raises(ConflictError):
            await booking.book(other_client, expert.user_id, slot.id, "Me too")

        reloaded = await slots.get_slot(slot.id)
        assert reloaded.booked_session_id == first.id

    @pytest.mark.asyncio
    async def test_free_slot_requires_free_sessions_enabled(self, session, booking, expert, client_user):
        slot = await publish_slot(session, expert, kind=SlotKind.FREE, end=time(9, 30))

        with pytest.raises(PolicyError):
            await booking.book(client_user, expert.user_id, slot.id, "Free intro")

        await AvailabilitySettingsService(session).update_settings(
            expert, expert.user_id, AvailabilitySettingsUpdateRequest(offers_free_sessions=True)
        )
        booked = await booking.book(client_user, expert.user_id, slot.id, "Free intro")
        assert booked.price == Decimal("0")

    @pytest.mark.asyncio
    async def test_started_slot_rejected(self, session, expert, client_user):
        slot = await publish_slot(session, expert)
        late = BookingService(session, clock=fixed_clock(datetime(2024, 1, 2, 9, 30, tzinfo=timezone.utc)))
        with pytest.raises(ValidationError):
            await late.book(client_user, expert.user_id, slot.id, "Intro")


class TestBufferTime:
    """Tests for the gap required between an expert's sessions."""

    @pytest.mark.asyncio
    async def test_overlapping_within_buffer_conflicts(self, session, booking, expert, client_user, other_client):
        first = await publish_slot(session, expert, start=time(9, 0), end=time(10, 0))
        second = await publish_slot(session, expert, start=time(9, 45), end=time(10, 45))
        await booking.book(client_user, expert.user_id, first.id, "First")

        with pytest.raises(ConflictError) as exc_info:
            await booking.book(other_client, expert.user_id, second.id, "Second")
        assert "conflicting_session_id" in exc_info.value.details

    @pytest.mark.asyncio
    async def test_start_inside_buffer_conflicts(self, session, booking, expert, client_user, other_client):
        first = await publish_slot(session, expert, start=time(9, 0), end=time(10, 0))
        second = await publish_slot(session, expert, start=time(10, 10), end=time(11, 0))
        await booking.book(client_user, expert.user_id, first.id, "First")

        with pytest.raises(ConflictError):
            await booking.book(other_client, expert.user_id, second.id, "Second")

    @pytest.mark.asyncio
    async def test_start_exactly_after_buffer_allowed(self, session, booking, expert, client_user, other_client):
        first = await publish_slot(session, expert, start=time(9, 0), end=time(10, 0))
        second = await publish_slot(session, expert, start=time(10, 15), end=time(11, 15))
        await booking.book(client_user, expert.user_id, first.id, "First")

        booked = await booking.book(other_client, expert.user_id, second.id, "Second")
        assert booked.status == SessionStatus.PENDING

    @pytest.mark.asyncio
    async def test_session_before_new_slot_is_checked(self, session, booking, expert, client_user, other_client):
        later = await publish_slot(session, expert, start=time(11, 0), end=time(12, 0))
        earlier = await publish_slot(session, expert, start=time(10, 0), end=time(10, 50))
        await booking.book(client_user, expert.user_id, later.id, "Later")

        with pytest.raises(ConflictError):
            await booking.book(other_client, expert.user_id, earlier.id, "Earlier")

    @pytest.mark.asyncio
    async def test_zero_buffer_allows_back_to_back(self, session, booking, expert, client_user, other_client):
        await AvailabilitySettingsService(session).update_settings(
            expert, expert.user_id, AvailabilitySettingsUpdateRequest(buffer_minutes=0)
        )
        first = await publish_slot(session, expert, start=time(9, 0), end=time(10, 0))
        second = await publish_slot(session, expert, start=time(10, 0), end=time(11, 0))
        await booking.book(client_user, expert.user_id, first.id, "First")

        booked = await booking.book(other_client, expert.user_id, second.id, "Second")
        assert booked.source_slot_id == second.id


class TestClaim:
    """Tests for the conditional slot claim."""

    @pytest.mark.asyncio
    async def test_claim_with_stale_version_fails(self, session, expert):
        slot = await publish_slot(session, expert)
        repo = SlotsRepository(session)

        assert await repo.claim(slot.id, slot.version + 1, "session-x") is False
        await session.commit()

        reloaded = await repo.get_by_id(slot.id)
        assert reloaded.is_booked is False
        assert reloaded.booked_session_id is None

    @pytest.mark.asyncio
    async def test_second_claim_loses(self, session, expert):
        slot = await publish_slot(session, expert)
        repo = SlotsRepository(session)
        seen = slot.version

        assert await repo.claim(slot.id, seen, "session-a") is True
        assert await repo.claim(slot.id, seen, "session-b") is False
        await session.commit()

        reloaded = await repo.get_by_id(slot.id)
        assert reloaded.booked_session_id == "session-a"
        assert reloaded.version == seen + 1

    @pytest.mark.asyncio
    async def test_release_only_frees_own_claim(self, session, expert):
        slot = await publish_slot(session, expert)
        repo = SlotsRepository(session)
        await repo.claim(slot.id, slot.version, "session-a")

        assert await repo.release(slot.id, "session-b") is False
        assert await repo.release(slot.id, "session-a") is True
        await session.commit()

        reloaded = await repo.get_by_id(slot.id)
        assert reloaded.is_booked is False
        assert reloaded.booked_session_id is None


@pytest.fixture
async def file_engine(tmp_path):
    """File-backed SQLite engine so concurrent sessions use separate connections."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'bookings.db'}",
        poolclass=NullPool,
        connect_args={"timeout": 30},
    )

    # Take the write lock when a transaction starts so writers queue up
    @event.listens_for(engine.sync_engine, "connect")
    def _disable_implicit_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


class TestConcurrentBooking:
    """Many clients racing for the same slot."""

    @pytest.mark.asyncio
    async def test_exactly_one_winner(self, file_engine, expert):
        factory = async_sessionmaker(file_engine, class_=AsyncSession, expire_on_commit=False)

        async with factory() as setup_session:
            slot = await publish_slot(setup_session, expert)
        slot_id = slot.id

        clients = [Principal(user_id=f"racer-{i}", role=Role.CLIENT) for i in range(5)]

        async def attempt(client: Principal):
            async with factory() as own_session:
                service = BookingService(own_session, clock=fixed_clock())
                booked = await service.book(client, expert.user_id, slot_id, "Race")
                return booked.id

        results = await asyncio.gather(*(attempt(c) for c in clients), return_exceptions=True)

        winners = [r for r in results if isinstance(r, str)]
        losers = [r for r in results if isinstance(r, Exception)]
        assert len(winners) == 1
        assert len(losers) == 4
        assert all(isinstance(loser, ConflictError) for loser in losers)

        async with factory() as check_session:
            stored = await SlotsRepository(check_session).get_by_id(slot_id)
            assert stored.is_booked is True
            assert stored.booked_session_id == winners[0]

            count = await check_session.execute(
                select(func.count()).select_from(ExpertSession).where(ExpertSession.source_slot_id == slot_id)
            )
            assert count.scalar_one() == 1


@pytest.fixture
async def deferred_engine(tmp_path):
    """File-backed SQLite engine with the driver's default deferred transactions."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'interleaved.db'}",
        poolclass=NullPool,
        connect_args={"timeout": 30},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


class TestInterleavedBooking:
    """Two bookings that both read the slot before either one commits."""

    @pytest.mark.asyncio
    async def test_stale_read_loses_at_claim(self, deferred_engine, expert, client_user, other_client):
        factory = async_sessionmaker(deferred_engine, class_=AsyncSession, expire_on_commit=False)

        async with factory() as setup_session:
            slot = await publish_slot(setup_session, expert)
        slot_id = slot.id

        async with factory() as session_a, factory() as session_b:
            slow = BookingService(session_a, clock=fixed_clock())
            fast = BookingService(session_b, clock=fixed_clock())
            checked_buffer = slow._check_buffer
            rival_bookings = []

            async def rival_books_after_our_checks(*args, **kwargs):
                # session_a has read the free slot and passed its checks
                await checked_buffer(*args, **kwargs)
                rival_bookings.append(await fast.book(other_client, expert.user_id, slot_id, "Faster"))

            with patch.object(slow, "_check_buffer", side_effect=rival_books_after_our_checks):
                with pytest.raises(ConflictError) as exc_info:
                    await slow.book(client_user, expert.user_id, slot_id, "Slower")
            assert exc_info.value.message == "Slot no longer available"
            assert len(rival_bookings) == 1

        async with factory() as check_session:
            stored = await SlotsRepository(check_session).get_by_id(slot_id)
            assert stored.is_booked is True
            assert stored.booked_session_id == rival_bookings[0].id

            count = await check_session.execute(
                select(func.count()).select_from(ExpertSession).where(ExpertSession.source_slot_id == slot_id)
            )
            assert count.scalar_one() == 1
