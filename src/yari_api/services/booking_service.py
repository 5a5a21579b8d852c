"""Booking coordinator.

The only place a slot becomes booked. The slot claim is a single conditional
UPDATE guarded by the slot's version counter, and the pending session is
inserted in the same transaction, so concurrent attempts on one slot resolve
to exactly one winner while every loser gets ConflictError.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta
from typing import Callable

from sqlalchemy.ext.asyncio import AsyncSession

from yari_api.database.models import AvailabilitySlot, ExpertSession, SessionStatus, SlotKind
from yari_api.database.session import unit_of_work
from yari_api.exceptions import ConflictError, NotFoundError, PolicyError, ValidationError
from yari_api.models.auth import Principal
from yari_api.repositories.sessions_repository import SessionsRepository
from yari_api.repositories.slots_repository import SlotsRepository
from yari_api.services.availability_settings_service import AvailabilitySettingsService
from yari_api.services.slot_service import MAX_SLOT_MINUTES
from yari_api.utils.timeutils import ensure_utc, local_to_utc, utcnow

logger = logging.getLogger(__name__)


class BookingService:
    """Service that reserves slots for clients."""

    def __init__(self, session: AsyncSession, clock: Callable[[], datetime] = utcnow) -> None:
        self._session = session
        self._slots = SlotsRepository(session)
        self._sessions = SessionsRepository(session)
        self._settings = AvailabilitySettingsService(session)
        self._clock = clock

    async def book(
        self,
        actor: Principal,
        expert_id: str,
        slot_id: str,
        title: str,
        description: str = "",
    ) -> ExpertSession:
        """
        Book ``slot_id`` of ``expert_id`` for the acting client.

        Returns:
            The new session in ``pending`` status

        Raises:
            NotFoundError: If the slot does not exist for this expert
            ValidationError: If the client is the expert or the slot already started
            ConflictError: If the slot is blocked, booked, lost to a concurrent
                booking, or too close to another session of the expert
            PolicyError: If the slot is free while the expert no longer offers free sessions
        """
        client_id = actor.user_id
        if client_id == expert_id:
            raise ValidationError("Experts cannot book their own slots")
        title = title.strip()
        if not title:
            raise ValidationError("Title is required", errors={"title": ["Must not be blank"]})

        slot = await self._slots.get_by_id(slot_id)
        if slot is None or slot.expert_id != expert_id:
            raise NotFoundError("Availability slot", slot_id)
        if slot.kind == SlotKind.BLOCKED:
            raise ConflictError("Slot is blocked", details={"slot_id": slot_id})
        if slot.is_booked:
            raise ConflictError("Slot is already booked", details={"slot_id": slot_id})

        prefs = await self._settings.get_settings(expert_id)
        if slot.kind == SlotKind.FREE and not prefs.offers_free_sessions:
            raise PolicyError(
                "This expert is not currently offering free sessions",
                details={"slot_id": slot_id, "kind": slot.kind.value},
            )

        scheduled_at = local_to_utc(slot.date, slot.start_time, prefs.timezone)
        if scheduled_at <= ensure_utc(self._clock()):
            raise ValidationError("Slot has already started", details={"slot_id": slot_id})

        await self._check_buffer(slot, scheduled_at, prefs.buffer_minutes)

        session_id = str(uuid.uuid4())
        seen_version = slot.version
        async with unit_of_work(self._session):
            if not await self._slots.claim(slot.id, seen_version, session_id):
                logger.info(f"Booking lost race for slot {slot.id} (client {client_id})")
                raise ConflictError("Slot no longer available", details={"slot_id": slot.id})

            booked = await self._sessions.create(
                id=session_id,
                expert_id=expert_id,
                client_id=client_id,
                title=title,
                description=description or "",
                duration_minutes=slot.duration_minutes,
                price=slot.price,
                scheduled_at=scheduled_at,
                status=SessionStatus.PENDING,
                source_slot_id=slot.id,
            )
            await self._session.refresh(slot)

        logger.info(
            f"Client {client_id} booked slot {slot.id} of expert {expert_id}: session {session_id} "
            f"at {scheduled_at.isoformat()}"
        )
        return booked

    async def _check_buffer(
        self, slot: AvailabilitySlot, start: datetime, buffer_minutes: int
    ) -> None:
        """Reject the booking when another live session sits within the expert's buffer."""
        buffer = timedelta(minutes=buffer_minutes)
        end = start + timedelta(minutes=slot.duration_minutes)
        reach = timedelta(minutes=MAX_SLOT_MINUTES) + buffer

        candidates = await self._sessions.list_active_for_expert_between(
            slot.expert_id, start - reach, end + buffer
        )
        for other in candidates:
            other_start = ensure_utc(other.scheduled_at)
            other_end = other_start + timedelta(minutes=other.duration_minutes)
            if other_start - buffer < end and start < other_end + buffer:
                logger.info(
                    f"Buffer conflict booking slot {slot.id}: session {other.id} "
                    f"({other_start.isoformat()}, {other.duration_minutes} min, buffer {buffer_minutes} min)"
                )
                raise ConflictError(
                    "Slot is too close to another session of this expert",
                    details={"slot_id": slot.id, "conflicting_session_id": other.id},
                )


def get_booking_service(session: AsyncSession) -> BookingService:
    """Factory function to create a BookingService instance."""
    return BookingService(session)
