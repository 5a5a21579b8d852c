"""Availability slot store.

Slots are the single source of truth for what a client can book. Dates and
times are wall-clock values in the expert's settings timezone.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Callable, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from yari_api.database.models import AvailabilitySettings, AvailabilitySlot, RecurrencePattern, SlotKind
from yari_api.database.session import unit_of_work
from yari_api.exceptions import AuthorizationError, ConflictError, NotFoundError, ValidationError
from yari_api.models.auth import Principal, Role
from yari_api.models.availability import SlotCreateRequest, SlotUpdateRequest
from yari_api.repositories.slots_repository import SlotsRepository
from yari_api.services.availability_settings_service import AvailabilitySettingsService
from yari_api.services.recurrence import SlotTemplate, build_instances
from yari_api.utils.timeutils import add_minutes, ensure_utc, local_to_utc, local_today, minutes_between, utcnow

logger = logging.getLogger(__name__)

MIN_SLOT_MINUTES = 15
MAX_SLOT_MINUTES = 180


class SlotService:
    """Service for listing, publishing, editing and deleting availability slots."""

    def __init__(self, session: AsyncSession, clock: Callable[[], datetime] = utcnow) -> None:
        self._session = session
        self._repo = SlotsRepository(session)
        self._settings = AvailabilitySettingsService(session)
        self._clock = clock

    async def list_slots(
        self,
        expert_id: str,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        available_only: bool = False,
    ) -> List[AvailabilitySlot]:
        """
        List an expert's slots in chronological order.

        Without an explicit range the window runs from today (expert timezone)
        to the end of the expert's advance-booking horizon.
        """
        if start_date is None or end_date is None:
            prefs = await self._settings.get_settings(expert_id)
            if start_date is None:
                start_date = local_today(self._clock(), prefs.timezone)
            if end_date is None:
                end_date = start_date + timedelta(days=prefs.advance_booking_days)
        if end_date < start_date:
            raise ValidationError(
                "end_date must not precede start_date",
                errors={"end_date": ["Must be on or after start_date"]},
            )
        return await self._repo.list_for_expert(expert_id, start_date, end_date, available_only)

    async def get_slot(self, slot_id: str) -> AvailabilitySlot:
        """Return a slot or raise NotFoundError."""
        slot = await self._repo.get_by_id(slot_id)
        if slot is None:
            raise NotFoundError("Availability slot", slot_id)
        return slot

    async def create_slot(self, actor: Principal, request: SlotCreateRequest) -> List[AvailabilitySlot]:
        """
        Publish a slot for the acting expert, expanding recurring templates.

        Returns the base slot followed by every recurrence instance created.
        Instances that would start at the same moment as an existing slot are
        skipped; the base slot itself colliding raises ConflictError.
        """
        if actor.role != Role.EXPERT:
            raise AuthorizationError("Only experts can publish availability")
        expert_id = actor.user_id

        pattern = request.recurrence_pattern
        if request.is_recurring and pattern == RecurrencePattern.NONE:
            raise ValidationError(
                "Recurring slots need a recurrence pattern",
                errors={"recurrence_pattern": ["Required when is_recurring is true"]},
            )
        if not request.is_recurring:
            pattern = RecurrencePattern.NONE
        if pattern != RecurrencePattern.NONE and request.recur_until is None:
            raise ValidationError(
                "Recurring slots need an end date",
                errors={"recur_until": ["Required for recurring slots"]},
            )

        prefs = await self._settings.get_settings(expert_id)

        end_time = request.end_time or add_minutes(
            request.start_time, self._default_duration(request.kind, prefs)
        )
        price = self._resolve_price(request.kind, request.price, prefs)
        duration = self._validate_slot(request.date, request.start_time, end_time, prefs)

        if await self._repo.get_by_start(expert_id, request.date, request.start_time):
            raise ConflictError(
                "A slot already starts at this time",
                details={"date": request.date.isoformat(), "start_time": request.start_time.isoformat()},
            )

        template = SlotTemplate(
            expert_id=expert_id,
            date=request.date,
            start_time=request.start_time,
            end_time=end_time,
            duration_minutes=duration,
            kind=request.kind,
            price=price,
            recurrence_pattern=pattern,
            recur_until=request.recur_until if pattern != RecurrencePattern.NONE else None,
            notes=request.notes,
        )

        async with unit_of_work(self._session):
            # First publish persists the expert's settings row
            await self._settings.ensure_settings(expert_id)
            created = [await self._repo.create(**template.row_for(template.date))]

            if template.is_recurring:
                horizon = self._horizon(prefs)
                rows = build_instances(template, horizon)
                taken = await self._repo.taken_dates(
                    expert_id, template.start_time, [row["date"] for row in rows]
                )
                for row in rows:
                    if row["date"] in taken:
                        logger.info(
                            f"Skipping recurrence on {row['date']} for expert {expert_id}: start already taken"
                        )
                        continue
                    created.append(await self._repo.create(**row))

        logger.info(
            f"Expert {expert_id} published {len(created)} slot(s) from {request.date} "
            f"{request.start_time} (pattern={pattern.value})"
        )
        return created

    async def update_slot(
        self, actor: Principal, slot_id: str, changes: SlotUpdateRequest
    ) -> AvailabilitySlot:
        """Edit an unbooked slot owned by the actor, revalidating the result."""
        slot = await self.get_slot(slot_id)
        self._require_owner(actor, slot)
        if slot.is_booked:
            raise ConflictError("Booked slots cannot be edited", details={"slot_id": slot_id})

        prefs = await self._settings.get_settings(slot.expert_id)
        # An explicit null clears notes; for every other field it means "unchanged"
        values = {
            field: value
            for field, value in changes.model_dump(exclude_unset=True).items()
            if value is not None or field == "notes"
        }

        new_date = values.get("date", slot.date)
        new_start = values.get("start_time", slot.start_time)
        new_kind = values.get("kind", slot.kind)
        if "end_time" in values:
            new_end = values["end_time"]
        elif "start_time" in values:
            new_end = add_minutes(new_start, slot.duration_minutes)
        else:
            new_end = slot.end_time
        if "price" in values:
            new_price = self._resolve_price(new_kind, values["price"], prefs)
        elif new_kind != slot.kind:
            new_price = self._resolve_price(new_kind, None, prefs)
        else:
            new_price = slot.price

        duration = self._validate_slot(new_date, new_start, new_end, prefs)

        if (new_date, new_start) != (slot.date, slot.start_time):
            clash = await self._repo.get_by_start(slot.expert_id, new_date, new_start)
            if clash is not None and clash.id != slot.id:
                raise ConflictError("A slot already starts at this time", details={"slot_id": clash.id})

        async with unit_of_work(self._session):
            slot.date = new_date
            slot.start_time = new_start
            slot.end_time = new_end
            slot.duration_minutes = duration
            slot.kind = new_kind
            slot.price = new_price
            if "notes" in values:
                slot.notes = values["notes"]
            updated = await self._repo.save(slot)

        logger.info(f"Expert {actor.user_id} updated slot {slot_id}")
        return updated

    async def delete_slot(self, actor: Principal, slot_id: str) -> None:
        """Delete an unbooked slot owned by the actor."""
        slot = await self.get_slot(slot_id)
        self._require_owner(actor, slot)
        if slot.is_booked:
            raise ConflictError("Booked slots cannot be deleted", details={"slot_id": slot_id})

        async with unit_of_work(self._session):
            await self._repo.delete(slot)

        logger.info(f"Expert {actor.user_id} deleted slot {slot_id}")

    @staticmethod
    def _require_owner(actor: Principal, slot: AvailabilitySlot) -> None:
        if actor.user_id != slot.expert_id:
            raise AuthorizationError("Only the owning expert can change this slot")

    @staticmethod
    def _default_duration(kind: SlotKind, prefs: AvailabilitySettings) -> int:
        if kind == SlotKind.FREE:
            return prefs.free_session_duration
        return prefs.default_paid_duration

    @staticmethod
    def _resolve_price(kind: SlotKind, price: Optional[Decimal], prefs: AvailabilitySettings) -> Decimal:
        if price is not None and price < 0:
            raise ValidationError("Price must not be negative", errors={"price": ["Must be >= 0"]})
        if kind == SlotKind.FREE:
            if price:
                raise ValidationError(
                    "Free slots cannot have a price", errors={"price": ["Must be 0 for free slots"]}
                )
            return Decimal("0")
        if kind == SlotKind.PAID and price is None:
            return Decimal(prefs.default_paid_price)
        return price if price is not None else Decimal("0")

    def _horizon(self, prefs: AvailabilitySettings) -> date:
        return local_today(self._clock(), prefs.timezone) + timedelta(days=prefs.advance_booking_days)

    def _validate_slot(
        self, slot_date: date, start_time: time, end_time: time, prefs: AvailabilitySettings
    ) -> int:
        """Check range, duration, past and horizon rules; return the duration in minutes."""
        if end_time <= start_time:
            raise ValidationError(
                "Slot must end after it starts",
                errors={"end_time": ["Must be after start_time"]},
            )
        duration = minutes_between(start_time, end_time)
        if not MIN_SLOT_MINUTES <= duration <= MAX_SLOT_MINUTES:
            raise ValidationError(
                f"Slot duration must be between {MIN_SLOT_MINUTES} and {MAX_SLOT_MINUTES} minutes",
                errors={"end_time": [f"Duration {duration} minutes is out of range"]},
            )

        now = ensure_utc(self._clock())
        if local_to_utc(slot_date, start_time, prefs.timezone) <= now:
            raise ValidationError(
                "Slot must start in the future",
                errors={"date": ["Date and start time are in the past"]},
            )
        horizon = self._horizon(prefs)
        if slot_date > horizon:
            raise ValidationError(
                f"Slot is beyond the {prefs.advance_booking_days}-day booking window",
                errors={"date": [f"Must be on or before {horizon.isoformat()}"]},
            )
        return duration


def get_slot_service(session: AsyncSession) -> SlotService:
    """Factory function to create a SlotService instance."""
    return SlotService(session)
