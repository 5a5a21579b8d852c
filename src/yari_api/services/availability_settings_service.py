"""Per-expert availability settings.

Each expert has at most one settings row. Reads for experts that never saved
settings return the configured defaults without persisting anything; the row
is created on the expert's first write (publishing a slot or saving settings).
"""

from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from yari_api.config import get_settings
from yari_api.database.models import AvailabilitySettings
from yari_api.database.session import unit_of_work
from yari_api.exceptions import AuthorizationError, ConflictError, ValidationError
from yari_api.models.auth import Principal, Role
from yari_api.models.availability import AvailabilitySettingsUpdateRequest
from yari_api.repositories.availability_settings_repository import (
    AvailabilitySettingsRepository,
)
from yari_api.utils.timeutils import resolve_timezone

logger = logging.getLogger(__name__)

_RANGES = {
    "free_session_duration": (15, 60),
    "default_paid_duration": (30, 180),
    "buffer_minutes": (0, 60),
    "advance_booking_days": (1, 90),
}


def default_settings(expert_id: str) -> AvailabilitySettings:
    """Transient settings object carrying the configured defaults."""
    defaults = get_settings().availability
    return AvailabilitySettings(
        expert_id=expert_id,
        offers_free_sessions=defaults.offers_free_sessions,
        free_session_duration=defaults.free_session_duration,
        default_paid_duration=defaults.default_paid_duration,
        default_paid_price=defaults.default_paid_price,
        timezone=defaults.timezone,
        buffer_minutes=defaults.buffer_minutes,
        advance_booking_days=defaults.advance_booking_days,
    )


class AvailabilitySettingsService:
    """Service for reading and updating expert availability settings."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session
        self._repo = AvailabilitySettingsRepository(session)

    async def get_settings(self, expert_id: str) -> AvailabilitySettings:
        """Return the expert's settings, or unsaved defaults when none exist."""
        existing = await self._repo.get_by_expert_id(expert_id)
        if existing is not None:
            return existing
        return default_settings(expert_id)

    async def ensure_settings(self, expert_id: str) -> AvailabilitySettings:
        """
        Get-or-create the expert's settings row.

        Call before any other write in the unit of work: losing a creation race
        rolls the session back and re-reads the row the winner inserted.
        """
        existing = await self._repo.get_by_expert_id(expert_id)
        if existing is not None:
            return existing

        defaults = default_settings(expert_id)
        try:
            created = await self._repo.create(
                expert_id=expert_id,
                offers_free_sessions=defaults.offers_free_sessions,
                free_session_duration=defaults.free_session_duration,
                default_paid_duration=defaults.default_paid_duration,
                default_paid_price=defaults.default_paid_price,
                timezone=defaults.timezone,
                buffer_minutes=defaults.buffer_minutes,
                advance_booking_days=defaults.advance_booking_days,
            )
            logger.info(f"Created default availability settings for expert {expert_id}")
            return created
        except ConflictError:
            await self._session.rollback()
            winner = await self._repo.get_by_expert_id(expert_id)
            if winner is None:
                raise
            return winner

    async def update_settings(
        self,
        actor: Principal,
        expert_id: str,
        changes: AvailabilitySettingsUpdateRequest,
    ) -> AvailabilitySettings:
        """
        Apply a partial update to the expert's settings.

        Raises:
            AuthorizationError: If the actor is not this expert
            ValidationError: If a value is out of range or the timezone is unknown
        """
        if actor.role != Role.EXPERT or actor.user_id != expert_id:
            raise AuthorizationError("Only the expert can change their availability settings")

        values = changes.model_dump(exclude_unset=True, exclude_none=True)
        self._validate(values)

        async with unit_of_work(self._session):
            current = await self.ensure_settings(expert_id)
            for field, value in values.items():
                setattr(current, field, value)
            updated = await self._repo.save(current)

        logger.info(f"Updated availability settings for expert {expert_id}: {sorted(values)}")
        return updated

    @staticmethod
    def _validate(values: dict) -> None:
        errors = {}
        for field, (low, high) in _RANGES.items():
            if field in values and not low <= values[field] <= high:
                errors[field] = [f"Must be between {low} and {high}"]
        if "default_paid_price" in values and values["default_paid_price"] < 0:
            errors["default_paid_price"] = ["Must not be negative"]
        if errors:
            raise ValidationError("Invalid availability settings", errors=errors)
        if "timezone" in values:
            resolve_timezone(values["timezone"])


def get_availability_settings_service(session: AsyncSession) -> AvailabilitySettingsService:
    """Factory function to create an AvailabilitySettingsService instance."""
    return AvailabilitySettingsService(session)
