"""Tests for AvailabilitySettingsService."""

from decimal import Decimal

import pytest
from sqlalchemy import func, select

from yari_api.database.models import AvailabilitySettings
from yari_api.exceptions import AuthorizationError, ValidationError
from yari_api.models.availability import AvailabilitySettingsUpdateRequest
from yari_api.services.availability_settings_service import AvailabilitySettingsService


async def _count_rows(session) -> int:
    result = await session.execute(select(func.count()).select_from(AvailabilitySettings))
    return result.scalar_one()


class TestGetSettings:
    """Tests for reading settings."""

    @pytest.mark.asyncio
    async def test_defaults_without_row(self, session):
        service = AvailabilitySettingsService(session)
        prefs = await service.get_settings("expert-1")

        assert prefs.expert_id == "expert-1"
        assert prefs.offers_free_sessions is False
        assert prefs.free_session_duration == 30
        assert prefs.default_paid_duration == 60
        assert prefs.default_paid_price == Decimal("75.00")
        assert prefs.timezone == "UTC"
        assert prefs.buffer_minutes == 15
        assert prefs.advance_booking_days == 30
        # Reading never persists anything
        assert await _count_rows(session) == 0

    @pytest.mark.asyncio
    async def test_ensure_creates_once(self, session):
        service = AvailabilitySettingsService(session)
        first = await service.ensure_settings("expert-1")
        await session.commit()
        second = await service.ensure_settings("expert-1")

        assert first.id == second.id
        assert await _count_rows(session) == 1


class TestUpdateSettings:
    """Tests for updating settings."""

    @pytest.mark.asyncio
    async def test_partial_update_persists(self, session, expert):
        service = AvailabilitySettingsService(session)
        updated = await service.update_settings(
            expert,
            expert.user_id,
            AvailabilitySettingsUpdateRequest(offers_free_sessions=True, buffer_minutes=0),
        )

        assert updated.offers_free_sessions is True
        assert updated.buffer_minutes == 0
        # Untouched fields keep their defaults
        assert updated.advance_booking_days == 30

        reread = await service.get_settings(expert.user_id)
        assert reread.offers_free_sessions is True
        assert await _count_rows(session) == 1

    @pytest.mark.asyncio
    async def test_update_twice_keeps_single_row(self, session, expert):
        service = AvailabilitySettingsService(session)
        await service.update_settings(
            expert, expert.user_id, AvailabilitySettingsUpdateRequest(timezone="Europe/Berlin")
        )
        updated = await service.update_settings(
            expert, expert.user_id, AvailabilitySettingsUpdateRequest(advance_booking_days=90)
        )

        assert updated.timezone == "Europe/Berlin"
        assert updated.advance_booking_days == 90
        assert await _count_rows(session) == 1

    @pytest.mark.asyncio
    async def test_other_user_cannot_update(self, session, expert, other_expert, client_user):
        service = AvailabilitySettingsService(session)
        changes = AvailabilitySettingsUpdateRequest(buffer_minutes=5)

        with pytest.raises(AuthorizationError):
            await service.update_settings(other_expert, expert.user_id, changes)
        with pytest.raises(AuthorizationError):
            await service.update_settings(client_user, client_user.user_id, changes)

    @pytest.mark.asyncio
    async def test_unknown_timezone_rejected(self, session, expert):
        service = AvailabilitySettingsService(session)
        with pytest.raises(ValidationError) as exc_info:
            await service.update_settings(
                expert, expert.user_id, AvailabilitySettingsUpdateRequest(timezone="Mars/Olympus")
            )
        assert "timezone" in exc_info.value.details["validation_errors"]
        assert await _count_rows(session) == 0

    @pytest.mark.asyncio
    async def test_out_of_range_rejected(self, session, expert):
        service = AvailabilitySettingsService(session)
        # Bypass request-model validation to exercise the service's own range check
        changes = AvailabilitySettingsUpdateRequest.model_construct(buffer_minutes=61)
        with pytest.raises(ValidationError) as exc_info:
            await service.update_settings(expert, expert.user_id, changes)
        assert "buffer_minutes" in exc_info.value.details["validation_errors"]
