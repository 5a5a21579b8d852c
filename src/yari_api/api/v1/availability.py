"""Availability endpoints: expert settings and slots."""

from __future__ import annotations

import logging
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from yari_api.auth.dependencies import get_current_principal, require_roles
from yari_api.database.session import get_session
from yari_api.models.auth import Principal, Role
from yari_api.models.availability import (
    AvailabilitySettingsResponse,
    AvailabilitySettingsUpdateRequest,
    SlotCreateRequest,
    SlotResponse,
    SlotUpdateRequest,
)
from yari_api.services.availability_settings_service import get_availability_settings_service
from yari_api.services.slot_service import get_slot_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/availability", tags=["availability"])


@router.get(
    "/settings/{expert_id}",
    response_model=AvailabilitySettingsResponse,
    summary="Get an expert's availability settings",
    description="Returns the configured defaults when the expert has not saved settings yet.",
)
async def get_availability_settings(
    expert_id: str,
    principal: Principal = Depends(get_current_principal),
    session: AsyncSession = Depends(get_session),
) -> AvailabilitySettingsResponse:
    """Read an expert's booking defaults (any authenticated user)."""
    service = get_availability_settings_service(session)
    prefs = await service.get_settings(expert_id)
    return AvailabilitySettingsResponse.model_validate(prefs)


@router.put(
    "/settings",
    response_model=AvailabilitySettingsResponse,
    summary="Update my availability settings",
)
async def update_availability_settings(
    request: AvailabilitySettingsUpdateRequest,
    principal: Principal = Depends(require_roles([Role.EXPERT])),
    session: AsyncSession = Depends(get_session),
) -> AvailabilitySettingsResponse:
    """Partially update the calling expert's settings."""
    service = get_availability_settings_service(session)
    prefs = await service.update_settings(principal, principal.user_id, request)
    return AvailabilitySettingsResponse.model_validate(prefs)


@router.get(
    "/slots/{expert_id}",
    response_model=List[SlotResponse],
    summary="List an expert's slots",
    description=(
        "Slots ordered by date then start time. Without a range, returns today through the "
        "expert's advance-booking horizon."
    ),
)
async def list_slots(
    expert_id: str,
    start_date: Optional[date] = Query(None, description="First date (inclusive)"),
    end_date: Optional[date] = Query(None, description="Last date (inclusive)"),
    available_only: bool = Query(False, description="Hide booked and blocked slots"),
    principal: Principal = Depends(get_current_principal),
    session: AsyncSession = Depends(get_session),
) -> List[SlotResponse]:
    """List slots for booking or management."""
    service = get_slot_service(session)
    slots = await service.list_slots(expert_id, start_date, end_date, available_only)
    return [SlotResponse.model_validate(slot) for slot in slots]


@router.post(
    "/slots",
    response_model=List[SlotResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Publish a slot",
    description="Creates the slot and, for recurring slots, every occurrence up to the booking horizon.",
)
async def create_slot(
    request: SlotCreateRequest,
    principal: Principal = Depends(require_roles([Role.EXPERT])),
    session: AsyncSession = Depends(get_session),
) -> List[SlotResponse]:
    """Publish availability for the calling expert."""
    service = get_slot_service(session)
    created = await service.create_slot(principal, request)
    return [SlotResponse.model_validate(slot) for slot in created]


@router.patch(
    "/slots/{slot_id}",
    response_model=SlotResponse,
    summary="Edit an unbooked slot",
)
async def update_slot(
    slot_id: str,
    request: SlotUpdateRequest,
    principal: Principal = Depends(require_roles([Role.EXPERT])),
    session: AsyncSession = Depends(get_session),
) -> SlotResponse:
    """Edit one slot; booked slots are rejected with 409."""
    service = get_slot_service(session)
    slot = await service.update_slot(principal, slot_id, request)
    return SlotResponse.model_validate(slot)


@router.delete(
    "/slots/{slot_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete an unbooked slot",
)
async def delete_slot(
    slot_id: str,
    principal: Principal = Depends(require_roles([Role.EXPERT])),
    session: AsyncSession = Depends(get_session),
) -> None:
    """Delete one slot; booked slots are rejected with 409."""
    service = get_slot_service(session)
    await service.delete_slot(principal, slot_id)
