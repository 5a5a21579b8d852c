"""Calendar endpoints."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from yari_api.auth.dependencies import get_current_principal
from yari_api.database.session import get_session
from yari_api.models.auth import Principal
from yari_api.models.calendar import CalendarEvent
from yari_api.services.calendar_service import get_calendar_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/calendar", tags=["calendar"])


@router.get(
    "/events",
    response_model=List[CalendarEvent],
    summary="List my calendar events",
    description="Sessions (as expert or client) starting in [start, end), cancelled ones excluded.",
)
async def list_calendar_events(
    start: datetime = Query(..., description="Window start (ISO8601)"),
    end: datetime = Query(..., description="Window end (ISO8601, exclusive)"),
    principal: Principal = Depends(get_current_principal),
    session: AsyncSession = Depends(get_session),
) -> List[CalendarEvent]:
    """Return the caller's sessions rendered as calendar events."""
    service = get_calendar_service(session)
    return await service.list_events(principal, start, end)
