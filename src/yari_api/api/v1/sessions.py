"""Session booking and lifecycle endpoints."""

from __future__ import annotations

import logging
from typing import List, Literal, Optional

from fastapi import APIRouter, Body, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from yari_api.auth.dependencies import get_current_principal, require_roles
from yari_api.database.models import SessionStatus
from yari_api.database.session import get_session
from yari_api.models.auth import Principal, Role
from yari_api.models.sessions import (
    BookSessionRequest,
    SessionActionRequest,
    SessionNotesRequest,
    SessionResponse,
)
from yari_api.services.booking_service import get_booking_service
from yari_api.services.session_events import SessionEventPublisher, get_event_publisher
from yari_api.services.session_lifecycle_service import get_session_lifecycle_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sessions", tags=["sessions"])


@router.post(
    "/book",
    response_model=SessionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Book a slot",
    description=(
        "Atomically reserves the slot and creates a pending session. Returns 409 when the slot "
        "is taken (including by a concurrent request) or violates the expert's buffer time, "
        "and 403 when the expert no longer offers free sessions."
    ),
)
async def book_session(
    request: BookSessionRequest,
    principal: Principal = Depends(get_current_principal),
    session: AsyncSession = Depends(get_session),
) -> SessionResponse:
    """Book a slot for the calling user."""
    service = get_booking_service(session)
    booked = await service.book(
        principal, request.expert_id, request.slot_id, request.title, request.description
    )
    return SessionResponse.model_validate(booked)


@router.get(
    "",
    response_model=List[SessionResponse],
    summary="List my sessions",
)
async def list_sessions(
    role: Optional[Literal["expert", "client"]] = Query(
        None, description="Only sessions where I am the expert or the client"
    ),
    status_filter: Optional[SessionStatus] = Query(None, alias="status", description="Status filter"),
    principal: Principal = Depends(get_current_principal),
    session: AsyncSession = Depends(get_session),
) -> List[SessionResponse]:
    """List sessions the caller takes part in, newest first."""
    service = get_session_lifecycle_service(session)
    sessions = await service.list_sessions(principal, role, status_filter)
    return [SessionResponse.model_validate(item) for item in sessions]


@router.get(
    "/{session_id}",
    response_model=SessionResponse,
    summary="Get a session",
)
async def get_session_by_id(
    session_id: str,
    principal: Principal = Depends(get_current_principal),
    session: AsyncSession = Depends(get_session),
) -> SessionResponse:
    """Return one session (participants only)."""
    service = get_session_lifecycle_service(session)
    return SessionResponse.model_validate(await service.get_session(principal, session_id))


@router.post(
    "/{session_id}/confirm",
    response_model=SessionResponse,
    summary="Confirm a pending session",
)
async def confirm_session(
    session_id: str,
    principal: Principal = Depends(require_roles([Role.EXPERT])),
    session: AsyncSession = Depends(get_session),
    publisher: Optional[SessionEventPublisher] = Depends(get_event_publisher),
) -> SessionResponse:
    """Confirm and issue the meeting link (session expert only)."""
    service = get_session_lifecycle_service(session, publisher)
    return SessionResponse.model_validate(await service.confirm(principal, session_id))


@router.post(
    "/{session_id}/decline",
    response_model=SessionResponse,
    summary="Decline a pending session",
)
async def decline_session(
    session_id: str,
    request: Optional[SessionActionRequest] = Body(None),
    principal: Principal = Depends(require_roles([Role.EXPERT])),
    session: AsyncSession = Depends(get_session),
    publisher: Optional[SessionEventPublisher] = Depends(get_event_publisher),
) -> SessionResponse:
    """Decline and re-open the slot (session expert only)."""
    service = get_session_lifecycle_service(session, publisher)
    reason = request.reason if request else None
    return SessionResponse.model_validate(await service.decline(principal, session_id, reason))


@router.post(
    "/{session_id}/cancel",
    response_model=SessionResponse,
    summary="Cancel a session",
)
async def cancel_session(
    session_id: str,
    request: Optional[SessionActionRequest] = Body(None),
    principal: Principal = Depends(get_current_principal),
    session: AsyncSession = Depends(get_session),
    publisher: Optional[SessionEventPublisher] = Depends(get_event_publisher),
) -> SessionResponse:
    """Cancel a pending or confirmed session and re-open the slot (either participant)."""
    service = get_session_lifecycle_service(session, publisher)
    reason = request.reason if request else None
    return SessionResponse.model_validate(await service.cancel(principal, session_id, reason))


@router.patch(
    "/{session_id}/notes",
    response_model=SessionResponse,
    summary="Update session notes",
)
async def update_session_notes(
    session_id: str,
    request: SessionNotesRequest,
    principal: Principal = Depends(get_current_principal),
    session: AsyncSession = Depends(get_session),
) -> SessionResponse:
    """Replace the notes of a session (participants only)."""
    service = get_session_lifecycle_service(session)
    return SessionResponse.model_validate(
        await service.update_notes(principal, session_id, request.notes)
    )
