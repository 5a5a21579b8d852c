"""Calendar view over a user's sessions."""

from __future__ import annotations

from datetime import datetime
from typing import List

from sqlalchemy.ext.asyncio import AsyncSession

from yari_api.exceptions import ValidationError
from yari_api.models.auth import Principal
from yari_api.models.calendar import CalendarEvent
from yari_api.repositories.sessions_repository import SessionsRepository
from yari_api.services.session_lifecycle_service import session_end
from yari_api.utils.timeutils import ensure_utc


class CalendarService:
    """Service rendering sessions as calendar events."""

    def __init__(self, session: AsyncSession) -> None:
        self._repo = SessionsRepository(session)

    async def list_events(self, actor: Principal, start: datetime, end: datetime) -> List[CalendarEvent]:
        """Non-cancelled sessions of the actor starting in ``[start, end)``, oldest first."""
        start, end = ensure_utc(start), ensure_utc(end)
        if end <= start:
            raise ValidationError("end must be after start", errors={"end": ["Must be after start"]})

        sessions = await self._repo.list_calendar_window(actor.user_id, start, end)
        events = []
        for item in sessions:
            is_expert = item.expert_id == actor.user_id
            events.append(
                CalendarEvent(
                    session_id=item.id,
                    title=item.title,
                    start=ensure_utc(item.scheduled_at),
                    end=session_end(item),
                    status=item.status,
                    meeting_link=item.meeting_link,
                    is_expert=is_expert,
                    counterpart_id=item.client_id if is_expert else item.expert_id,
                )
            )
        return events


def get_calendar_service(session: AsyncSession) -> CalendarService:
    """Factory function to create a CalendarService instance."""
    return CalendarService(session)
