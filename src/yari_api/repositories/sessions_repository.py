"""Sessions repository for data access operations."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Iterable, List, Optional

from sqlalchemy import or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from yari_api.database.models import ExpertSession, SessionStatus
from yari_api.exceptions import ConflictError, DatabaseError
from yari_api.repositories.base import BaseRepository

logger = logging.getLogger(__name__)


class SessionsRepository(BaseRepository[ExpertSession]):
    """Repository for session data access operations."""

    def __init__(self, session: AsyncSession):
        super().__init__(ExpertSession, session)

    async def list_active_for_expert_between(
        self, expert_id: str, window_start: datetime, window_end: datetime
    ) -> List[ExpertSession]:
        """Non-cancelled sessions of an expert scheduled within ``[window_start, window_end]``."""
        try:
            result = await self.session.execute(
                select(ExpertSession)
                .where(
                    ExpertSession.expert_id == expert_id,
                    ExpertSession.status != SessionStatus.CANCELLED,
                    ExpertSession.scheduled_at >= window_start,
                    ExpertSession.scheduled_at <= window_end,
                )
                .order_by(ExpertSession.scheduled_at)
                .execution_options(populate_existing=True)
            )
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error(f"Error listing sessions near window for expert {expert_id}: {e}")
            raise DatabaseError("Failed to retrieve sessions") from e

    async def list_for_user(
        self,
        user_id: str,
        as_expert: bool = True,
        as_client: bool = True,
        status: Optional[SessionStatus] = None,
    ) -> List[ExpertSession]:
        """Sessions the user takes part in, newest first."""
        participant_filters = []
        if as_expert:
            participant_filters.append(ExpertSession.expert_id == user_id)
        if as_client:
            participant_filters.append(ExpertSession.client_id == user_id)
        if not participant_filters:
            return []
        try:
            query = select(ExpertSession).where(or_(*participant_filters))
            if status is not None:
                query = query.where(ExpertSession.status == status)
            query = query.order_by(ExpertSession.scheduled_at.desc()).execution_options(
                populate_existing=True
            )
            result = await self.session.execute(query)
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error(f"Error listing sessions for user {user_id}: {e}")
            raise DatabaseError("Failed to retrieve sessions") from e

    async def list_calendar_window(
        self, user_id: str, start: datetime, end: datetime
    ) -> List[ExpertSession]:
        """Non-cancelled sessions of the user starting in ``[start, end)``, oldest first."""
        try:
            result = await self.session.execute(
                select(ExpertSession)
                .where(
                    or_(ExpertSession.expert_id == user_id, ExpertSession.client_id == user_id),
                    ExpertSession.status != SessionStatus.CANCELLED,
                    ExpertSession.scheduled_at >= start,
                    ExpertSession.scheduled_at < end,
                )
                .order_by(ExpertSession.scheduled_at)
                .execution_options(populate_existing=True)
            )
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error(f"Error listing calendar sessions for user {user_id}: {e}")
            raise DatabaseError("Failed to retrieve calendar events") from e

    async def list_confirmed_started_before(self, moment: datetime) -> List[ExpertSession]:
        """Confirmed sessions whose start is at or before ``moment``."""
        try:
            result = await self.session.execute(
                select(ExpertSession)
                .where(
                    ExpertSession.status == SessionStatus.CONFIRMED,
                    ExpertSession.scheduled_at <= moment,
                )
                .order_by(ExpertSession.scheduled_at)
                .execution_options(populate_existing=True)
            )
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error(f"Error listing confirmed sessions before {moment}: {e}")
            raise DatabaseError("Failed to retrieve sessions") from e

    async def transition(
        self,
        session_id: str,
        from_statuses: Iterable[SessionStatus],
        to_status: SessionStatus,
        **values: Any,
    ) -> bool:
        """
        Compare-and-set the status of a session.

        The UPDATE only matches while the row is still in one of ``from_statuses``,
        so two racing transitions cannot both succeed.

        Returns:
            True when the row moved to ``to_status``
        """
        try:
            result = await self.session.execute(
                update(ExpertSession)
                .where(ExpertSession.id == session_id, ExpertSession.status.in_(list(from_statuses)))
                .values(status=to_status, version=ExpertSession.version + 1, **values)
                .execution_options(synchronize_session=False)
            )
            return result.rowcount == 1
        except IntegrityError as e:
            # meeting_link is unique; a collision must not be reported as success
            logger.warning(f"Unique constraint rejected session {session_id} transition: {e.orig}")
            raise ConflictError("Session update conflicts with an existing record") from e
        except SQLAlchemyError as e:
            logger.error(f"Error moving session {session_id} to {to_status.value}: {e}")
            raise DatabaseError("Failed to update session status") from e
