"""Availability slot repository for data access operations."""

from __future__ import annotations

import logging
from datetime import date, time
from typing import Iterable, List, Optional, Set

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from yari_api.database.models import AvailabilitySlot, SlotKind
from yari_api.exceptions import DatabaseError
from yari_api.repositories.base import BaseRepository

logger = logging.getLogger(__name__)


class SlotsRepository(BaseRepository[AvailabilitySlot]):
    """Repository for availability slot data access operations."""

    def __init__(self, session: AsyncSession):
        super().__init__(AvailabilitySlot, session)

    async def list_for_expert(
        self,
        expert_id: str,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        available_only: bool = False,
    ) -> List[AvailabilitySlot]:
        """Return an expert's slots in chronological order (date, then start time)."""
        try:
            query = select(AvailabilitySlot).where(AvailabilitySlot.expert_id == expert_id)
            if start_date is not None:
                query = query.where(AvailabilitySlot.date >= start_date)
            if end_date is not None:
                query = query.where(AvailabilitySlot.date <= end_date)
            if available_only:
                query = query.where(
                    AvailabilitySlot.is_booked.is_(False),
                    AvailabilitySlot.kind != SlotKind.BLOCKED,
                )
            query = query.order_by(AvailabilitySlot.date, AvailabilitySlot.start_time).execution_options(
                populate_existing=True
            )
            result = await self.session.execute(query)
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error(f"Error listing slots for expert {expert_id}: {e}")
            raise DatabaseError("Failed to retrieve availability slots") from e

    async def get_by_start(
        self, expert_id: str, slot_date: date, start_time: time
    ) -> Optional[AvailabilitySlot]:
        """Return the expert's slot starting at ``slot_date`` ``start_time`` (if exists)."""
        try:
            result = await self.session.execute(
                select(AvailabilitySlot).where(
                    AvailabilitySlot.expert_id == expert_id,
                    AvailabilitySlot.date == slot_date,
                    AvailabilitySlot.start_time == start_time,
                )
            )
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error(f"Error getting slot by start for expert {expert_id}: {e}")
            raise DatabaseError("Failed to retrieve availability slot") from e

    async def taken_dates(
        self, expert_id: str, start_time: time, dates: Iterable[date]
    ) -> Set[date]:
        """Return which of ``dates`` already hold a slot of this expert starting at ``start_time``."""
        wanted = list(dates)
        if not wanted:
            return set()
        try:
            result = await self.session.execute(
                select(AvailabilitySlot.date).where(
                    AvailabilitySlot.expert_id == expert_id,
                    AvailabilitySlot.start_time == start_time,
                    AvailabilitySlot.date.in_(wanted),
                )
            )
            return set(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error(f"Error checking existing slot starts for expert {expert_id}: {e}")
            raise DatabaseError("Failed to retrieve availability slots") from e

    async def claim(self, slot_id: str, seen_version: int, session_id: str) -> bool:
        """
        Mark a slot booked for ``session_id`` if nobody changed it since it was read.

        Issued as one conditional UPDATE so concurrent claims on the same row are
        linearized by the database: exactly one of them matches.

        Returns:
            True when this call won the slot
        """
        try:
            result = await self.session.execute(
                update(AvailabilitySlot)
                .where(
                    AvailabilitySlot.id == slot_id,
                    AvailabilitySlot.version == seen_version,
                    AvailabilitySlot.is_booked.is_(False),
                    AvailabilitySlot.kind != SlotKind.BLOCKED,
                )
                .values(
                    is_booked=True,
                    booked_session_id=session_id,
                    version=AvailabilitySlot.version + 1,
                )
                .execution_options(synchronize_session=False)
            )
            return result.rowcount == 1
        except SQLAlchemyError as e:
            logger.error(f"Error claiming slot {slot_id}: {e}")
            raise DatabaseError("Failed to reserve availability slot") from e

    async def release(self, slot_id: str, session_id: str) -> bool:
        """
        Re-open a slot held by ``session_id``.

        Only matches while the slot still points at that session, so a release
        can never free a slot that was re-booked by someone else.

        Returns:
            True when the slot was released
        """
        try:
            result = await self.session.execute(
                update(AvailabilitySlot)
                .where(
                    AvailabilitySlot.id == slot_id,
                    AvailabilitySlot.booked_session_id == session_id,
                )
                .values(
                    is_booked=False,
                    booked_session_id=None,
                    version=AvailabilitySlot.version + 1,
                )
                .execution_options(synchronize_session=False)
            )
            return result.rowcount == 1
        except SQLAlchemyError as e:
            logger.error(f"Error releasing slot {slot_id}: {e}")
            raise DatabaseError("Failed to release availability slot") from e
