"""Availability settings repository for data access operations."""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from yari_api.database.models import AvailabilitySettings
from yari_api.exceptions import DatabaseError
from yari_api.repositories.base import BaseRepository

logger = logging.getLogger(__name__)


class AvailabilitySettingsRepository(BaseRepository[AvailabilitySettings]):
    """Repository for per-expert availability settings."""

    def __init__(self, session: AsyncSession):
        super().__init__(AvailabilitySettings, session)

    async def get_by_expert_id(self, expert_id: str) -> Optional[AvailabilitySettings]:
        """Return the settings row of an expert (if exists)."""
        try:
            result = await self.session.execute(
                select(AvailabilitySettings).where(AvailabilitySettings.expert_id == expert_id)
            )
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error(f"Error getting availability settings for expert {expert_id}: {e}")
            raise DatabaseError("Failed to retrieve availability settings") from e
