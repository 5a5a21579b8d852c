"""Repository layer for data access."""

from yari_api.repositories.availability_settings_repository import (
    AvailabilitySettingsRepository,
)
from yari_api.repositories.base import BaseRepository
from yari_api.repositories.sessions_repository import SessionsRepository
from yari_api.repositories.slots_repository import SlotsRepository

__all__ = [
    "BaseRepository",
    "SlotsRepository",
    "AvailabilitySettingsRepository",
    "SessionsRepository",
]
