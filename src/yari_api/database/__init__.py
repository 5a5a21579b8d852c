"""Database package."""

from yari_api.database.connection import check_connection, close_engine, get_engine
from yari_api.database.models import (
    AvailabilitySettings,
    AvailabilitySlot,
    Base,
    RecurrencePattern,
    ExpertSession,
    SessionStatus,
    SlotKind,
)
from yari_api.database.session import (
    close_db,
    get_session,
    get_session_context,
    get_session_factory,
    init_db,
    unit_of_work,
)

__all__ = [
    "Base",
    "AvailabilitySlot",
    "AvailabilitySettings",
    "ExpertSession",
    "SlotKind",
    "RecurrencePattern",
    "SessionStatus",
    "get_engine",
    "close_engine",
    "check_connection",
    "get_session",
    "get_session_context",
    "get_session_factory",
    "init_db",
    "close_db",
    "unit_of_work",
]
