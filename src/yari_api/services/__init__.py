"""Services package."""

from yari_api.services.availability_settings_service import (
    AvailabilitySettingsService,
    get_availability_settings_service,
)
from yari_api.services.booking_service import BookingService, get_booking_service
from yari_api.services.calendar_service import CalendarService, get_calendar_service
from yari_api.services.session_lifecycle_service import (
    SessionLifecycleService,
    get_session_lifecycle_service,
)
from yari_api.services.slot_service import SlotService, get_slot_service

__all__ = [
    "AvailabilitySettingsService",
    "BookingService",
    "CalendarService",
    "SessionLifecycleService",
    "SlotService",
    "get_availability_settings_service",
    "get_booking_service",
    "get_calendar_service",
    "get_session_lifecycle_service",
    "get_slot_service",
]
