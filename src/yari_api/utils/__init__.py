"""Utility functions."""

from yari_api.utils.logging import (
    get_logger,
    get_request_id,
    log_error,
    log_request,
    set_request_id,
    setup_logging,
)
from yari_api.utils.timeutils import ensure_utc, local_to_utc, local_today, utcnow

__all__ = [
    # Logging
    "setup_logging",
    "get_logger",
    "set_request_id",
    "get_request_id",
    "log_request",
    "log_error",
    # Time
    "utcnow",
    "ensure_utc",
    "local_to_utc",
    "local_today",
]
