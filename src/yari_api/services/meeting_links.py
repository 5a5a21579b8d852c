"""Meeting link generation for confirmed sessions."""

import hashlib
import string
from typing import Optional

from yari_api.config import get_settings

_LETTERS = string.ascii_lowercase

# Meet-style code: three, four and three lowercase letters
_CODE_GROUPS = (3, 4, 3)


def meeting_code(session_id: str) -> str:
    """Deterministic ``abc-defg-hij`` code derived from a SHA-256 of the session id."""
    digest = hashlib.sha256(session_id.encode("utf-8")).digest()
    letters = "".join(_LETTERS[byte % len(_LETTERS)] for byte in digest[: sum(_CODE_GROUPS)])
    groups = []
    offset = 0
    for size in _CODE_GROUPS:
        groups.append(letters[offset : offset + size])
        offset += size
    return "-".join(groups)


def generate_meeting_link(session_id: str, base_url: Optional[str] = None) -> str:
    """
    Build the meeting URL for a session.

    The same session id always maps to the same link, so re-issuing after a
    retried confirm cannot hand out two different rooms.

    Args:
        session_id: Session ID
        base_url: Override for the configured ``MEETING_BASE_URL``

    Returns:
        Absolute meeting URL
    """
    base = (base_url or get_settings().meeting.base_url).rstrip("/")
    return f"{base}/{meeting_code(session_id)}"
