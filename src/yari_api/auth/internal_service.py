"""Service-to-service authentication for internal job endpoints.

Workers and schedulers call ``/api/v1/jobs/*`` with the shared secret in the
``X-Internal-API-Key`` header. The check is skipped while
``INTERNAL_API_KEY_ENABLED`` is false (local development).
"""

import hmac
import logging
from typing import Optional

from fastapi import Depends, Header, HTTPException, status

from yari_api.config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()


def _key_matches(provided: Optional[str], expected: str) -> bool:
    return provided is not None and hmac.compare_digest(provided.encode(), expected.encode())


async def require_internal_api_key(
    x_internal_api_key: Optional[str] = Header(default=None, alias="X-Internal-API-Key"),
) -> None:
    """
    FastAPI dependency enforcing the internal API key.

    Raises:
        HTTPException: 401 for a missing or wrong key, 500 when enabled without a configured key
    """
    if not settings.internal_api_key_enabled:
        return

    if not settings.internal_api_key:
        logger.error("Internal API key auth is enabled but INTERNAL_API_KEY is not set")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal authentication is misconfigured",
        )

    if not _key_matches(x_internal_api_key, settings.internal_api_key):
        logger.warning("Rejected internal request with missing or invalid X-Internal-API-Key")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid internal API key",
            headers={"WWW-Authenticate": "X-Internal-API-Key"},
        )


InternalAuthDep = Depends(require_internal_api_key)
