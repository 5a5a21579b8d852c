"""FastAPI dependencies for authentication and authorization."""

import logging
from typing import List, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from yari_api.auth.jwt import principal_from_token
from yari_api.models.auth import Principal, Role

logger = logging.getLogger(__name__)

# HTTP Bearer token security scheme
security = HTTPBearer(auto_error=False)


async def get_token_from_header(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Optional[str]:
    """Extract the bearer token from the Authorization header."""
    if credentials and credentials.credentials:
        return credentials.credentials
    return None


async def get_current_principal(
    token: Optional[str] = Depends(get_token_from_header),
) -> Principal:
    """
    FastAPI dependency returning the authenticated caller.

    Raises:
        HTTPException: 401 if no token is provided
        AuthenticationError: If the token is invalid, expired or lacks a role
    """
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated: No token provided",
            headers={"WWW-Authenticate": "Bearer"},
        )
    principal = principal_from_token(token)
    logger.debug(f"Authenticated {principal.role.value} {principal.user_id}")
    return principal


def require_roles(required_roles: List[Role]):
    """
    FastAPI dependency factory for role-based access control.

    Example:
        @router.post("/slots")
        async def create_slot(principal: Principal = Depends(require_roles([Role.EXPERT]))):
            ...
    """

    async def role_checker(
        principal: Principal = Depends(get_current_principal),
    ) -> Principal:
        if principal.role not in required_roles:
            logger.warning(
                f"User {principal.user_id} ({principal.role.value}) attempted to access resource "
                f"requiring roles {[r.value for r in required_roles]}"
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Missing required roles: {[r.value for r in required_roles]}",
            )
        return principal

    return role_checker
