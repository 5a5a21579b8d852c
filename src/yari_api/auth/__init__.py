"""Authentication utilities."""

from yari_api.auth.dependencies import (
    get_current_principal,
    get_token_from_header,
    require_roles,
)
from yari_api.auth.internal_service import (
    InternalAuthDep,
    require_internal_api_key,
)
from yari_api.auth.jwt import (
    TokenPayload,
    create_access_token,
    decode_token,
    get_jwt_handler,
    principal_from_token,
)

__all__ = [
    # JWT
    "TokenPayload",
    "create_access_token",
    "decode_token",
    "get_jwt_handler",
    "principal_from_token",
    # Internal service auth
    "InternalAuthDep",
    "require_internal_api_key",
    # FastAPI Dependencies
    "get_token_from_header",
    "get_current_principal",
    "require_roles",
]
