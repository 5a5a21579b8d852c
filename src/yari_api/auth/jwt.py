"""JWT bearer token handling.

Tokens are issued by the platform's auth service; this service only verifies
them and reads the subject and role. ``create_access_token`` exists for local
development and tests.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import JWTError, jwt
from pydantic import ValidationError as PydanticValidationError

from yari_api.config import get_settings
from yari_api.exceptions import AuthenticationError
from yari_api.models.auth import Principal, Role

logger = logging.getLogger(__name__)


class TokenPayload:
    """JWT token payload structure."""

    def __init__(
        self,
        user_id: str,
        role: str,
        exp: Optional[int] = None,
        iat: Optional[int] = None,
        token_type: str = "access",
        **kwargs: Any,
    ):
        """Initialize token payload."""
        now = datetime.now(timezone.utc)
        expire_minutes = get_settings().jwt.access_token_expire_minutes
        self.user_id = user_id
        self.role = role
        self.token_type = token_type
        self.exp = exp or int((now + timedelta(minutes=expire_minutes)).timestamp())
        self.iat = iat or int(now.timestamp())
        self.extra_claims = kwargs

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JWT encoding."""
        payload = {
            "sub": self.user_id,
            "role": self.role,
            "exp": self.exp,
            "iat": self.iat,
            "type": self.token_type,
        }
        payload.update(self.extra_claims)
        return payload

    @classmethod
    def from_dict(cls, claims: Dict[str, Any]) -> "TokenPayload":
        """Create TokenPayload from decoded JWT claims."""
        return cls(
            user_id=claims.get("sub", ""),
            role=claims.get("role", ""),
            exp=claims.get("exp"),
            iat=claims.get("iat"),
            token_type=claims.get("type", "access"),
            **{k: v for k, v in claims.items() if k not in ["sub", "role", "exp", "iat", "type"]},
        )

    def to_principal(self) -> Principal:
        """Build the caller principal, rejecting tokens without a usable subject or role."""
        try:
            return Principal(user_id=self.user_id, role=Role(self.role))
        except (ValueError, PydanticValidationError) as e:
            raise AuthenticationError("Token is missing a valid subject or role") from e


class JWTTokenHandler:
    """Handler for JWT token generation and validation."""

    def __init__(self):
        """Initialize JWT token handler."""
        self.config = get_settings().jwt
        self.secret_key = self.config.secret_key
        self.algorithm = self.config.algorithm

    def encode_token(self, payload: TokenPayload) -> str:
        """Encode a token payload into a JWT token."""
        try:
            token = jwt.encode(payload.to_dict(), self.secret_key, algorithm=self.algorithm)
            logger.debug(f"Generated JWT token for user: {payload.user_id}")
            return token
        except JWTError as e:
            logger.error(f"Error encoding JWT token: {e}")
            raise AuthenticationError("Failed to generate token") from e

    def decode_token(self, token: str, verify_exp: bool = True) -> TokenPayload:
        """Decode and validate a JWT token."""
        try:
            claims = jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
                options={"verify_signature": True, "verify_exp": verify_exp},
            )
        except JWTError as e:
            logger.warning(f"JWT token validation failed: {e}")
            raise AuthenticationError(f"Invalid token: {str(e)}") from e

        if claims.get("type", "access") != "access":
            raise AuthenticationError("Invalid token type")

        payload = TokenPayload.from_dict(claims)
        logger.debug(f"Decoded JWT token for user: {payload.user_id}")
        return payload

    def create_access_token(
        self,
        user_id: str,
        role: str,
        expires_delta: Optional[timedelta] = None,
        **extra_claims: Any,
    ) -> str:
        """Create an access token for a user."""
        delta = expires_delta or timedelta(minutes=self.config.access_token_expire_minutes)
        exp = int((datetime.now(timezone.utc) + delta).timestamp())
        return self.encode_token(
            TokenPayload(user_id=user_id, role=role, exp=exp, token_type="access", **extra_claims)
        )


# Global handler instance
_handler: Optional[JWTTokenHandler] = None


def get_jwt_handler() -> JWTTokenHandler:
    """Get the global JWT handler instance."""
    global _handler
    if _handler is None:
        _handler = JWTTokenHandler()
    return _handler


def create_access_token(
    user_id: str,
    role: str,
    expires_delta: Optional[timedelta] = None,
    **extra_claims: Any,
) -> str:
    """Create an access token (convenience function)."""
    return get_jwt_handler().create_access_token(user_id, role, expires_delta, **extra_claims)


def decode_token(token: str, verify_exp: bool = True) -> TokenPayload:
    """Decode a token (convenience function)."""
    return get_jwt_handler().decode_token(token, verify_exp)


def principal_from_token(token: str) -> Principal:
    """Verify a bearer token and return its principal."""
    return decode_token(token).to_principal()
