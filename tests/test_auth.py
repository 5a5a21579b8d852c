"""Unit tests for bearer token and internal API key authentication."""

from datetime import timedelta
from unittest.mock import MagicMock, patch

import pytest
from fastapi import HTTPException
from fastapi.params import Depends as DependsParam

from yari_api.auth.dependencies import get_current_principal, require_roles
from yari_api.auth.internal_service import InternalAuthDep, require_internal_api_key
from yari_api.auth.jwt import TokenPayload, create_access_token, decode_token, get_jwt_handler, principal_from_token
from yari_api.config import Settings
from yari_api.exceptions import AuthenticationError
from yari_api.models.auth import Principal, Role


class TestJWT:
    """Tests for access token handling."""

    def test_round_trip_principal(self):
        token = create_access_token(user_id="expert-1", role="expert")
        principal = principal_from_token(token)
        assert principal == Principal(user_id="expert-1", role=Role.EXPERT)

    def test_extra_claims_preserved(self):
        token = create_access_token(user_id="client-1", role="client", tenant="acme")
        payload = decode_token(token)
        assert payload.token_type == "access"
        assert payload.extra_claims == {"tenant": "acme"}

    def test_expired_token_rejected(self):
        token = create_access_token(user_id="client-1", role="client", expires_delta=timedelta(minutes=-5))
        with pytest.raises(AuthenticationError):
            decode_token(token)

    def test_tampered_token_rejected(self):
        token = create_access_token(user_id="client-1", role="client")
        with pytest.raises(AuthenticationError):
            decode_token(token[:-4] + ("AAAA" if not token.endswith("AAAA") else "BBBB"))

    def test_non_access_token_rejected(self):
        handler = get_jwt_handler()
        token = handler.encode_token(TokenPayload(user_id="client-1", role="client", token_type="refresh"))
        with pytest.raises(AuthenticationError):
            decode_token(token)

    def test_unknown_role_rejected(self):
        token = create_access_token(user_id="client-1", role="superuser")
        with pytest.raises(AuthenticationError):
            principal_from_token(token)


class TestPrincipalDependencies:
    """Tests for FastAPI principal dependencies."""

    @pytest.mark.asyncio
    async def test_missing_token_is_401(self):
        with pytest.raises(HTTPException) as exc_info:
            await get_current_principal(token=None)
        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_valid_token(self):
        principal = await get_current_principal(token=create_access_token("client-1", "client"))
        assert principal.user_id == "client-1"
        assert principal.role == Role.CLIENT

    @pytest.mark.asyncio
    async def test_role_checker(self):
        checker = require_roles([Role.EXPERT])
        expert = Principal(user_id="expert-1", role=Role.EXPERT)
        assert await checker(principal=expert) == expert

        with pytest.raises(HTTPException) as exc_info:
            await checker(principal=Principal(user_id="client-1", role=Role.CLIENT))
        assert exc_info.value.status_code == 403


@pytest.fixture
def mock_settings():
    """Create a mock settings object."""
    settings = MagicMock(spec=Settings)
    settings.internal_api_key_enabled = False
    settings.internal_api_key = None
    return settings


class TestRequireInternalAPIKey:
    """Test suite for require_internal_api_key dependency."""

    @pytest.mark.asyncio
    async def test_disabled_allows_request(self, mock_settings):
        with patch("yari_api.auth.internal_service.settings", mock_settings):
            await require_internal_api_key(x_internal_api_key=None)
            await require_internal_api_key(x_internal_api_key="any-key")

    @pytest.mark.asyncio
    async def test_enabled_with_valid_key(self, mock_settings):
        mock_settings.internal_api_key_enabled = True
        mock_settings.internal_api_key = "valid-key-123"

        with patch("yari_api.auth.internal_service.settings", mock_settings):
            await require_internal_api_key(x_internal_api_key="valid-key-123")

    @pytest.mark.asyncio
    async def test_enabled_with_invalid_key_raises(self, mock_settings):
        mock_settings.internal_api_key_enabled = True
        mock_settings.internal_api_key = "valid-key-123"

        with patch("yari_api.auth.internal_service.settings", mock_settings):
            with pytest.raises(HTTPException) as exc_info:
                await require_internal_api_key(x_internal_api_key="wrong-key")

        assert exc_info.value.status_code == 401
        assert "Invalid internal API key" in exc_info.value.detail
        assert "WWW-Authenticate" in exc_info.value.headers

    @pytest.mark.asyncio
    async def test_enabled_with_missing_key_raises(self, mock_settings):
        mock_settings.internal_api_key_enabled = True
        mock_settings.internal_api_key = "valid-key-123"

        with patch("yari_api.auth.internal_service.settings", mock_settings):
            with pytest.raises(HTTPException) as exc_info:
                await require_internal_api_key(x_internal_api_key=None)

        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_enabled_but_key_not_set_raises_500(self, mock_settings):
        mock_settings.internal_api_key_enabled = True

        with patch("yari_api.auth.internal_service.settings", mock_settings):
            with pytest.raises(HTTPException) as exc_info:
                await require_internal_api_key(x_internal_api_key="any-key")

        assert exc_info.value.status_code == 500
        assert "misconfigured" in exc_info.value.detail.lower()


def test_internal_auth_dep_is_dependency():
    assert isinstance(InternalAuthDep, DependsParam)
    assert InternalAuthDep.dependency is require_internal_api_key
