"""Tests for exception handling."""

from yari_api.exceptions import (
    APIException,
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    DatabaseError,
    InvalidStateError,
    NotFoundError,
    PolicyError,
    ValidationError,
)


def test_api_exception():
    """Test base APIException."""
    exc = APIException("Test error", status_code=400, code="TEST_ERROR")
    assert exc.message == "Test error"
    assert exc.status_code == 400
    assert exc.code == "TEST_ERROR"
    assert exc.to_dict()["error"]["message"] == "Test error"


def test_authentication_error():
    """Test AuthenticationError."""
    exc = AuthenticationError("Invalid token")
    assert exc.status_code == 401
    assert exc.code == "AUTHENTICATION_ERROR"


def test_authorization_error():
    """Test AuthorizationError."""
    exc = AuthorizationError("Access denied")
    assert exc.status_code == 403
    assert exc.code == "AUTHORIZATION_ERROR"


def test_validation_error_carries_field_errors():
    """Test ValidationError."""
    exc = ValidationError("Bad slot", errors={"end_time": ["Must be after start_time"]})
    assert exc.status_code == 422
    assert exc.code == "VALIDATION_ERROR"
    assert exc.details["validation_errors"] == {"end_time": ["Must be after start_time"]}


def test_not_found_error():
    """Test NotFoundError."""
    exc = NotFoundError("Session", "abc")
    assert exc.status_code == 404
    assert exc.message == "Session not found with id: abc"
    assert exc.details == {"resource": "Session", "resource_id": "abc"}


def test_conflict_error():
    """Test ConflictError."""
    exc = ConflictError("Slot no longer available")
    assert exc.status_code == 409
    assert exc.code == "CONFLICT"


def test_policy_error():
    """Test PolicyError."""
    exc = PolicyError()
    assert exc.status_code == 403
    assert exc.code == "POLICY_VIOLATION"


def test_invalid_state_error():
    """Test InvalidStateError."""
    exc = InvalidStateError(action="confirm", current_status="cancelled")
    assert exc.status_code == 409
    assert exc.code == "INVALID_STATE"
    assert exc.message == "Cannot confirm a session that is cancelled"
    assert exc.details == {"action": "confirm", "current_status": "cancelled"}


def test_database_error():
    """Test DatabaseError."""
    exc = DatabaseError()
    assert exc.status_code == 500
    assert exc.to_dict()["error"]["code"] == "DATABASE_ERROR"
