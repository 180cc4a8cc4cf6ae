"""
Tests for shared helpers: ids, dates, the error envelope and session token encryption
"""

import time

import pytest
from cryptography.fernet import Fernet

from expense_api.api.responses import success
from expense_api.core.config import settings
from expense_api.core.encryption import EncryptionError, SessionTokenCipher
from expense_api.core.errors import (
    AppError,
    AuthenticationError,
    ConflictError,
    ErrorCategory,
    ErrorCode,
    FileError,
    NotFoundError,
    ValidationError,
    error_body,
)
from expense_api.core.utils import NANOID_ALPHABET, generate_nanoid, is_valid_date, is_valid_month, now_rfc3339


class TestUtils:
    """Tests for id generation and date validation."""

    def test_nanoid_length_and_alphabet(self):
        value = generate_nanoid()
        assert len(value) == 21
        assert set(value) <= set(NANOID_ALPHABET)

    def test_nanoids_are_unique(self):
        assert len({generate_nanoid() for _ in range(200)}) == 200

    @pytest.mark.parametrize("value", ["2024-01-31", "2024-02-29", "1999-12-01"])
    def test_valid_dates(self, value):
        assert is_valid_date(value)

    @pytest.mark.parametrize("value", ["2023-02-29", "2024-13-01", "2024-1-5", "20240105", "", None])
    def test_invalid_dates(self, value):
        assert not is_valid_date(value)

    def test_month_format(self):
        assert is_valid_month("2024-03")
        assert not is_valid_month("2024-3")
        assert not is_valid_month("2024-00")
        assert not is_valid_month("2024-03-01")

    def test_rfc3339_timestamp_has_offset(self):
        stamp = now_rfc3339()
        assert "T" in stamp
        assert stamp[-6] in "+-"


class TestErrors:
    """Tests for error codes, status mapping and the JSON envelope."""

    def test_default_codes_and_statuses(self):
        assert NotFoundError("x").status_code == 404
        assert ConflictError("x").status_code == 409
        assert AuthenticationError("x").code == ErrorCode.UNAUTHORIZED
        assert FileError("x", code=ErrorCode.FILE_TOO_LARGE).status_code == 413
        assert AppError("x").status_code == 500

    def test_category(self):
        assert ValidationError("bad").category == ErrorCategory.VALIDATION
        assert AuthenticationError("x", code=ErrorCode.TOKEN_EXPIRED).category == ErrorCategory.AUTHENTICATION

    def test_validation_error_details(self):
        error = ValidationError("Bad month", field="month", value="2024-13", constraint="YYYY-MM")
        assert error.details == {"field": "month", "value": "2024-13", "constraint": "YYYY-MM"}

    def test_validation_error_without_field_has_no_details(self):
        assert ValidationError("No fields to update").details is None

    def test_error_body(self):
        body = error_body(ErrorCode.NOT_FOUND, "Missing", request_id="req-1", details={"id": 3})
        error = body["error"]
        assert error["code"] == "NOT_FOUND"
        assert error["message"] == "Missing"
        assert error["requestId"] == "req-1"
        assert error["details"] == {"id": 3}
        assert error["timestamp"]

    def test_error_body_timestamp_uses_configured_timezone(self, monkeypatch):
        monkeypatch.setattr(settings, "TIMEZONE", "Asia/Tokyo")
        body = error_body(ErrorCode.NOT_FOUND, "Missing")
        assert body["error"]["timestamp"].endswith("+09:00")
        assert success(ok=1)["timestamp"].endswith("+09:00")

    def test_error_body_generates_request_id(self):
        body = error_body(ErrorCode.BAD_REQUEST, "Bad")
        assert body["error"]["requestId"]
        assert "details" not in body["error"]


class TestSessionTokenCipher:
    """Tests for Fernet session tokens."""

    def test_round_trip(self):
        cipher = SessionTokenCipher("a-sufficiently-long-secret")
        token = cipher.encrypt_session_id("session-123")
        assert token != "session-123"
        assert cipher.decrypt_session_token(token, ttl_seconds=60) == "session-123"

    def test_short_key_rejected(self):
        with pytest.raises(EncryptionError):
            SessionTokenCipher("short")

    def test_token_from_other_key_is_invalid(self):
        token = SessionTokenCipher("first-secret-key-value").encrypt_session_id("abc")
        with pytest.raises(AuthenticationError) as exc_info:
            SessionTokenCipher("second-secret-key-value").decrypt_session_token(token, ttl_seconds=60)
        assert exc_info.value.code == ErrorCode.INVALID_TOKEN

    def test_garbage_token_is_invalid(self):
        cipher = SessionTokenCipher("a-sufficiently-long-secret")
        with pytest.raises(AuthenticationError) as exc_info:
            cipher.decrypt_session_token("not-a-token", ttl_seconds=60)
        assert exc_info.value.code == ErrorCode.INVALID_TOKEN

    def test_old_token_is_expired(self):
        cipher = SessionTokenCipher("a-sufficiently-long-secret")
        # a token minted an hour ago
        token = cipher._cipher.encrypt_at_time(b"session-123", int(time.time()) - 3600).decode()
        with pytest.raises(AuthenticationError) as exc_info:
            cipher.decrypt_session_token(token, ttl_seconds=60)
        assert exc_info.value.code == ErrorCode.TOKEN_EXPIRED

    def test_cipher_is_fernet(self):
        cipher = SessionTokenCipher("a-sufficiently-long-secret")
        assert isinstance(cipher._cipher, Fernet)
