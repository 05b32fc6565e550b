"""
Tests for exception classes.

Every exception maps to a stable error kind, status code and public message.
"""

import pytest

from app.exceptions import (
    AccountNotFoundError,
    AuthenticationError,
    DesignSystemError,
    GenerationFailedError,
    GenerationTimeoutError,
    InputValidationError,
    InsufficientCreditsError,
    InvalidAIResponseError,
    PersistenceError,
    RateLimitExceededError,
    UnknownTierError,
    VersionNotFoundError,
)


@pytest.mark.parametrize(
    ("exc", "kind", "status_code"),
    [
        (InputValidationError("bad", field="x"), "ValidationError", 400),
        (UnknownTierError("gold"), "ValidationError", 400),
        (AuthenticationError("missing"), "Unauthorized", 401),
        (InsufficientCreditsError(balance=1, required=3), "InsufficientCredits", 402),
        (AccountNotFoundError("user-1"), "NotFound", 404),
        (VersionNotFoundError("abc"), "NotFound", 404),
        (GenerationTimeoutError(60), "GenerationTimeout", 408),
        (RateLimitExceededError(reset_at=1700000000.0), "RateLimited", 429),
        (InvalidAIResponseError("garbage"), "InvalidAIResponse", 502),
        (GenerationFailedError("APIConnectionError"), "InternalError", 500),
        (PersistenceError("db down"), "InternalError", 500),
    ],
)
def test_kind_and_status(exc, kind, status_code):
    assert isinstance(exc, DesignSystemError)
    assert exc.kind == kind
    assert exc.status_code == status_code


class TestPublicDetails:
    """Tests for client-safe messages and details."""

    def test_insufficient_credits_details(self):
        exc = InsufficientCreditsError(balance=2, required=3)
        assert exc.public_details() == {"balance": 2, "required": 3}
        assert "You need 3 credits but only have 2" in exc.public_message

    def test_validation_error_field(self):
        exc = InputValidationError("Too long", field="brand_description")
        assert exc.public_details() == {"field": "brand_description"}
        assert exc.public_message == "Too long"

    def test_validation_error_without_field(self):
        assert InputValidationError("Too long").public_details() == {}

    def test_rate_limit_reset_at(self):
        assert RateLimitExceededError(reset_at=42.0).public_details() == {"reset_at": 42.0}

    def test_internal_detail_not_public(self):
        exc = PersistenceError("connection to 10.0.0.5 refused")
        assert "10.0.0.5" in str(exc)
        assert "10.0.0.5" not in exc.public_message

    def test_timeout_message(self):
        exc = GenerationTimeoutError(60)
        assert exc.timeout_seconds == 60
        assert "took too long" in exc.public_message
