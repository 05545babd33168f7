"""Tests for token and validation result models."""

import pytest
from pydantic import ValidationError

from oauthbearer.models.enums import FailureReason
from oauthbearer.models.token import Token, ValidationFailure, ValidationSuccess


def _token(**overrides) -> Token:
    fields = {
        "value": "a.b.c",
        "principal_name": "alice",
        "scope": frozenset({"read"}),
        "lifetime_ms": 1_700_000_000_000,
    }
    fields.update(overrides)
    return Token(**fields)


class TestToken:
    """Tests for Token."""

    def test_create_token(self) -> None:
        token = _token(start_time_ms=1_699_999_000_000)

        assert token.principal_name == "alice"
        assert token.scope == frozenset({"read"})
        assert token.start_time_ms == 1_699_999_000_000
        assert token.claims == {}

    def test_blank_principal_is_rejected(self) -> None:
        with pytest.raises(ValidationError, match="principal name must not be blank"):
            _token(principal_name="  ")

    def test_blank_scope_element_is_rejected(self) -> None:
        with pytest.raises(ValidationError, match="blank elements"):
            _token(scope=frozenset({"read", " "}))

    def test_empty_value_is_rejected(self) -> None:
        with pytest.raises(ValidationError):
            _token(value="")

    def test_value_is_not_in_repr(self) -> None:
        assert "a.b.c" not in repr(_token())

    def test_token_is_immutable(self) -> None:
        token = _token()

        with pytest.raises(ValidationError):
            token.principal_name = "mallory"  # type: ignore[misc]

    def test_claims_are_read_only(self) -> None:
        token = _token(claims={"sub": "alice", "aud": ["kafka"]})

        with pytest.raises(TypeError):
            token.claims["sub"] = "mallory"  # type: ignore[index]
        assert token.claims["aud"] == ("kafka",)
        assert _token().claims == {}


class TestValidationResults:
    """Tests for ValidationSuccess and ValidationFailure."""

    def test_success_wraps_token(self) -> None:
        token = _token()

        assert ValidationSuccess(token=token).token is token

    def test_failure_status_defaults_to_invalid_token(self) -> None:
        failure = ValidationFailure(reason=FailureReason.EXPIRED, description="expired")

        assert failure.status == "invalid_token"

    def test_failure_status_with_scope(self) -> None:
        failure = ValidationFailure(
            reason=FailureReason.INSUFFICIENT_SCOPE,
            description="missing scope",
            failure_scope="admin",
        )

        assert failure.status == "insufficient_scope"

    def test_failure_requires_description(self) -> None:
        with pytest.raises(ValidationError):
            ValidationFailure(reason=FailureReason.MALFORMED, description="")
