"""Tests for the bundled callback handlers."""

import pytest

from oauthbearer.config import ValidatorConfig
from oauthbearer.errors import UnsupportedCallbackError
from oauthbearer.models.callbacks import (
    ExtensionsRequest,
    ExtensionsResponse,
    ExtensionsValidationRequest,
    ExtensionsValidationResponse,
    TokenRequest,
    TokenResponse,
    ValidationRequest,
    ValidationResponse,
)
from oauthbearer.models.token import Token, ValidationFailure, ValidationSuccess
from oauthbearer.sasl.extensions import ExtensionNegotiator, allow_names
from oauthbearer.sasl.handlers import JwtServerHandler, StaticTokenClientHandler


class TestStaticTokenClientHandler:
    """Tests for StaticTokenClientHandler."""

    def test_answers_token_and_extensions(self) -> None:
        handler = StaticTokenClientHandler("a.b.c", {"traceId": "42"})

        assert handler.handle(TokenRequest()) == TokenResponse(token_value="a.b.c")
        assert handler.handle(ExtensionsRequest()) == ExtensionsResponse(
            extensions={"traceId": "42"}
        )

    def test_rejects_server_requests(self) -> None:
        handler = StaticTokenClientHandler("a.b.c")

        with pytest.raises(UnsupportedCallbackError) as exc_info:
            handler.handle(ValidationRequest(token_value="a.b.c"))

        assert exc_info.value.request_kind == "ValidationRequest"

    def test_rejects_empty_token(self) -> None:
        with pytest.raises(ValueError):
            StaticTokenClientHandler("")


class TestJwtServerHandler:
    """Tests for JwtServerHandler."""

    def test_validation_request(self, validator_config: ValidatorConfig, make_token) -> None:
        handler = JwtServerHandler.from_config(validator_config)

        response = handler.handle(ValidationRequest(token_value=make_token()))

        assert isinstance(response, ValidationResponse)
        assert isinstance(response.result, ValidationSuccess)

    def test_validation_failure_is_a_response(self, validator_config: ValidatorConfig) -> None:
        handler = JwtServerHandler.from_config(validator_config)

        response = handler.handle(ValidationRequest(token_value="garbage"))

        assert isinstance(response, ValidationResponse)
        assert isinstance(response.result, ValidationFailure)

    def test_extensions_validation_request(self, validator_config: ValidatorConfig) -> None:
        handler = JwtServerHandler.from_config(
            validator_config, ExtensionNegotiator(allow_names("traceId"))
        )
        token = Token(value="a.b.c", principal_name="alice", lifetime_ms=1)

        response = handler.handle(
            ExtensionsValidationRequest(token=token, extensions={"traceId": "1", "x": "2"})
        )

        assert response == ExtensionsValidationResponse(
            validated={}, invalid={"x": "extension is not supported"}
        )

    def test_rejects_client_requests(self, validator_config: ValidatorConfig) -> None:
        handler = JwtServerHandler.from_config(validator_config)

        with pytest.raises(UnsupportedCallbackError):
            handler.handle(TokenRequest())
