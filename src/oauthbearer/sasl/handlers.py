"""Callback handlers supplying tokens and validation to exchanges."""

from __future__ import annotations

from typing import Mapping, Optional

from oauthbearer.auth.validator import TokenValidator, create_validator
from oauthbearer.config import ValidatorConfig
from oauthbearer.errors import UnsupportedCallbackError
from oauthbearer.models.callbacks import (
    CallbackRequest,
    CallbackResponse,
    ExtensionsRequest,
    ExtensionsResponse,
    ExtensionsValidationRequest,
    ExtensionsValidationResponse,
    TokenRequest,
    TokenResponse,
    ValidationRequest,
    ValidationResponse,
)
from oauthbearer.sasl.extensions import ExtensionNegotiator


class StaticTokenClientHandler:
    """Client handler presenting a fixed token and extensions.

    Example:
        >>> handler = StaticTokenClientHandler(token, extensions={"traceId": "abc"})
        >>> exchange = ClientExchange(handler)
    """

    def __init__(self, token_value: str, extensions: Optional[Mapping[str, str]] = None) -> None:
        if not token_value:
            raise ValueError("Token value must not be empty")
        self._token_value = token_value
        self._extensions = dict(extensions or {})

    def handle(self, request: CallbackRequest) -> CallbackResponse:
        match request:
            case TokenRequest():
                return TokenResponse(token_value=self._token_value)
            case ExtensionsRequest():
                return ExtensionsResponse(extensions=dict(self._extensions))
            case _:
                raise UnsupportedCallbackError(request)


class JwtServerHandler:
    """Server handler validating JWTs and negotiating extensions."""

    def __init__(
        self, validator: TokenValidator, negotiator: Optional[ExtensionNegotiator] = None
    ) -> None:
        self._validator = validator
        self._negotiator = negotiator if negotiator is not None else ExtensionNegotiator()

    @classmethod
    def from_config(
        cls, config: ValidatorConfig, negotiator: Optional[ExtensionNegotiator] = None
    ) -> "JwtServerHandler":
        """Build the validator and its key resolver from ``config``.

        Raises:
            ConfigurationError: If the key source cannot be loaded.
        """
        return cls(create_validator(config), negotiator)

    @property
    def validator(self) -> TokenValidator:
        return self._validator

    def handle(self, request: CallbackRequest) -> CallbackResponse:
        match request:
            case ValidationRequest(token_value=token_value):
                return ValidationResponse(result=self._validator.validate(token_value))
            case ExtensionsValidationRequest(token=token, extensions=extensions):
                result = self._negotiator.negotiate(token, extensions)
                return ExtensionsValidationResponse(
                    validated=result.validated, invalid=result.invalid
                )
            case _:
                raise UnsupportedCallbackError(request)
