"""Callback requests and responses exchanged with a mechanism's collaborator.

Exchanges never reach into credential stores or validators directly: they
send one of the request values below to a callback handler and receive a new,
immutable response value back. Handlers dispatch on the closed set of request
types with ``match``; a handler that cannot answer raises
``UnsupportedCallbackError``.
"""

from __future__ import annotations

from typing import Protocol, Union

from pydantic import Field

from oauthbearer.models.base import OAuthBearerBaseModel
from oauthbearer.models.token import Token, ValidationResult


class TokenRequest(OAuthBearerBaseModel):
    """Client side: ask for the bearer token to present."""


class ExtensionsRequest(OAuthBearerBaseModel):
    """Client side: ask for the extensions to offer alongside the token."""


class ValidationRequest(OAuthBearerBaseModel):
    """Server side: validate the token value the client presented."""

    token_value: str = Field(..., min_length=1, repr=False)


class ExtensionsValidationRequest(OAuthBearerBaseModel):
    """Server side: decide which offered extensions to accept for a validated token."""

    token: Token
    extensions: dict[str, str] = Field(default_factory=dict)


class TokenResponse(OAuthBearerBaseModel):
    token_value: str = Field(..., min_length=1, repr=False)


class ExtensionsResponse(OAuthBearerBaseModel):
    extensions: dict[str, str] = Field(default_factory=dict)


class ValidationResponse(OAuthBearerBaseModel):
    result: ValidationResult


class ExtensionsValidationResponse(OAuthBearerBaseModel):
    """Validated extensions, or the rejected names with their reasons."""

    validated: dict[str, str] = Field(default_factory=dict)
    invalid: dict[str, str] = Field(default_factory=dict)


CallbackRequest = Union[TokenRequest, ExtensionsRequest, ValidationRequest, ExtensionsValidationRequest]
CallbackResponse = Union[
    TokenResponse, ExtensionsResponse, ValidationResponse, ExtensionsValidationResponse
]


class CallbackHandler(Protocol):
    """Anything that can answer callback requests."""

    def handle(self, request: CallbackRequest) -> CallbackResponse: ...
