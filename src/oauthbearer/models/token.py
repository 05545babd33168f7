"""Bearer token and validation result models.

A ``Token`` only exists once a compact JWT has been parsed, verified and its
claims extracted; construction re-checks the invariants so a half-valid token
can never be built. Validation outcomes are values, not exceptions:
``ValidationSuccess`` wraps the token, ``ValidationFailure`` carries what the
server reports back to the client in its JSON error body.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Any, Mapping, Optional, Union

from pydantic import Field, field_validator

from oauthbearer.models.base import OAuthBearerBaseModel
from oauthbearer.models.enums import (
    STATUS_INSUFFICIENT_SCOPE,
    STATUS_INVALID_TOKEN,
    FailureReason,
)

# Decoded JWT payload: claim name -> str, int/float, or list[str]
ClaimSet = dict[str, Any]


class Token(OAuthBearerBaseModel):
    """A validated OAuth2 bearer token.

    Attributes:
        value: Original compact serialization (opaque; never logged)
        principal_name: Authenticated identity taken from the principal claim
        scope: Granted scope elements (possibly empty, never blank elements)
        lifetime_ms: Expiry as epoch milliseconds
        start_time_ms: Issuance as epoch milliseconds, if the token declares one
        claims: Read-only view of the decoded claim set, list values as tuples
    """

    value: str = Field(..., min_length=1, repr=False)
    principal_name: str
    scope: frozenset[str] = Field(default_factory=frozenset)
    lifetime_ms: int
    start_time_ms: Optional[int] = None
    claims: Mapping[str, Any] = Field(default_factory=dict, validate_default=True, repr=False)

    @field_validator("principal_name")
    @classmethod
    def _principal_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("principal name must not be blank")
        return v

    @field_validator("scope")
    @classmethod
    def _scope_without_blanks(cls, v: frozenset[str]) -> frozenset[str]:
        if any(not element.strip() for element in v):
            raise ValueError("scope must not contain blank elements")
        return v

    @field_validator("claims")
    @classmethod
    def _freeze_claims(cls, v: Mapping[str, Any]) -> Mapping[str, Any]:
        return MappingProxyType(
            {name: tuple(value) if isinstance(value, list) else value for name, value in v.items()}
        )


class ValidationSuccess(OAuthBearerBaseModel):
    """Token validation succeeded."""

    token: Token


class ValidationFailure(OAuthBearerBaseModel):
    """Token validation failed.

    Attributes:
        reason: Machine-readable failure category
        description: Human-readable explanation (never empty)
        failure_scope: Scope the client would need; set only for scope failures
        failure_openid_config: OpenID configuration URL to advertise to the client
    """

    reason: FailureReason
    description: str = Field(..., min_length=1)
    failure_scope: Optional[str] = None
    failure_openid_config: Optional[str] = None

    @property
    def status(self) -> str:
        """RFC 7628 error status for the JSON error body."""
        if self.failure_scope is not None:
            return STATUS_INSUFFICIENT_SCOPE
        return STATUS_INVALID_TOKEN


ValidationResult = Union[ValidationSuccess, ValidationFailure]
