"""Validator configuration for the OAUTHBEARER server side.

``ValidatorConfig`` is an immutable pydantic model shared by every server
exchange in the process. Fields accept their snake_case names or the
camelCase option names used in mechanism option maps, so both of these work:

    >>> ValidatorConfig(principal_claim_name="uid", jwks_uri="https://idp/jwks.json")
    >>> ValidatorConfig.from_options({"principalClaimName": "uid", "jwksUri": "https://idp/jwks.json"})

Exactly one signing-key source must be configured: a PEM public key (or
certificate), a JWK set URI, or an inline JWK set. Every problem is reported
as ``ConfigurationError``.

Environment Variables (``ValidatorConfig.from_env``):
    OAUTHBEARER_PRINCIPAL_CLAIM_NAME, OAUTHBEARER_SCOPE_CLAIM_NAME,
    OAUTHBEARER_REQUIRED_SCOPE, OAUTHBEARER_ALLOWABLE_CLOCK_SKEW_MS,
    OAUTHBEARER_PUBLIC_KEY_PEM, OAUTHBEARER_JWKS_URI, OAUTHBEARER_JWKS,
    OAUTHBEARER_JWKS_CACHE_TTL_SECONDS, OAUTHBEARER_ALGORITHMS,
    OAUTHBEARER_VERIFY_EXPIRATION, OAUTHBEARER_VERIFY_ISSUED_AT,
    OAUTHBEARER_EXPECTED_AUDIENCE, OAUTHBEARER_OPENID_CONFIGURATION_URL
"""

from __future__ import annotations

import json
import os
from typing import Any, Mapping, Optional

from pydantic import Field, ValidationError, field_validator, model_validator

from oauthbearer.errors import ConfigurationError
from oauthbearer.models.base import OAuthBearerBaseModel

DEFAULT_PRINCIPAL_CLAIM_NAME = "sub"
DEFAULT_SCOPE_CLAIM_NAME = "scope"
DEFAULT_JWKS_CACHE_TTL_SECONDS = 3600.0
DEFAULT_ALGORITHMS: tuple[str, ...] = (
    "RS256",
    "RS384",
    "RS512",
    "PS256",
    "PS384",
    "PS512",
    "ES256",
    "ES384",
    "ES512",
    "EdDSA",
)

# Legacy option-map prefix, e.g. "signedJwtValidatorPrincipalClaimName"
OPTION_PREFIX = "signedJwtValidator"
ENV_PREFIX = "OAUTHBEARER_"

_KEY_SOURCE_FIELDS = ("public_key_pem", "jwks_uri", "jwks")


class ValidatorConfig(OAuthBearerBaseModel):
    """Settings for token validation and signing-key resolution.

    Attributes:
        principal_claim_name: Claim holding the principal (blank means "sub")
        scope_claim_name: Claim holding the scope (blank means "scope")
        required_scope: Scope elements every token must carry; empty disables the check
        allowable_clock_skew_ms: Tolerance for time-based checks, must be >= 0
        public_key_pem: PEM public key, PEM certificate, or bare base64 certificate body
        jwks_uri: http(s):// or file:// location of a JWK set
        jwks: Inline JWK set ({"keys": [...]})
        jwks_cache_ttl_seconds: How long a fetched JWK set is trusted
        algorithms: JWS algorithms accepted for signatures
        verify_expiration: Reject tokens past exp (+ skew)
        verify_issued_at: Reject tokens issued in the future or after their own expiry
        expected_audience: Required "aud" value; None disables the check
        openid_configuration_url: Advertised to clients in error bodies
    """

    principal_claim_name: str = Field(
        default=DEFAULT_PRINCIPAL_CLAIM_NAME, alias="principalClaimName"
    )
    scope_claim_name: str = Field(default=DEFAULT_SCOPE_CLAIM_NAME, alias="scopeClaimName")
    required_scope: frozenset[str] = Field(default_factory=frozenset, alias="requiredScope")
    allowable_clock_skew_ms: int = Field(default=0, alias="allowableClockSkewMs")
    public_key_pem: Optional[str] = Field(default=None, alias="publicKeyPem", repr=False)
    jwks_uri: Optional[str] = Field(default=None, alias="jwksUri")
    jwks: Optional[dict[str, Any]] = Field(default=None, alias="jwks", repr=False)
    jwks_cache_ttl_seconds: float = Field(
        default=DEFAULT_JWKS_CACHE_TTL_SECONDS, gt=0, alias="jwksCacheTtlSeconds"
    )
    algorithms: tuple[str, ...] = Field(default=DEFAULT_ALGORITHMS, alias="algorithms")
    verify_expiration: bool = Field(default=False, alias="verifyExpiration")
    verify_issued_at: bool = Field(default=False, alias="verifyIssuedAt")
    expected_audience: Optional[str] = Field(default=None, alias="expectedAudience")
    openid_configuration_url: Optional[str] = Field(
        default=None, alias="openidConfigurationUrl"
    )

    def __init__(self, **data: Any) -> None:
        try:
            super().__init__(**data)
        except ValidationError as exc:
            first = exc.errors()[0]
            option = ".".join(str(part) for part in first["loc"]) or None
            raise ConfigurationError(
                f"Invalid configuration: {first['msg']}",
                option=option,
                details={
                    "errors": exc.errors(
                        include_url=False, include_context=False, include_input=False
                    )
                },
            ) from exc

    @field_validator("principal_claim_name", mode="before")
    @classmethod
    def _default_principal_claim(cls, v: Any) -> Any:
        if v is None or (isinstance(v, str) and not v.strip()):
            return DEFAULT_PRINCIPAL_CLAIM_NAME
        return v.strip() if isinstance(v, str) else v

    @field_validator("scope_claim_name", mode="before")
    @classmethod
    def _default_scope_claim(cls, v: Any) -> Any:
        if v is None or (isinstance(v, str) and not v.strip()):
            return DEFAULT_SCOPE_CLAIM_NAME
        return v.strip() if isinstance(v, str) else v

    @field_validator("required_scope", mode="before")
    @classmethod
    def _parse_required_scope(cls, v: Any) -> Any:
        if v is None:
            return frozenset()
        if isinstance(v, str):
            return frozenset(v.split())
        return frozenset(str(element).strip() for element in v if str(element).strip())

    @field_validator("allowable_clock_skew_ms", mode="before")
    @classmethod
    def _parse_clock_skew(cls, v: Any) -> Any:
        if v is None or (isinstance(v, str) and not v.strip()):
            return 0
        return v.strip() if isinstance(v, str) else v

    @field_validator("allowable_clock_skew_ms")
    @classmethod
    def _non_negative_clock_skew(cls, v: int) -> int:
        if v < 0:
            raise ConfigurationError(
                f"Allowable clock skew millis must not be negative: {v}",
                option="allowable_clock_skew_ms",
            )
        return v

    @field_validator("jwks", mode="before")
    @classmethod
    def _parse_inline_jwks(cls, v: Any) -> Any:
        if isinstance(v, str):
            if not v.strip():
                return None
            try:
                return json.loads(v)
            except json.JSONDecodeError as exc:
                raise ConfigurationError(
                    f"Inline JWK set is not valid JSON: {exc}", option="jwks"
                ) from exc
        return v

    @field_validator("public_key_pem", "jwks_uri", "expected_audience", "openid_configuration_url")
    @classmethod
    def _blank_as_none(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            return None
        return v

    @field_validator("algorithms", mode="before")
    @classmethod
    def _parse_algorithms(cls, v: Any) -> Any:
        if isinstance(v, str):
            v = v.replace(",", " ").split()
        if not v:
            raise ConfigurationError(
                "At least one JWS algorithm must be allowed", option="algorithms"
            )
        if any(str(alg).lower() == "none" for alg in v):
            raise ConfigurationError(
                "Unsigned tokens ('none') cannot be allowed", option="algorithms"
            )
        return tuple(v)

    @model_validator(mode="after")
    def _exactly_one_key_source(self) -> "ValidatorConfig":
        configured = [name for name in _KEY_SOURCE_FIELDS if getattr(self, name) is not None]
        if not configured:
            raise ConfigurationError(
                "No signing key source configured: set one of publicKeyPem, jwksUri or jwks"
            )
        if len(configured) > 1:
            raise ConfigurationError(
                f"Exactly one signing key source may be configured, got: {', '.join(configured)}",
                details={"sources": configured},
            )
        return self

    @property
    def key_source(self) -> str:
        """Name of the configured signing-key source field."""
        for name in _KEY_SOURCE_FIELDS:
            if getattr(self, name) is not None:
                return name
        raise AssertionError("unreachable: key source is validated at construction")

    @classmethod
    def from_options(cls, options: Mapping[str, Optional[str]]) -> "ValidatorConfig":
        """Build a config from a mechanism option map of strings.

        Keys may use field names, camelCase option names, or the
        ``signedJwtValidator`` prefixed form. Blank values mean "use the
        default".

        Raises:
            ConfigurationError: If any option is unknown or invalid.
        """
        data: dict[str, Any] = {}
        for key, value in options.items():
            if value is None or (isinstance(value, str) and not value.strip()):
                continue
            name = key
            if name.startswith(OPTION_PREFIX) and len(name) > len(OPTION_PREFIX):
                rest = name[len(OPTION_PREFIX):]
                name = rest[0].lower() + rest[1:]
            data[name] = value
        return cls(**data)

    @classmethod
    def from_env(
        cls, environ: Mapping[str, str] | None = None, prefix: str = ENV_PREFIX
    ) -> "ValidatorConfig":
        """Build a config from ``OAUTHBEARER_*`` environment variables.

        Raises:
            ConfigurationError: If a variable holds an invalid value or no key source is set.
        """
        environ = os.environ if environ is None else environ
        data: dict[str, Any] = {}
        for field_name in cls.model_fields:
            value = environ.get(f"{prefix}{field_name.upper()}")
            if value is not None and value.strip():
                data[field_name] = value
        return cls(**data)
