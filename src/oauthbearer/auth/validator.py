"""Bearer token validation.

``TokenValidator.validate`` turns a compact JWT into a ``ValidationResult``:

1. split and decode the compact serialization (``malformed``)
2. resolve the verification key from the header ``kid`` (``key-not-found``)
3. verify the signature with joserfc (``signature-invalid``)
4. require ``exp`` (``no-expiration``) and a non-blank principal (``no-principal``)
5. compute scope and issued-at (``wrong-claim-type`` on bad claim types)
6. run the optional policy checks enabled in ``ValidatorConfig``: expiry,
   issued-at consistency, audience, required scope

Failures are returned, never raised, so the server can report them to the
client as a JSON error body.
"""

from __future__ import annotations

import time
from typing import Callable, Optional

from joserfc import jws
from joserfc.errors import BadSignatureError, JoseError

from oauthbearer.auth.jwt import (
    CompactJwt,
    TokenRejected,
    numeric_claim,
    parse_compact,
    seconds_to_ms,
)
from oauthbearer.auth.keys import KeyResolver, VerificationKey, build_key_resolver
from oauthbearer.auth.scopes import compute_scope, missing_scope
from oauthbearer.config import ValidatorConfig
from oauthbearer.errors import KeyResolutionError
from oauthbearer.models.enums import FailureReason
from oauthbearer.models.token import Token, ValidationFailure, ValidationResult, ValidationSuccess
from oauthbearer.observability import get_logger, get_metrics, is_debug_mode, sanitize_for_logging

logger = get_logger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


class TokenValidator:
    """Validates signed JWT bearer tokens.

    Example:
        >>> config = ValidatorConfig(jwks_uri="https://idp.example.com/jwks.json")
        >>> validator = TokenValidator(config)
        >>> result = validator.validate(token_value)
        >>> match result:
        ...     case ValidationSuccess(token=token):
        ...         print(token.principal_name)
        ...     case ValidationFailure(description=description):
        ...         print(description)
    """

    def __init__(
        self,
        config: ValidatorConfig,
        key_resolver: Optional[KeyResolver] = None,
        *,
        clock: Callable[[], int] = _now_ms,
    ) -> None:
        """Initialize the validator.

        Args:
            config: Validation settings.
            key_resolver: Signing-key resolver; built from ``config`` when omitted.
            clock: Returns the current time in epoch milliseconds.
        """
        self._config = config
        self._key_resolver = key_resolver if key_resolver is not None else build_key_resolver(config)
        self._clock = clock

    @property
    def config(self) -> ValidatorConfig:
        return self._config

    def validate(self, token_value: str) -> ValidationResult:
        """Validate ``token_value`` and return the outcome."""
        started = time.perf_counter()
        try:
            token = self._validate(token_value)
            token = self._apply_policies(token)
        except TokenRejected as rejected:
            failure = rejected.to_failure(self._config.openid_configuration_url)
            self._record(failure, started)
            return failure
        self._record(None, started)
        if is_debug_mode():
            logger.debug(
                "oauthbearer.token.validated",
                principal=token.principal_name,
                claims=sanitize_for_logging(dict(token.claims)),
            )
        else:
            logger.debug("oauthbearer.token.validated", principal=token.principal_name)
        return ValidationSuccess(token=token)

    def _record(self, failure: Optional[ValidationFailure], started: float) -> None:
        metrics = get_metrics()
        outcome = "success" if failure is None else "failure"
        metrics.observe_histogram(
            "oauthbearer_validation_duration_seconds",
            time.perf_counter() - started,
            {"outcome": outcome},
        )
        if failure is not None:
            metrics.increment_counter(
                "oauthbearer_validation_failures_total", {"reason": failure.reason.value}
            )
            logger.info(
                "oauthbearer.token.rejected",
                reason=failure.reason.value,
                description=failure.description,
            )

    def _resolve_key(self, jwt: CompactJwt) -> VerificationKey:
        try:
            return self._key_resolver.resolve(jwt.kid, jwt.alg)
        except KeyResolutionError as exc:
            raise TokenRejected(FailureReason.KEY_NOT_FOUND, exc.message) from exc

    def _verify_signature(self, jwt: CompactJwt) -> None:
        alg = jwt.alg
        if alg is None or alg.lower() == "none" or not jwt.signature:
            raise TokenRejected(
                FailureReason.SIGNATURE_INVALID, "Invalid JWT: token is not signed"
            )
        if alg not in self._config.algorithms:
            raise TokenRejected(
                FailureReason.SIGNATURE_INVALID,
                f"Invalid JWT: signing algorithm '{alg}' is not allowed",
            )
        key = self._resolve_key(jwt)
        try:
            jws.deserialize_compact(jwt.value, key, algorithms=[alg])
        except BadSignatureError as exc:
            logger.warning("oauthbearer.token.signature_mismatch", kid=jwt.kid, alg=alg)
            raise TokenRejected(
                FailureReason.SIGNATURE_INVALID, "Invalid JWT: signature could not be verified"
            ) from exc
        except (JoseError, ValueError, TypeError) as exc:
            logger.warning(
                "oauthbearer.token.signature_error", kid=jwt.kid, alg=alg, error=str(exc)
            )
            raise TokenRejected(
                FailureReason.SIGNATURE_INVALID,
                f"Invalid JWT: signature could not be verified ({type(exc).__name__})",
            ) from exc

    def _principal(self, jwt: CompactJwt) -> str:
        claim_name = self._config.principal_claim_name
        value = jwt.claims.get(claim_name)
        if not isinstance(value, str) or not value.strip():
            raise TokenRejected(
                FailureReason.NO_PRINCIPAL, f"No principal name in JWT claim: {claim_name}"
            )
        return value

    def _validate(self, token_value: str) -> Token:
        jwt = parse_compact(token_value)
        self._verify_signature(jwt)

        claims = jwt.claims
        exp = numeric_claim(claims, "exp")
        if exp is None:
            raise TokenRejected(FailureReason.NO_EXPIRATION, "No expiration time in JWT")
        principal_name = self._principal(jwt)
        scope = compute_scope(claims, self._config.scope_claim_name)
        iat = numeric_claim(claims, "iat")

        return Token(
            value=token_value,
            principal_name=principal_name,
            scope=scope,
            lifetime_ms=seconds_to_ms(exp),
            start_time_ms=seconds_to_ms(iat, "iat") if iat is not None else None,
            claims=claims,
        )

    def _apply_policies(self, token: Token) -> Token:
        config = self._config
        skew = config.allowable_clock_skew_ms

        if config.verify_expiration:
            now = self._clock()
            if now > token.lifetime_ms + skew:
                raise TokenRejected(
                    FailureReason.EXPIRED,
                    f"The indicated time ({now} ms) is beyond the expiration time "
                    f"({token.lifetime_ms} ms) plus allowable clock skew ({skew} ms)",
                )

        if config.verify_issued_at and token.start_time_ms is not None:
            now = self._clock()
            if token.start_time_ms > now + skew:
                raise TokenRejected(
                    FailureReason.NOT_YET_VALID,
                    f"The Issued At value ({token.start_time_ms} ms) is after the indicated "
                    f"time ({now} ms) plus allowable clock skew ({skew} ms)",
                )
            if token.start_time_ms > token.lifetime_ms:
                raise TokenRejected(
                    FailureReason.NOT_YET_VALID,
                    f"The Issued At value ({token.start_time_ms} ms) is after the expiration "
                    f"time ({token.lifetime_ms} ms)",
                )

        if config.expected_audience is not None:
            audience = token.claims.get("aud")
            audiences = audience if isinstance(audience, tuple) else (audience,)
            if config.expected_audience not in audiences:
                raise TokenRejected(
                    FailureReason.INVALID_AUDIENCE,
                    f"The token audience does not include '{config.expected_audience}'",
                )

        if config.required_scope:
            missing = missing_scope(config.required_scope, token.scope)
            if missing:
                raise TokenRejected(
                    FailureReason.INSUFFICIENT_SCOPE,
                    f"The provided scope ({' '.join(sorted(token.scope))}) is missing "
                    f"a required scope ({' '.join(missing)})",
                    failure_scope=" ".join(sorted(config.required_scope)),
                )

        return token


def create_validator(config: ValidatorConfig) -> TokenValidator:
    """Build a validator and its key resolver from ``config``."""
    return TokenValidator(config, build_key_resolver(config))
