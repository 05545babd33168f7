"""OAUTHBEARER Error Taxonomy.

This module defines the error hierarchy for the OAUTHBEARER mechanism,
providing structured error handling with specific error codes
and context information.

Token validation failures are deliberately absent: they are reported as
``ValidationFailure`` values and reach the peer as a JSON error body rather
than as exceptions.
"""
from __future__ import annotations

from typing import Any, Mapping


class OAuthBearerError(Exception):
    """Base exception for all OAUTHBEARER errors.

    Attributes:
        code: Error code following the oauthbearer:<area>/<name> pattern
        message: Human-readable error message
        details: Optional additional error context
    """

    def __init__(self, code: str, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Serialize to ``{code, message, details}`` dict."""
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class ConfigurationError(OAuthBearerError):
    """Raised when a validator or mechanism option is missing or invalid.

    Fatal at configure time and never retried: bad PEM material, negative
    clock skew, unparsable integers, no (or several) signing-key sources.

    Attributes:
        option: Name of the offending option, when known
    """

    def __init__(
        self, message: str, option: str | None = None, details: dict[str, Any] | None = None
    ) -> None:
        details_dict: dict[str, Any] = {}
        if option is not None:
            details_dict["option"] = option
        if details:
            details_dict.update(details)
        super().__init__(code="oauthbearer:config/invalid", message=message, details=details_dict)
        self.option = option


class MalformedMessageError(OAuthBearerError):
    """Raised when a handshake message cannot be decoded.

    This error aborts the exchange immediately.
    """

    def __init__(self, reason: str, details: dict[str, Any] | None = None) -> None:
        message = f"Malformed message: {reason}"
        super().__init__(
            code="oauthbearer:protocol/malformed_message", message=message, details=details or {}
        )
        self.reason = reason


class ProtocolStateError(OAuthBearerError):
    """Raised when an exchange receives a message or call in an unexpected state.

    Attributes:
        state: The exchange state at the time of the call
        event: What was attempted (e.g. "evaluate_challenge", "wrap")
    """

    def __init__(self, state: str, event: str, details: dict[str, Any] | None = None) -> None:
        message = f"Unexpected {event} in state '{state}'"
        super().__init__(
            code="oauthbearer:protocol/invalid_state",
            message=message,
            details={"state": state, "event": event, **(details or {})},
        )
        self.state = state
        self.event = event


class SaslAuthenticationError(OAuthBearerError):
    """Raised when authentication fails fatally and the handshake must end."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        *,
        code: str = "oauthbearer:auth/failed",
    ) -> None:
        super().__init__(code=code, message=message, details=details or {})


class AuthorizationMismatchError(SaslAuthenticationError):
    """Raised when the requested authorization id differs from the token's principal.

    Attributes:
        authorization_id: Identity the client asked to act as
        principal_name: Principal the token actually authenticates
    """

    def __init__(
        self,
        authorization_id: str,
        principal_name: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        message = (
            "Authentication failed: Client requested an authorization id "
            f"({authorization_id}) that is different from the token's principal name "
            f"({principal_name})"
        )
        super().__init__(
            message,
            details={
                "authorization_id": authorization_id,
                "principal_name": principal_name,
                **(details or {}),
            },
            code="oauthbearer:auth/authorization_mismatch",
        )
        self.authorization_id = authorization_id
        self.principal_name = principal_name


class ExtensionRejectedError(SaslAuthenticationError):
    """Raised when one or more offered extensions fail policy validation.

    Attributes:
        invalid_extensions: Rejected extension name -> reason, in rejection order
    """

    def __init__(
        self,
        message: str,
        invalid_extensions: Mapping[str, str],
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message,
            details={"invalid_extensions": dict(invalid_extensions), **(details or {})},
            code="oauthbearer:auth/extensions_rejected",
        )
        self.invalid_extensions = dict(invalid_extensions)


class SaslServerError(OAuthBearerError):
    """Raised when the server could not perform authentication due to an internal error."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            code="oauthbearer:server/internal_error", message=message, details=details or {}
        )


class UnsupportedCallbackError(OAuthBearerError):
    """Raised by a callback handler asked for something it cannot provide.

    Attributes:
        request_kind: Class name of the unsupported request
    """

    def __init__(self, request: object, details: dict[str, Any] | None = None) -> None:
        request_kind = type(request).__name__
        super().__init__(
            code="oauthbearer:callback/unsupported",
            message=f"Unsupported callback request: {request_kind}",
            details={"request_kind": request_kind, **(details or {})},
        )
        self.request_kind = request_kind


class KeyResolutionError(OAuthBearerError):
    """Raised when no verification key can be produced for a token.

    Covers unknown key ids as well as unreachable or unusable key sources.

    Attributes:
        kid: Key id declared by the token header, if any
    """

    def __init__(
        self, message: str, kid: str | None = None, details: dict[str, Any] | None = None
    ) -> None:
        super().__init__(
            code="oauthbearer:keys/resolution_failed",
            message=message,
            details={"kid": kid, **(details or {})},
        )
        self.kid = kid


class ThreadPoolExhaustedError(OAuthBearerError):
    """Raised when the thread pool is exhausted and cannot accept new tasks.

    Attributes:
        max_threads: Maximum number of threads in the pool
        active_threads: Current number of active threads
    """

    def __init__(
        self,
        max_threads: int,
        active_threads: int,
        details: dict[str, Any] | None = None,
    ) -> None:
        message = (
            f"Thread pool exhausted: {active_threads}/{max_threads} threads in use. "
            "Service temporarily unavailable."
        )
        super().__init__(
            code="oauthbearer:server/thread_pool_exhausted",
            message=message,
            details={
                "max_threads": max_threads,
                "active_threads": active_threads,
                **(details or {}),
            },
        )
        self.max_threads = max_threads
        self.active_threads = active_threads
