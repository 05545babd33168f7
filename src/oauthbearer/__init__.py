"""SASL OAUTHBEARER (RFC 7628) client and server mechanism for Python.

Authenticates a connection with a signed JWT bearer token: the client
presents the token in its initial response, the server validates signature
and claims and exposes the token's principal as the authorization id.

Example:
    >>> from oauthbearer import (
    ...     ClientExchange, JwtServerHandler, ServerExchange,
    ...     StaticTokenClientHandler, ValidatorConfig,
    ... )
    >>> config = ValidatorConfig(jwks_uri="https://idp.example.com/jwks.json")
    >>> server = ServerExchange(JwtServerHandler.from_config(config))
    >>> client = ClientExchange(StaticTokenClientHandler(token))
    >>> client.evaluate_challenge(server.evaluate(client.evaluate_challenge(b"")))
    b''
    >>> server.authorization_id()
    'alice'
"""

__version__ = "1.0.0"

from oauthbearer.auth import TokenValidator, create_validator
from oauthbearer.config import ValidatorConfig
from oauthbearer.errors import (
    AuthorizationMismatchError,
    ConfigurationError,
    ExtensionRejectedError,
    KeyResolutionError,
    MalformedMessageError,
    OAuthBearerError,
    ProtocolStateError,
    SaslAuthenticationError,
    SaslServerError,
    ThreadPoolExhaustedError,
    UnsupportedCallbackError,
)
from oauthbearer.models import (
    ClientState,
    FailureReason,
    ServerState,
    Token,
    ValidationFailure,
    ValidationResult,
    ValidationSuccess,
)
from oauthbearer.sasl import (
    MECHANISM,
    BoundedExecutor,
    ClientExchange,
    ExtensionNegotiator,
    JwtServerHandler,
    OAuthBearerClientFactory,
    OAuthBearerServerFactory,
    ServerExchange,
    StaticTokenClientHandler,
)

__all__ = [
    "MECHANISM",
    "AuthorizationMismatchError",
    "BoundedExecutor",
    "ClientExchange",
    "ClientState",
    "ConfigurationError",
    "ExtensionNegotiator",
    "ExtensionRejectedError",
    "FailureReason",
    "JwtServerHandler",
    "KeyResolutionError",
    "MalformedMessageError",
    "OAuthBearerClientFactory",
    "OAuthBearerError",
    "OAuthBearerServerFactory",
    "ProtocolStateError",
    "SaslAuthenticationError",
    "SaslServerError",
    "ServerExchange",
    "ServerState",
    "StaticTokenClientHandler",
    "ThreadPoolExhaustedError",
    "Token",
    "TokenValidator",
    "UnsupportedCallbackError",
    "ValidationFailure",
    "ValidationResult",
    "ValidationSuccess",
    "ValidatorConfig",
    "__version__",
    "create_validator",
]
