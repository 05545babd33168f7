"""OAUTHBEARER Models.

Pydantic models for tokens, validation results, handshake messages and
callback requests/responses.
"""

from oauthbearer.models.base import OAuthBearerBaseModel
from oauthbearer.models.callbacks import (
    CallbackHandler,
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
from oauthbearer.models.enums import ClientState, FailureReason, ServerState
from oauthbearer.models.messages import (
    ClientMessage,
    ContinuationAck,
    EmptySuccess,
    ErrorBody,
    InitialResponse,
    SaslMessage,
    ServerMessage,
)
from oauthbearer.models.token import (
    ClaimSet,
    Token,
    ValidationFailure,
    ValidationResult,
    ValidationSuccess,
)

__all__ = [
    "CallbackHandler",
    "CallbackRequest",
    "CallbackResponse",
    "ClaimSet",
    "ClientMessage",
    "ClientState",
    "ContinuationAck",
    "EmptySuccess",
    "ErrorBody",
    "ExtensionsRequest",
    "ExtensionsResponse",
    "ExtensionsValidationRequest",
    "ExtensionsValidationResponse",
    "FailureReason",
    "InitialResponse",
    "OAuthBearerBaseModel",
    "SaslMessage",
    "ServerMessage",
    "ServerState",
    "Token",
    "TokenRequest",
    "TokenResponse",
    "ValidationFailure",
    "ValidationRequest",
    "ValidationResponse",
    "ValidationResult",
    "ValidationSuccess",
]
