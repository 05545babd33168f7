"""Enumerations for the OAUTHBEARER mechanism.

State machines and validation failure reasons are modelled as string
enums so log lines and error details carry stable, readable values.
"""

from enum import Enum


class ClientState(str, Enum):
    """Client-side exchange states.

    Example:
        >>> ClientState.COMPLETE.is_terminal()
        True
    """

    INIT = "init"
    AWAITING_FIRST_SERVER_MESSAGE = "awaiting_first_server_message"
    AWAITING_SERVER_MESSAGE_AFTER_FAILURE = "awaiting_server_message_after_failure"
    COMPLETE = "complete"
    FAILED = "failed"

    def is_terminal(self) -> bool:
        return self in (ClientState.COMPLETE, ClientState.FAILED)


class ServerState(str, Enum):
    """Server-side exchange states."""

    AWAITING_INITIAL = "awaiting_initial"
    COMPLETE = "complete"
    FAILED = "failed"

    def is_terminal(self) -> bool:
        return self in (ServerState.COMPLETE, ServerState.FAILED)


class FailureReason(str, Enum):
    """Why a bearer token was rejected."""

    MALFORMED = "malformed"
    SIGNATURE_INVALID = "signature-invalid"
    KEY_NOT_FOUND = "key-not-found"
    NO_EXPIRATION = "no-expiration"
    NO_PRINCIPAL = "no-principal"
    WRONG_CLAIM_TYPE = "wrong-claim-type"
    EXPIRED = "expired"
    NOT_YET_VALID = "not-yet-valid"
    INVALID_AUDIENCE = "invalid-audience"
    INSUFFICIENT_SCOPE = "insufficient-scope"


# RFC 7628 section 3.2.2 status values (IANA OAuth Extensions Error Registry)
STATUS_INVALID_TOKEN = "invalid_token"
STATUS_INSUFFICIENT_SCOPE = "insufficient_scope"
