"""Client side of an OAUTHBEARER exchange.

The client speaks first: its initial response carries the bearer token. The
server then either succeeds with an empty message, or sends a JSON error body
which the client must acknowledge with a single 0x01 byte before the server
ends the exchange.
"""

from __future__ import annotations

from typing import Optional

from oauthbearer.errors import (
    MalformedMessageError,
    ProtocolStateError,
    SaslAuthenticationError,
    UnsupportedCallbackError,
)
from oauthbearer.models.callbacks import (
    CallbackHandler,
    ExtensionsRequest,
    ExtensionsResponse,
    TokenRequest,
    TokenResponse,
)
from oauthbearer.models.enums import ClientState
from oauthbearer.models.messages import ErrorBody
from oauthbearer.observability import get_logger
from oauthbearer.sasl.codec import (
    CONTINUATION_ACK,
    EMPTY_SUCCESS,
    MECHANISM,
    decode_error_body,
    encode_initial_response,
)

logger = get_logger(__name__)


class ClientExchange:
    """One client-side OAUTHBEARER handshake.

    Example:
        >>> client = ClientExchange(StaticTokenClientHandler(token))
        >>> initial = client.evaluate_challenge(b"")
        >>> client.evaluate_challenge(server.evaluate(initial))
        b''
        >>> client.is_complete()
        True
    """

    mechanism_name = MECHANISM

    def __init__(self, handler: CallbackHandler, authorization_id: Optional[str] = None) -> None:
        self._handler = handler
        self._authorization_id = authorization_id or None
        self._state = ClientState.INIT
        self._error_body: Optional[ErrorBody] = None
        self._raw_error: Optional[str] = None

    @property
    def state(self) -> ClientState:
        return self._state

    @property
    def error_body(self) -> Optional[ErrorBody]:
        """Last server error body, if it parsed as JSON."""
        return self._error_body

    def has_initial_response(self) -> bool:
        return False

    def is_complete(self) -> bool:
        return self._state == ClientState.COMPLETE

    def evaluate_challenge(self, challenge: bytes) -> bytes:
        """Process a server message and return the client's reply.

        Raises:
            ProtocolStateError: If the message is not acceptable in the current state.
            SaslAuthenticationError: When the server ends a failed exchange.
        """
        try:
            match self._state:
                case ClientState.INIT:
                    return self._initial_response(challenge)
                case ClientState.AWAITING_FIRST_SERVER_MESSAGE:
                    return self._first_server_message(challenge)
                case ClientState.AWAITING_SERVER_MESSAGE_AFTER_FAILURE:
                    message = self._raw_error or "unknown error"
                    raise SaslAuthenticationError(
                        f"Server failed authentication: {message}",
                        details={"error_body": message},
                    )
                case _:
                    raise ProtocolStateError(self._state.value, "evaluate_challenge")
        except Exception:
            self._state = ClientState.FAILED
            raise

    def _initial_response(self, challenge: bytes) -> bytes:
        if challenge:
            raise ProtocolStateError(
                self._state.value,
                "evaluate_challenge",
                details={"reason": "expected an empty initial challenge"},
            )
        token_response = self._handler.handle(TokenRequest())
        if not isinstance(token_response, TokenResponse):
            raise SaslAuthenticationError(
                f"Callback handler returned {type(token_response).__name__} for a token request"
            )
        extensions = self._requested_extensions()
        try:
            response = encode_initial_response(
                token_response.token_value, self._authorization_id, extensions
            )
        except ValueError as exc:
            raise SaslAuthenticationError(f"Unable to encode initial response: {exc}") from exc
        self._state = ClientState.AWAITING_FIRST_SERVER_MESSAGE
        logger.debug(
            "oauthbearer.client.initial_response",
            authorization_id=self._authorization_id,
            extensions=sorted(extensions),
        )
        return response

    def _requested_extensions(self) -> dict[str, str]:
        try:
            response = self._handler.handle(ExtensionsRequest())
        except UnsupportedCallbackError:
            return {}
        if not isinstance(response, ExtensionsResponse):
            raise SaslAuthenticationError(
                f"Callback handler returned {type(response).__name__} for an extensions request"
            )
        return dict(response.extensions)

    def _first_server_message(self, challenge: bytes) -> bytes:
        if challenge == EMPTY_SUCCESS:
            self._state = ClientState.COMPLETE
            logger.debug("oauthbearer.client.complete")
            return EMPTY_SUCCESS
        self._raw_error = challenge.decode("utf-8", errors="replace")
        try:
            self._error_body = decode_error_body(challenge)
        except MalformedMessageError:
            self._error_body = None
        logger.info("oauthbearer.client.server_error", error_body=self._raw_error)
        self._state = ClientState.AWAITING_SERVER_MESSAGE_AFTER_FAILURE
        return CONTINUATION_ACK

    def wrap(self, outgoing: bytes) -> bytes:
        if not self.is_complete():
            raise ProtocolStateError(self._state.value, "wrap")
        return bytes(outgoing)

    def unwrap(self, incoming: bytes) -> bytes:
        if not self.is_complete():
            raise ProtocolStateError(self._state.value, "unwrap")
        return bytes(incoming)

    def dispose(self) -> None:
        self._error_body = None
        self._raw_error = None
