"""Server side of an OAUTHBEARER exchange.

The server receives the client's initial response, validates the bearer token
through its callback handler and answers with an empty message on success.
When the token is rejected it answers with a JSON error body; the client must
acknowledge that with a single 0x01 byte, after which the server ends the
exchange with ``SaslAuthenticationError``. A client may instead retry with a
new initial response while the error is pending.
"""

from __future__ import annotations

import asyncio
from concurrent.futures import Executor
from typing import Any, Optional

from oauthbearer.errors import (
    AuthorizationMismatchError,
    ExtensionRejectedError,
    OAuthBearerError,
    ProtocolStateError,
    SaslAuthenticationError,
    SaslServerError,
    UnsupportedCallbackError,
)
from oauthbearer.models.callbacks import (
    CallbackHandler,
    ExtensionsValidationRequest,
    ExtensionsValidationResponse,
    ValidationRequest,
    ValidationResponse,
)
from oauthbearer.models.enums import ServerState
from oauthbearer.models.messages import InitialResponse
from oauthbearer.models.token import Token, ValidationFailure
from oauthbearer.observability import get_logger, get_metrics
from oauthbearer.sasl.codec import (
    CONTINUATION_ACK,
    EMPTY_SUCCESS,
    MECHANISM,
    decode_initial_response,
    encode_error_body,
)
from oauthbearer.sasl.extensions import NegotiationResult

logger = get_logger(__name__)

TOKEN_PROPERTY = f"{MECHANISM}.token"

INTERNAL_ERROR_PREFIX = (
    "Authentication could not be performed due to an internal error on the server"
)


class ServerExchange:
    """One server-side OAUTHBEARER handshake.

    Not thread-safe: one exchange belongs to one connection and is driven by
    one caller at a time.

    Example:
        >>> server = ServerExchange(JwtServerHandler.from_config(config))
        >>> reply = server.evaluate(initial_response)
        >>> if server.is_complete():
        ...     principal = server.authorization_id()
    """

    mechanism_name = MECHANISM

    def __init__(self, handler: CallbackHandler) -> None:
        self._handler = handler
        self._state = ServerState.AWAITING_INITIAL
        self._pending_error: Optional[str] = None
        self._token: Optional[Token] = None
        self._extensions: dict[str, str] = {}

    @property
    def state(self) -> ServerState:
        return self._state

    def is_complete(self) -> bool:
        return self._state == ServerState.COMPLETE

    def evaluate(self, data: bytes) -> bytes:
        """Process a client message and return the server's reply.

        Returns:
            ``b""`` on success, or the JSON error body when the token was rejected.

        Raises:
            ProtocolStateError: If the exchange already ended.
            MalformedMessageError: If the message cannot be decoded.
            SaslAuthenticationError: When the client acknowledges a pending error,
                on authorization id mismatch, or on rejected extensions.
            SaslServerError: If the callback handler fails unexpectedly.
        """
        if self._state.is_terminal():
            raise ProtocolStateError(self._state.value, "evaluate")
        try:
            return self._evaluate(data)
        except Exception:
            self._fail()
            raise

    def _fail(self) -> None:
        self._state = ServerState.FAILED
        self._token = None
        self._extensions = {}
        get_metrics().increment_counter("oauthbearer_handshakes_total", {"outcome": "failure"})

    def _evaluate(self, data: bytes) -> bytes:
        if self._pending_error is not None and data == CONTINUATION_ACK:
            error = self._pending_error
            self._pending_error = None
            logger.info("oauthbearer.server.failed", error_body=error)
            raise SaslAuthenticationError(error, details={"error_body": error})
        self._pending_error = None

        return self._authenticate(decode_initial_response(data))

    def _call(self, request: Any) -> Any:
        try:
            return self._handler.handle(request)
        except OAuthBearerError:
            raise
        except Exception as exc:
            logger.exception(
                "oauthbearer.server.callback_error", request=type(request).__name__
            )
            raise SaslServerError(f"{INTERNAL_ERROR_PREFIX}: {exc}") from exc

    def _authenticate(self, message: InitialResponse) -> bytes:
        response = self._call(ValidationRequest(token_value=message.token_value))
        if not isinstance(response, ValidationResponse):
            raise SaslServerError(
                f"{INTERNAL_ERROR_PREFIX}: unexpected {type(response).__name__}"
            )

        result = response.result
        if isinstance(result, ValidationFailure):
            return self._report_failure(result)
        token = result.token

        if message.authorization_id and message.authorization_id != token.principal_name:
            logger.info(
                "oauthbearer.server.authorization_mismatch",
                authorization_id=message.authorization_id,
                principal=token.principal_name,
            )
            raise AuthorizationMismatchError(message.authorization_id, token.principal_name)

        negotiated = self._negotiate(token, message.extensions)
        if not negotiated.ok:
            logger.info("oauthbearer.server.extensions_rejected", invalid=negotiated.invalid)
            raise ExtensionRejectedError(negotiated.error_message or "", negotiated.invalid)

        self._token = token
        self._extensions = dict(negotiated.validated)
        self._state = ServerState.COMPLETE
        get_metrics().increment_counter("oauthbearer_handshakes_total", {"outcome": "success"})
        logger.info(
            "oauthbearer.server.authenticated",
            principal=token.principal_name,
            extensions=sorted(self._extensions),
        )
        return EMPTY_SUCCESS

    def _report_failure(self, failure: ValidationFailure) -> bytes:
        body = encode_error_body(
            failure.status, failure.failure_scope, failure.failure_openid_config
        )
        self._pending_error = body.decode("utf-8")
        get_metrics().increment_counter("oauthbearer_handshakes_total", {"outcome": "rejected"})
        logger.info(
            "oauthbearer.server.token_rejected",
            reason=failure.reason.value,
            description=failure.description,
        )
        return body

    def _negotiate(self, token: Token, offered: dict[str, str]) -> NegotiationResult:
        try:
            response = self._call(ExtensionsValidationRequest(token=token, extensions=offered))
        except UnsupportedCallbackError:
            return NegotiationResult()
        if not isinstance(response, ExtensionsValidationResponse):
            raise SaslServerError(
                f"{INTERNAL_ERROR_PREFIX}: unexpected {type(response).__name__}"
            )
        if response.invalid:
            return NegotiationResult(validated={}, invalid=dict(response.invalid))
        return NegotiationResult(validated=dict(response.validated))

    async def evaluate_async(self, data: bytes, executor: Optional[Executor] = None) -> bytes:
        """Run ``evaluate`` in ``executor`` so key fetches never block the event loop.

        Raises:
            ThreadPoolExhaustedError: If a bounded executor has no free thread.
        """
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(executor, self.evaluate, data)

    @property
    def token(self) -> Optional[Token]:
        return self._token

    @property
    def extensions(self) -> dict[str, str]:
        """Validated extensions (empty until the exchange completes)."""
        return dict(self._extensions)

    def authorization_id(self) -> str:
        if not self.is_complete() or self._token is None:
            raise ProtocolStateError(self._state.value, "authorization_id")
        return self._token.principal_name

    def negotiated_property(self, name: str) -> Any:
        if not self.is_complete():
            raise ProtocolStateError(self._state.value, "negotiated_property")
        if name == TOKEN_PROPERTY:
            return self._token
        return self._extensions.get(name)

    def wrap(self, outgoing: bytes) -> bytes:
        if not self.is_complete():
            raise ProtocolStateError(self._state.value, "wrap")
        return bytes(outgoing)

    def unwrap(self, incoming: bytes) -> bytes:
        if not self.is_complete():
            raise ProtocolStateError(self._state.value, "unwrap")
        return bytes(incoming)

    def dispose(self) -> None:
        self._token = None
        self._extensions = {}
        self._pending_error = None
