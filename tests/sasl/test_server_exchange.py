"""Tests for the server-side exchange state machine."""

import asyncio
import threading

import pytest

from oauthbearer.config import ValidatorConfig
from oauthbearer.errors import (
    AuthorizationMismatchError,
    ExtensionRejectedError,
    MalformedMessageError,
    ProtocolStateError,
    SaslAuthenticationError,
    SaslServerError,
    ThreadPoolExhaustedError,
    UnsupportedCallbackError,
)
from oauthbearer.models.callbacks import (
    CallbackRequest,
    CallbackResponse,
    ValidationRequest,
    ValidationResponse,
)
from oauthbearer.models.enums import ServerState
from oauthbearer.models.token import Token, ValidationSuccess
from oauthbearer.observability import get_metrics
from oauthbearer.sasl.codec import encode_initial_response
from oauthbearer.sasl.executors import BoundedExecutor
from oauthbearer.sasl.extensions import ExtensionNegotiator, allow_names
from oauthbearer.sasl.handlers import JwtServerHandler
from oauthbearer.sasl.server import ServerExchange


@pytest.fixture
def server(validator_config: ValidatorConfig) -> ServerExchange:
    return ServerExchange(JwtServerHandler.from_config(validator_config))


class ExplodingHandler:
    def handle(self, request: CallbackRequest) -> CallbackResponse:
        raise RuntimeError("database is down")


class ValidationOnlyHandler:
    """Accepts every token and cannot validate extensions."""

    def handle(self, request: CallbackRequest) -> CallbackResponse:
        if isinstance(request, ValidationRequest):
            token = Token(value=request.token_value, principal_name="alice", lifetime_ms=1)
            return ValidationResponse(result=ValidationSuccess(token=token))
        raise UnsupportedCallbackError(request)


class TestSuccess:
    """Tests for successful handshakes."""

    def test_valid_token_completes(self, server: ServerExchange, make_token) -> None:
        token = make_token()

        assert server.evaluate(encode_initial_response(token)) == b""
        assert server.is_complete()
        assert server.authorization_id() == "alice"
        assert server.token is not None
        assert server.token.value == token
        assert server.negotiated_property("OAUTHBEARER.token") == server.token
        assert get_metrics().get_counter(
            "oauthbearer_handshakes_total", {"outcome": "success"}
        ) == 1.0

    def test_matching_authzid_is_accepted(self, server: ServerExchange, make_token) -> None:
        server.evaluate(encode_initial_response(make_token(), "alice"))

        assert server.authorization_id() == "alice"

    def test_extensions_are_negotiated(self, server: ServerExchange, make_token) -> None:
        server.evaluate(encode_initial_response(make_token(), None, {"traceId": "42"}))

        assert server.extensions == {"traceId": "42"}
        assert server.negotiated_property("traceId") == "42"
        assert server.negotiated_property("unknown") is None

    def test_handler_without_extension_support_validates_none(self) -> None:
        server = ServerExchange(ValidationOnlyHandler())

        server.evaluate(encode_initial_response("a.b.c", None, {"traceId": "42"}))

        assert server.is_complete()
        assert server.extensions == {}


class TestRejectedToken:
    """Tests for validation failures and the error body exchange."""

    def test_invalid_token_returns_error_body(self, server: ServerExchange) -> None:
        reply = server.evaluate(encode_initial_response("not-a-jwt"))

        assert reply == b'{"status":"invalid_token"}'
        assert server.state == ServerState.AWAITING_INITIAL
        assert not server.is_complete()

    def test_deeply_nested_token_returns_error_body(
        self, server: ServerExchange, deeply_nested_token: str
    ) -> None:
        reply = server.evaluate(encode_initial_response(deeply_nested_token))

        assert reply == b'{"status":"invalid_token"}'
        assert server.state == ServerState.AWAITING_INITIAL

    def test_acknowledgment_ends_exchange(self, server: ServerExchange) -> None:
        server.evaluate(encode_initial_response("not-a-jwt"))

        with pytest.raises(SaslAuthenticationError) as exc_info:
            server.evaluate(b"\x01")

        assert exc_info.value.message == '{"status":"invalid_token"}'
        assert server.state == ServerState.FAILED

    def test_client_may_retry_while_error_is_pending(
        self, server: ServerExchange, make_token
    ) -> None:
        server.evaluate(encode_initial_response("not-a-jwt"))

        assert server.evaluate(encode_initial_response(make_token())) == b""
        assert server.is_complete()

    def test_insufficient_scope_advertises_scope(self, jwks_document, make_token) -> None:
        config = ValidatorConfig(
            jwks=jwks_document,
            required_scope="admin",
            openid_configuration_url="https://idp/.well-known/openid-configuration",
        )
        server = ServerExchange(JwtServerHandler.from_config(config))

        reply = server.evaluate(encode_initial_response(make_token()))

        assert reply == (
            b'{"status":"insufficient_scope","scope":"admin",'
            b'"openid-configuration":"https://idp/.well-known/openid-configuration"}'
        )


class TestFatalErrors:
    """Tests for errors that end the exchange."""

    def test_malformed_message(self, server: ServerExchange) -> None:
        with pytest.raises(MalformedMessageError):
            server.evaluate(b"garbage")

        assert server.state == ServerState.FAILED

    def test_continuation_without_pending_error_is_malformed(
        self, server: ServerExchange
    ) -> None:
        with pytest.raises(MalformedMessageError):
            server.evaluate(b"\x01")

        assert server.state == ServerState.FAILED

    def test_authzid_mismatch(self, server: ServerExchange, make_token) -> None:
        with pytest.raises(AuthorizationMismatchError) as exc_info:
            server.evaluate(encode_initial_response(make_token(), "bob"))

        assert exc_info.value.authorization_id == "bob"
        assert exc_info.value.principal_name == "alice"
        assert server.state == ServerState.FAILED
        assert server.token is None
        with pytest.raises(ProtocolStateError):
            server.authorization_id()

    def test_rejected_extensions(self, validator_config: ValidatorConfig, make_token) -> None:
        server = ServerExchange(
            JwtServerHandler.from_config(
                validator_config, ExtensionNegotiator(allow_names("traceId"))
            )
        )
        data = encode_initial_response(make_token(), None, {"traceId": "1", "a": "x", "b": "y"})

        with pytest.raises(ExtensionRejectedError) as exc_info:
            server.evaluate(data)

        assert set(exc_info.value.invalid_extensions) == {"a", "b"}
        assert exc_info.value.message.startswith("Authentication failed: 2 extensions are invalid!")
        assert server.state == ServerState.FAILED
        assert server.extensions == {}

    def test_handler_crash_is_internal_error(self) -> None:
        server = ServerExchange(ExplodingHandler())

        with pytest.raises(SaslServerError) as exc_info:
            server.evaluate(encode_initial_response("a.b.c"))

        assert exc_info.value.message == (
            "Authentication could not be performed due to an internal error on the server: "
            "database is down"
        )
        assert server.state == ServerState.FAILED

    @pytest.mark.parametrize("outcome", ["complete", "failed"])
    def test_evaluate_after_terminal_state_raises(
        self, server: ServerExchange, make_token, outcome: str
    ) -> None:
        if outcome == "complete":
            server.evaluate(encode_initial_response(make_token()))
        else:
            with pytest.raises(MalformedMessageError):
                server.evaluate(b"garbage")

        with pytest.raises(ProtocolStateError):
            server.evaluate(encode_initial_response(make_token()))


class TestAccessors:
    """Tests for accessors before completion and dispose."""

    def test_accessors_before_completion_raise(self, server: ServerExchange) -> None:
        with pytest.raises(ProtocolStateError):
            server.authorization_id()
        with pytest.raises(ProtocolStateError):
            server.negotiated_property("OAUTHBEARER.token")
        with pytest.raises(ProtocolStateError):
            server.wrap(b"x")
        with pytest.raises(ProtocolStateError):
            server.unwrap(b"x")

    def test_wrap_after_completion_copies(self, server: ServerExchange, make_token) -> None:
        server.evaluate(encode_initial_response(make_token()))

        assert server.wrap(b"x") == b"x"
        assert server.unwrap(b"y") == b"y"

    def test_dispose_clears_token(self, server: ServerExchange, make_token) -> None:
        server.evaluate(encode_initial_response(make_token(), None, {"traceId": "1"}))

        server.dispose()
        server.dispose()

        assert server.token is None
        assert server.extensions == {}


class TestEvaluateAsync:
    """Tests for running evaluate off the event loop."""

    async def test_evaluate_async_in_default_executor(
        self, server: ServerExchange, make_token
    ) -> None:
        reply = await server.evaluate_async(encode_initial_response(make_token()))

        assert reply == b""
        assert server.authorization_id() == "alice"

    async def test_evaluate_async_in_bounded_executor(
        self, server: ServerExchange, make_token
    ) -> None:
        with BoundedExecutor(max_threads=2) as executor:
            reply = await server.evaluate_async(encode_initial_response(make_token()), executor)

        assert reply == b""

    async def test_evaluate_async_rejects_when_pool_is_full(self, make_token) -> None:
        release = threading.Event()
        executor = BoundedExecutor(max_threads=1)
        try:
            blocker = asyncio.get_running_loop().run_in_executor(executor, release.wait)
            server = ServerExchange(ValidationOnlyHandler())

            with pytest.raises(ThreadPoolExhaustedError):
                await server.evaluate_async(encode_initial_response(make_token()), executor)

            assert server.state == ServerState.AWAITING_INITIAL
        finally:
            release.set()
            await blocker
            executor.shutdown()
