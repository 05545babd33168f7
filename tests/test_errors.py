"""Tests for OAUTHBEARER error handling."""

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
from oauthbearer.models.callbacks import TokenRequest


class TestOAuthBearerError:
    """Test OAuthBearerError base class."""

    def test_basic_error_creation(self) -> None:
        error = OAuthBearerError(code="oauthbearer:test/error", message="Test error message")

        assert error.code == "oauthbearer:test/error"
        assert error.message == "Test error message"
        assert error.details == {}
        assert str(error) == "Test error message"

    def test_to_dict(self) -> None:
        error = OAuthBearerError("oauthbearer:test/error", "msg", {"key": "value"})

        assert error.to_dict() == {
            "code": "oauthbearer:test/error",
            "message": "msg",
            "details": {"key": "value"},
        }

    def test_error_details_are_not_shared(self) -> None:
        error1 = OAuthBearerError("code", "msg")
        error2 = OAuthBearerError("code", "msg")
        error1.details["key"] = "value"

        assert error2.details == {}


class TestSubclasses:
    """Test codes and attributes of the concrete errors."""

    def test_configuration_error(self) -> None:
        error = ConfigurationError("bad skew", option="allowable_clock_skew_ms")

        assert error.code == "oauthbearer:config/invalid"
        assert error.option == "allowable_clock_skew_ms"
        assert error.details == {"option": "allowable_clock_skew_ms"}

    def test_malformed_message_error(self) -> None:
        error = MalformedMessageError("missing auth key")

        assert error.code == "oauthbearer:protocol/malformed_message"
        assert error.message == "Malformed message: missing auth key"
        assert error.reason == "missing auth key"

    def test_protocol_state_error(self) -> None:
        error = ProtocolStateError("complete", "evaluate")

        assert error.code == "oauthbearer:protocol/invalid_state"
        assert "Unexpected evaluate in state 'complete'" in str(error)
        assert error.details == {"state": "complete", "event": "evaluate"}

    def test_authorization_mismatch_is_authentication_error(self) -> None:
        error = AuthorizationMismatchError("bob", "alice")

        assert isinstance(error, SaslAuthenticationError)
        assert error.code == "oauthbearer:auth/authorization_mismatch"
        assert "(bob)" in error.message and "(alice)" in error.message

    def test_extension_rejected_error(self) -> None:
        error = ExtensionRejectedError("Authentication failed", {"a": "nope"})

        assert isinstance(error, SaslAuthenticationError)
        assert error.invalid_extensions == {"a": "nope"}
        assert error.details["invalid_extensions"] == {"a": "nope"}

    def test_sasl_authentication_error_default_code(self) -> None:
        assert SaslAuthenticationError("failed").code == "oauthbearer:auth/failed"

    def test_sasl_server_error(self) -> None:
        assert SaslServerError("boom").code == "oauthbearer:server/internal_error"

    def test_unsupported_callback_error(self) -> None:
        error = UnsupportedCallbackError(TokenRequest())

        assert error.request_kind == "TokenRequest"
        assert error.code == "oauthbearer:callback/unsupported"

    def test_key_resolution_error(self) -> None:
        error = KeyResolutionError("no key", kid="k1")

        assert error.kid == "k1"
        assert error.details["kid"] == "k1"

    def test_thread_pool_exhausted_error(self) -> None:
        error = ThreadPoolExhaustedError(max_threads=4, active_threads=4)

        assert error.code == "oauthbearer:server/thread_pool_exhausted"
        assert "4/4" in error.message
