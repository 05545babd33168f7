"""Tests for structured logging helpers."""

import logging

import pytest
import structlog

from oauthbearer.errors import ConfigurationError
from oauthbearer.observability import logging as oauth_logging
from oauthbearer.observability.logging import (
    REDACTED_PLACEHOLDER,
    LoggingSettings,
    configure_logging,
    get_logger,
    handshake_context,
    is_debug_mode,
    redact_sensitive_fields,
    sanitize_for_logging,
)


class TestSanitizeForLogging:
    """Tests for sanitize_for_logging."""

    def test_redacts_sensitive_keys(self) -> None:
        result = sanitize_for_logging(
            {"sub": "alice", "access_token": "abc", "Authorization": "Bearer x"}
        )

        assert result == {
            "sub": "alice",
            "access_token": REDACTED_PLACEHOLDER,
            "Authorization": REDACTED_PLACEHOLDER,
        }

    def test_keeps_identifier_fields(self) -> None:
        result = sanitize_for_logging({"kid": "k1", "authorization_id": "alice"})

        assert result == {"kid": "k1", "authorization_id": "alice"}

    def test_handles_nested_structures(self) -> None:
        result = sanitize_for_logging(
            {"ext": {"client_secret": "s"}, "items": [{"password": "p"}, "plain"]}
        )

        assert result["ext"] == {"client_secret": REDACTED_PLACEHOLDER}
        assert result["items"] == [{"password": REDACTED_PLACEHOLDER}, "plain"]

    def test_does_not_mutate_input(self) -> None:
        data = {"token": "abc"}

        sanitize_for_logging(data)

        assert data == {"token": "abc"}


class TestRedactionProcessor:
    """Tests for the redact_sensitive_fields processor."""

    def test_redacts_event_fields(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("OAUTHBEARER_DEBUG", raising=False)

        result = redact_sensitive_fields(
            None, "info", {"event": "oauthbearer.test", "token_value": "a.b.c"}
        )

        assert result == {"event": "oauthbearer.test", "token_value": REDACTED_PLACEHOLDER}

    def test_debug_mode_keeps_fields(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("OAUTHBEARER_DEBUG", "1")
        event = {"event": "oauthbearer.test", "token_value": "a.b.c"}

        assert redact_sensitive_fields(None, "info", event) == event


class TestDebugMode:
    """Tests for is_debug_mode."""

    @pytest.mark.parametrize("value", ["true", "1", "YES", " on "])
    def test_truthy_values(self, monkeypatch: pytest.MonkeyPatch, value: str) -> None:
        monkeypatch.setenv("OAUTHBEARER_DEBUG", value)

        assert is_debug_mode() is True

    def test_unset_is_false(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("OAUTHBEARER_DEBUG", raising=False)

        assert is_debug_mode() is False


class TestLoggingSettings:
    """Tests for LoggingSettings.resolve."""

    def test_defaults(self) -> None:
        assert LoggingSettings.resolve(environ={}) == LoggingSettings()

    def test_environment_is_used(self) -> None:
        settings = LoggingSettings.resolve(
            environ={
                "OAUTHBEARER_LOG_FORMAT": "JSON",
                "OAUTHBEARER_LOG_LEVEL": "debug",
                "OAUTHBEARER_SERVICE_NAME": "broker-1",
            }
        )

        assert settings == LoggingSettings("json", "DEBUG", "broker-1")

    def test_arguments_override_environment(self) -> None:
        settings = LoggingSettings.resolve(
            log_level="error", environ={"OAUTHBEARER_LOG_LEVEL": "debug"}
        )

        assert settings.log_level == "ERROR"

    def test_unknown_level(self) -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            LoggingSettings.resolve(log_level="loud", environ={})

        assert exc_info.value.option == "log_level"

    def test_unknown_format(self) -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            LoggingSettings.resolve(log_format="xml", environ={})

        assert exc_info.value.option == "log_format"


class TestConfigureLogging:
    """Tests for configure_logging and get_logger."""

    def test_sets_root_level(self) -> None:
        settings = configure_logging(log_format="json", log_level="warning", force=True)

        assert settings is not None
        assert settings.log_level == "WARNING"
        assert logging.getLogger().level == logging.WARNING
        assert oauth_logging._logging_configured is True

    def test_second_call_without_force_is_skipped(self) -> None:
        configure_logging(force=True)

        assert configure_logging() is None

    def test_get_logger_returns_usable_logger(self) -> None:
        logger = get_logger("oauthbearer.tests")

        logger.info("oauthbearer.tests.event", principal="alice")


def test_handshake_context_binds_and_restores() -> None:
    with handshake_context(connection_id="conn-42"):
        assert structlog.contextvars.get_contextvars()["connection_id"] == "conn-42"

    assert "connection_id" not in structlog.contextvars.get_contextvars()
