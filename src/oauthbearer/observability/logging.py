"""Structured logging for the OAUTHBEARER mechanism.

structlog renders either colored console lines or JSON documents. Every
event passes through a redaction processor, so bearer tokens, signatures and
other credential-like fields never reach the log output unless
``OAUTHBEARER_DEBUG`` is switched on.

Environment Variables:
    OAUTHBEARER_LOG_FORMAT: "json" or "console" (default)
    OAUTHBEARER_LOG_LEVEL: DEBUG, INFO (default), WARNING, ERROR or CRITICAL
    OAUTHBEARER_SERVICE_NAME: Value of the ``service`` field on every event
    OAUTHBEARER_DEBUG: "true"/"1"/"yes"/"on" adds claim sets to validation events and
        turns off event field redaction

Example:
    >>> configure_logging(log_format="json", log_level="DEBUG")
    >>> logger = get_logger("oauthbearer.sasl.server")
    >>> with handshake_context(connection_id="conn-42"):
    ...     logger.info("oauthbearer.server.authenticated", principal="alice")
"""

from __future__ import annotations

import logging
import os
import sys
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Iterator, Mapping

import structlog
from structlog.typing import EventDict, Processor, WrappedLogger

from oauthbearer.errors import ConfigurationError

ENV_LOG_FORMAT = "OAUTHBEARER_LOG_FORMAT"
ENV_LOG_LEVEL = "OAUTHBEARER_LOG_LEVEL"
ENV_SERVICE_NAME = "OAUTHBEARER_SERVICE_NAME"
ENV_DEBUG = "OAUTHBEARER_DEBUG"

LOG_FORMATS = ("console", "json")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

REDACTED_PLACEHOLDER = "***REDACTED***"

# Matched case-insensitively against field names
_SENSITIVE_KEY_PATTERNS = frozenset(
    {"password", "token", "secret", "key", "authorization", "assertion", "credential"}
)
# Identifier fields that contain a sensitive pattern but carry no secret
_SAFE_KEYS = frozenset({"kid", "key_source", "token_type", "authorization_id"})

_TRUTHY = frozenset({"true", "1", "yes", "on"})

_logging_configured = False


@dataclass(frozen=True)
class LoggingSettings:
    """Resolved logging options.

    Attributes:
        log_format: "console" or "json"
        log_level: Upper-case standard level name
        service_name: Bound to every event as ``service``
    """

    log_format: str = "console"
    log_level: str = "INFO"
    service_name: str = "oauthbearer"

    @classmethod
    def resolve(
        cls,
        log_format: str | None = None,
        log_level: str | None = None,
        service_name: str | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> "LoggingSettings":
        """Merge explicit arguments over ``OAUTHBEARER_*`` variables over defaults.

        Raises:
            ConfigurationError: If the format or level is not recognised.
        """
        env = os.environ if environ is None else environ
        fmt = (log_format or env.get(ENV_LOG_FORMAT) or cls.log_format).strip().lower()
        level = (log_level or env.get(ENV_LOG_LEVEL) or cls.log_level).strip().upper()
        service = service_name or env.get(ENV_SERVICE_NAME) or cls.service_name
        if fmt not in LOG_FORMATS:
            raise ConfigurationError(
                f"Unknown log format '{fmt}', expected one of: {', '.join(LOG_FORMATS)}",
                option="log_format",
            )
        if level not in LOG_LEVELS:
            raise ConfigurationError(
                f"Unknown log level '{level}', expected one of: {', '.join(LOG_LEVELS)}",
                option="log_level",
            )
        return cls(log_format=fmt, log_level=level, service_name=service)


def _is_sensitive_key(key: str) -> bool:
    lower = key.lower()
    if lower in _SAFE_KEYS:
        return False
    return any(pattern in lower for pattern in _SENSITIVE_KEY_PATTERNS)


def sanitize_for_logging(data: Mapping[str, Any]) -> dict[str, Any]:
    """Return a copy of ``data`` with credential-like values redacted.

    Nested mappings and mappings inside lists are sanitized too. Key ids
    (``kid``) are kept since they identify, rather than contain, key material.

    Example:
        >>> sanitize_for_logging({"sub": "alice", "refresh_token": "abc", "kid": "k1"})
        {'sub': 'alice', 'refresh_token': '***REDACTED***', 'kid': 'k1'}
    """
    result: dict[str, Any] = {}
    for k, v in data.items():
        if _is_sensitive_key(k):
            result[k] = REDACTED_PLACEHOLDER
        elif isinstance(v, Mapping):
            result[k] = sanitize_for_logging(v)
        elif isinstance(v, list):
            result[k] = [
                sanitize_for_logging(item) if isinstance(item, Mapping) else item for item in v
            ]
        else:
            result[k] = v
    return result


def is_debug_mode() -> bool:
    """Return True if OAUTHBEARER_DEBUG is set to a truthy value."""
    return os.environ.get(ENV_DEBUG, "").strip().lower() in _TRUTHY


def redact_sensitive_fields(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """structlog processor applying ``sanitize_for_logging`` to each event."""
    if is_debug_mode():
        return event_dict
    return sanitize_for_logging(event_dict)


def _shared_processors() -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        redact_sensitive_fields,
    ]


def _renderer(log_format: str) -> Processor:
    if log_format == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(
        colors=sys.stderr.isatty(),
        exception_formatter=structlog.dev.plain_traceback,
    )


def configure_logging(
    log_format: str | None = None,
    log_level: str | None = None,
    service_name: str | None = None,
    force: bool = False,
) -> LoggingSettings | None:
    """Configure structlog and the root handler.

    Args:
        log_format: "json" or "console"; defaults to env var or "console"
        log_level: Minimum level; defaults to env var or "INFO"
        service_name: Defaults to env var or "oauthbearer"
        force: Reconfigure even if logging was already configured

    Returns:
        The applied settings, or None when logging was already configured.

    Raises:
        ConfigurationError: If the format or level is not recognised.
    """
    global _logging_configured

    if _logging_configured and not force:
        return None

    settings = LoggingSettings.resolve(log_format, log_level, service_name)
    shared = _shared_processors()

    structlog.configure(
        processors=[*shared, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            _renderer(settings.log_format),
        ],
    )

    # stdout is reserved for CLI output
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(settings.log_level)

    structlog.contextvars.bind_contextvars(service=settings.service_name)

    _logging_configured = True
    return settings


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger, configuring defaults on first use."""
    if not _logging_configured:
        configure_logging()
    return structlog.stdlib.get_logger(name)


def bind_context(**kwargs: Any) -> None:
    """Bind context variables included in all subsequent events."""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    """Clear all bound context variables."""
    structlog.contextvars.clear_contextvars()


@contextmanager
def handshake_context(**kwargs: Any) -> Iterator[None]:
    """Tag every event logged inside the block, e.g. with a connection id.

    Variables bound before the block are restored on exit.
    """
    with structlog.contextvars.bound_contextvars(**kwargs):
        yield
