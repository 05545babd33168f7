"""Observability module for the OAUTHBEARER mechanism.

Structured logging (structlog) and Prometheus-compatible metrics shared by
the validator, the key resolvers and both exchange state machines.

Example:
    >>> from oauthbearer.observability import get_logger, get_metrics
    >>>
    >>> logger = get_logger(__name__)
    >>> logger.info("oauthbearer.server.authenticated", principal="alice")
    >>>
    >>> get_metrics().increment_counter("oauthbearer_handshakes_total", {"outcome": "success"})
"""

from oauthbearer.observability.logging import (
    LoggingSettings,
    bind_context,
    clear_context,
    configure_logging,
    get_logger,
    handshake_context,
    is_debug_mode,
    redact_sensitive_fields,
    sanitize_for_logging,
)
from oauthbearer.observability.metrics import (
    MetricsCollector,
    get_metrics,
    reset_metrics,
)

__all__ = [
    "bind_context",
    "clear_context",
    "configure_logging",
    "get_logger",
    "get_metrics",
    "handshake_context",
    "is_debug_mode",
    "LoggingSettings",
    "reset_metrics",
    "MetricsCollector",
    "redact_sensitive_fields",
    "sanitize_for_logging",
]
