"""SASL extension negotiation.

The client may offer key/value extensions alongside its token. After the
token validates, the server runs every offered extension through a policy:
accepted ones become negotiated properties of the exchange, and a single
rejection fails the whole handshake.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Mapping, Optional

from oauthbearer.models.token import Token

ExtensionPolicy = Callable[[str, str, Token], Optional[str]]
"""Return None to accept ``(name, value)`` for ``token``, or the rejection reason."""


def accept_all(name: str, value: str, token: Token) -> Optional[str]:
    return None


def allow_names(*names: str) -> ExtensionPolicy:
    """Build a policy that accepts only the listed extension names.

    Example:
        >>> negotiator = ExtensionNegotiator(allow_names("traceId", "tenant"))
    """
    allowed = frozenset(names)

    def policy(name: str, value: str, token: Token) -> Optional[str]:
        if name in allowed:
            return None
        return "extension is not supported"

    return policy


@dataclass(frozen=True)
class NegotiationResult:
    """Outcome of negotiating offered extensions.

    Attributes:
        validated: Accepted extensions (empty whenever anything was rejected)
        invalid: Rejected extension name -> reason, in rejection order
    """

    validated: dict[str, str] = field(default_factory=dict)
    invalid: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.invalid

    @property
    def error_message(self) -> Optional[str]:
        if self.ok:
            return None
        listing = "; ".join(f"{name}: {reason}" for name, reason in self.invalid.items())
        return (
            f"Authentication failed: {len(self.invalid)} extensions are invalid! "
            f"They are: {listing}"
        )


class ExtensionNegotiator:
    """Applies an ``ExtensionPolicy`` to offered extensions."""

    def __init__(self, policy: ExtensionPolicy = accept_all) -> None:
        self._policy = policy

    def negotiate(self, token: Token, offered: Mapping[str, str]) -> NegotiationResult:
        validated: dict[str, str] = {}
        invalid: dict[str, str] = {}
        for name, value in offered.items():
            reason = self._policy(name, value, token)
            if reason is None:
                validated[name] = value
            else:
                invalid[name] = reason
        if invalid:
            return NegotiationResult(validated={}, invalid=invalid)
        return NegotiationResult(validated=validated)
