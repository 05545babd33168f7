"""Mechanism factories.

A SASL framework asks a factory which mechanisms it offers and then creates
one exchange per connection. Factories are plain objects handed to the
framework by the caller; nothing is registered globally.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional

from oauthbearer.models.callbacks import CallbackHandler
from oauthbearer.sasl.client import ClientExchange
from oauthbearer.sasl.codec import MECHANISM
from oauthbearer.sasl.server import ServerExchange


def _offers(props: Optional[Mapping[str, Any]]) -> list[str]:
    # RFC 4422 policy properties ("noplaintext", "noanonymous", ...) are all satisfied
    return [MECHANISM]


class OAuthBearerServerFactory:
    """Creates ``ServerExchange`` instances sharing one callback handler."""

    def __init__(self, handler: CallbackHandler) -> None:
        self._handler = handler

    def mechanism_names(self, props: Optional[Mapping[str, Any]] = None) -> list[str]:
        return _offers(props)

    def create(
        self,
        mechanism: str,
        protocol: str = "",
        server_name: str = "",
        props: Optional[Mapping[str, Any]] = None,
    ) -> Optional[ServerExchange]:
        if mechanism != MECHANISM:
            return None
        return ServerExchange(self._handler)


class OAuthBearerClientFactory:
    """Creates ``ClientExchange`` instances sharing one callback handler."""

    def __init__(self, handler: CallbackHandler) -> None:
        self._handler = handler

    def mechanism_names(self, props: Optional[Mapping[str, Any]] = None) -> list[str]:
        return _offers(props)

    def create(
        self,
        mechanisms: list[str],
        authorization_id: Optional[str] = None,
        protocol: str = "",
        server_name: str = "",
        props: Optional[Mapping[str, Any]] = None,
    ) -> Optional[ClientExchange]:
        """Create a client exchange if ``MECHANISM`` is among ``mechanisms``."""
        if MECHANISM not in mechanisms:
            return None
        return ClientExchange(self._handler, authorization_id=authorization_id)
