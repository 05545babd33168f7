"""SASL OAUTHBEARER mechanism (RFC 7628).

Public exports:
    ClientExchange, ServerExchange: Per-connection handshake state machines
    OAuthBearerClientFactory, OAuthBearerServerFactory: Exchange factories
    StaticTokenClientHandler, JwtServerHandler: Callback handlers
    ExtensionNegotiator, NegotiationResult: Extension policy evaluation
    BoundedExecutor: Thread pool for ``ServerExchange.evaluate_async``
"""

from oauthbearer.sasl.client import ClientExchange
from oauthbearer.sasl.codec import MECHANISM
from oauthbearer.sasl.executors import BoundedExecutor
from oauthbearer.sasl.extensions import (
    ExtensionNegotiator,
    ExtensionPolicy,
    NegotiationResult,
    accept_all,
    allow_names,
)
from oauthbearer.sasl.factory import OAuthBearerClientFactory, OAuthBearerServerFactory
from oauthbearer.sasl.handlers import JwtServerHandler, StaticTokenClientHandler
from oauthbearer.sasl.server import TOKEN_PROPERTY, ServerExchange

__all__ = [
    "MECHANISM",
    "TOKEN_PROPERTY",
    "BoundedExecutor",
    "ClientExchange",
    "ExtensionNegotiator",
    "ExtensionPolicy",
    "JwtServerHandler",
    "NegotiationResult",
    "OAuthBearerClientFactory",
    "OAuthBearerServerFactory",
    "ServerExchange",
    "StaticTokenClientHandler",
    "accept_all",
    "allow_names",
]
