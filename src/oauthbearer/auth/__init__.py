"""Bearer token validation for the OAUTHBEARER mechanism.

This package turns a compact JWT into a validated ``Token``:
- Compact JWT parsing and claim normalisation
- Signing-key resolution from a PEM key, a static JWK set, or a remote JWK set
- Signature verification with joserfc
- Claim extraction, scope computation and optional policy checks

Public exports:
    TokenValidator: Validates a token value into a ValidationResult
    create_validator: Builds a validator and key resolver from ValidatorConfig
    KeyResolver: Protocol for signing-key resolvers
    PemKeyResolver, StaticJwksResolver, RemoteJwksResolver: Resolver implementations
    build_key_resolver: Picks the resolver for the configured key source
    compute_scope, parse_scope: Scope helpers
"""

from oauthbearer.auth.keys import (
    KeyResolver,
    PemKeyResolver,
    RemoteJwksResolver,
    StaticJwksResolver,
    build_key_resolver,
    load_public_key_pem,
)
from oauthbearer.auth.scopes import compute_scope, parse_scope
from oauthbearer.auth.validator import TokenValidator, create_validator

__all__ = [
    "KeyResolver",
    "PemKeyResolver",
    "RemoteJwksResolver",
    "StaticJwksResolver",
    "TokenValidator",
    "build_key_resolver",
    "compute_scope",
    "create_validator",
    "load_public_key_pem",
    "parse_scope",
]
