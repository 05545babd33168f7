"""Shared pytest fixtures for OAUTHBEARER tests.

Signing keys are generated once per session; tokens are minted with joserfc
so every test works against real signatures.
"""

from __future__ import annotations

import base64
import json
import time
from typing import Any, Callable, Iterator

import pytest
from joserfc import jwt as jose_jwt
from joserfc.jwk import RSAKey

from oauthbearer.config import ValidatorConfig
from oauthbearer.observability import reset_metrics

TEST_KID = "test-key-1"
OTHER_KID = "test-key-2"

TokenFactory = Callable[..., str]


@pytest.fixture(autouse=True)
def _reset_metrics() -> Iterator[None]:
    """Give every test a clean metrics collector."""
    reset_metrics()
    yield
    reset_metrics()


@pytest.fixture(scope="session")
def signing_key() -> RSAKey:
    return RSAKey.generate_key(2048, parameters={"kid": TEST_KID}, private=True)


@pytest.fixture(scope="session")
def other_signing_key() -> RSAKey:
    return RSAKey.generate_key(2048, parameters={"kid": OTHER_KID}, private=True)


@pytest.fixture(scope="session")
def jwks_document(signing_key: RSAKey) -> dict[str, Any]:
    """Public JWK set holding ``signing_key``."""
    return {"keys": [signing_key.as_dict(private=False)]}


@pytest.fixture(scope="session")
def public_key_pem(signing_key: RSAKey) -> str:
    return signing_key.as_pem(private=False).decode("ascii")


@pytest.fixture
def now_s() -> int:
    return int(time.time())


@pytest.fixture
def make_token(signing_key: RSAKey, now_s: int) -> TokenFactory:
    """Mint an RS256 token; ``claims`` replace the defaults, ``drop`` removes them."""

    def _make(
        claims: dict[str, Any] | None = None,
        *,
        drop: tuple[str, ...] = (),
        key: RSAKey | None = None,
        header: dict[str, Any] | None = None,
    ) -> str:
        signer = key or signing_key
        payload: dict[str, Any] = {
            "sub": "alice",
            "scope": "read write",
            "iat": now_s,
            "exp": now_s + 3600,
        }
        payload.update(claims or {})
        for name in drop:
            payload.pop(name, None)
        jose_header = {"alg": "RS256", "typ": "JWT", "kid": signer.kid}
        jose_header.update(header or {})
        return jose_jwt.encode(jose_header, payload, signer)

    return _make


def b64url(data: dict[str, Any] | bytes) -> str:
    raw = data if isinstance(data, bytes) else json.dumps(data).encode("utf-8")
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


@pytest.fixture
def make_unsigned_token() -> Callable[..., str]:
    """Build tokens by hand (joserfc refuses to mint ``alg: none`` or broken ones)."""

    def _make(
        claims: dict[str, Any],
        header: dict[str, Any] | None = None,
        signature: bytes = b"",
    ) -> str:
        head = b64url(header or {"alg": "none"})
        return f"{head}.{b64url(claims)}.{b64url(signature) if signature else ''}"

    return _make


@pytest.fixture
def validator_config(jwks_document: dict[str, Any]) -> ValidatorConfig:
    return ValidatorConfig(jwks=jwks_document, verify_expiration=True, verify_issued_at=True)


@pytest.fixture
def deeply_nested_token(now_s: int) -> str:
    """A token whose header nests arrays far past the interpreter's recursion limit."""
    depth = 200_000
    header = ('{"alg":"RS256","x":' + "[" * depth + "]" * depth + "}").encode("utf-8")
    payload = b64url({"sub": "alice", "exp": now_s + 3600})
    return f"{b64url(header)}.{payload}.{b64url(b'sig')}"
