"""Signing-key resolution for JWT signature verification.

A key resolver turns the ``kid``/``alg`` of a token header into a joserfc
verification key. Three sources are supported:

- ``PemKeyResolver``: one PEM public key or X.509 certificate (the ``kid`` is ignored)
- ``StaticJwksResolver``: an in-memory JSON Web Key Set
- ``RemoteJwksResolver``: a JWK set fetched over HTTP(S) with httpx, or read
  from a ``file://`` URI, cached with a TTL and refetched once when a token
  names an unknown ``kid`` (key rotation)

Resolvers are shared by every server exchange in the process and are safe
for concurrent use from many threads.
"""

from __future__ import annotations

import json
import time
from pathlib import Path
from threading import Lock
from typing import Any, Optional, Protocol, Union
from urllib.parse import urlparse
from urllib.request import url2pathname

import httpx
from cryptography import x509
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec, ed448, ed25519, rsa
from joserfc.errors import JoseError
from joserfc.jwk import ECKey, KeySet, OKPKey, RSAKey

from oauthbearer.config import ValidatorConfig
from oauthbearer.errors import ConfigurationError, KeyResolutionError
from oauthbearer.observability import get_logger, get_metrics

logger = get_logger(__name__)

VerificationKey = Union[RSAKey, ECKey, OKPKey]

DEFAULT_HTTP_TIMEOUT = 10.0
DEFAULT_MIN_REFRESH_INTERVAL_SECONDS = 30.0

PEM_CERT_HEADER = "-----BEGIN CERTIFICATE-----"
PEM_CERT_FOOTER = "-----END CERTIFICATE-----"


class KeyResolver(Protocol):
    """Produces the verification key for a token header."""

    def resolve(self, kid: Optional[str], alg: Optional[str]) -> VerificationKey:
        """Return the key for ``kid``.

        Raises:
            KeyResolutionError: If the key is unknown or the key source is unreachable.
        """
        ...


def _to_jwk(public_key: Any) -> VerificationKey:
    pem = public_key.public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    if isinstance(public_key, rsa.RSAPublicKey):
        return RSAKey.import_key(pem)
    if isinstance(public_key, ec.EllipticCurvePublicKey):
        return ECKey.import_key(pem)
    if isinstance(public_key, (ed25519.Ed25519PublicKey, ed448.Ed448PublicKey)):
        return OKPKey.import_key(pem)
    raise ConfigurationError(
        f"Unsupported public key type: {type(public_key).__name__}", option="public_key_pem"
    )


def load_public_key_pem(pem: str) -> VerificationKey:
    """Load a PEM public key, a PEM certificate, or a bare base64 certificate body.

    Raises:
        ConfigurationError: If the material cannot be parsed.
    """
    text = pem.strip()
    if not text:
        raise ConfigurationError("Public key PEM is not configured", option="public_key_pem")
    if "-----BEGIN" not in text:
        text = f"{PEM_CERT_HEADER}\n{text}\n{PEM_CERT_FOOTER}"
    data = text.encode("ascii", errors="replace")
    try:
        if "CERTIFICATE-----" in text:
            public_key = x509.load_pem_x509_certificate(data).public_key()
        else:
            public_key = serialization.load_pem_public_key(data)
    except ValueError as exc:
        raise ConfigurationError(
            f"Unable to parse public key PEM: {exc}", option="public_key_pem"
        ) from exc
    return _to_jwk(public_key)


def import_key_set(data: Any) -> KeySet:
    """Import a JWK set dict.

    Raises:
        ValueError: If the document is not a usable JWK set.
    """
    if not isinstance(data, dict) or not isinstance(data.get("keys"), list):
        raise ValueError("JWK set must be a JSON object with a 'keys' array")
    try:
        return KeySet.import_key_set(data)
    except (JoseError, KeyError, TypeError) as exc:
        raise ValueError(f"Invalid JWK set: {exc}") from exc


def select_key(key_set: KeySet, kid: Optional[str]) -> VerificationKey:
    """Pick the key named by ``kid``; a kid-less token needs a single-key set.

    Raises:
        KeyResolutionError: If no key matches.
    """
    keys = list(key_set.keys)
    if kid is not None:
        for key in keys:
            if key.kid == kid:
                return key
        raise KeyResolutionError(f"No key found in JWK set for kid '{kid}'", kid=kid)
    if len(keys) == 1:
        return keys[0]
    raise KeyResolutionError(
        f"Token has no 'kid' header and the JWK set holds {len(keys)} keys", kid=None
    )


class PemKeyResolver:
    """Resolves every token to one configured public key."""

    def __init__(self, pem: str) -> None:
        self._key = load_public_key_pem(pem)

    def resolve(self, kid: Optional[str], alg: Optional[str]) -> VerificationKey:
        return self._key


class StaticJwksResolver:
    """Resolves keys from a fixed JWK set."""

    def __init__(self, jwks: Union[dict[str, Any], KeySet]) -> None:
        if isinstance(jwks, KeySet):
            self._key_set = jwks
        else:
            try:
                self._key_set = import_key_set(jwks)
            except ValueError as exc:
                raise ConfigurationError(str(exc), option="jwks") from exc

    def resolve(self, kid: Optional[str], alg: Optional[str]) -> VerificationKey:
        return select_key(self._key_set, kid)


class _JWKSCacheEntry:
    """Cache entry for a fetched KeySet with TTL."""

    def __init__(self, key_set: KeySet, ttl: float) -> None:
        self.key_set = key_set
        self.fetched_at = time.monotonic()
        self.expires_at = self.fetched_at + ttl

    def is_expired(self) -> bool:
        return time.monotonic() >= self.expires_at


class RemoteJwksResolver:
    """JWK set fetcher with TTL cache and refetch on unknown kid.

    Example:
        >>> resolver = RemoteJwksResolver("https://idp.example.com/.well-known/jwks.json")
        >>> key = resolver.resolve("2024-07", "RS256")
    """

    def __init__(
        self,
        jwks_uri: str,
        *,
        ttl_seconds: float = 3600.0,
        min_refresh_interval_seconds: float = DEFAULT_MIN_REFRESH_INTERVAL_SECONDS,
        timeout_seconds: float = DEFAULT_HTTP_TIMEOUT,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        """Initialize the resolver.

        Args:
            jwks_uri: http(s):// or file:// location of the JWK set.
            ttl_seconds: How long a fetched set is used before refetching.
            min_refresh_interval_seconds: Minimum age of the cached set before an
                unknown kid may trigger a refetch.
            timeout_seconds: HTTP timeout.
            transport: Optional httpx transport for testing.
        """
        scheme = urlparse(jwks_uri).scheme
        if scheme not in ("http", "https", "file"):
            raise ConfigurationError(
                f"Unsupported JWK set URI scheme '{scheme}': {jwks_uri}", option="jwks_uri"
            )
        self._jwks_uri = jwks_uri
        self._ttl = ttl_seconds
        self._min_refresh_interval = min_refresh_interval_seconds
        self._timeout = timeout_seconds
        self._transport = transport
        self._cache: Optional[_JWKSCacheEntry] = None
        self._lock = Lock()
        self._fetch_lock = Lock()

    @property
    def jwks_uri(self) -> str:
        return self._jwks_uri

    def _fetch_document(self) -> Any:
        if urlparse(self._jwks_uri).scheme == "file":
            path = Path(url2pathname(urlparse(self._jwks_uri).path))
            return json.loads(path.read_text(encoding="utf-8"))
        with httpx.Client(
            transport=self._transport, timeout=httpx.Timeout(self._timeout)
        ) as client:
            resp = client.get(self._jwks_uri)
            resp.raise_for_status()
            return resp.json()

    def _fetch(self) -> KeySet:
        metrics = get_metrics()
        metrics.increment_counter("oauthbearer_jwks_fetch_total")
        try:
            key_set = import_key_set(self._fetch_document())
        except (httpx.HTTPError, OSError, ValueError) as exc:
            metrics.increment_counter("oauthbearer_jwks_fetch_errors_total")
            logger.warning(
                "oauthbearer.jwks.fetch_failed",
                uri=self._jwks_uri,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            raise KeyResolutionError(
                f"Unable to fetch JWK set from {self._jwks_uri}: {exc}",
                details={"jwks_uri": self._jwks_uri},
            ) from exc
        logger.info("oauthbearer.jwks.fetched", uri=self._jwks_uri, key_count=len(key_set.keys))
        return key_set

    def _current(self) -> Optional[_JWKSCacheEntry]:
        with self._lock:
            return self._cache

    def _refresh(
        self, seen: Optional[_JWKSCacheEntry], min_age: float = 0.0
    ) -> Optional[_JWKSCacheEntry]:
        """Replace ``seen`` with a freshly fetched entry.

        One fetch runs at a time and readers of a valid entry never wait on it.
        If another thread already replaced ``seen``, its entry is returned
        without fetching again. Returns None when ``seen`` is younger than
        ``min_age``.
        """
        with self._fetch_lock:
            current = self._current()
            if current is not seen and current is not None and not current.is_expired():
                return current
            if current is not None and time.monotonic() - current.fetched_at < min_age:
                return None
            entry = _JWKSCacheEntry(self._fetch(), self._ttl)
            with self._lock:
                self._cache = entry
            return entry

    def _valid_entry(self, force_refresh: bool = False) -> _JWKSCacheEntry:
        entry = self._current()
        if entry is not None and not entry.is_expired() and not force_refresh:
            return entry
        refreshed = self._refresh(entry)
        assert refreshed is not None
        return refreshed

    def key_set(self, *, force_refresh: bool = False) -> KeySet:
        """Return the cached KeySet, fetching it when missing, expired or forced.

        Raises:
            KeyResolutionError: If the JWK set cannot be fetched or parsed.
        """
        return self._valid_entry(force_refresh).key_set

    def invalidate(self) -> None:
        """Drop the cached JWK set."""
        with self._lock:
            self._cache = None

    def resolve(self, kid: Optional[str], alg: Optional[str]) -> VerificationKey:
        entry = self._valid_entry()
        try:
            return select_key(entry.key_set, kid)
        except KeyResolutionError:
            if kid is None:
                raise
            refreshed = self._refresh(entry, min_age=self._min_refresh_interval)
            if refreshed is None:
                raise
        logger.info("oauthbearer.jwks.unknown_kid_refresh", uri=self._jwks_uri, kid=kid)
        return select_key(refreshed.key_set, kid)


def build_key_resolver(
    config: ValidatorConfig, *, transport: Optional[httpx.BaseTransport] = None
) -> KeyResolver:
    """Create the resolver for the key source configured in ``config``."""
    if config.public_key_pem is not None:
        return PemKeyResolver(config.public_key_pem)
    if config.jwks is not None:
        return StaticJwksResolver(config.jwks)
    if config.jwks_uri is not None:
        return RemoteJwksResolver(
            config.jwks_uri,
            ttl_seconds=config.jwks_cache_ttl_seconds,
            transport=transport,
        )
    raise ConfigurationError("No signing key source configured")
