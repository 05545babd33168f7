"""Compact JWT parsing and claim access.

Splits a compact serialization into its three base64url sections and decodes
header and payload without verifying anything; signature checks happen in
``oauthbearer.auth.validator`` once a key has been resolved.

Claim values are normalised into the ClaimSet shape: strings stay strings,
numbers stay numbers, arrays become lists of strings, and anything else
(booleans, nulls, objects) is turned into its JSON text.
"""

from __future__ import annotations

import base64
import binascii
import json
import math
from dataclasses import dataclass
from typing import Any

from oauthbearer.models.enums import FailureReason
from oauthbearer.models.token import ClaimSet, ValidationFailure


class TokenRejected(Exception):
    """Internal short-circuit carrying the failure to report for a token."""

    def __init__(self, reason: FailureReason, description: str, failure_scope: str | None = None):
        super().__init__(description)
        self.reason = reason
        self.description = description
        self.failure_scope = failure_scope

    def to_failure(self, openid_config: str | None = None) -> ValidationFailure:
        return ValidationFailure(
            reason=self.reason,
            description=self.description,
            failure_scope=self.failure_scope,
            failure_openid_config=openid_config,
        )


@dataclass(frozen=True)
class CompactJwt:
    """A split but unverified compact JWT.

    Attributes:
        value: The original compact serialization
        header: Decoded JOSE header
        claims: Decoded and normalised claim set
        signature: Raw signature bytes (empty for unsigned tokens)
    """

    value: str
    header: dict[str, Any]
    claims: ClaimSet
    signature: bytes

    @property
    def kid(self) -> str | None:
        kid = self.header.get("kid")
        return kid if isinstance(kid, str) else None

    @property
    def alg(self) -> str | None:
        alg = self.header.get("alg")
        return alg if isinstance(alg, str) else None


def b64url_decode(segment: str) -> bytes:
    """Decode an unpadded base64url segment.

    Raises:
        ValueError: If the segment contains characters outside the base64url alphabet.
    """
    padded = segment + "=" * (-len(segment) % 4)
    try:
        return base64.b64decode(padded, altchars=b"-_", validate=True)
    except binascii.Error as exc:
        raise ValueError(f"invalid base64url segment: {exc}") from exc


def _decode_json_object(segment: str, what: str) -> dict[str, Any]:
    try:
        raw = b64url_decode(segment)
    except ValueError as exc:
        raise TokenRejected(
            FailureReason.MALFORMED, f"malformed Base64 URL encoded {what}"
        ) from exc
    try:
        data = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError, RecursionError) as exc:
        raise TokenRejected(FailureReason.MALFORMED, f"malformed JSON in {what}") from exc
    if not isinstance(data, dict):
        raise TokenRejected(FailureReason.MALFORMED, f"{what} is not a JSON object")
    return data


def _claim_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value, separators=(",", ":"))


def convert_claim(value: Any) -> Any:
    """Normalise one decoded JSON value into a ClaimSet value."""
    if isinstance(value, list):
        return [_claim_text(element) for element in value]
    if isinstance(value, bool):
        return _claim_text(value)
    if isinstance(value, (int, float)):
        return value
    return _claim_text(value)


def to_claim_set(payload: dict[str, Any]) -> ClaimSet:
    return {name: convert_claim(value) for name, value in payload.items()}


def parse_compact(value: str) -> CompactJwt:
    """Split and decode a compact JWT without verifying it.

    Raises:
        TokenRejected: ``malformed`` if the value is not three dot-separated
            base64url sections, or header/payload are not JSON objects, or the
            mandatory ``alg`` header is missing.
    """
    if not value:
        raise TokenRejected(FailureReason.MALFORMED, "Token value is empty")
    parts = value.split(".")
    if len(parts) != 3:
        raise TokenRejected(
            FailureReason.MALFORMED,
            f"Unable to parse JWT token: expected 3 sections, found {len(parts)}",
        )
    header_segment, payload_segment, signature_segment = parts
    header = _decode_json_object(header_segment, "header")
    payload = _decode_json_object(payload_segment, "claims")
    if not isinstance(header.get("alg"), str) or not header["alg"]:
        raise TokenRejected(FailureReason.MALFORMED, "Missing mandatory 'alg' header")
    try:
        signature = b64url_decode(signature_segment)
    except ValueError as exc:
        raise TokenRejected(
            FailureReason.MALFORMED, "malformed Base64 URL encoded signature"
        ) from exc
    try:
        claims = to_claim_set(payload)
    except RecursionError as exc:
        raise TokenRejected(FailureReason.MALFORMED, "claims are nested too deeply") from exc
    return CompactJwt(value=value, header=header, claims=claims, signature=signature)


def is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def numeric_claim(claims: ClaimSet, name: str) -> int | float | None:
    """Return a numeric claim, None when absent.

    Raises:
        TokenRejected: ``wrong-claim-type`` if present but not a number.
    """
    value = claims.get(name)
    if value is None:
        return None
    if not is_number(value) or not math.isfinite(value):
        raise TokenRejected(
            FailureReason.WRONG_CLAIM_TYPE,
            f"The '{name}' claim was not of type Number: {type(value).__name__}",
        )
    return value


def seconds_to_ms(seconds: int | float, name: str = "exp") -> int:
    """Convert a NumericDate claim to epoch milliseconds.

    Raises:
        TokenRejected: ``wrong-claim-type`` if the value is out of range.
    """
    millis = seconds * 1000
    if isinstance(millis, float) and not math.isfinite(millis):
        raise TokenRejected(
            FailureReason.WRONG_CLAIM_TYPE,
            f"The '{name}' claim is out of range: {seconds}",
        )
    return int(round(millis))
