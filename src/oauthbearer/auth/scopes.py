"""Scope extraction and required-scope checks.

A string scope claim is kept whole: ``"read write"`` is the single scope
element ``"read write"``, not two elements. Only a list claim yields several
elements. Required scope from configuration, by contrast, is space-delimited
(RFC 6749 section 3.3).
"""

from __future__ import annotations

from typing import Any, Iterable

from oauthbearer.auth.jwt import TokenRejected
from oauthbearer.models.enums import FailureReason
from oauthbearer.models.token import ClaimSet


def parse_scope(value: str | None) -> list[str]:
    """Split a space-delimited scope string, dropping empty elements.

    Example:
        >>> parse_scope("  read   write ")
        ['read', 'write']
    """
    if value is None:
        return []
    return [element for element in value.split() if element]


def compute_scope(claims: ClaimSet, scope_claim_name: str) -> frozenset[str]:
    """Compute the scope set from the configured scope claim.

    Raises:
        TokenRejected: ``wrong-claim-type`` if the claim is neither a string nor a list.
    """
    value: Any = claims.get(scope_claim_name)
    if value is None:
        return frozenset()
    if isinstance(value, str):
        trimmed = value.strip()
        return frozenset({trimmed}) if trimmed else frozenset()
    if isinstance(value, list):
        return frozenset(element.strip() for element in value if element.strip())
    raise TokenRejected(
        FailureReason.WRONG_CLAIM_TYPE,
        f"The '{scope_claim_name}' claim was not of type String or List: {type(value).__name__}",
    )


def missing_scope(required: Iterable[str], granted: frozenset[str]) -> list[str]:
    """Return required elements absent from ``granted``, sorted for stable messages."""
    return sorted(element for element in required if element not in granted)
