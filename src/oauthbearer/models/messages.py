"""Handshake message models.

The four messages that travel between client and server during an
OAUTHBEARER exchange. Byte layouts live in ``oauthbearer.sasl.codec``.
"""

from __future__ import annotations

from typing import Optional, Union

from pydantic import Field, field_validator

from oauthbearer.models.base import OAuthBearerBaseModel


class InitialResponse(OAuthBearerBaseModel):
    """Client's first message: the bearer token plus optional authzid and extensions.

    An empty authorization id cannot be told apart from an absent one on the
    wire, so it is stored as None.
    """

    token_value: str = Field(..., min_length=1, repr=False)
    authorization_id: Optional[str] = None
    extensions: dict[str, str] = Field(default_factory=dict)

    @field_validator("authorization_id")
    @classmethod
    def _empty_authorization_id_is_absent(cls, v: Optional[str]) -> Optional[str]:
        return v or None


class ContinuationAck(OAuthBearerBaseModel):
    """Client's single-byte acknowledgment of a server error body."""


class ErrorBody(OAuthBearerBaseModel):
    """Server's JSON error body (RFC 7628 section 3.2.2)."""

    status: str = Field(..., min_length=1)
    scope: Optional[str] = None
    openid_configuration: Optional[str] = Field(default=None, alias="openid-configuration")


class EmptySuccess(OAuthBearerBaseModel):
    """Server's empty final message signalling success."""


ClientMessage = Union[InitialResponse, ContinuationAck]
ServerMessage = Union[EmptySuccess, ErrorBody]
SaslMessage = Union[InitialResponse, ContinuationAck, ErrorBody, EmptySuccess]
