"""Wire codec for OAUTHBEARER handshake messages (RFC 7628).

Initial client response, version 1 layout (GS2 header then key/value pairs,
each pair terminated by the 0x01 separator, the list closed by one more)::

    n,[a=<saslname>],\\x01auth=Bearer <token>\\x01[<key>=<value>\\x01]*\\x01

- Only the ``n`` GS2 flag (no channel binding) is accepted.
- ``saslname`` escapes ``,`` as ``=2C`` and ``=`` as ``=3D``.
- An empty authorization id is encoded like an absent one and decodes as None.
- Extension keys are ASCII letters and never ``auth``; values are printable
  ASCII plus space, tab, CR and LF.
- The token is any non-empty string without the 0x01 separator.

Server error body: compact UTF-8 JSON ``{"status": ..., "scope": ...,
"openid-configuration": ...}`` where only ``status`` is mandatory.

Client acknowledgment of an error body: the single byte 0x01.
Server success: an empty message.
"""

from __future__ import annotations

import json
import re
from typing import Mapping, Optional

from pydantic import ValidationError

from oauthbearer.errors import MalformedMessageError
from oauthbearer.models.messages import (
    ClientMessage,
    ContinuationAck,
    EmptySuccess,
    ErrorBody,
    InitialResponse,
    ServerMessage,
)

MECHANISM = "OAUTHBEARER"
WIRE_FORMAT_VERSION = 1

SEPARATOR = "\x01"
CONTINUATION_ACK = b"\x01"
EMPTY_SUCCESS = b""

GS2_FLAG = "n"
AUTH_KEY = "auth"
BEARER_SCHEME = "Bearer"

EXTENSION_KEY_PATTERN = re.compile(r"[A-Za-z]+")
EXTENSION_VALUE_PATTERN = re.compile(r"[\x21-\x7E \t\r\n]+")

# Members RFC 7628 defines; any other member is ignored
ERROR_BODY_FIELDS = ("status", "scope", "openid-configuration")


def escape_saslname(value: str) -> str:
    return value.replace("=", "=3D").replace(",", "=2C")


def unescape_saslname(value: str) -> str:
    """Reverse ``escape_saslname``.

    Raises:
        MalformedMessageError: On a stray ``=`` not starting ``=2C`` or ``=3D``.
    """
    out: list[str] = []
    i = 0
    while i < len(value):
        char = value[i]
        if char == "=":
            escape = value[i : i + 3]
            if escape == "=2C":
                out.append(",")
            elif escape == "=3D":
                out.append("=")
            else:
                raise MalformedMessageError(f"invalid escape in authorization id: {escape!r}")
            i += 3
            continue
        if char == ",":
            raise MalformedMessageError("unescaped ',' in authorization id")
        out.append(char)
        i += 1
    return "".join(out)


def validate_extension(key: str, value: str) -> None:
    """Check one extension pair against the wire grammar.

    Raises:
        ValueError: If the name or value cannot be carried on the wire.
    """
    if key == AUTH_KEY:
        raise ValueError(f"Extension name '{AUTH_KEY}' is reserved")
    if not EXTENSION_KEY_PATTERN.fullmatch(key):
        raise ValueError(f"Extension name must be ASCII letters only: {key!r}")
    if not EXTENSION_VALUE_PATTERN.fullmatch(value):
        raise ValueError(f"Extension value for {key!r} contains invalid characters")


def encode_initial_response(
    token_value: str,
    authorization_id: Optional[str] = None,
    extensions: Optional[Mapping[str, str]] = None,
) -> bytes:
    """Encode the client's initial response.

    Raises:
        ValueError: If the token is empty or contains the separator, or an
            extension is not representable.
    """
    if not token_value:
        raise ValueError("Token value must not be empty")
    if SEPARATOR in token_value:
        raise ValueError("Token value must not contain the 0x01 separator")
    if authorization_id and SEPARATOR in authorization_id:
        raise ValueError("Authorization id must not contain the 0x01 separator")
    gs2_header = f"{GS2_FLAG},"
    if authorization_id:
        gs2_header += f"a={escape_saslname(authorization_id)}"
    gs2_header += ","

    pairs = [f"{AUTH_KEY}={BEARER_SCHEME} {token_value}"]
    for key, value in (extensions or {}).items():
        validate_extension(key, value)
        pairs.append(f"{key}={value}")

    message = gs2_header + SEPARATOR + "".join(pair + SEPARATOR for pair in pairs) + SEPARATOR
    return message.encode("utf-8")


def _parse_gs2_header(header: str) -> Optional[str]:
    flag, sep, rest = header.partition(",")
    if not sep:
        raise MalformedMessageError("missing GS2 header")
    if flag in ("y", "p") or flag.startswith("p="):
        raise MalformedMessageError("channel binding is not supported")
    if flag != GS2_FLAG:
        raise MalformedMessageError(f"invalid GS2 flag: {flag!r}")
    authzid_field, sep, trailing = rest.partition(",")
    if not sep or trailing:
        raise MalformedMessageError("invalid GS2 header")
    if not authzid_field:
        return None
    if not authzid_field.startswith("a="):
        raise MalformedMessageError("invalid authorization id field in GS2 header")
    authorization_id = unescape_saslname(authzid_field[2:])
    return authorization_id or None


def decode_initial_response(data: bytes) -> InitialResponse:
    """Decode the client's initial response.

    Raises:
        MalformedMessageError: If the bytes do not follow the layout above.
    """
    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise MalformedMessageError("initial response is not valid UTF-8") from exc

    header, sep, body = text.partition(SEPARATOR)
    if not sep:
        raise MalformedMessageError("missing key/value separator after GS2 header")
    authorization_id = _parse_gs2_header(header)

    if not body.endswith(SEPARATOR):
        raise MalformedMessageError("initial response is not terminated")
    pairs = body[:-1].split(SEPARATOR)
    if not pairs or pairs[-1] != "":
        raise MalformedMessageError("key/value list is not terminated")

    token_value: Optional[str] = None
    extensions: dict[str, str] = {}
    for pair in pairs[:-1]:
        key, sep, value = pair.partition("=")
        if not sep:
            raise MalformedMessageError(f"invalid key/value pair: {key!r}")
        if key == AUTH_KEY:
            if token_value is not None:
                raise MalformedMessageError("duplicate auth key")
            token_value = _parse_auth_value(value)
            continue
        try:
            validate_extension(key, value)
        except ValueError as exc:
            raise MalformedMessageError(str(exc)) from exc
        if key in extensions:
            raise MalformedMessageError(f"duplicate extension: {key}")
        extensions[key] = value

    if token_value is None:
        raise MalformedMessageError("missing auth key")
    return InitialResponse(
        token_value=token_value, authorization_id=authorization_id, extensions=extensions
    )


def _parse_auth_value(value: str) -> str:
    scheme, sep, token_value = value.partition(" ")
    if not sep or scheme.lower() != BEARER_SCHEME.lower():
        raise MalformedMessageError("auth value must use the Bearer scheme")
    if not token_value:
        raise MalformedMessageError("empty bearer token")
    return token_value


def encode_error_body(
    status: str, scope: Optional[str] = None, openid_configuration: Optional[str] = None
) -> bytes:
    """Encode the server's JSON error body; absent fields are omitted."""
    if not status:
        raise ValueError("Error status must not be empty")
    body: dict[str, str] = {"status": status}
    if scope is not None:
        body["scope"] = scope
    if openid_configuration is not None:
        body["openid-configuration"] = openid_configuration
    return json.dumps(body, separators=(",", ":")).encode("utf-8")


def decode_error_body(data: bytes) -> ErrorBody:
    """Decode the server's JSON error body.

    Raises:
        MalformedMessageError: If the bytes are not a JSON object with a status.
    """
    try:
        body = json.loads(data.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise MalformedMessageError("error body is not UTF-8 JSON") from exc
    if not isinstance(body, dict):
        raise MalformedMessageError("error body is not a JSON object")
    try:
        return ErrorBody.model_validate(
            {name: value for name, value in body.items() if name in ERROR_BODY_FIELDS}
        )
    except ValidationError as exc:
        raise MalformedMessageError(f"invalid error body: {exc.errors()[0]['msg']}") from exc


def decode_client_message(data: bytes) -> ClientMessage:
    """Classify a client message, recognising the continuation byte before parsing."""
    if data == CONTINUATION_ACK:
        return ContinuationAck()
    return decode_initial_response(data)


def decode_server_message(data: bytes) -> ServerMessage:
    if data == EMPTY_SUCCESS:
        return EmptySuccess()
    return decode_error_body(data)


def encode_message(message: InitialResponse | ContinuationAck | ErrorBody | EmptySuccess) -> bytes:
    """Encode any handshake message."""
    match message:
        case InitialResponse(
            token_value=token_value, authorization_id=authorization_id, extensions=extensions
        ):
            return encode_initial_response(token_value, authorization_id, extensions)
        case ContinuationAck():
            return CONTINUATION_ACK
        case ErrorBody(status=status, scope=scope, openid_configuration=openid_configuration):
            return encode_error_body(status, scope, openid_configuration)
        case EmptySuccess():
            return EMPTY_SUCCESS
    raise TypeError(f"Unknown message type: {type(message).__name__}")
