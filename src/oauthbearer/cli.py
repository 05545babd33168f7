"""Command-line interface for OAUTHBEARER utilities.

Example:
    >>> # From terminal:
    >>> # oauthbearer --version
    >>> # oauthbearer inspect <jwt>
    >>> # oauthbearer validate <jwt> --jwks-uri https://idp.example.com/jwks.json
    >>> # oauthbearer handshake <jwt> --pem-file key.pem --authzid alice -e traceId=abc
"""

import json
from pathlib import Path
from typing import Annotated, Any, Optional

import typer

from oauthbearer import __version__
from oauthbearer.auth.jwt import TokenRejected, parse_compact
from oauthbearer.auth.validator import create_validator
from oauthbearer.config import ValidatorConfig
from oauthbearer.errors import ConfigurationError, OAuthBearerError
from oauthbearer.models.token import ValidationFailure, ValidationSuccess
from oauthbearer.observability import configure_logging, handshake_context
from oauthbearer.sasl.client import ClientExchange
from oauthbearer.sasl.handlers import JwtServerHandler, StaticTokenClientHandler
from oauthbearer.sasl.server import ServerExchange

app = typer.Typer(help="OAUTHBEARER SASL mechanism CLI.")


def _version_callback(value: bool) -> None:
    """Print the version and exit when requested."""
    if value:
        typer.echo(__version__)
        raise typer.Exit()


VERSION_OPTION = typer.Option(
    False,
    "--version",
    help="Show oauthbearer version and exit.",
    callback=_version_callback,
    is_eager=True,
)

TokenArgument = Annotated[str, typer.Argument(help="Compact JWT bearer token.")]
PemFileOption = Annotated[
    Optional[Path],
    typer.Option("--pem-file", help="PEM public key or certificate used to verify signatures."),
]
JwksUriOption = Annotated[
    Optional[str],
    typer.Option("--jwks-uri", help="http(s):// or file:// URI of the JWK set."),
]
PrincipalClaimOption = Annotated[
    Optional[str], typer.Option("--principal-claim", help="Claim holding the principal name.")
]
ScopeClaimOption = Annotated[
    Optional[str], typer.Option("--scope-claim", help="Claim holding the token scope.")
]
RequiredScopeOption = Annotated[
    Optional[str],
    typer.Option("--required-scope", help="Space-delimited scope every token must carry."),
]
ClockSkewOption = Annotated[
    int, typer.Option("--clock-skew-ms", help="Allowable clock skew in milliseconds.")
]
AudienceOption = Annotated[
    Optional[str], typer.Option("--audience", help="Required 'aud' claim value.")
]
VerifyExpirationOption = Annotated[
    bool,
    typer.Option(
        "--verify-expiration/--no-verify-expiration", help="Reject expired tokens."
    ),
]


@app.callback()
def cli(
    version: bool = VERSION_OPTION,
    log_level: Annotated[
        Optional[str],
        typer.Option("--log-level", help="Minimum log level (DEBUG, INFO, WARNING, ...)."),
    ] = None,
) -> None:
    """OAUTHBEARER CLI entrypoint."""
    if log_level is not None:
        try:
            configure_logging(log_level=log_level, force=True)
        except ConfigurationError as exc:
            raise typer.BadParameter(exc.message, param_hint="--log-level") from exc


def _build_config(
    pem_file: Optional[Path],
    jwks_uri: Optional[str],
    principal_claim: Optional[str],
    scope_claim: Optional[str],
    required_scope: Optional[str],
    clock_skew_ms: int,
    audience: Optional[str],
    verify_expiration: bool,
) -> ValidatorConfig:
    if (pem_file is None) == (jwks_uri is None):
        raise typer.BadParameter("Exactly one of --pem-file or --jwks-uri is required.")
    options: dict[str, Any] = {
        "principal_claim_name": principal_claim,
        "scope_claim_name": scope_claim,
        "required_scope": required_scope,
        "allowable_clock_skew_ms": clock_skew_ms,
        "expected_audience": audience,
        "verify_expiration": verify_expiration,
        "verify_issued_at": verify_expiration,
    }
    if pem_file is not None:
        if not pem_file.exists():
            raise typer.BadParameter(f"PEM file not found: {pem_file}")
        options["public_key_pem"] = pem_file.read_text(encoding="utf-8")
    else:
        options["jwks_uri"] = jwks_uri
    try:
        return ValidatorConfig(**options)
    except OAuthBearerError as exc:
        raise typer.BadParameter(exc.message) from exc


@app.command("inspect")
def inspect_token(token: TokenArgument) -> None:
    """Print the unverified header and claims of a JWT."""
    try:
        jwt = parse_compact(token)
    except TokenRejected as exc:
        raise typer.BadParameter(exc.description) from exc
    typer.echo(json.dumps({"header": jwt.header, "claims": jwt.claims}, indent=2))


@app.command("validate")
def validate_token(
    token: TokenArgument,
    pem_file: PemFileOption = None,
    jwks_uri: JwksUriOption = None,
    principal_claim: PrincipalClaimOption = None,
    scope_claim: ScopeClaimOption = None,
    required_scope: RequiredScopeOption = None,
    clock_skew_ms: ClockSkewOption = 0,
    audience: AudienceOption = None,
    verify_expiration: VerifyExpirationOption = True,
) -> None:
    """Validate a JWT and print the outcome; exits with 1 when it is rejected."""
    config = _build_config(
        pem_file,
        jwks_uri,
        principal_claim,
        scope_claim,
        required_scope,
        clock_skew_ms,
        audience,
        verify_expiration,
    )
    try:
        validator = create_validator(config)
    except OAuthBearerError as exc:
        raise typer.BadParameter(exc.message) from exc

    result = validator.validate(token)
    if isinstance(result, ValidationSuccess):
        typer.echo(
            json.dumps(
                {
                    "valid": True,
                    "principal": result.token.principal_name,
                    "scope": sorted(result.token.scope),
                    "lifetime_ms": result.token.lifetime_ms,
                    "start_time_ms": result.token.start_time_ms,
                },
                indent=2,
            )
        )
        return
    typer.echo(json.dumps(_failure_to_dict(result), indent=2))
    raise typer.Exit(code=1)


def _failure_to_dict(failure: ValidationFailure) -> dict[str, Any]:
    return {
        "valid": False,
        "reason": failure.reason.value,
        "description": failure.description,
        "status": failure.status,
    }


def _show(direction: str, data: bytes) -> None:
    typer.echo(f"{direction} {data!r}")


@app.command("handshake")
def handshake(
    token: TokenArgument,
    pem_file: PemFileOption = None,
    jwks_uri: JwksUriOption = None,
    authzid: Annotated[
        Optional[str], typer.Option("--authzid", help="Authorization id to request.")
    ] = None,
    extension: Annotated[
        Optional[list[str]],
        typer.Option("--extension", "-e", help="SASL extension as key=value (repeatable)."),
    ] = None,
    principal_claim: PrincipalClaimOption = None,
    scope_claim: ScopeClaimOption = None,
    required_scope: RequiredScopeOption = None,
    clock_skew_ms: ClockSkewOption = 0,
    audience: AudienceOption = None,
    verify_expiration: VerifyExpirationOption = True,
) -> None:
    """Run a client and a server exchange in-process and print every message."""
    extensions: dict[str, str] = {}
    for item in extension or []:
        key, sep, value = item.partition("=")
        if not sep or not key:
            raise typer.BadParameter(f"Extension must be key=value: {item}")
        extensions[key] = value

    config = _build_config(
        pem_file,
        jwks_uri,
        principal_claim,
        scope_claim,
        required_scope,
        clock_skew_ms,
        audience,
        verify_expiration,
    )
    try:
        server = ServerExchange(JwtServerHandler.from_config(config))
    except OAuthBearerError as exc:
        raise typer.BadParameter(exc.message) from exc
    client = ClientExchange(StaticTokenClientHandler(token, extensions), authorization_id=authzid)

    try:
        with handshake_context(mechanism=server.mechanism_name, authzid=authzid):
            message = client.evaluate_challenge(b"")
            while True:
                _show("C:", message)
                reply = server.evaluate(message)
                _show("S:", reply)
                message = client.evaluate_challenge(reply)
                if client.is_complete() and server.is_complete():
                    break
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc
    except OAuthBearerError as exc:
        typer.echo(f"Authentication failed: {exc.message}")
        raise typer.Exit(code=1) from exc

    typer.echo(f"Authenticated as {server.authorization_id()}")
    for name, value in sorted(server.extensions.items()):
        typer.echo(f"  {name}={value}")


def main() -> None:
    """Run the OAUTHBEARER CLI."""
    app()


if __name__ == "__main__":
    main()
