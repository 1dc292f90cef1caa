"""Flask CLI commands for operators: issue, inspect and revoke tokens."""

from __future__ import annotations

import json
import logging

import click
from flask.cli import with_appcontext

from tokenauth.core.extensions import get_authenticator
from tokenauth.schemas import ClaimsSchema
from tokenauth.services._shared.deadline import Deadline
from tokenauth.services.authn import AuthnError

LOGGER = logging.getLogger(__name__)


def _fail(err: AuthnError) -> click.ClickException:
    LOGGER.debug("token command rejected", extra={"reason": err.reason.value})
    return click.ClickException(f"{err.message} ({err.reason.value})")


@click.group("token")
def token_cli() -> None:
    """Issue, inspect and revoke signed tokens."""


@token_cli.command("issue")
@click.argument("subject")
@with_appcontext
def issue(subject: str) -> None:
    """Sign a token for SUBJECT and print it as JSON."""
    try:
        issued = get_authenticator().sign(subject)
    except AuthnError as err:
        raise _fail(err) from err
    click.echo(issued.encode_to_json())


@token_cli.command("inspect")
@click.argument("token")
@with_appcontext
def inspect(token: str) -> None:
    """Verify TOKEN (including revocation) and print its claims."""
    try:
        claims = get_authenticator().parse_claims(token, deadline=Deadline.after(10))
    except AuthnError as err:
        raise _fail(err) from err
    click.echo(json.dumps(ClaimsSchema().dump(claims)))


@token_cli.command("revoke")
@click.argument("token")
@with_appcontext
def revoke(token: str) -> None:
    """Revoke TOKEN until its natural expiry."""
    auth = get_authenticator()
    try:
        auth.destroy(token, deadline=Deadline.after(10))
    except AuthnError as err:
        raise _fail(err) from err
    if auth.store is None:
        click.echo("No revocation store configured; token stays valid until it expires.", err=True)
        return
    click.echo("revoked")
