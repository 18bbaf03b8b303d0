"""Login commands -- add, inspect, and maintain stored Gitea logins.

Provides the ``giteacli login`` sub-command group. ``login add`` runs
the interactive OAuth2 browser flow; the remaining commands manage the
logins it creates.

Typical workflow::

    giteacli login add --url https://gitea.example.com
    giteacli login list
    giteacli login oauth-refresh gitea.example.com
"""

from __future__ import annotations

import os
from typing import Optional

import typer

from giteacli.exceptions import GiteaCliError
from giteacli.models import LoginRecord
from giteacli.output import error, format_response, info, print_data, print_table, success, suggest

login_app = typer.Typer(no_args_is_help=True)

_SERVER_URL_ENV = "GITEA_SERVER_URL"


def _fail(exc: GiteaCliError) -> typer.Exit:
    error(str(exc))
    return typer.Exit(code=exc.exit_code)


def _format_expiry(record: LoginRecord) -> str:
    if record.token_expiry is None:
        return "-"
    return record.token_expiry.strftime("%Y-%m-%d %H:%M:%S %Z").strip()


@login_app.command("add")
def login_add(
    name: Optional[str] = typer.Option(
        None, "--name", "-n", help="Login name. Derived from the server host if omitted."
    ),
    url: Optional[str] = typer.Option(
        None, "--url", "-u", help=f"Gitea server URL (default: ${_SERVER_URL_ENV})."
    ),
    insecure: bool = typer.Option(
        False, "--insecure", "-i", help="Skip TLS certificate verification."
    ),
    client_id: Optional[str] = typer.Option(
        None, "--client-id", help="OAuth2 client id of a custom application."
    ),
    redirect_url: Optional[str] = typer.Option(
        None, "--redirect-url", help="Redirect URL registered for the OAuth2 application."
    ),
    no_version_check: bool = typer.Option(
        False, "--no-version-check", help="Do not check the server version."
    ),
) -> None:
    """Log in to a Gitea server through the browser (OAuth2 + PKCE).

    Starts a temporary listener on a loopback port, opens the browser on
    the server's authorization page and stores the resulting tokens as
    a new login.

    Example::

        giteacli login add --url https://gitea.example.com --name work
    """
    from giteacli.auth.flow import OAuthOptions, oauth_login
    from giteacli.config import LoginStore

    server_url = url or os.environ.get(_SERVER_URL_ENV, "")
    if not server_url:
        error(f"A server URL is required: pass --url or set ${_SERVER_URL_ENV}.")
        raise typer.Exit(code=2)

    store = LoginStore()
    options = OAuthOptions(
        name=name,
        url=server_url,
        insecure=insecure,
        client_id=client_id,
        redirect_url=redirect_url,
        version_check=not no_version_check,
    )
    try:
        settings = store.load().oauth
        record = oauth_login(options, store, settings)
    except GiteaCliError as exc:
        raise _fail(exc) from None

    success(
        f"Login as {record.user} on {record.url} successful. "
        f"Added this login as {record.name}"
    )
    suggest("Check it: giteacli whoami")


@login_app.command("list")
def login_list() -> None:
    """List all stored logins.

    Example::

        giteacli login list
    """
    from giteacli.config import LoginStore

    try:
        logins = LoginStore().list_logins()
    except GiteaCliError as exc:
        raise _fail(exc) from None

    if not logins:
        info("No logins configured.")
        suggest("Add one: giteacli login add --url <server>")
        return

    headers = ["Name", "URL", "User", "Default", "Token Expiry"]
    rows = [
        [r.name, r.url, r.user, "yes" if r.default else "", _format_expiry(r)]
        for r in logins
    ]
    print_table(headers, rows, title="Logins")


@login_app.command("show")
def login_show(
    name: str = typer.Argument(help="Login name."),
) -> None:
    """Show one login's details. Token values are never printed."""
    from giteacli.config import LoginStore

    try:
        record = LoginStore().get_login_by_name(name)
    except GiteaCliError as exc:
        raise _fail(exc) from None
    if record is None:
        error(f"Login '{name}' not found")
        raise typer.Exit(code=1)

    format_response(
        {
            "name": record.name,
            "url": record.url,
            "user": record.user,
            "ssh_host": record.ssh_host,
            "insecure": record.insecure,
            "version_check": record.version_check,
            "default": record.default,
            "oauth": bool(record.refresh_token),
            "token_expiry": record.token_expiry.isoformat() if record.token_expiry else None,
            "created": record.created.isoformat(),
        }
    )


@login_app.command("delete")
def login_delete(
    ctx: typer.Context,
    name: Optional[str] = typer.Argument(None, help="Login name (default: the default login)."),
) -> None:
    """Remove a stored login.

    Asks for confirmation unless the ``--force`` flag is active.
    """
    from giteacli.config import LoginStore

    store = LoginStore()
    try:
        target = name or store.get_default_login().name
        if store.get_login_by_name(target) is None:
            error(f"Login '{target}' not found")
            raise typer.Exit(code=1)

        force = ctx.obj.get("force", False) if ctx.obj else False
        if not force:
            confirmed = typer.confirm(f"Delete login '{target}'?")
            if not confirmed:
                info("Cancelled.")
                raise typer.Exit()

        store.delete_login(target)
    except GiteaCliError as exc:
        raise _fail(exc) from None
    success(f"Login '{target}' deleted.")


@login_app.command("default")
def login_default(
    name: Optional[str] = typer.Argument(None, help="Login to make the default."),
) -> None:
    """Show the default login, or set it when a name is given."""
    from giteacli.config import LoginStore

    store = LoginStore()
    try:
        if name is None:
            record = store.get_default_login()
            print_data(record.name)
            return
        store.set_default_login(name)
    except GiteaCliError as exc:
        raise _fail(exc) from None
    success(f"Default login set to '{name}'.")


@login_app.command("oauth-refresh")
def login_oauth_refresh(
    name: Optional[str] = typer.Argument(None, help="Login name (default: the default login)."),
) -> None:
    """Refresh a login's OAuth access token now, regardless of its expiry.

    Example::

        giteacli login oauth-refresh work
    """
    from giteacli.auth.lifecycle import TokenLifecycleManager
    from giteacli.config import LoginStore

    store = LoginStore()
    try:
        target = name or store.get_default_login().name
        manager = TokenLifecycleManager(store, store.load().oauth)
        record = manager.refresh_now(target)
    except GiteaCliError as exc:
        raise _fail(exc) from None

    success(f"Successfully refreshed OAuth token for '{record.name}'.")
    if record.token_expiry is not None:
        info(f"New token expires at {_format_expiry(record)}.")
