"""The ``giteacli whoami`` command."""

from __future__ import annotations

from typing import Optional

import typer

from giteacli.exceptions import GiteaCliError
from giteacli.output import debug, error, format_response


def whoami_command(
    login: Optional[str] = typer.Option(
        None, "--login", "-l", help="Login to use (default: the default login)."
    ),
) -> None:
    """Show the user a stored login authenticates as.

    The access token is refreshed first when it has expired.

    Example::

        giteacli whoami --login work
    """
    from giteacli.auth.lifecycle import TokenLifecycleManager
    from giteacli.client import GiteaClient
    from giteacli.config import LoginStore

    store = LoginStore()
    try:
        if login:
            record = store.get_login_by_name(login)
            if record is None:
                error(f"Login '{login}' not found")
                raise typer.Exit(code=1)
        else:
            record = store.get_default_login()

        token = TokenLifecycleManager(store, store.load().oauth).ensure(record)
        with GiteaClient(record.url, token, insecure=record.insecure) as client:
            if record.version_check:
                debug(f"Server version: {client.get_server_version()}")
            user = client.get_my_user_info()
    except GiteaCliError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    format_response(
        {
            "login": record.name,
            "user": user.get("login", ""),
            "full_name": user.get("full_name", ""),
            "email": user.get("email", ""),
            "url": record.url,
        }
    )
