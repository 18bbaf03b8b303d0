"""giteacli -- a command-line client for Gitea-compatible Git hosting APIs.

The heart of the package is the interactive OAuth2 Authorization Code +
PKCE login flow: the CLI opens the user's browser, receives the redirect
on a short-lived loopback server, exchanges the code for tokens, and
later refreshes expired access tokens transparently.

Typical workflow::

    giteacli login add --url https://gitea.example.com
    giteacli whoami
    giteacli login oauth-refresh

Modules:
    app: Typer application and CLI entry point.
    models: Pydantic models shared across the package.
    config: XDG-aware configuration and the login store.
    auth: PKCE, callback listener, token exchange and refresh.
    client: Thin HTTP client for the server's ``/api/v1`` endpoints.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes following clig.dev conventions.
    output: stdout/stderr formatting system with Rich support.
"""

__version__ = "0.1.0"
