"""Interactive OAuth2 login: authorization code with PKCE.

:func:`oauth_login` drives one login attempt end to end:

1. generate the PKCE verifier/challenge and the ``state`` value;
2. bind the loopback :class:`~giteacli.auth.callback.CallbackListener`
   and fix the redirect URL to its real port;
3. print the authorization URL and open the browser;
4. wait for the callback and verify ``state``;
5. exchange the code, validate the token against ``/api/v1/user``;
6. persist the new :class:`~giteacli.models.LoginRecord`.

Any failure aborts the attempt and nothing is written to the store.
"""

from __future__ import annotations

import hmac
import logging
import webbrowser
from typing import Callable, Optional
from urllib.parse import urlparse

from pydantic import BaseModel, Field

from giteacli.auth.callback import CallbackKind, CallbackListener
from giteacli.auth.exchange import exchange_code
from giteacli.auth.pkce import generate_pkce_pair, new_state
from giteacli.auth.request import (
    OAuthEndpoints,
    build_authorization_url,
    default_redirect_url,
    normalize_url,
    validate_redirect_url,
    with_port,
)
from giteacli.client import GiteaClient
from giteacli.config import LoginStore
from giteacli.exceptions import (
    AuthorizationDeniedError,
    ConfigError,
    GiteaCliError,
    StateMismatchError,
    TimeoutError_,
    TokenValidationError,
)
from giteacli.models import LoginRecord, OAuthSettings
from giteacli.output import debug, info, print_url, warning

logger = logging.getLogger(__name__)

BrowserOpener = Callable[[str], bool]


class OAuthOptions(BaseModel):
    """Parameters of one interactive login, as given on the command line."""

    name: Optional[str] = Field(default=None, description="Login name; derived from the host if omitted")
    url: str = Field(description="Gitea server URL")
    insecure: bool = Field(default=False, description="Skip TLS verification")
    client_id: Optional[str] = Field(default=None, description="OAuth2 client id override")
    redirect_url: Optional[str] = Field(default=None, description="Registered redirect URL override")
    version_check: bool = True


def verify_state(expected: str, received: str) -> None:
    """Compare the sent and returned ``state`` values in constant time.

    Raises:
        StateMismatchError: If they differ.
    """
    if not received or not hmac.compare_digest(expected.encode(), received.encode()):
        raise StateMismatchError("State mismatch, possible CSRF attack. Login aborted.")


def redirect_registration_guidance(server_url: str, redirect_url: str) -> str:
    """Explain how to register *redirect_url* as an OAuth2 application."""
    return "\n".join(
        [
            "The redirect URL may not be registered in Gitea. To fix this:",
            f"  1. Go to your Gitea instance: {server_url}",
            "  2. Sign in and go to Settings > Applications",
            "  3. Register a new OAuth2 application with:",
            "     - Application Name: giteacli (or any name)",
            f"     - Redirect URI: {redirect_url}",
            "  4. Copy the Client ID and try again with:",
            f"     giteacli login add --client-id YOUR_CLIENT_ID --redirect-url {redirect_url}",
        ]
    )


def _looks_like_redirect_problem(message: str) -> bool:
    lowered = message.lower()
    return "redirect" in lowered or "no authorization code" in lowered


def _open_browser(opener: BrowserOpener, auth_url: str) -> None:
    try:
        opened = opener(auth_url)
    except (webbrowser.Error, OSError) as exc:
        logger.debug("Browser opener raised: %s", exc)
        opened = False
    if not opened:
        warning("Could not open a browser. Visit the URL above to continue.")


def _fetch_username(server_url: str, token: str, insecure: bool) -> str:
    try:
        with GiteaClient(server_url, token, insecure=insecure) as client:
            user = client.get_my_user_info()
    except GiteaCliError as exc:
        raise TokenValidationError(f"Failed to validate token: {exc}") from exc
    username = user.get("login") or user.get("username")
    if not username:
        raise TokenValidationError("Failed to validate token: user info response has no login")
    return str(username)


def oauth_login(
    options: OAuthOptions,
    store: LoginStore,
    settings: Optional[OAuthSettings] = None,
    opener: BrowserOpener = webbrowser.open,
) -> LoginRecord:
    """Run the interactive browser login and store the resulting login.

    Args:
        options: Server URL, optional login name and client overrides.
        store: Where the new login is saved.
        settings: OAuth defaults (client id, scopes, timeout, redirect host).
        opener: Opens the authorization URL; returns False when it could not.

    Returns:
        The persisted :class:`~giteacli.models.LoginRecord`.

    Raises:
        InvalidUsageError: If the server or redirect URL is malformed.
        ConfigError: If a login with the requested name already exists.
        BindError: If the callback listener cannot bind.
        TimeoutError_: If no callback arrives in time.
        AuthorizationDeniedError: If the server redirected back with an error.
        StateMismatchError: If the returned state differs from the sent one.
        ExchangeError: If the code cannot be exchanged for tokens.
        TokenValidationError: If the issued token fails the identity lookup.
    """
    settings = settings or OAuthSettings()

    server_url = normalize_url(options.url)
    client_id = options.client_id or settings.client_id
    redirect_url = validate_redirect_url(
        options.redirect_url or default_redirect_url(settings.redirect_host)
    )

    if options.name and store.get_login_by_name(options.name) is not None:
        raise ConfigError(f"Login '{options.name}' already exists")

    pkce = generate_pkce_pair(settings.verifier_length)
    state = new_state()
    endpoints = OAuthEndpoints.from_server_url(server_url)

    with CallbackListener(redirect_url) as listener:
        port = listener.start()
        redirect_url = with_port(redirect_url, port)
        auth_url = build_authorization_url(
            endpoints.authorize_url,
            redirect_url,
            pkce.challenge,
            state,
            client_id=client_id,
            scopes=settings.scopes,
        )
        info("Please authorize the application by visiting this URL in your browser:")
        print_url(auth_url)
        _open_browser(opener, auth_url)
        debug(f"Waiting up to {settings.timeout_seconds:g}s for the authorization callback")
        result = listener.await_result(settings.timeout_seconds)

    if result.kind is CallbackKind.TIMEOUT:
        raise TimeoutError_(
            f"Authentication timed out after {settings.timeout_seconds:g}s. "
            "Run 'giteacli login add' to try again."
        )
    if result.kind is CallbackKind.ERROR:
        message = f"Authorization failed: {result.error_message}"
        if _looks_like_redirect_problem(result.error_message):
            message = f"{message}\n{redirect_registration_guidance(server_url, redirect_url)}"
        raise AuthorizationDeniedError(
            message,
            error_code=result.error_code,
            error_description=result.error_description,
        )
    verify_state(state, result.state)

    material = exchange_code(
        endpoints.token_url,
        result.code,
        pkce.verifier,
        client_id,
        redirect_url,
        insecure=options.insecure,
    )
    username = _fetch_username(server_url, material.access_token, options.insecure)

    record = LoginRecord(
        name=options.name or store.generate_login_name(server_url),
        url=server_url,
        user=username,
        insecure=options.insecure,
        version_check=options.version_check,
        ssh_host=urlparse(server_url).hostname or "",
    )
    record.apply_token(material)
    store.add_login(record)
    logger.debug("Stored OAuth login '%s' for %s", record.name, server_url)
    return record
