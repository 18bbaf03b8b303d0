"""Authorization request construction.

Derives the server's OAuth2 endpoints from its base URL and composes the
authorization URL the user's browser is sent to. Every function here is
pure: inputs are never mutated and no network I/O happens.

The redirect URL must carry the callback listener's real port before
:func:`build_authorization_url` is called. The flow guarantees this by
binding the listener first and then calling :func:`with_port`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence
from urllib.parse import quote, urlencode, urlparse, urlunparse

from giteacli.auth.pkce import CHALLENGE_METHOD
from giteacli.exceptions import InvalidUsageError
from giteacli.models import DEFAULT_CLIENT_ID, DEFAULT_SCOPES

AUTHORIZE_PATH = "/login/oauth/authorize"
TOKEN_PATH = "/login/oauth/access_token"


def normalize_url(raw: str) -> str:
    """Normalize a user-supplied server URL.

    Adds ``https://`` when no scheme is given and strips trailing slashes.

    Raises:
        InvalidUsageError: If the URL is empty or has no host.
    """
    value = (raw or "").strip()
    if not value:
        raise InvalidUsageError("Server URL must not be empty")
    if "://" not in value:
        value = f"https://{value}"
    parsed = urlparse(value)
    if parsed.scheme not in ("http", "https") or not parsed.hostname:
        raise InvalidUsageError(f"Unable to parse server URL: {raw!r}")
    path = parsed.path.rstrip("/")
    return urlunparse((parsed.scheme, parsed.netloc, path, "", "", ""))


@dataclass(frozen=True)
class OAuthEndpoints:
    """The authorize and token endpoints of one server."""

    authorize_url: str
    token_url: str

    @classmethod
    def from_server_url(cls, server_url: str) -> OAuthEndpoints:
        base = server_url.rstrip("/")
        return cls(
            authorize_url=f"{base}{AUTHORIZE_PATH}",
            token_url=f"{base}{TOKEN_PATH}",
        )


def default_redirect_url(host: str = "127.0.0.1", port: int = 0) -> str:
    """Return the loopback redirect URL used when the caller supplies none."""
    if ":" in host:
        host = f"[{host}]"
    return f"http://{host}:{port}"


def redirect_port(redirect_url: str) -> int:
    """Return the explicit port of *redirect_url*, or 0 when unset.

    Raises:
        InvalidUsageError: If the port is not a valid number.
    """
    try:
        return urlparse(redirect_url).port or 0
    except ValueError as exc:
        raise InvalidUsageError(f"Invalid redirect URL {redirect_url!r}: {exc}") from exc


def validate_redirect_url(redirect_url: str) -> str:
    """Check that *redirect_url* names a local HTTP endpoint and return it.

    Raises:
        InvalidUsageError: If the scheme is not http, the host is missing
            or the port is not a valid number.
    """
    parsed = urlparse(redirect_url)
    if parsed.scheme != "http" or not parsed.hostname:
        raise InvalidUsageError(
            f"Invalid redirect URL {redirect_url!r}: expected http://<host>[:<port>][/path]"
        )
    redirect_port(redirect_url)
    return redirect_url


def with_port(redirect_url: str, port: int) -> str:
    """Return *redirect_url* with its port replaced by *port*.

    The scheme, host and path are preserved.
    """
    parsed = urlparse(redirect_url)
    host = parsed.hostname or "127.0.0.1"
    if ":" in host:
        host = f"[{host}]"
    return urlunparse(parsed._replace(netloc=f"{host}:{port}"))


def build_authorization_url(
    authorize_url: str,
    redirect_url: str,
    challenge: str,
    state: str,
    client_id: Optional[str] = None,
    scopes: Optional[Sequence[str]] = None,
) -> str:
    """Compose the authorization URL for the browser.

    Args:
        authorize_url: The server's authorization endpoint.
        redirect_url: Where the server should send the browser back. Must
            already contain the listener's bound port.
        challenge: The PKCE S256 code challenge.
        state: The anti-forgery state value.
        client_id: OAuth2 client id. Defaults to the built-in public client.
        scopes: Requested scopes. Defaults to the built-in scope set.

    Returns:
        The authorization URL with ``client_id``, ``redirect_uri``,
        ``response_type``, ``scope``, ``state``, ``code_challenge`` and
        ``code_challenge_method`` query parameters.
    """
    params = {
        "client_id": client_id or DEFAULT_CLIENT_ID,
        "redirect_uri": redirect_url,
        "response_type": "code",
        "scope": " ".join(scopes if scopes else DEFAULT_SCOPES),
        "state": state,
        "code_challenge": challenge,
        "code_challenge_method": CHALLENGE_METHOD,
    }
    separator = "&" if urlparse(authorize_url).query else "?"
    # quote (not quote_plus) so spaces become %20 and "/" is escaped too
    return f"{authorize_url}{separator}{urlencode(params, quote_via=quote, safe='')}"
