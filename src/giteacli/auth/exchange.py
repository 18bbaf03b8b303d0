"""Token endpoint client for the authorization-code and refresh grants.

Both grants POST form-encoded parameters to the server's token endpoint
and parse the JSON response into :class:`~giteacli.models.TokenMaterial`.
Nothing here is retried: an authorization code is single-use, and a
rejected refresh token will not start working on a second attempt.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Optional

import httpx

from giteacli.exceptions import AuthError, ExchangeError, RefreshError
from giteacli.models import TokenMaterial, utcnow

logger = logging.getLogger(__name__)

_TOKEN_TIMEOUT = 30.0


def _server_error_detail(response: httpx.Response) -> str:
    """Extract ``error``/``error_description`` from an error response body."""
    try:
        body = response.json()
    except ValueError:
        return response.text.strip()
    if not isinstance(body, dict):
        return response.text.strip()
    error = body.get("error", "")
    description = body.get("error_description", "")
    if error and description:
        return f"{error}: {description}"
    return error or description or response.text.strip()


def _post_token_request(
    token_url: str,
    data: dict[str, str],
    insecure: bool,
    error_cls: type[AuthError],
    action: str,
) -> dict[str, Any]:
    try:
        response = httpx.post(
            token_url,
            data=data,
            headers={"Accept": "application/json"},
            timeout=_TOKEN_TIMEOUT,
            verify=not insecure,
        )
        response.raise_for_status()
        token_data = response.json()
    except httpx.HTTPStatusError as exc:
        raise error_cls(
            f"{action} failed with status {exc.response.status_code}: "
            f"{_server_error_detail(exc.response)}"
        ) from exc
    except httpx.HTTPError as exc:
        raise error_cls(f"{action} failed: {exc}") from exc
    except ValueError as exc:
        raise error_cls(f"{action} returned a malformed response: {exc}") from exc

    if not isinstance(token_data, dict):
        raise error_cls(f"{action} returned a malformed response")
    # Some servers answer 200 with an OAuth error body.
    if token_data.get("error"):
        detail = token_data["error"]
        if token_data.get("error_description"):
            detail = f"{detail}: {token_data['error_description']}"
        raise error_cls(f"{action} failed: {detail}")
    if not token_data.get("access_token"):
        raise error_cls(f"{action} response missing 'access_token' field")
    return token_data


def _to_material(token_data: dict[str, Any], now: Callable[[], datetime]) -> TokenMaterial:
    expiry: Optional[datetime] = None
    expires_in = token_data.get("expires_in")
    if expires_in not in (None, ""):
        try:
            expiry = now() + timedelta(seconds=int(expires_in))
        except (TypeError, ValueError):
            logger.warning("Ignoring non-numeric expires_in value %r", expires_in)
    return TokenMaterial(
        access_token=token_data["access_token"],
        refresh_token=token_data.get("refresh_token") or "",
        expiry=expiry,
    )


def exchange_code(
    token_url: str,
    code: str,
    verifier: str,
    client_id: str,
    redirect_url: str,
    insecure: bool = False,
    clock: Callable[[], datetime] = utcnow,
) -> TokenMaterial:
    """Exchange an authorization code for tokens.

    Args:
        token_url: The server's token endpoint.
        code: Authorization code delivered to the callback listener.
        verifier: The PKCE code verifier matching the challenge that was sent.
        client_id: OAuth2 client id used in the authorization request.
        redirect_url: The exact redirect URL used in the authorization request.
        insecure: Skip TLS certificate verification.
        clock: Source of "now" for computing the absolute expiry.

    Returns:
        The issued :class:`~giteacli.models.TokenMaterial`. ``expiry`` is
        ``None`` when the server did not report ``expires_in``.

    Raises:
        ExchangeError: On transport failure, a non-2xx status, or a
            response without an access token.
    """
    data = {
        "grant_type": "authorization_code",
        "code": code,
        "redirect_uri": redirect_url,
        "client_id": client_id,
        "code_verifier": verifier,
    }
    logger.debug("Exchanging authorization code at %s", token_url)
    token_data = _post_token_request(token_url, data, insecure, ExchangeError, "Token exchange")
    return _to_material(token_data, clock)


def refresh_token_grant(
    token_url: str,
    refresh_token: str,
    client_id: str,
    insecure: bool = False,
    clock: Callable[[], datetime] = utcnow,
) -> TokenMaterial:
    """Obtain a new access token with a refresh token.

    The returned ``refresh_token`` is empty when the server did not rotate
    it; callers must then keep the one they already hold.

    Raises:
        RefreshError: On transport failure, a non-2xx status, or a
            response without an access token.
    """
    data = {
        "grant_type": "refresh_token",
        "refresh_token": refresh_token,
        "client_id": client_id,
    }
    logger.debug("Refreshing access token at %s", token_url)
    token_data = _post_token_request(token_url, data, insecure, RefreshError, "Token refresh")
    return _to_material(token_data, clock)
