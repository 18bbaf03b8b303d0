"""Minimal Gitea REST API client.

:class:`GiteaClient` wraps :class:`httpx.Client` with the server's
``/api/v1`` base URL, token authentication, and mapping of HTTP failures
to the :mod:`giteacli.exceptions` hierarchy. It covers only the calls
the login commands need: the identity lookup and the server version.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from giteacli.exceptions import AuthError, ConnectionError_, NotFoundError, ServerError

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"


class GiteaClient:
    """Synchronous client for a Gitea server's REST API.

    Must be used as a context manager so that the underlying transport is
    opened and closed.

    Args:
        server_url: Normalized server base URL (without ``/api/v1``).
        token: Access token sent as ``Authorization: token <token>``.
        insecure: Skip TLS certificate verification.
        timeout: Per-request timeout in seconds.

    Example::

        with GiteaClient("https://gitea.example.com", token) as client:
            user = client.get_my_user_info()
    """

    def __init__(
        self,
        server_url: str,
        token: str = "",
        insecure: bool = False,
        timeout: float = 30.0,
    ) -> None:
        self._base_url = f"{server_url.rstrip('/')}{API_PREFIX}"
        self._token = token
        self._insecure = insecure
        self._timeout = timeout
        self._client: Optional[httpx.Client] = None

    def __enter__(self) -> GiteaClient:
        headers = {"Accept": "application/json"}
        if self._token:
            headers["Authorization"] = f"token {self._token}"
        self._client = httpx.Client(
            base_url=self._base_url,
            headers=headers,
            timeout=self._timeout,
            verify=not self._insecure,
            follow_redirects=True,
        )
        return self

    def __exit__(self, *args: object) -> None:
        if self._client:
            self._client.close()
            self._client = None

    def get(self, path: str, params: Optional[dict[str, Any]] = None) -> Any:
        """GET *path* below ``/api/v1`` and return the decoded JSON body.

        Raises:
            AuthError: On 401 / 403.
            NotFoundError: On 404.
            ServerError: On any other error status or an undecodable body.
            ConnectionError_: On network or timeout errors.
        """
        assert self._client is not None, "Client not initialised -- use as context manager"
        try:
            response = self._client.get(path, params=params)
        except httpx.HTTPError as exc:
            raise ConnectionError_(f"Request to {self._base_url}{path} failed: {exc}") from exc
        logger.debug("GET %s%s -> %d", self._base_url, path, response.status_code)
        _map_response_error(response)
        try:
            return response.json()
        except ValueError as exc:
            raise ServerError(f"Invalid JSON from {self._base_url}{path}: {exc}") from exc

    def get_object(self, path: str, params: Optional[dict[str, Any]] = None) -> dict[str, Any]:
        """Like :meth:`get`, but the body must be a JSON object.

        Raises:
            ServerError: If the body is a list, string or other non-object.
        """
        data = self.get(path, params)
        if not isinstance(data, dict):
            raise ServerError(
                f"Unexpected response from {self._base_url}{path}: "
                f"expected a JSON object, got {type(data).__name__}"
            )
        return data

    def get_my_user_info(self) -> dict[str, Any]:
        """Return the user the current token belongs to."""
        return self.get_object("/user")

    def get_server_version(self) -> str:
        """Return the server's version string."""
        return str(self.get_object("/version").get("version", ""))


def _map_response_error(response: httpx.Response) -> None:
    """Raise a typed exception for error HTTP status codes."""
    status = response.status_code
    if status < 400:
        return

    try:
        detail = response.json()
        if isinstance(detail, dict):
            msg = detail.get("message") or detail.get("error") or ""
        else:
            msg = str(detail)
    except ValueError:
        msg = response.text[:200] if response.text else ""

    full_msg = f"HTTP {status}: {msg}" if msg else f"HTTP {status}"
    if status in (401, 403):
        raise AuthError(full_msg)
    if status == 404:
        raise NotFoundError(full_msg)
    raise ServerError(full_msg)
