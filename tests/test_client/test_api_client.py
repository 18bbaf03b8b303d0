"""Tests for the Gitea REST API client."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Callable, Iterator
from unittest.mock import patch

import httpx
import pytest

from giteacli.client import GiteaClient
from giteacli.exceptions import AuthError, ConnectionError_, NotFoundError, ServerError

_REAL_CLIENT = httpx.Client


@contextmanager
def _mock_transport(handler: Callable[[httpx.Request], httpx.Response]) -> Iterator[list[httpx.Request]]:
    """Route every httpx.Client the API client creates through *handler*."""
    seen: list[httpx.Request] = []

    def _record(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return handler(request)

    def _factory(**kwargs: Any) -> httpx.Client:
        return _REAL_CLIENT(transport=httpx.MockTransport(_record), **kwargs)

    with patch("giteacli.client.api_client.httpx.Client", side_effect=_factory):
        yield seen


class TestRequests:
    def test_user_info_uses_token_header_and_api_prefix(self) -> None:
        with _mock_transport(lambda r: httpx.Response(200, json={"login": "alice"})) as seen:
            with GiteaClient("https://g.example/", "tok-1") as client:
                assert client.get_my_user_info() == {"login": "alice"}

        request = seen[0]
        assert str(request.url) == "https://g.example/api/v1/user"
        assert request.headers["Authorization"] == "token tok-1"
        assert request.headers["Accept"] == "application/json"

    def test_no_token_no_authorization_header(self) -> None:
        with _mock_transport(lambda r: httpx.Response(200, json={"version": "1.22.0"})) as seen:
            with GiteaClient("https://g.example") as client:
                assert client.get_server_version() == "1.22.0"
        assert "Authorization" not in seen[0].headers
        assert seen[0].url.path == "/api/v1/version"

    def test_subpath_install(self) -> None:
        with _mock_transport(lambda r: httpx.Response(200, json={})) as seen:
            with GiteaClient("https://example.com/gitea", "t") as client:
                client.get("/user")
        assert seen[0].url.path == "/gitea/api/v1/user"

    def test_insecure_disables_verification(self) -> None:
        with patch("giteacli.client.api_client.httpx.Client") as client_cls:
            with GiteaClient("https://g.example", "t", insecure=True):
                pass
        assert client_cls.call_args.kwargs["verify"] is False

    def test_client_closed_on_exit(self) -> None:
        with _mock_transport(lambda r: httpx.Response(200, json={})):
            client = GiteaClient("https://g.example", "t")
            with client:
                assert client._client is not None
            assert client._client is None


class TestErrorMapping:
    @pytest.mark.parametrize(
        ("status", "exc_type"),
        [(401, AuthError), (403, AuthError), (404, NotFoundError), (500, ServerError), (422, ServerError)],
    )
    def test_status_mapping(self, status: int, exc_type: type) -> None:
        with _mock_transport(lambda r: httpx.Response(status, json={"message": "nope"})):
            with GiteaClient("https://g.example", "t") as client:
                with pytest.raises(exc_type, match=f"HTTP {status}: nope"):
                    client.get_my_user_info()

    def test_connection_error(self) -> None:
        def _refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with _mock_transport(_refuse):
            with GiteaClient("https://g.example", "t") as client:
                with pytest.raises(ConnectionError_, match="connection refused"):
                    client.get_my_user_info()

    def test_invalid_json_body(self) -> None:
        with _mock_transport(lambda r: httpx.Response(200, text="<html>")):
            with GiteaClient("https://g.example", "t") as client:
                with pytest.raises(ServerError, match="Invalid JSON"):
                    client.get_my_user_info()

    @pytest.mark.parametrize("body", [["alice"], "alice", 42])
    def test_non_object_user_body(self, body: Any) -> None:
        with _mock_transport(lambda r: httpx.Response(200, json=body)):
            with GiteaClient("https://g.example", "t") as client:
                with pytest.raises(ServerError, match="expected a JSON object"):
                    client.get_my_user_info()

    def test_non_object_version_body(self) -> None:
        with _mock_transport(lambda r: httpx.Response(200, json=["1.22.0"])):
            with GiteaClient("https://g.example") as client:
                with pytest.raises(ServerError, match="/version"):
                    client.get_server_version()
