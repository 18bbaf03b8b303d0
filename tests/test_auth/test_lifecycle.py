"""Tests for lazy token refresh of stored logins."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest

from giteacli.auth.lifecycle import TokenLifecycleManager
from giteacli.config import LoginStore
from giteacli.exceptions import ConfigError, RefreshError
from giteacli.models import LoginRecord, OAuthSettings, TokenMaterial

NOW = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

_GRANT = "giteacli.auth.lifecycle.refresh_token_grant"


def _manager(store: LoginStore) -> TokenLifecycleManager:
    return TokenLifecycleManager(store, OAuthSettings(client_id="client-1"), clock=lambda: NOW)


def _record(**overrides: object) -> LoginRecord:
    values: dict[str, object] = {
        "name": "work",
        "url": "https://gitea.example.com",
        "token": "old-access",
        "refresh_token": "old-refresh",
        "token_expiry": NOW + timedelta(hours=1),
        "user": "alice",
    }
    values.update(overrides)
    return LoginRecord(**values)  # type: ignore[arg-type]


class TestEnsure:
    def test_valid_token_needs_no_network(self, store: LoginStore) -> None:
        record = _record()
        store.add_login(record)
        manager = _manager(store)

        with patch(_GRANT) as grant:
            assert manager.ensure(record) == "old-access"
            assert manager.ensure(record) == "old-access"
        grant.assert_not_called()

    def test_no_refresh_token_returns_token_unchanged(self, store: LoginStore) -> None:
        record = _record(refresh_token="", token_expiry=NOW - timedelta(hours=1))
        with patch(_GRANT) as grant:
            assert _manager(store).ensure(record) == "old-access"
        grant.assert_not_called()

    def test_expired_token_refreshed_and_old_refresh_token_kept(self, store: LoginStore) -> None:
        record = _record(token_expiry=NOW - timedelta(minutes=1))
        store.add_login(record)
        material = TokenMaterial(access_token="new-access", expiry=NOW + timedelta(hours=1))

        with patch(_GRANT, return_value=material) as grant:
            assert _manager(store).ensure(record) == "new-access"

        grant.assert_called_once()
        assert grant.call_args.args == (
            "https://gitea.example.com/login/oauth/access_token",
            "old-refresh",
            "client-1",
        )
        stored = store.get_login_by_name("work")
        assert stored is not None
        assert stored.token == "new-access"
        assert stored.refresh_token == "old-refresh"
        assert stored.token_expiry == NOW + timedelta(hours=1)

    def test_rotated_refresh_token_persisted(self, store: LoginStore) -> None:
        record = _record(token_expiry=NOW - timedelta(minutes=1))
        store.add_login(record)
        material = TokenMaterial(access_token="a2", refresh_token="r2")

        with patch(_GRANT, return_value=material):
            _manager(store).ensure(record)

        stored = store.get_login_by_name("work")
        assert stored is not None
        assert stored.refresh_token == "r2"
        # Unknown new expiry keeps the previous one.
        assert stored.token_expiry == NOW - timedelta(minutes=1)

    def test_unknown_expiry_triggers_refresh(self, store: LoginStore) -> None:
        record = _record(token_expiry=None)
        store.add_login(record)
        with patch(_GRANT, return_value=TokenMaterial(access_token="a2")) as grant:
            assert _manager(store).ensure(record) == "a2"
        grant.assert_called_once()

    def test_force_refreshes_valid_token(self, store: LoginStore) -> None:
        record = _record()
        store.add_login(record)
        with patch(_GRANT, return_value=TokenMaterial(access_token="a2")) as grant:
            assert _manager(store).ensure(record, force=True) == "a2"
        grant.assert_called_once()

    def test_failed_refresh_leaves_store_untouched(self, store: LoginStore) -> None:
        record = _record(token_expiry=NOW - timedelta(minutes=1))
        store.add_login(record)
        with patch(_GRANT, side_effect=RefreshError("Token refresh failed: invalid_grant")):
            with pytest.raises(RefreshError, match="giteacli login oauth-refresh work"):
                _manager(store).ensure(record)

        stored = store.get_login_by_name("work")
        assert stored is not None
        assert stored.token == "old-access"


class TestRefreshNow:
    def test_unknown_login(self, store: LoginStore) -> None:
        with pytest.raises(ConfigError, match="not found"):
            _manager(store).refresh_now("missing")

    def test_login_without_refresh_token(self, store: LoginStore) -> None:
        store.add_login(_record(refresh_token=""))
        with pytest.raises(RefreshError, match="does not have a refresh token"):
            _manager(store).refresh_now("work")

    def test_forces_refresh_of_valid_token(self, store: LoginStore) -> None:
        store.add_login(_record())
        with patch(_GRANT, return_value=TokenMaterial(access_token="forced")) as grant:
            updated = _manager(store).refresh_now("WORK")
        grant.assert_called_once()
        assert updated.token == "forced"
        stored = store.get_login_by_name("work")
        assert stored is not None
        assert stored.token == "forced"
