"""Lazy, refresh-on-demand access token management for stored logins.

Tokens are only refreshed when a command actually needs one and the
stored token is expired (or of unknown age). There is no background
refresher; a token that is still valid costs nothing.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Optional

from giteacli.auth.exchange import refresh_token_grant
from giteacli.auth.request import OAuthEndpoints
from giteacli.config import LoginStore
from giteacli.exceptions import ConfigError, RefreshError
from giteacli.models import LoginRecord, OAuthSettings, utcnow

logger = logging.getLogger(__name__)


class TokenLifecycleManager:
    """Keep a :class:`~giteacli.models.LoginRecord`'s access token usable.

    Args:
        store: Where refreshed records are persisted.
        settings: OAuth defaults; ``client_id`` is sent with refresh grants.
        clock: Returns the current UTC time. Overridable in tests.
    """

    def __init__(
        self,
        store: LoginStore,
        settings: Optional[OAuthSettings] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._store = store
        self._settings = settings or OAuthSettings()
        self._clock = clock or utcnow

    def needs_refresh(self, record: LoginRecord) -> bool:
        """Return True if *record* holds a refresh token and its access token is stale."""
        if not record.refresh_token:
            return False
        return record.token_material().is_expired(self._clock())

    def ensure(self, record: LoginRecord, force: bool = False) -> str:
        """Return a usable access token for *record*, refreshing it if needed.

        Logins without a refresh token (for example token-based logins)
        are returned untouched. Otherwise the token is refreshed when its
        expiry has passed or is unknown, or when *force* is set, and the
        updated record is written back to the store. *record* is updated
        in place.

        Raises:
            RefreshError: If the token endpoint rejects the refresh. The
                stored record is left unchanged.
        """
        if not record.refresh_token:
            return record.token
        if not force and not self.needs_refresh(record):
            return record.token

        logger.debug("Refreshing access token for login '%s'", record.name)
        endpoints = OAuthEndpoints.from_server_url(record.url)
        try:
            material = refresh_token_grant(
                endpoints.token_url,
                record.refresh_token,
                self._settings.client_id,
                insecure=record.insecure,
                clock=self._clock,
            )
        except RefreshError as exc:
            raise RefreshError(
                f"{exc}\nRun 'giteacli login oauth-refresh {record.name}' "
                f"or log in again with 'giteacli login add'."
            ) from exc

        record.apply_token(material)
        self._store.update_login(record)
        return record.token

    def refresh_now(self, name: str) -> LoginRecord:
        """Force a refresh of the login called *name* regardless of expiry.

        Raises:
            ConfigError: If the login does not exist.
            RefreshError: If the login has no refresh token or the
                refresh is rejected.
        """
        record = self._store.get_login_by_name(name)
        if record is None:
            raise ConfigError(f"Login '{name}' not found")
        if not record.refresh_token:
            raise RefreshError(
                f"Login '{record.name}' does not have a refresh token. "
                "It may have been created with a token instead of OAuth; "
                "log in again with 'giteacli login add'."
            )
        self.ensure(record, force=True)
        return record
