"""Canonical Pydantic models shared across all giteacli modules.

This is the single source of truth for persisted data shapes. The models
fall into two groups:

**Configuration models** -- serialised as JSON in the user's config directory:
    :class:`OAuthSettings`, :class:`OutputConfig`, :class:`LoginRecord`,
    and :class:`GlobalConfig`.

**Token models** -- the in-memory token view handed between the exchange
and lifecycle layers:
    :class:`TokenMaterial`.

All models use Pydantic v2. :class:`LoginRecord` uses ``extra="allow"``
so that keys written by newer versions survive a round trip.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_CLIENT_ID = "d57cb8c4-630c-4168-8324-ec79935e18d4"
"""Public OAuth2 client id registered by default on Gitea instances."""

DEFAULT_SCOPES = [
    "admin",
    "user",
    "issue",
    "misc",
    "notification",
    "organization",
    "package",
    "repository",
]


def utcnow() -> datetime:
    """Return the current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC so that comparisons never raise."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# --- Token material ---


class TokenMaterial(BaseModel):
    """Access/refresh token pair returned by the token endpoint.

    Attributes:
        access_token: Credential used to authenticate API calls.
        refresh_token: Credential for obtaining a new access token. Empty
            when the server did not issue one.
        expiry: Absolute UTC expiry, or ``None`` when the server did not
            report a lifetime.
    """

    access_token: str
    refresh_token: str = ""
    expiry: Optional[datetime] = None

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        """Return True when the expiry is known and has passed.

        An unknown expiry is reported as expired so that callers holding a
        refresh token renew rather than trust a token of unknown age.
        """
        if self.expiry is None:
            return True
        current = as_utc(now) if now is not None else utcnow()
        return current >= as_utc(self.expiry)


# --- Configuration ---


class OAuthSettings(BaseModel):
    """Defaults for the interactive OAuth2 login flow.

    Stored in :class:`GlobalConfig` and passed explicitly into the flow
    and lifecycle components.
    """

    client_id: str = Field(
        default=DEFAULT_CLIENT_ID, description="Public OAuth2 client id"
    )
    scopes: list[str] = Field(
        default_factory=lambda: list(DEFAULT_SCOPES),
        description="Scopes requested during authorization",
    )
    timeout_seconds: float = Field(
        default=60.0, description="How long to wait for the browser callback"
    )
    redirect_host: str = Field(
        default="127.0.0.1", description="Loopback host for the callback listener"
    )
    verifier_length: int = Field(
        default=64, description="Minimum PKCE code verifier length in characters"
    )


class OutputConfig(BaseModel):
    """Default output format preferences stored in :class:`GlobalConfig`."""

    format: str = Field(
        default="auto", description="Output format: auto, json, plain, rich"
    )


class LoginRecord(BaseModel):
    """A named login to a Gitea server.

    Created by a successful OAuth login and updated in place whenever the
    access token is refreshed. Several logins may point at the same
    server under different names.

    See Also:
        :class:`~giteacli.config.LoginStore`: Persists these records.
    """

    model_config = ConfigDict(extra="allow")

    name: str
    url: str = Field(description="Normalized server base URL")
    token: str = Field(default="", description="Current access token")
    refresh_token: str = Field(default="", description="OAuth2 refresh token")
    token_expiry: Optional[datetime] = Field(
        default=None, description="Absolute access token expiry (None = unknown)"
    )
    user: str = Field(default="", description="Username the token belongs to")
    insecure: bool = Field(default=False, description="Skip TLS verification")
    version_check: bool = Field(
        default=True, description="Check the server version before API calls"
    )
    default: bool = False
    ssh_host: str = ""
    created: datetime = Field(default_factory=utcnow)

    def token_material(self) -> TokenMaterial:
        """Return the record's token fields as :class:`TokenMaterial`."""
        return TokenMaterial(
            access_token=self.token,
            refresh_token=self.refresh_token,
            expiry=self.token_expiry,
        )

    def apply_token(self, material: TokenMaterial) -> None:
        """Overwrite token fields from a refresh or exchange result.

        The refresh token and expiry are only replaced when the server
        supplied new values.
        """
        self.token = material.access_token
        if material.refresh_token:
            self.refresh_token = material.refresh_token
        if material.expiry is not None:
            self.token_expiry = material.expiry


class GlobalConfig(BaseModel):
    """User-wide configuration persisted at ``~/.config/giteacli/config.json``.

    Loaded and saved by :func:`~giteacli.config.load_global_config` and
    :func:`~giteacli.config.save_global_config`.
    """

    logins: list[LoginRecord] = Field(default_factory=list)
    oauth: OAuthSettings = Field(default_factory=OAuthSettings)
    output: OutputConfig = Field(default_factory=OutputConfig)
