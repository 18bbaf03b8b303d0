"""Interactive OAuth2 authorization-code login with PKCE.

The package is split along the steps of one login attempt:

- :mod:`~giteacli.auth.pkce` -- code verifier, S256 challenge and ``state``.
- :mod:`~giteacli.auth.request` -- endpoint derivation and the authorization URL.
- :mod:`~giteacli.auth.callback` -- the one-shot loopback redirect listener.
- :mod:`~giteacli.auth.exchange` -- authorization-code and refresh grants.
- :mod:`~giteacli.auth.lifecycle` -- lazy refresh of stored tokens.
- :mod:`~giteacli.auth.flow` -- :func:`oauth_login`, tying the steps together.

Typical usage::

    from giteacli.auth import OAuthOptions, oauth_login
    from giteacli.config import LoginStore

    record = oauth_login(OAuthOptions(url="https://gitea.example.com"), LoginStore())
"""

from giteacli.auth.callback import CallbackKind, CallbackListener, CallbackResult, ListenerState
from giteacli.auth.exchange import exchange_code, refresh_token_grant
from giteacli.auth.flow import OAuthOptions, oauth_login, verify_state
from giteacli.auth.lifecycle import TokenLifecycleManager
from giteacli.auth.pkce import PKCEPair, challenge, generate_pkce_pair, new_state, new_verifier
from giteacli.auth.request import OAuthEndpoints, build_authorization_url, normalize_url

__all__ = [
    "CallbackKind",
    "CallbackListener",
    "CallbackResult",
    "ListenerState",
    "OAuthEndpoints",
    "OAuthOptions",
    "PKCEPair",
    "TokenLifecycleManager",
    "build_authorization_url",
    "challenge",
    "exchange_code",
    "generate_pkce_pair",
    "new_state",
    "new_verifier",
    "normalize_url",
    "oauth_login",
    "refresh_token_grant",
    "verify_state",
]
