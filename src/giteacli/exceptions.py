"""Exception hierarchy for giteacli.

All exceptions inherit from :class:`GiteaCliError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`giteacli.exit_codes`.
The top-level error handler in :func:`giteacli.app.main` catches
``GiteaCliError`` and exits with the appropriate code, while unexpected
exceptions produce a crash log and exit with :data:`EXIT_GENERIC_FAILURE`.

The OAuth login flow raises one :class:`AuthError` subclass per failure
mode so that the CLI layer can attach targeted guidance. None of them is
retried internally; the user recovers by re-running ``login add`` or
``login oauth-refresh``.

Subclass hierarchy::

    GiteaCliError (exit 1)
    +-- InvalidUsageError        (exit 2)
    +-- ConfigError              (exit 1)
    +-- AuthError                (exit 3)
    |   +-- BindError
    |   +-- EntropyError
    |   +-- AuthorizationDeniedError
    |   +-- TimeoutError_
    |   +-- StateMismatchError
    |   +-- ExchangeError
    |   +-- TokenValidationError
    |   +-- RefreshError
    +-- NotFoundError            (exit 4)
    +-- ServerError              (exit 5)
    +-- ConnectionError_         (exit 6)
"""

from giteacli.exit_codes import (
    EXIT_AUTH_FAILURE,
    EXIT_CONNECTION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_NOT_FOUND,
    EXIT_SERVER_ERROR,
)


class GiteaCliError(Exception):
    """Base exception for all giteacli errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`giteacli.exit_codes`. The entry point catches
    this exception type and calls ``sys.exit(exc.exit_code)``.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class InvalidUsageError(GiteaCliError):
    """Raised for invalid CLI arguments such as a malformed server URL."""

    exit_code = EXIT_INVALID_USAGE


class ConfigError(GiteaCliError):
    """Raised for configuration problems (unknown login, duplicate name, invalid JSON)."""

    exit_code = EXIT_GENERIC_FAILURE


class AuthError(GiteaCliError):
    """Raised when authentication or token handling fails."""

    exit_code = EXIT_AUTH_FAILURE


class BindError(AuthError):
    """Raised when the local callback listener cannot bind its address.

    Fatal to the login attempt. A retry should pick a different port.
    """


class EntropyError(AuthError):
    """Raised when the secure random source is unavailable."""


class AuthorizationDeniedError(AuthError):
    """Raised when the authorization server redirects back with an error.

    Args:
        message: Human-readable description.
        error_code: The OAuth2 ``error`` value (e.g. ``access_denied``).
        error_description: The optional ``error_description`` value.
    """

    def __init__(
        self,
        message: str,
        error_code: str = "",
        error_description: str = "",
    ):
        super().__init__(message)
        self.error_code = error_code
        self.error_description = error_description


class TimeoutError_(AuthError):
    """Raised when no callback arrives before the deadline.

    Named with a trailing underscore to avoid shadowing the built-in
    ``TimeoutError``.
    """


class StateMismatchError(AuthError):
    """Raised when the returned ``state`` differs from the one that was sent.

    Treated as a potential CSRF attempt; the flow is aborted.
    """


class ExchangeError(AuthError):
    """Raised when the token endpoint rejects the authorization code."""


class TokenValidationError(AuthError):
    """Raised when a freshly issued token fails the identity lookup."""


class RefreshError(AuthError):
    """Raised when the token endpoint rejects the refresh token."""


class NotFoundError(GiteaCliError):
    """Raised when the API returns HTTP 404 (resource not found)."""

    exit_code = EXIT_NOT_FOUND


class ServerError(GiteaCliError):
    """Raised when the API returns an HTTP 5xx server error."""

    exit_code = EXIT_SERVER_ERROR


class ConnectionError_(GiteaCliError):
    """Raised on network-level failures (timeout, DNS resolution, connection refused).

    Named with a trailing underscore to avoid shadowing the built-in
    ``ConnectionError``.
    """

    exit_code = EXIT_CONNECTION_ERROR
