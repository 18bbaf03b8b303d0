"""PKCE proof material and anti-forgery state generation (:rfc:`7636`).

A login attempt draws two independent random values from the same
primitive:

- the **code verifier**, a secret kept by the CLI and revealed only to
  the token endpoint, and its S256 **code challenge**, sent with the
  authorization request;
- the **state**, round-tripped through the browser to detect forged
  callbacks.

Neither value is ever persisted.
"""

from __future__ import annotations

import base64
import hashlib
import secrets
from dataclasses import dataclass

from giteacli.exceptions import EntropyError

CHALLENGE_METHOD = "S256"

# Never draw fewer random bytes than this, whatever length is requested.
_MIN_RANDOM_BYTES = 32


@dataclass(frozen=True)
class PKCEPair:
    """A code verifier and its derived S256 challenge."""

    verifier: str
    challenge: str
    method: str = CHALLENGE_METHOD


def _b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def _random_token(min_length: int) -> str:
    """Return a base64url string of at least *min_length* characters.

    ``min_length`` random bytes encode to roughly ``4/3 * min_length``
    characters, so the result is never shorter than requested and the
    entropy is never reduced by truncation.
    """
    if min_length < 1:
        raise ValueError("min_length must be positive")
    try:
        raw = secrets.token_bytes(max(min_length, _MIN_RANDOM_BYTES))
    except (OSError, NotImplementedError) as exc:
        raise EntropyError(f"Secure random source unavailable: {exc}") from exc
    return _b64url(raw)


def new_verifier(min_length: int = 64) -> str:
    """Generate a PKCE code verifier.

    Args:
        min_length: Minimum number of characters in the verifier.

    Returns:
        A URL-safe string without padding, at least *min_length* long.

    Raises:
        EntropyError: If the operating system cannot supply random bytes.
    """
    return _random_token(min_length)


def challenge(verifier: str) -> str:
    """Derive the S256 code challenge for *verifier*.

    Always 43 characters: a SHA-256 digest, base64url-encoded without
    padding.
    """
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    return _b64url(digest)


def new_state(min_length: int = 32) -> str:
    """Generate an unguessable ``state`` value for CSRF protection.

    Uses a separate random draw from :func:`new_verifier`.
    """
    return _random_token(min_length)


def generate_pkce_pair(min_length: int = 64) -> PKCEPair:
    """Generate a fresh :class:`PKCEPair`."""
    verifier = new_verifier(min_length)
    return PKCEPair(verifier=verifier, challenge=challenge(verifier))
