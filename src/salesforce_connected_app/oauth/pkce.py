"""PKCE (Proof Key for Code Exchange) helpers, RFC 7636 S256 only.

The server acts as the OAuth client when a user connects their org through
``/oauth/authorize``; the verifier stays server-side in the state store and
only the challenge travels through the browser.
"""

from __future__ import annotations

import base64
import hashlib
import secrets


def generate_pkce_pair() -> tuple[str, str]:
    """Generate a ``(code_verifier, code_challenge)`` pair.

    The verifier is 32 random bytes, base64url-encoded (43 characters).

    Example:
        >>> verifier, challenge = generate_pkce_pair()
        >>> verify_pkce(verifier, challenge)
        True
    """
    code_verifier = secrets.token_urlsafe(32)
    return code_verifier, compute_challenge(code_verifier)


def compute_challenge(code_verifier: str) -> str:
    """Return BASE64URL(SHA256(code_verifier)) without padding."""
    digest = hashlib.sha256(code_verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).decode("ascii").rstrip("=")


def verify_pkce(code_verifier: str, code_challenge: str) -> bool:
    """Check a verifier against a challenge in constant time."""
    return secrets.compare_digest(compute_challenge(code_verifier), code_challenge)
