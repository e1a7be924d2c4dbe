"""OAuth support for connecting a user's org with the authorization-code flow.

The server plays the OAuth *client* here, using the parent org's Connected
App credentials:

1. ``/oauth/authorize`` issues a ``state`` and PKCE pair, stores the
   verifier and redirects the browser to Salesforce.
2. Salesforce redirects back to ``/oauth/callback`` with ``code`` and
   ``state``; the state entry is consumed once and the verifier is sent
   with the code exchange.

Components:
    - AuthorizationStateStore: single-use state entries with TTL
    - create_storage: Factory for the state storage backend
    - PKCE utilities: generate_pkce_pair, verify_pkce, compute_challenge
"""

from .pkce import compute_challenge, generate_pkce_pair, verify_pkce
from .state import AuthorizationStateStore, PendingAuthorization
from .storage import create_storage

__all__ = [
    # State
    "AuthorizationStateStore",
    "PendingAuthorization",
    # Storage
    "create_storage",
    # PKCE utilities
    "generate_pkce_pair",
    "verify_pkce",
    "compute_challenge",
]
