"""Pending authorization-code flows, keyed by OAuth ``state``.

Each ``/oauth/authorize`` call persists the PKCE verifier (and the optional
contact email) under a random ``state`` value. The callback consumes the
entry exactly once: the store's delete decides which of two concurrent
callbacks wins.
"""

from __future__ import annotations

import secrets
import time
from typing import TYPE_CHECKING

import msgspec

from ..errors import OAuthStateError
from ..logging_config import get_logger
from .pkce import generate_pkce_pair

if TYPE_CHECKING:
    from key_value.aio.protocols.key_value import AsyncKeyValue

logger = get_logger("oauth.state")

STATE_COLLECTION = "oauth_state"


class PendingAuthorization(msgspec.Struct, kw_only=True):
    """An authorization request waiting for its callback."""

    state: str
    code_verifier: str
    code_challenge: str = ""
    email: str | None = None
    created_at: float = 0.0


class AuthorizationStateStore:
    """Issues and consumes single-use OAuth state entries."""

    def __init__(self, storage: "AsyncKeyValue", ttl: int = 600) -> None:
        self._storage = storage
        self.ttl = ttl

    async def issue(self, email: str | None = None) -> PendingAuthorization:
        """Create and persist a new pending authorization."""
        state = secrets.token_urlsafe(32)
        code_verifier, code_challenge = generate_pkce_pair()
        pending = PendingAuthorization(
            state=state,
            code_verifier=code_verifier,
            code_challenge=code_challenge,
            email=email or None,
            created_at=time.time(),
        )

        await self._storage.put(
            key=state,
            value={
                "code_verifier": code_verifier,
                "email": pending.email,
                "created_at": pending.created_at,
            },
            collection=STATE_COLLECTION,
            ttl=self.ttl,
        )
        logger.debug("Issued OAuth state: ttl=%d, has_email=%s", self.ttl, bool(email))
        return pending

    async def consume(self, state: str) -> PendingAuthorization:
        """Return and delete the pending authorization for ``state``.

        Raises:
            OAuthStateError: If the state is unknown, expired or already used
        """
        if not state:
            raise OAuthStateError("Invalid or expired OAuth state")

        entry = await self._storage.get(key=state, collection=STATE_COLLECTION)
        if entry is None:
            logger.warning("Unknown or expired OAuth state received")
            raise OAuthStateError("Invalid or expired OAuth state")

        # Only the caller whose delete removes the entry may redeem it.
        if not await self._storage.delete(key=state, collection=STATE_COLLECTION):
            logger.warning("OAuth state already consumed")
            raise OAuthStateError("Invalid or expired OAuth state")

        return PendingAuthorization(
            state=state,
            code_verifier=entry["code_verifier"],
            email=entry.get("email"),
            created_at=entry.get("created_at", 0.0),
        )
