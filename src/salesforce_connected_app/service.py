"""Connected App provisioning workflow.

Both entry points run the same sequence:

1. Authenticate the parent org (cached session).
2. Authenticate the user's org, by password login or code exchange.
3. Create a Connected App in the user's org and return its credentials.

Usage:
    service = ConnectedAppService(get_config())
    creds = await service.provision_with_password(
        "user@example.com", "password", "admin@example.com"
    )
"""

from __future__ import annotations

import asyncio
from typing import Any

from .config import ServerConfig
from .errors import SalesforceAPIError
from .logging_config import get_logger
from .oauth.state import AuthorizationStateStore
from .oauth.storage import create_storage
from .salesforce.client import OrgSession, SalesforceClient
from .salesforce.connected_app import ConnectedAppCredentials, create_connected_app

logger = get_logger("service")


class ConnectedAppService:
    """Authenticates orgs and provisions Connected Apps in them."""

    def __init__(
        self,
        config: ServerConfig,
        client: SalesforceClient | None = None,
        state_store: AuthorizationStateStore | None = None,
    ) -> None:
        self.config = config
        self.client = client or SalesforceClient(
            login_url=config.login_url,
            api_version=config.api_version,
        )
        self._state_store = state_store
        self._parent_session: OrgSession | None = None
        self._parent_lock = asyncio.Lock()

    @property
    def state_store(self) -> AuthorizationStateStore:
        if self._state_store is None:
            self._state_store = AuthorizationStateStore(
                create_storage(self.config), ttl=self.config.state_ttl
            )
        return self._state_store

    async def get_parent_session(self, force_refresh: bool = False) -> OrgSession:
        """Return the parent org session, logging in if needed.

        Raises:
            AuthenticationError: If the parent org credentials are rejected
        """
        async with self._parent_lock:
            if self._parent_session is None or force_refresh:
                logger.info("Authenticating parent org: username=%s", self.config.parent_username)
                self._parent_session = await self.client.login(
                    self.config.parent_client_id,
                    self.config.parent_client_secret,
                    self.config.parent_username,
                    self.config.parent_password,
                    self.config.parent_security_token,
                )
            return self._parent_session

    async def _create_app(self, session: OrgSession, email: str) -> ConnectedAppCredentials:
        return await create_connected_app(
            self.client,
            session,
            email,
            self.config.callback_url,
            prefix=self.config.app_name_prefix,
            scopes=self.config.app_scopes,
        )

    async def provision_with_password(
        self,
        username: str,
        password: str,
        email: str,
        security_token: str = "",
    ) -> ConnectedAppCredentials:
        """Create a Connected App in the org of ``username``.

        The user's org is logged into through the parent org's Connected App,
        so the parent org must authenticate first.

        Raises:
            AuthenticationError: If either login fails
            ConnectedAppError: If the Connected App cannot be created
        """
        await self.get_parent_session()

        user_session = await self.client.login(
            self.config.parent_client_id,
            self.config.parent_client_secret,
            username,
            password,
            security_token,
        )
        return await self._create_app(user_session, email)

    async def begin_authorization(self, email: str | None = None) -> str:
        """Start an authorization-code flow and return the Salesforce URL."""
        pending = await self.state_store.issue(email)
        return self.client.authorize_url(
            self.config.parent_client_id,
            self.config.callback_url,
            pending.state,
            pending.code_challenge,
            self.config.oauth_scopes,
        )

    async def provision_with_code(self, code: str, state: str) -> ConnectedAppCredentials:
        """Finish an authorization-code flow and create a Connected App.

        Raises:
            OAuthStateError: If ``state`` was not issued by this server or expired
            AuthenticationError: If the parent login or code exchange fails
            ConnectedAppError: If the Connected App cannot be created
        """
        pending = await self.state_store.consume(state)
        await self.get_parent_session()

        user_session = await self.client.exchange_code(
            self.config.parent_client_id,
            self.config.parent_client_secret,
            code,
            self.config.callback_url,
            code_verifier=pending.code_verifier,
        )

        email = pending.email
        if not email:
            userinfo = await self.client.get_userinfo(user_session)
            email = userinfo.get("email", "")
            logger.debug("Resolved contact email from userinfo")

        return await self._create_app(user_session, email)

    async def _with_parent_session(self, call: Any) -> Any:
        """Run ``call(session)`` against the parent org, re-authenticating once."""
        session = await self.get_parent_session()
        try:
            return await call(session)
        except SalesforceAPIError as e:
            if not e.is_session_expired:
                raise
            logger.info("Parent org session expired, re-authenticating")
            session = await self.get_parent_session(force_refresh=True)
            return await call(session)

    async def query(self, soql: str) -> dict[str, Any]:
        """Run a SOQL query in the parent org."""
        return await self._with_parent_session(
            lambda session: self.client.query(session, soql)
        )

    async def list_objects(self) -> dict[str, Any]:
        """List the parent org's SObjects."""
        return await self._with_parent_session(self.client.list_sobjects)

    async def close(self) -> None:
        """Release HTTP resources."""
        await self.client.close()
