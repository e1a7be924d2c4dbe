"""Thin async wrapper over the Salesforce OAuth, REST and Tooling APIs.

Every call is a single request/response against Salesforce; failures are
translated into the server's exception types so the route layer can map
them to HTTP responses in one place.
"""

from __future__ import annotations

from typing import Any
from urllib.parse import urlencode

import httpx
import msgspec

from ..errors import AuthenticationError, SalesforceAPIError
from ..logging_config import get_logger

logger = get_logger("salesforce.client")


class OrgSession(msgspec.Struct, kw_only=True):
    """An authenticated session against one Salesforce org.

    Mirrors the token endpoint response.
    """

    access_token: str
    instance_url: str
    id: str = ""
    token_type: str = "Bearer"
    issued_at: str = ""
    signature: str = ""
    refresh_token: str | None = None
    scope: str | None = None

    @property
    def auth_header(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.access_token}"}


class _TokenError(msgspec.Struct):
    error: str = ""
    error_description: str = ""


def _describe_token_error(response: httpx.Response) -> str:
    try:
        payload = msgspec.json.decode(response.content, type=_TokenError)
    except msgspec.DecodeError:
        return f"HTTP {response.status_code}"
    return payload.error_description or payload.error or f"HTTP {response.status_code}"


def _raise_api_error(response: httpx.Response, action: str) -> None:
    """Raise SalesforceAPIError for a failed REST call.

    Salesforce reports REST errors as ``[{"message": ..., "errorCode": ...}]``.
    """
    message = f"HTTP {response.status_code}"
    error_code = None
    try:
        payload = msgspec.json.decode(response.content)
    except msgspec.DecodeError:
        payload = None

    if isinstance(payload, list) and payload and isinstance(payload[0], dict):
        message = payload[0].get("message", message)
        error_code = payload[0].get("errorCode")
    elif isinstance(payload, dict):
        message = payload.get("message") or payload.get("error_description", message)
        error_code = payload.get("errorCode") or payload.get("error")

    logger.warning(
        "%s failed: status=%d, error_code=%s", action, response.status_code, error_code
    )
    raise SalesforceAPIError(
        f"{action} failed: {message}",
        http_status=response.status_code,
        error_code=error_code,
    )


class SalesforceClient:
    """Async client for the Salesforce endpoints the server needs.

    The HTTP client is created lazily; pass ``http_client`` to share one or
    to substitute a transport.
    """

    def __init__(
        self,
        login_url: str = "https://login.salesforce.com",
        api_version: str = "v57.0",
        timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.login_url = login_url.rstrip("/")
        self.api_version = api_version
        self.timeout = timeout
        self._http_client = http_client
        self._owns_client = http_client is None

        self.token_endpoint = f"{self.login_url}/services/oauth2/token"
        self.authorization_endpoint = f"{self.login_url}/services/oauth2/authorize"

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create async HTTP client."""
        if self._http_client is None:
            logger.debug("Creating async HTTP client for Salesforce")
            self._http_client = httpx.AsyncClient(timeout=self.timeout)
            self._owns_client = True
        return self._http_client

    def _data_url(self, session: OrgSession, path: str) -> str:
        base = session.instance_url.rstrip("/")
        return f"{base}/services/data/{self.api_version}/{path.lstrip('/')}"

    async def _request_token(self, form: dict[str, str], failure: str) -> OrgSession:
        client = await self._get_client()
        try:
            response = await client.post(
                self.token_endpoint,
                data=form,
                headers={"Accept": "application/json"},
            )
        except httpx.HTTPError as e:
            logger.error("%s: %s", failure, e)
            raise AuthenticationError(f"{failure}: {e}") from e

        if response.status_code != 200:
            reason = _describe_token_error(response)
            logger.warning("%s: status=%d, reason=%s", failure, response.status_code, reason)
            raise AuthenticationError(f"{failure}: {reason}")

        try:
            return msgspec.json.decode(response.content, type=OrgSession)
        except msgspec.DecodeError as e:
            raise AuthenticationError(f"{failure}: unexpected token response") from e

    async def login(
        self,
        client_id: str,
        client_secret: str,
        username: str,
        password: str,
        security_token: str = "",
    ) -> OrgSession:
        """Authenticate with the OAuth username-password flow.

        Salesforce expects the security token appended to the password.

        Raises:
            AuthenticationError: If Salesforce rejects the credentials
        """
        logger.info("Logging in to Salesforce: username=%s", username)
        session = await self._request_token(
            {
                "grant_type": "password",
                "client_id": client_id,
                "client_secret": client_secret,
                "username": username,
                "password": f"{password}{security_token}",
            },
            "Failed to login to Salesforce",
        )
        logger.info("Logged in: username=%s, instance_url=%s", username, session.instance_url)
        return session

    async def exchange_code(
        self,
        client_id: str,
        client_secret: str,
        code: str,
        redirect_uri: str,
        code_verifier: str | None = None,
    ) -> OrgSession:
        """Exchange an authorization code for an access token.

        Raises:
            AuthenticationError: If Salesforce rejects the code
        """
        form = {
            "grant_type": "authorization_code",
            "client_id": client_id,
            "client_secret": client_secret,
            "code": code,
            "redirect_uri": redirect_uri,
        }
        if code_verifier:
            form["code_verifier"] = code_verifier

        logger.info("Exchanging authorization code: redirect_uri=%s", redirect_uri)
        session = await self._request_token(form, "Failed to exchange authorization code")
        logger.info("Authorization code exchanged: instance_url=%s", session.instance_url)
        return session

    def authorize_url(
        self,
        client_id: str,
        redirect_uri: str,
        state: str,
        code_challenge: str,
        scopes: list[str],
    ) -> str:
        """Build the URL that starts the authorization-code flow."""
        params = {
            "response_type": "code",
            "client_id": client_id,
            "redirect_uri": redirect_uri,
            "state": state,
            "scope": " ".join(scopes),
            "code_challenge": code_challenge,
            "code_challenge_method": "S256",
        }
        return f"{self.authorization_endpoint}?{urlencode(params)}"

    async def _call(
        self,
        method: str,
        url: str,
        session: OrgSession,
        action: str,
        headers: dict[str, str] | None = None,
        **kwargs: Any,
    ) -> Any:
        client = await self._get_client()
        try:
            response = await client.request(
                method, url, headers={**session.auth_header, **(headers or {})}, **kwargs
            )
        except httpx.HTTPError as e:
            logger.error("%s failed: %s", action, e)
            raise SalesforceAPIError(f"{action} failed: {e}") from e

        if response.status_code >= 400:
            _raise_api_error(response, action)

        if not response.content:
            return {}
        try:
            return msgspec.json.decode(response.content)
        except msgspec.DecodeError as e:
            raise SalesforceAPIError(f"{action} failed: invalid JSON response") from e

    async def get_userinfo(self, session: OrgSession) -> dict[str, Any]:
        """Fetch the OpenID userinfo of the session's user."""
        url = f"{session.instance_url.rstrip('/')}/services/oauth2/userinfo"
        return await self._call("GET", url, session, "Userinfo request")

    async def query(self, session: OrgSession, soql: str) -> dict[str, Any]:
        """Execute a SOQL query."""
        logger.debug("Executing SOQL: %s", soql)
        return await self._call(
            "GET", self._data_url(session, "query"), session, "Query", params={"q": soql}
        )

    async def list_sobjects(self, session: OrgSession) -> dict[str, Any]:
        """Describe the org's available SObjects."""
        return await self._call(
            "GET", self._data_url(session, "sobjects"), session, "Describe global"
        )

    async def create_tooling_record(
        self,
        session: OrgSession,
        sobject: str,
        fields: dict[str, Any],
    ) -> dict[str, Any]:
        """Create a Tooling API record, returning ``{"id", "success", "errors"}``."""
        logger.debug("Creating tooling record: sobject=%s", sobject)
        return await self._call(
            "POST",
            self._data_url(session, f"tooling/sobjects/{sobject}/"),
            session,
            f"Create {sobject}",
            content=msgspec.json.encode(fields),
            headers={"Content-Type": "application/json"},
        )

    async def close(self) -> None:
        """Close the async HTTP client if this instance created it."""
        if self._http_client is not None and self._owns_client:
            await self._http_client.aclose()
        self._http_client = None
