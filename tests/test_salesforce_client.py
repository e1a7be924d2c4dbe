"""Tests for the Salesforce API wrapper."""

from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from salesforce_connected_app.errors import AuthenticationError, SalesforceAPIError
from salesforce_connected_app.salesforce.client import OrgSession, SalesforceClient

PARENT_INSTANCE = "https://parent.my.salesforce.com"
USER_INSTANCE = "https://user.my.salesforce.com"


class TestLogin:
    """Tests for the username-password flow."""

    @pytest.mark.asyncio
    async def test_login_appends_security_token(self, sf_client, fake_salesforce):
        """Test the password grant form, with the security token appended."""
        session = await sf_client.login(
            "client_id", "client_secret", "user@example.com", "secret", "TOKEN"
        )

        assert isinstance(session, OrgSession)
        assert session.instance_url == USER_INSTANCE
        assert session.access_token == "token-1"

        form = fake_salesforce.logins[0]
        assert form["grant_type"] == "password"
        assert form["client_id"] == "client_id"
        assert form["client_secret"] == "client_secret"
        assert form["password"] == "secretTOKEN"

    @pytest.mark.asyncio
    async def test_login_targets_token_endpoint(self, sf_client, fake_salesforce):
        """Test that login posts to the token endpoint."""
        await sf_client.login("id", "secret", "parent@example.com", "pw")

        request = fake_salesforce.requests[0]
        assert request.method == "POST"
        assert str(request.url) == "https://login.salesforce.com/services/oauth2/token"

    @pytest.mark.asyncio
    async def test_login_rejected(self, sf_client, fake_salesforce):
        """Test that a rejected login raises AuthenticationError."""
        fake_salesforce.rejected_usernames.add("user@example.com")

        with pytest.raises(
            AuthenticationError,
            match="Failed to login to Salesforce: authentication failure",
        ):
            await sf_client.login("id", "secret", "user@example.com", "wrong")

    @pytest.mark.asyncio
    async def test_login_transport_error(self):
        """Test that a connection failure raises AuthenticationError."""
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = SalesforceClient(
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler))
        )

        with pytest.raises(AuthenticationError, match="Failed to login to Salesforce"):
            await client.login("id", "secret", "user@example.com", "pw")

    @pytest.mark.asyncio
    async def test_login_non_json_error(self):
        """Test that a non-JSON error body reports the HTTP status."""
        client = SalesforceClient(
            http_client=httpx.AsyncClient(
                transport=httpx.MockTransport(lambda r: httpx.Response(503, text="down"))
            )
        )

        with pytest.raises(AuthenticationError, match="HTTP 503"):
            await client.login("id", "secret", "user@example.com", "pw")


class TestAuthorizationCode:
    """Tests for the authorization-code flow."""

    @pytest.mark.asyncio
    async def test_exchange_code_sends_verifier(self, sf_client, fake_salesforce):
        """Test the authorization-code grant form."""
        session = await sf_client.exchange_code(
            "id", "secret", "the-code", "https://app/cb", code_verifier="verifier"
        )

        assert session.instance_url == USER_INSTANCE
        form = fake_salesforce.logins[0]
        assert form["grant_type"] == "authorization_code"
        assert form["code"] == "the-code"
        assert form["redirect_uri"] == "https://app/cb"
        assert form["code_verifier"] == "verifier"

    @pytest.mark.asyncio
    async def test_exchange_code_without_verifier(self, sf_client, fake_salesforce):
        """Test that code_verifier is omitted when not given."""
        await sf_client.exchange_code("id", "secret", "the-code", "https://app/cb")

        assert "code_verifier" not in fake_salesforce.logins[0]

    @pytest.mark.asyncio
    async def test_exchange_code_rejected(self, sf_client):
        """Test that a rejected code raises AuthenticationError."""
        with pytest.raises(
            AuthenticationError,
            match="Failed to exchange authorization code: expired authorization code",
        ):
            await sf_client.exchange_code("id", "secret", "bad-code", "https://app/cb")

    def test_authorize_url(self):
        """Test authorize URL construction."""
        client = SalesforceClient(login_url="https://test.salesforce.com/")

        url = client.authorize_url(
            "client_id", "https://app/cb", "state-1", "challenge-1", ["api", "refresh_token"]
        )

        parsed = urlparse(url)
        params = {k: v[0] for k, v in parse_qs(parsed.query).items()}
        assert f"{parsed.scheme}://{parsed.netloc}{parsed.path}" == (
            "https://test.salesforce.com/services/oauth2/authorize"
        )
        assert params == {
            "response_type": "code",
            "client_id": "client_id",
            "redirect_uri": "https://app/cb",
            "state": "state-1",
            "scope": "api refresh_token",
            "code_challenge": "challenge-1",
            "code_challenge_method": "S256",
        }


class TestRestCalls:
    """Tests for REST and Tooling calls."""

    @pytest.fixture
    def session(self):
        return OrgSession(access_token="abc", instance_url=PARENT_INSTANCE)

    @pytest.mark.asyncio
    async def test_query(self, sf_client, fake_salesforce, session):
        """Test SOQL query against the session's instance."""
        result = await sf_client.query(session, "SELECT Id FROM Account")

        assert result["totalSize"] == 1
        assert result["query"] == "SELECT Id FROM Account"
        request = fake_salesforce.requests[0]
        assert request.url.host == "parent.my.salesforce.com"
        assert request.headers["Authorization"] == "Bearer abc"

    @pytest.mark.asyncio
    async def test_list_sobjects(self, sf_client, session):
        """Test the describe-global call."""
        result = await sf_client.list_sobjects(session)

        assert result["sobjects"] == [{"name": "Account"}]

    @pytest.mark.asyncio
    async def test_userinfo(self, sf_client, session):
        """Test the userinfo call."""
        result = await sf_client.get_userinfo(session)

        assert result["email"] == "owner@example.com"

    @pytest.mark.asyncio
    async def test_create_tooling_record(self, sf_client, fake_salesforce, session):
        """Test Tooling API record creation."""
        result = await sf_client.create_tooling_record(
            session, "ConnectedApplication", {"Name": "App"}
        )

        assert result["success"] is True
        assert fake_salesforce.created_apps == [{"Name": "App"}]
        request = fake_salesforce.requests[0]
        assert request.headers["Content-Type"] == "application/json"

    @pytest.mark.asyncio
    async def test_expired_session(self, sf_client, fake_salesforce, session):
        """Test that a 401 is reported as an expired session."""
        fake_salesforce.expired_tokens.add("abc")

        with pytest.raises(SalesforceAPIError) as exc_info:
            await sf_client.query(session, "SELECT Id FROM Account")

        assert exc_info.value.http_status == 401
        assert exc_info.value.error_code == "INVALID_SESSION_ID"
        assert exc_info.value.is_session_expired
        assert "Session expired or invalid" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_unknown_resource(self, sf_client, session):
        """Test that other REST errors keep their status and code."""
        sf_client.api_version = "v1.0"

        with pytest.raises(SalesforceAPIError) as exc_info:
            await sf_client.list_sobjects(session)

        assert exc_info.value.http_status == 404
        assert exc_info.value.error_code == "NOT_FOUND"
        assert not exc_info.value.is_session_expired


class TestClose:
    """Tests for client cleanup."""

    @pytest.mark.asyncio
    async def test_close_keeps_shared_client_open(self, fake_salesforce):
        """Test that a caller-supplied HTTP client is left open."""
        http_client = httpx.AsyncClient(transport=httpx.MockTransport(fake_salesforce))
        client = SalesforceClient(http_client=http_client)

        await client.close()

        assert not http_client.is_closed

    @pytest.mark.asyncio
    async def test_close_owned_client(self):
        """Test that a lazily created HTTP client is closed."""
        client = SalesforceClient()
        http_client = await client._get_client()

        await client.close()

        assert http_client.is_closed
