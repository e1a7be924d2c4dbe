"""Shared fixtures: a fake Salesforce behind httpx.MockTransport."""

from urllib.parse import parse_qs

import httpx
import msgspec
import pytest
from key_value.aio.stores.memory import MemoryStore

from salesforce_connected_app.config import ServerConfig
from salesforce_connected_app.context import set_service
from salesforce_connected_app.oauth.state import AuthorizationStateStore
from salesforce_connected_app.salesforce.client import SalesforceClient
from salesforce_connected_app.service import ConnectedAppService

PARENT_INSTANCE = "https://parent.my.salesforce.com"
USER_INSTANCE = "https://user.my.salesforce.com"
DATA_PATH = "/services/data/v57.0"


def _json(status_code: int, payload) -> httpx.Response:
    return httpx.Response(
        status_code,
        content=msgspec.json.encode(payload),
        headers={"Content-Type": "application/json"},
    )


class FakeSalesforce:
    """Minimal Salesforce: token endpoint, userinfo, REST and Tooling."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.logins: list[dict[str, str]] = []
        self.created_apps: list[dict] = []
        self.rejected_usernames: set[str] = set()
        self.expired_tokens: set[str] = set()
        self.create_response: httpx.Response | None = None
        self.userinfo = {"email": "owner@example.com", "user_id": "005xx"}
        self._token_counter = 0

    def _issue_token(self, instance_url: str) -> httpx.Response:
        self._token_counter += 1
        return _json(
            200,
            {
                "access_token": f"token-{self._token_counter}",
                "instance_url": instance_url,
                "id": f"https://login.salesforce.com/id/00Dxx/005xx{self._token_counter}",
                "token_type": "Bearer",
                "issued_at": "1700000000000",
                "signature": "sig",
            },
        )

    def _token(self, request: httpx.Request) -> httpx.Response:
        form = {k: v[0] for k, v in parse_qs(request.content.decode()).items()}
        self.logins.append(form)

        if form["grant_type"] == "password":
            if form["username"] in self.rejected_usernames:
                return _json(
                    400,
                    {"error": "invalid_grant", "error_description": "authentication failure"},
                )
            instance = PARENT_INSTANCE if form["username"] == "parent@example.com" else USER_INSTANCE
            return self._issue_token(instance)

        if form["grant_type"] == "authorization_code":
            if form["code"] == "bad-code":
                return _json(
                    400,
                    {"error": "invalid_grant", "error_description": "expired authorization code"},
                )
            return self._issue_token(USER_INSTANCE)

        return _json(400, {"error": "unsupported_grant_type"})

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path == "/services/oauth2/token":
            return self._token(request)

        token = request.headers.get("Authorization", "").removeprefix("Bearer ")
        if token in self.expired_tokens:
            return _json(
                401,
                [{"message": "Session expired or invalid", "errorCode": "INVALID_SESSION_ID"}],
            )

        if path == "/services/oauth2/userinfo":
            return _json(200, self.userinfo)
        if path == f"{DATA_PATH}/query":
            return _json(
                200,
                {
                    "totalSize": 1,
                    "done": True,
                    "records": [{"Id": "001xx", "Name": "Acme"}],
                    "query": request.url.params["q"],
                },
            )
        if path == f"{DATA_PATH}/sobjects":
            return _json(200, {"encoding": "UTF-8", "sobjects": [{"name": "Account"}]})
        if path == f"{DATA_PATH}/tooling/sobjects/ConnectedApplication/":
            self.created_apps.append(msgspec.json.decode(request.content))
            if self.create_response is not None:
                return self.create_response
            return _json(201, {"id": "0H4xx0000000001", "success": True, "errors": []})

        return _json(404, [{"message": "The requested resource does not exist", "errorCode": "NOT_FOUND"}])


@pytest.fixture
def fake_salesforce():
    return FakeSalesforce()


@pytest.fixture
def config():
    return ServerConfig(
        parent_client_id="parent-client-id",
        parent_client_secret="parent-client-secret",
        parent_username="parent@example.com",
        parent_password="parent-password",
        parent_security_token="PARENTTOKEN",
        base_url="https://provisioner.example.com",
    )


@pytest.fixture
def sf_client(fake_salesforce):
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(fake_salesforce))
    return SalesforceClient(http_client=http_client)


@pytest.fixture
def state_store():
    return AuthorizationStateStore(MemoryStore(), ttl=600)


@pytest.fixture
def service(config, sf_client, state_store):
    service = ConnectedAppService(config, client=sf_client, state_store=state_store)
    yield service
    set_service(None)
