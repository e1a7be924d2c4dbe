"""Connected App creation through the Salesforce Tooling API."""

from __future__ import annotations

import secrets
import time

import msgspec

from ..errors import ConnectedAppError, ConnectedAppServerError
from ..logging_config import get_logger
from .client import OrgSession, SalesforceClient

logger = get_logger("salesforce.connected_app")

CONNECTED_APP_SOBJECT = "ConnectedApplication"
DEFAULT_DESCRIPTION = "Automated Connected App for Data Loader Integration"


def generate_secure_string(length: int = 32) -> str:
    """Return ``length`` random bytes as a hex string (``2 * length`` chars)."""
    return secrets.token_hex(length)


class ConnectedAppDetails(msgspec.Struct, kw_only=True, rename="pascal"):
    """Tooling API field values for a new ConnectedApplication.

    Field names are encoded in PascalCase to match the Tooling API.
    """

    full_name: str
    name: str
    contact_email: str
    description: str
    consumer_key: str
    consumer_secret: str
    callback_url: str
    scopes: list[str]
    is_admin_approved: bool = True
    start_url: str = msgspec.field(default="", name="StartURL")

    def to_fields(self) -> dict:
        return msgspec.to_builtins(self)


class ConnectedAppCredentials(msgspec.Struct, kw_only=True):
    """Client credentials of a newly created Connected App."""

    app_name: str
    client_id: str
    client_secret: str
    callback_url: str
    id: str | None = None

    def to_response(self) -> dict[str, str]:
        """Shape returned to HTTP callers."""
        return {
            "clientId": self.client_id,
            "clientSecret": self.client_secret,
            "callbackUrl": self.callback_url,
            "appName": self.app_name,
        }


def build_connected_app(
    email: str,
    callback_url: str,
    prefix: str = "DataLoader",
    scopes: list[str] | None = None,
    now: float | None = None,
) -> ConnectedAppDetails:
    """Build the Tooling record for a new Connected App.

    The app name is ``{prefix}_{epoch milliseconds}``.
    """
    timestamp = int((time.time() if now is None else now) * 1000)
    app_name = f"{prefix}_{timestamp}"

    return ConnectedAppDetails(
        full_name=app_name,
        name=app_name,
        contact_email=email,
        description=DEFAULT_DESCRIPTION,
        consumer_key=generate_secure_string(32),
        consumer_secret=generate_secure_string(64),
        callback_url=callback_url,
        scopes=list(scopes or ["api", "refresh_token", "offline_access"]),
        start_url=callback_url,
    )


async def create_connected_app(
    client: SalesforceClient,
    session: OrgSession,
    email: str,
    callback_url: str,
    prefix: str = "DataLoader",
    scopes: list[str] | None = None,
) -> ConnectedAppCredentials:
    """Create a Connected App in the org behind ``session``.

    Raises:
        ConnectedAppError: If Salesforce rejects or fails the creation
    """
    details = build_connected_app(email, callback_url, prefix=prefix, scopes=scopes)
    logger.info(
        "Creating Connected App: name=%s, instance_url=%s",
        details.name,
        session.instance_url,
    )

    try:
        result = await client.create_tooling_record(
            session, CONNECTED_APP_SOBJECT, details.to_fields()
        )
    except ConnectedAppServerError as e:
        logger.error("Create Connected App error: %s", e)
        raise ConnectedAppError(f"Failed to create Connected App: {e.message}") from e

    if not result.get("success"):
        logger.error("Create Connected App returned errors: %s", result.get("errors"))
        raise ConnectedAppError("Failed to create Connected App")

    logger.info("Connected App created: name=%s, id=%s", details.name, result.get("id"))
    return ConnectedAppCredentials(
        app_name=details.name,
        client_id=details.consumer_key,
        client_secret=details.consumer_secret,
        callback_url=details.callback_url,
        id=result.get("id"),
    )
