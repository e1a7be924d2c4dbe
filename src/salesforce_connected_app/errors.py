"""Exception hierarchy for the Connected App server.

Every error carries the HTTP status the route layer should answer with,
so handlers can catch ``ConnectedAppServerError`` once and map it.
"""

from __future__ import annotations


class ConnectedAppServerError(Exception):
    """Base class for all server errors."""

    status_code: int = 500
    error_type: str = "server_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ConfigurationError(ConnectedAppServerError):
    """Required configuration is missing or invalid."""

    error_type = "configuration_error"


class AuthenticationError(ConnectedAppServerError):
    """Salesforce rejected a login or an authorization code exchange."""

    error_type = "authentication_error"


class SalesforceAPIError(ConnectedAppServerError):
    """A Salesforce REST or Tooling API call failed.

    Attributes:
        http_status: Status returned by Salesforce, if a response was received
        error_code: Salesforce ``errorCode`` (e.g. ``INVALID_SESSION_ID``)
    """

    error_type = "salesforce_api_error"

    def __init__(
        self,
        message: str,
        http_status: int | None = None,
        error_code: str | None = None,
    ) -> None:
        super().__init__(message)
        self.http_status = http_status
        self.error_code = error_code

    @property
    def is_session_expired(self) -> bool:
        """True if Salesforce rejected the access token."""
        return self.http_status == 401 or self.error_code == "INVALID_SESSION_ID"


class ConnectedAppError(ConnectedAppServerError):
    """The Connected App could not be created in the target org."""

    error_type = "connected_app_error"


class InvalidRequestError(ConnectedAppServerError):
    """The caller sent a malformed or incomplete request."""

    status_code = 400
    error_type = "invalid_request"


class OAuthStateError(InvalidRequestError):
    """The OAuth ``state`` parameter is unknown, expired or already used."""

    error_type = "invalid_state"
