"""Connected App provisioning tools for MCP clients."""

from fastmcp import FastMCP

from ..context import get_service
from ..logging_config import get_logger

logger = get_logger("tools.connected_app")


def register_connected_app_tools(mcp: FastMCP) -> None:
    """Register Connected App tools with the MCP server."""

    @mcp.tool()
    async def salesforce_create_connected_app(
        username: str,
        password: str,
        email: str,
        security_token: str = "",
    ) -> dict[str, str]:
        """Create a Connected App in a user's Salesforce org.

        Logs in to the parent org, then to the user's org with the given
        credentials, and creates an admin-approved Connected App there.

        Args:
            username: Salesforce username of the target org's user
            password: Password of that user
            email: Contact email recorded on the Connected App
            security_token: User's security token, if the org requires one

        Returns:
            Client credentials of the new app:
            - clientId: Consumer key
            - clientSecret: Consumer secret
            - callbackUrl: OAuth callback URL
            - appName: Name of the created app
        """
        logger.info("Tool salesforce_create_connected_app called: username=%s", username)
        credentials = await get_service().provision_with_password(
            username, password, email, security_token=security_token
        )
        return credentials.to_response()

    @mcp.tool()
    async def salesforce_connected_app_authorize_url(email: str | None = None) -> str:
        """Start the OAuth authorization-code flow for a user's org.

        Open the returned URL in a browser; after the user approves access,
        Salesforce redirects to this server's /oauth/callback, which creates
        the Connected App and returns its credentials.

        Args:
            email: Contact email for the app (defaults to the user's email)

        Returns:
            Salesforce authorization URL
        """
        return await get_service().begin_authorization(email)
