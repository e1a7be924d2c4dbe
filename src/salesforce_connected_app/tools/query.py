"""Parent org query tools for MCP clients."""

from typing import Any

from fastmcp import FastMCP

from ..context import get_service
from ..logging_config import get_logger

logger = get_logger("tools.query")


def register_query_tools(mcp: FastMCP) -> None:
    """Register parent org query tools with the MCP server."""

    @mcp.tool()
    async def salesforce_query(soql: str) -> dict[str, Any]:
        """Execute a SOQL query against the parent Salesforce org.

        Args:
            soql: SOQL query string (e.g., "SELECT Id, Name FROM Account LIMIT 10")

        Returns:
            Query results including:
            - totalSize: Total number of records matching the query
            - done: Whether all records have been returned
            - records: List of matching records
        """
        logger.debug("Tool salesforce_query called")
        return await get_service().query(soql)

    @mcp.tool()
    async def salesforce_list_objects() -> dict[str, Any]:
        """List the SObjects available in the parent Salesforce org.

        Returns:
            Describe-global result with an 'sobjects' list
        """
        return await get_service().list_objects()
