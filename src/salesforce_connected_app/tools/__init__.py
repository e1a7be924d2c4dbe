"""MCP tools exposed by the Connected App server."""

from .connected_app import register_connected_app_tools
from .query import register_query_tools

__all__ = [
    "register_connected_app_tools",
    "register_query_tools",
]
