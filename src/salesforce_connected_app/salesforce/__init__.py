"""Salesforce API access: authentication, REST queries and Connected Apps."""

from .client import OrgSession, SalesforceClient
from .connected_app import (
    ConnectedAppCredentials,
    ConnectedAppDetails,
    build_connected_app,
    create_connected_app,
    generate_secure_string,
)

__all__ = [
    "OrgSession",
    "SalesforceClient",
    "ConnectedAppCredentials",
    "ConnectedAppDetails",
    "build_connected_app",
    "create_connected_app",
    "generate_secure_string",
]
