"""Salesforce Connected App provisioning server."""

__version__ = "1.0.0"
