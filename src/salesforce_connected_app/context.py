"""Module-level access to the application-wide ConnectedAppService.

The service is a process-wide singleton, not request-scoped data, so a
plain module variable is used instead of a ContextVar; a ContextVar set
during startup would be invisible to HTTP request handlers.

Usage:
    # In server.create_server:
    from .context import set_service
    set_service(service)

    # In routes or tools:
    from .context import get_service
    service = get_service()
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .service import ConnectedAppService

_service: "ConnectedAppService | None" = None


def set_service(service: "ConnectedAppService | None") -> None:
    """Publish the service for routes and tools (``None`` to reset)."""
    global _service
    _service = service


def get_service() -> "ConnectedAppService":
    """Get the service.

    Raises:
        RuntimeError: If the server has not been created yet
    """
    if _service is None:
        raise RuntimeError("Connected App service not initialized")
    return _service
