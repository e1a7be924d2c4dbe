"""FastMCP server setup and lifecycle management for the Connected App server."""

from __future__ import annotations

import asyncio
import os
import signal
from contextlib import asynccontextmanager
from typing import Annotated, AsyncIterator

import msgspec
import typer
from dotenv import load_dotenv
from fastmcp import FastMCP
from starlette.middleware import Middleware
from starlette.middleware.cors import CORSMiddleware

from .config import ServerConfig, get_config, mask_secret
from .context import get_service, set_service
from .errors import ConfigurationError
from .logging_config import get_logger, setup_logging
from .routes import register_routes
from .service import ConnectedAppService
from .tools import register_connected_app_tools, register_query_tools

load_dotenv()
setup_logging()

logger = get_logger("server")


class AppContext(msgspec.Struct, kw_only=True):
    """Application context shared across MCP requests."""

    service: ConnectedAppService
    config: ServerConfig


@asynccontextmanager
async def app_lifespan(mcp: FastMCP) -> AsyncIterator[AppContext]:
    """Expose the shared service to MCP sessions.

    The lifespan runs per MCP session, and the service is shared with the
    HTTP routes, so it is closed by ``run_server_async`` instead.
    """
    service = get_service()
    logger.debug("MCP session started")
    yield AppContext(service=service, config=service.config)
    logger.debug("MCP session ended")


def _print_config(transport: str, config: ServerConfig) -> None:
    """Print server configuration at startup."""
    sections: list[tuple[str, list[tuple[str, str]]]] = [
        (
            "Server",
            [
                ("Transport", transport),
                ("Host", config.host),
                ("Port", str(config.port)),
                ("Log Level", os.getenv("LOG_LEVEL", "INFO")),
                ("CORS Origins", ", ".join(config.cors_origins)),
            ],
        ),
        (
            "Salesforce",
            [
                ("Login URL", config.login_url),
                ("API Version", config.api_version),
            ],
        ),
        (
            "Parent Org",
            [
                ("Client ID", config.parent_client_id or "(not set)"),
                ("Client Secret", mask_secret(config.parent_client_secret)),
                ("Username", config.parent_username or "(not set)"),
                ("Password", mask_secret(config.parent_password)),
                ("Security Token", mask_secret(config.parent_security_token)),
            ],
        ),
        (
            "Connected Apps",
            [
                ("Name Prefix", config.app_name_prefix),
                ("Callback URL", config.callback_url),
                ("Scopes", ", ".join(config.app_scopes)),
                ("State Storage", config.storage_type),
                ("State Encryption", "enabled" if config.storage_encryption_key else "disabled"),
            ],
        ),
    ]

    logger.info("")
    logger.info("=" * 55)
    logger.info("  Salesforce Connected App Server Configuration")
    logger.info("=" * 55)

    for section_name, items in sections:
        logger.info("")
        logger.info("  [%s]", section_name)
        for key, value in items:
            logger.info("    %-20s %s", key, value)

    logger.info("")
    logger.info("=" * 55)

    for name in config.missing_settings():
        logger.warning("  Missing required environment variable: %s", name)


def create_server(
    config: ServerConfig | None = None,
    service: ConnectedAppService | None = None,
) -> FastMCP:
    """Create and configure the FastMCP server.

    Args:
        config: Server configuration (default: loaded from environment)
        service: Provisioning service (default: built from ``config``)

    Returns:
        Configured FastMCP server instance
    """
    config = config or get_config()
    service = service or ConnectedAppService(config)
    set_service(service)

    logger.debug("Creating FastMCP server instance")
    mcp = FastMCP("Salesforce Connected App Server", lifespan=app_lifespan)

    logger.debug("Registering HTTP routes")
    register_routes(mcp)
    logger.debug("Registering Connected App tools")
    register_connected_app_tools(mcp)
    logger.debug("Registering query tools")
    register_query_tools(mcp)

    logger.debug("Server creation complete")
    return mcp


async def run_server_async(transport: str, config: ServerConfig) -> None:
    """Run the server with graceful shutdown support.

    Args:
        transport: Transport mode ('http' or 'stdio')
        config: Validated server configuration
    """
    _print_config(transport, config)
    config.validate()
    server = create_server(config)

    def handle_shutdown(sig: signal.Signals) -> None:
        logger.info("Received signal %s, initiating shutdown...", sig.name)

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, handle_shutdown, sig)
        except NotImplementedError:
            # Windows doesn't support add_signal_handler for SIGTERM
            pass

    logger.info("Starting server with transport: %s", transport)

    try:
        if transport == "http":
            await server.run_async(
                transport="http",
                host=config.host,
                port=config.port,
                middleware=[
                    Middleware(
                        CORSMiddleware,
                        allow_origins=config.cors_origins,
                        allow_methods=["*"],
                        allow_headers=["*"],
                    )
                ],
            )
        else:
            await server.run_async(transport="stdio")
    except asyncio.CancelledError:
        logger.info("Server task cancelled")
    finally:
        logger.info("Closing Salesforce HTTP client")
        await get_service().close()


app = typer.Typer(
    name="salesforce-connected-app-server",
    help="Create Salesforce Connected Apps in user orgs over HTTP or MCP.",
    add_completion=False,
)


@app.command()
def main(
    transport: Annotated[
        str,
        typer.Option(
            "--transport",
            "-t",
            help="Transport mode: http, stdio",
        ),
    ] = "http",
    host: Annotated[
        str | None,
        typer.Option("--host", help="Bind address (default: from HOST env or 0.0.0.0)"),
    ] = None,
    port: Annotated[
        int | None,
        typer.Option(
            "--port",
            "-p",
            help="Port for HTTP transport (default: from PORT env or 3000)",
        ),
    ] = None,
) -> None:
    """Run the Salesforce Connected App Server."""
    config = get_config()
    if host:
        config.host = host
    if port:
        config.port = port

    try:
        asyncio.run(run_server_async(transport, config))
    except ConfigurationError as e:
        logger.error("Server failed to start: %s", e.message)
        raise typer.Exit(code=1) from e
    except KeyboardInterrupt:
        # Fallback for platforms where signal handlers don't work
        logger.info("Server stopped by user")


if __name__ == "__main__":
    app()
