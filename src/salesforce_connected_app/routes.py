"""HTTP routes served next to the MCP endpoint.

Routes are registered as FastMCP custom routes, so they are plain
Starlette handlers. Every handler catches ``ConnectedAppServerError`` once
and maps it to a JSON error body using the exception's status code.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import msgspec
from fastmcp import FastMCP
from starlette.requests import Request
from starlette.responses import HTMLResponse, RedirectResponse, Response

from . import __version__
from .context import get_service
from .errors import ConnectedAppServerError, InvalidRequestError
from .logging_config import get_logger

logger = get_logger("routes")

MISSING_FIELDS_MESSAGE = (
    "Missing required fields: username, password, and email are required"
)

STATUS_PAGE = """
<html>
    <head>
        <title>Server Status</title>
    </head>
    <body>
        <h1>Server is running</h1>
    </body>
</html>
"""


class AuthenticateRequest(msgspec.Struct):
    """Body of ``POST /authenticate``."""

    username: str | None = None
    password: str | None = None
    email: str | None = None
    security_token: str | None = None


class QueryRequest(msgspec.Struct):
    """Body of ``POST /query``."""

    query: str | None = None


def json_response(content: Any, status_code: int = 200) -> Response:
    """Encode ``content`` with msgspec into a JSON response."""
    return Response(
        content=msgspec.json.encode(content),
        status_code=status_code,
        media_type="application/json",
    )


def _failure(exc: ConnectedAppServerError) -> Response:
    return json_response({"success": False, "error": exc.message}, exc.status_code)


def _internal_error(exc: Exception) -> Response:
    logger.exception("Unhandled error: %s", exc)
    return json_response(
        {"success": False, "error": "Internal server error", "message": str(exc)},
        500,
    )


async def _decode_body(request: Request, body_type: type) -> Any:
    """Decode a JSON body into ``body_type``.

    Valid JSON that is not an object decodes as an empty body, so the
    handler's required-field checks report it.
    """
    raw = await request.body()
    try:
        payload = msgspec.json.decode(raw or b"{}")
    except msgspec.DecodeError as e:
        raise InvalidRequestError(f"Invalid request body: {e}") from e

    if not isinstance(payload, dict):
        payload = {}
    try:
        return msgspec.convert(payload, type=body_type)
    except msgspec.ValidationError as e:
        raise InvalidRequestError(f"Invalid request body: {e}") from e


async def authenticate(request: Request) -> Response:
    """Log in to the user's org and create a Connected App in it."""
    try:
        body = await _decode_body(request, AuthenticateRequest)
        if not body.username or not body.password or not body.email:
            raise InvalidRequestError(MISSING_FIELDS_MESSAGE)

        logger.info("POST /authenticate: username=%s", body.username)
        credentials = await get_service().provision_with_password(
            body.username,
            body.password,
            body.email,
            security_token=body.security_token or "",
        )
    except ConnectedAppServerError as e:
        logger.error("Authentication error: %s", e.message)
        return _failure(e)
    except Exception as e:
        return _internal_error(e)

    return json_response(
        {
            "success": True,
            "message": "Connected App created successfully",
            "data": credentials.to_response(),
        }
    )


async def oauth_authorize(request: Request) -> Response:
    """Redirect the browser to Salesforce to start the authorization-code flow."""
    email = request.query_params.get("email")
    try:
        url = await get_service().begin_authorization(email)
    except ConnectedAppServerError as e:
        return _failure(e)
    except Exception as e:
        return _internal_error(e)

    logger.info("GET /oauth/authorize: redirecting to Salesforce")
    return RedirectResponse(url, status_code=302)


async def oauth_callback(request: Request) -> Response:
    """Exchange the authorization code and create a Connected App."""
    params = request.query_params

    error = params.get("error")
    if error:
        description = params.get("error_description") or error
        logger.warning("OAuth callback returned error: %s", description)
        return json_response({"success": False, "error": description}, 400)

    code = params.get("code")
    if not code:
        return json_response(
            {"success": False, "error": "Authorization code is missing"}, 400
        )

    try:
        credentials = await get_service().provision_with_code(code, params.get("state", ""))
    except ConnectedAppServerError as e:
        logger.error("OAuth callback error: %s", e.message)
        return _failure(e)
    except Exception as e:
        return _internal_error(e)

    return json_response(
        {
            "success": True,
            "message": "Authorization successful",
            "data": credentials.to_response(),
        }
    )


async def health(request: Request) -> Response:
    return json_response(
        {
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "version": __version__,
        }
    )


async def status(request: Request) -> Response:
    return json_response({"status": "Server is running"})


async def index(request: Request) -> Response:
    return HTMLResponse(STATUS_PAGE)


async def query(request: Request) -> Response:
    """Run a SOQL query against the parent org."""
    try:
        body = await _decode_body(request, QueryRequest)
    except InvalidRequestError as e:
        return json_response({"error": e.message}, 400)
    if not body.query:
        return json_response({"error": "Query is required"}, 400)

    try:
        result = await get_service().query(body.query)
    except ConnectedAppServerError as e:
        return json_response({"error": e.message}, 500)
    except Exception as e:
        return _internal_error(e)
    return json_response(result)


async def objects(request: Request) -> Response:
    """List the parent org's SObjects."""
    try:
        result = await get_service().list_objects()
    except ConnectedAppServerError as e:
        return json_response({"error": e.message}, 500)
    except Exception as e:
        return _internal_error(e)
    return json_response(result)


def register_routes(mcp: FastMCP) -> None:
    """Register the HTTP routes with the FastMCP server."""
    mcp.custom_route("/", methods=["GET"])(index)
    mcp.custom_route("/status", methods=["GET"])(status)
    mcp.custom_route("/health", methods=["GET"])(health)
    mcp.custom_route("/authenticate", methods=["POST"])(authenticate)
    mcp.custom_route("/oauth/authorize", methods=["GET"])(oauth_authorize)
    mcp.custom_route("/oauth/callback", methods=["GET"])(oauth_callback)
    mcp.custom_route("/query", methods=["POST"])(query)
    mcp.custom_route("/objects", methods=["GET"])(objects)
