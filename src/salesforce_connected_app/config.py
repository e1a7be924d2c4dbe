"""Server configuration loaded from environment variables."""

from __future__ import annotations

import os

import msgspec

from .errors import ConfigurationError
from .logging_config import get_logger

logger = get_logger("config")

DEFAULT_LOGIN_URL = "https://login.salesforce.com"
DEFAULT_API_VERSION = "v57.0"
DEFAULT_BASE_URL = "http://localhost:8000"
DEFAULT_REDIS_URL = "redis://localhost:6379"

# Credentials of the parent org's Connected App and integration user.
REQUIRED_ENV_VARS = (
    "PARENT_ORG_CLIENT_ID",
    "PARENT_ORG_CLIENT_SECRET",
    "PARENT_ORG_USERNAME",
    "PARENT_ORG_PASSWORD",
    "PARENT_ORG_SECURITY_TOKEN",
)


class ServerConfig(msgspec.Struct, kw_only=True):
    """Server configuration."""

    # Parent org credentials
    parent_client_id: str = ""
    parent_client_secret: str = ""
    parent_username: str = ""
    parent_password: str = ""
    parent_security_token: str = ""

    # Salesforce endpoints
    login_url: str = DEFAULT_LOGIN_URL
    api_version: str = DEFAULT_API_VERSION

    # Created Connected Apps
    base_url: str = DEFAULT_BASE_URL
    callback_url: str = ""
    app_name_prefix: str = "DataLoader"
    app_scopes: list[str] = msgspec.field(
        default_factory=lambda: ["api", "refresh_token", "offline_access"]
    )

    # Authorization-code flow
    oauth_scopes: list[str] = msgspec.field(
        default_factory=lambda: ["api", "refresh_token"]
    )
    state_ttl: int = 600
    storage_type: str = "memory"
    redis_url: str = DEFAULT_REDIS_URL
    storage_encryption_key: str = ""

    # HTTP server settings
    host: str = "0.0.0.0"
    port: int = 3000
    cors_origins: list[str] = msgspec.field(default_factory=lambda: ["*"])

    def __post_init__(self) -> None:
        self.login_url = self.login_url.rstrip("/")
        self.base_url = self.base_url.rstrip("/")
        if not self.callback_url:
            self.callback_url = f"{self.base_url}/oauth/callback"

    def missing_settings(self) -> list[str]:
        """Return the required environment variables that are not set."""
        values = {
            "PARENT_ORG_CLIENT_ID": self.parent_client_id,
            "PARENT_ORG_CLIENT_SECRET": self.parent_client_secret,
            "PARENT_ORG_USERNAME": self.parent_username,
            "PARENT_ORG_PASSWORD": self.parent_password,
            "PARENT_ORG_SECURITY_TOKEN": self.parent_security_token,
        }
        return [name for name in REQUIRED_ENV_VARS if not values[name]]

    def validate(self) -> None:
        """Raise ConfigurationError if a required setting is missing."""
        missing = self.missing_settings()
        if missing:
            raise ConfigurationError(
                f"Missing required environment variable: {missing[0]}"
            )


def _split_list(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


def get_config() -> ServerConfig:
    """Load configuration from environment variables."""
    base_url = os.getenv("BASE_URL", DEFAULT_BASE_URL)
    port = int(os.getenv("PORT") or "3000")

    config = ServerConfig(
        parent_client_id=os.getenv("PARENT_ORG_CLIENT_ID", ""),
        parent_client_secret=os.getenv("PARENT_ORG_CLIENT_SECRET", ""),
        parent_username=os.getenv("PARENT_ORG_USERNAME", ""),
        parent_password=os.getenv("PARENT_ORG_PASSWORD", ""),
        parent_security_token=os.getenv("PARENT_ORG_SECURITY_TOKEN", ""),
        login_url=os.getenv("SALESFORCE_LOGIN_URL", DEFAULT_LOGIN_URL),
        api_version=os.getenv("SALESFORCE_API_VERSION", DEFAULT_API_VERSION),
        base_url=base_url,
        callback_url=os.getenv("CONNECTED_APP_CALLBACK_URL", ""),
        app_name_prefix=os.getenv("CONNECTED_APP_PREFIX", "DataLoader"),
        app_scopes=_split_list(
            os.getenv("CONNECTED_APP_SCOPES", "api,refresh_token,offline_access")
        ),
        oauth_scopes=_split_list(os.getenv("OAUTH_SCOPES", "api,refresh_token")),
        state_ttl=int(os.getenv("OAUTH_STATE_TTL") or "600"),
        storage_type=os.getenv("OAUTH_STORAGE_TYPE", "memory").lower(),
        redis_url=os.getenv("REDIS_URL", DEFAULT_REDIS_URL),
        storage_encryption_key=os.getenv("STORAGE_ENCRYPTION_KEY", ""),
        host=os.getenv("HOST", "0.0.0.0"),
        port=port,
        cors_origins=_split_list(os.getenv("CORS_ORIGINS", "*")),
    )

    logger.debug(
        "Loaded config: login_url=%s, api_version=%s, base_url=%s, port=%d",
        config.login_url,
        config.api_version,
        config.base_url,
        config.port,
    )
    return config


def mask_secret(value: str | None) -> str:
    """Mask sensitive values for display."""
    if not value:
        return "(not set)"
    if len(value) <= 8:
        return "****"
    return value[:4] + "****" + value[-4:]
