"""Key-value store holding pending authorization-code flows.

``memory`` keeps state in the server process, so a callback must reach the
replica that issued its ``state``. ``redis`` shares it between replicas.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from ..logging_config import get_logger

if TYPE_CHECKING:
    from key_value.aio.protocols.key_value import AsyncKeyValue

    from ..config import ServerConfig

logger = get_logger("oauth.storage")

STORAGE_TYPES = ("memory", "redis")


def _open_store(storage_type: str, redis_url: str) -> "AsyncKeyValue":
    if storage_type == "redis":
        from key_value.aio.stores.redis import RedisStore

        logger.debug("Using Redis state storage: url=%s", redis_url)
        return RedisStore(url=redis_url)

    from key_value.aio.stores.memory import MemoryStore

    return MemoryStore()


def _encrypted(store: "AsyncKeyValue", key: str) -> "AsyncKeyValue":
    """Wrap ``store`` so PKCE verifiers are never persisted in clear text.

    A valid Fernet key is used as-is; any other value is treated as key
    material and derived into one.
    """
    from cryptography.fernet import Fernet
    from key_value.aio.wrappers.encryption.fernet import FernetEncryptionWrapper

    try:
        fernet = Fernet(key.encode())
    except ValueError:
        logger.debug("Deriving state encryption key from key material")
        return FernetEncryptionWrapper(store, source_material=key)
    return FernetEncryptionWrapper(store, fernet=fernet)


def create_storage(config: "ServerConfig") -> "AsyncKeyValue":
    """Create the state store described by ``config``.

    Uses ``config.storage_type`` (OAUTH_STORAGE_TYPE), ``config.redis_url``
    (REDIS_URL) and ``config.storage_encryption_key`` (STORAGE_ENCRYPTION_KEY).

    Raises:
        ValueError: If the storage type is not one of STORAGE_TYPES
    """
    if config.storage_type not in STORAGE_TYPES:
        raise ValueError(f"Unknown storage type: {config.storage_type}")

    logger.info(
        "Creating state storage: type=%s, encrypted=%s",
        config.storage_type,
        bool(config.storage_encryption_key),
    )
    store = _open_store(config.storage_type, config.redis_url)
    if config.storage_encryption_key:
        store = _encrypted(store, config.storage_encryption_key)
    return store
