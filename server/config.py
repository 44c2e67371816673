"""Server configuration

Configuration is read once from the environment by `load_config_from_env()`
and kept in the module-level SERVER_CONFIG global.

Environment variables:
- LOG_LEVEL: logging level (default WARNING)
- THREADKIT_STORE: "memory" or "sqlite" (default memory)
- THREADKIT_DB_PATH: SQLite database file (default ./threadkit.db)
- THREADKIT_ATTACHMENTS_DIR: directory for uploaded blobs (default ./attachments)
- BASE_URL: public URL used in attachment upload/preview links
"""

import os
from dataclasses import dataclass
from typing import Literal

StoreBackend = Literal["memory", "sqlite"]


@dataclass
class ServerConfig:
    """Configuration for the thread server and its stores.

    Attributes:
        log_level: Logging level name for the "threadkit" loggers
        page_size: Items per page when loading threads for snapshots
        store_backend: Which Store implementation to build
        db_path: SQLite database file (sqlite backend only)
        attachments_dir: Directory holding uploaded attachment bytes
        base_url: Public base URL of this server
        allow_cancel: Whether clients may cancel a running stream
    """

    log_level: str = "WARNING"
    page_size: int = 20
    store_backend: StoreBackend = "memory"
    db_path: str = "./threadkit.db"
    attachments_dir: str = "./attachments"
    base_url: str = "http://localhost:8000"
    allow_cancel: bool = True


def configure_server(
    log_level: str = "WARNING",
    page_size: int = 20,
    store_backend: StoreBackend = "memory",
    db_path: str = "./threadkit.db",
    attachments_dir: str = "./attachments",
    base_url: str = "http://localhost:8000",
    allow_cancel: bool = True,
    **kwargs,
) -> ServerConfig:
    """Build a ServerConfig and install it as SERVER_CONFIG.

    Args:
        log_level: Logging level name (default: WARNING)
        page_size: Items per snapshot page (default: 20)
        store_backend: "memory" or "sqlite" (default: memory)
        db_path: SQLite file path (default: ./threadkit.db)
        attachments_dir: Attachment blob directory (default: ./attachments)
        base_url: Public base URL (default: http://localhost:8000)
        allow_cancel: Allow clients to cancel streams (default: True)
        **kwargs: Additional parameters (ignored for forward compatibility)

    Returns:
        ServerConfig: The installed configuration

    Raises:
        ValueError: If store_backend is not recognised
    """
    global SERVER_CONFIG

    if store_backend not in ("memory", "sqlite"):
        raise ValueError(f"Unknown store backend: {store_backend!r}")

    SERVER_CONFIG = ServerConfig(
        log_level=log_level.upper(),
        page_size=page_size,
        store_backend=store_backend,
        db_path=db_path,
        attachments_dir=attachments_dir,
        base_url=base_url,
        allow_cancel=allow_cancel,
    )
    return SERVER_CONFIG


def load_config_from_env() -> ServerConfig:
    """Build and install the configuration from environment variables."""
    return configure_server(
        log_level=os.environ.get("LOG_LEVEL", "WARNING"),
        store_backend=os.environ.get("THREADKIT_STORE", "memory").lower(),
        db_path=os.environ.get("THREADKIT_DB_PATH", "./threadkit.db"),
        attachments_dir=os.environ.get("THREADKIT_ATTACHMENTS_DIR", "./attachments"),
        base_url=os.environ.get("BASE_URL", "http://localhost:8000"),
    )


# Global server configuration - set by load_config_from_env() at startup
SERVER_CONFIG: ServerConfig = ServerConfig()
