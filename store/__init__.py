"""Persistence package

This package provides:
- Store / AttachmentStore interfaces and default id generation
- InMemoryStore for tests and single-process demos
- SQLiteStore on aiosqlite for durable local storage
- DiskAttachmentStore for two-phase attachment uploads
"""

from .attachments import DiskAttachmentStore
from .base import (
    AttachmentCreateParams,
    AttachmentStore,
    NotFoundError,
    Order,
    Store,
    TContext,
    default_generate_id,
    unique_generate_id,
)
from .memory import InMemoryStore, paginate
from .sqlite import SQLiteStore, user_id_from_context

__all__ = [
    "AttachmentCreateParams",
    "AttachmentStore",
    "DiskAttachmentStore",
    "InMemoryStore",
    "NotFoundError",
    "Order",
    "SQLiteStore",
    "Store",
    "TContext",
    "default_generate_id",
    "paginate",
    "unique_generate_id",
    "user_id_from_context",
]
