"""Persistence interfaces for threads, items and attachments

Store and AttachmentStore are the only way the server touches durable state.
Every method receives an opaque `context` that implementations may use for
tenant or user isolation; the server passes it through unchanged.
"""

import itertools
import uuid
from abc import ABC, abstractmethod
from typing import Generic, Literal, TypeVar

from pydantic import BaseModel

from threads import Attachment, Page, StoreItemType, ThreadItem, ThreadMetadata

TContext = TypeVar("TContext")

Order = Literal["asc", "desc"]


# ============================================================================
# Id Generation
# ============================================================================


ID_PREFIXES: dict[StoreItemType, str] = {
    StoreItemType.THREAD: "thr",
    StoreItemType.MESSAGE: "msg",
    StoreItemType.TOOL_CALL: "tc",
    StoreItemType.WORKFLOW: "wf",
    StoreItemType.TASK: "tsk",
    StoreItemType.ATTACHMENT: "atc",
    StoreItemType.SDK_HIDDEN_CONTEXT: "shcx",
}

_id_counter = itertools.count(1)


def default_generate_id(item_type: StoreItemType | str) -> str:
    """Return a process-unique id such as "msg_1a" for the given kind."""
    prefix = ID_PREFIXES[StoreItemType(item_type)]
    return f"{prefix}_{next(_id_counter):x}"


def unique_generate_id(item_type: StoreItemType | str) -> str:
    """Return an id such as "msg_9f1c..." that stays unique across processes.

    Durable stores use this; the counter behind default_generate_id restarts
    with every process.
    """
    prefix = ID_PREFIXES[StoreItemType(item_type)]
    return f"{prefix}_{uuid.uuid4().hex}"


# ============================================================================
# Errors
# ============================================================================


class NotFoundError(Exception):
    """A thread, item or attachment does not exist (or is not visible)."""


# ============================================================================
# Attachment Store
# ============================================================================


class AttachmentCreateParams(BaseModel):
    name: str
    size: int = 0
    mime_type: str


class AttachmentStore(ABC, Generic[TContext]):
    """Blob storage for attachment payloads."""

    @abstractmethod
    async def delete_attachment(self, attachment_id: str, context: TContext) -> None: ...

    async def create_attachment(
        self, params: AttachmentCreateParams, context: TContext
    ) -> Attachment:
        """Create attachment metadata for a two-phase upload.

        The returned attachment carries the `upload_url` the client should
        send the file bytes to.
        """
        raise NotImplementedError(
            f"{type(self).__name__} must override create_attachment() "
            "to support two-phase file upload"
        )

    def generate_attachment_id(self, mime_type: str, context: TContext) -> str:
        return default_generate_id(StoreItemType.ATTACHMENT)


# ============================================================================
# Store
# ============================================================================


class Store(ABC, Generic[TContext]):
    """Durable storage for threads, thread items and attachment metadata.

    Load methods raise NotFoundError for unknown ids.
    """

    def generate_thread_id(self, context: TContext) -> str:
        return default_generate_id(StoreItemType.THREAD)

    def generate_item_id(
        self,
        item_type: StoreItemType | str,
        thread: ThreadMetadata,
        context: TContext,
    ) -> str:
        return default_generate_id(item_type)

    @abstractmethod
    async def load_thread(self, thread_id: str, context: TContext) -> ThreadMetadata: ...

    @abstractmethod
    async def save_thread(self, thread: ThreadMetadata, context: TContext) -> None: ...

    @abstractmethod
    async def load_thread_items(
        self,
        thread_id: str,
        after: str | None,
        limit: int,
        order: Order,
        context: TContext,
    ) -> Page[ThreadItem]: ...

    @abstractmethod
    async def load_threads(
        self,
        limit: int,
        after: str | None,
        order: Order,
        context: TContext,
    ) -> Page[ThreadMetadata]: ...

    @abstractmethod
    async def add_thread_item(self, thread_id: str, item: ThreadItem, context: TContext) -> None:
        """Append an item to the end of the thread."""

    @abstractmethod
    async def save_item(self, thread_id: str, item: ThreadItem, context: TContext) -> None:
        """Replace an existing item in place, appending it if unknown."""

    @abstractmethod
    async def load_item(self, thread_id: str, item_id: str, context: TContext) -> ThreadItem: ...

    @abstractmethod
    async def delete_thread(self, thread_id: str, context: TContext) -> None: ...

    @abstractmethod
    async def delete_thread_item(self, thread_id: str, item_id: str, context: TContext) -> None: ...

    @abstractmethod
    async def save_attachment(self, attachment: Attachment, context: TContext) -> None: ...

    @abstractmethod
    async def load_attachment(self, attachment_id: str, context: TContext) -> Attachment: ...

    @abstractmethod
    async def delete_attachment(self, attachment_id: str, context: TContext) -> None: ...
