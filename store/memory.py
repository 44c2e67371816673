"""In-memory Store implementation

Keeps threads, items and attachments in process dictionaries. Values are
deep-copied on the way in and out so callers never share mutable state with
the store, matching the behavior of a real database.
"""

from typing import Any, TypeVar

from threads import Attachment, Page, ThreadItem, ThreadMetadata

from .base import NotFoundError, Order, Store

T = TypeVar("T")


def paginate(
    values: list[T],
    after: str | None,
    limit: int,
    order: Order,
    key: Any = lambda value: value.id,
) -> Page[T]:
    """Slice an ascending list into a cursor page.

    Args:
        values: Values in ascending order
        after: Id of the last value of the previous page, or None
        limit: Maximum number of values to return
        order: "asc" or "desc"
        key: Returns the id used as cursor for a value

    Returns:
        Page whose `after` is the id of its last value
    """
    ordered = list(reversed(values)) if order == "desc" else list(values)

    start = 0
    if after is not None:
        for index, value in enumerate(ordered):
            if key(value) == after:
                start = index + 1
                break

    data = ordered[start:start + limit]
    return Page(
        data=data,
        has_more=start + limit < len(ordered),
        after=key(data[-1]) if data else None,
    )


class InMemoryStore(Store[Any]):
    """Store backed by dictionaries. Ignores the request context."""

    def __init__(self) -> None:
        self.threads: dict[str, ThreadMetadata] = {}
        self.items: dict[str, list[ThreadItem]] = {}
        self.attachments: dict[str, Attachment] = {}

    def _thread_items(self, thread_id: str) -> list[ThreadItem]:
        if thread_id not in self.threads:
            raise NotFoundError(f"Thread {thread_id} not found")
        return self.items.setdefault(thread_id, [])

    async def load_thread(self, thread_id: str, context: Any) -> ThreadMetadata:
        thread = self.threads.get(thread_id)
        if thread is None:
            raise NotFoundError(f"Thread {thread_id} not found")
        return thread.model_copy(deep=True)

    async def save_thread(self, thread: ThreadMetadata, context: Any) -> None:
        # Store bare metadata even when handed a full Thread
        self.threads[thread.id] = ThreadMetadata.model_validate(
            thread.model_dump(exclude={"items"})
        )

    async def load_thread_items(
        self,
        thread_id: str,
        after: str | None,
        limit: int,
        order: Order,
        context: Any,
    ) -> Page[ThreadItem]:
        page = paginate(self._thread_items(thread_id), after, limit, order)
        return Page[ThreadItem](
            data=[item.model_copy(deep=True) for item in page.data],
            has_more=page.has_more,
            after=page.after,
        )

    async def load_threads(
        self,
        limit: int,
        after: str | None,
        order: Order,
        context: Any,
    ) -> Page[ThreadMetadata]:
        threads = sorted(self.threads.values(), key=lambda thread: thread.created_at)
        page = paginate(threads, after, limit, order)
        return Page[ThreadMetadata](
            data=[thread.model_copy(deep=True) for thread in page.data],
            has_more=page.has_more,
            after=page.after,
        )

    async def add_thread_item(self, thread_id: str, item: ThreadItem, context: Any) -> None:
        self._thread_items(thread_id).append(item.model_copy(deep=True))

    async def save_item(self, thread_id: str, item: ThreadItem, context: Any) -> None:
        items = self._thread_items(thread_id)
        for index, existing in enumerate(items):
            if existing.id == item.id:
                items[index] = item.model_copy(deep=True)
                return
        items.append(item.model_copy(deep=True))

    async def load_item(self, thread_id: str, item_id: str, context: Any) -> ThreadItem:
        for item in self._thread_items(thread_id):
            if item.id == item_id:
                return item.model_copy(deep=True)
        raise NotFoundError(f"Item {item_id} not found in thread {thread_id}")

    async def delete_thread(self, thread_id: str, context: Any) -> None:
        if thread_id not in self.threads:
            raise NotFoundError(f"Thread {thread_id} not found")
        del self.threads[thread_id]
        self.items.pop(thread_id, None)

    async def delete_thread_item(self, thread_id: str, item_id: str, context: Any) -> None:
        items = self._thread_items(thread_id)
        items[:] = [item for item in items if item.id != item_id]

    async def save_attachment(self, attachment: Attachment, context: Any) -> None:
        self.attachments[attachment.id] = attachment.model_copy(deep=True)

    async def load_attachment(self, attachment_id: str, context: Any) -> Attachment:
        attachment = self.attachments.get(attachment_id)
        if attachment is None:
            raise NotFoundError(f"Attachment {attachment_id} not found")
        return attachment.model_copy(deep=True)

    async def delete_attachment(self, attachment_id: str, context: Any) -> None:
        self.attachments.pop(attachment_id, None)
