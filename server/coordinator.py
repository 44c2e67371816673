"""Thread event coordinator

Consumes the event stream of one turn and keeps the store consistent with
what is sent to the client:
- thread.item.added: item becomes pending
- thread.item.updated: assistant-message updates are folded into the pending item
- thread.item.done: item is appended to the store
- thread.item.removed / replaced: item is deleted / overwritten in the store
- hidden-context items are persisted but never forwarded

Every turn starts with stream_options and ends with one thread.updated
snapshot. Turn-source exceptions become a wire error event.
"""

import logging
from collections.abc import AsyncIterable, AsyncIterator, Callable
from contextlib import aclosing, nullcontext
from typing import Any

from store import Store
from threads import (
    AssistantMessageContent,
    AssistantMessageItem,
    Page,
    Thread,
    ThreadItem,
    ThreadMetadata,
    is_hidden,
)

from .errors import CustomStreamError, StreamError
from .events import (
    ASSISTANT_MESSAGE_UPDATE_TYPES,
    AssistantMessageContentPartAdded,
    AssistantMessageContentPartAnnotationAdded,
    AssistantMessageContentPartDone,
    AssistantMessageContentPartTextDelta,
    AssistantMessageUpdate,
    ErrorEvent,
    StreamOptions,
    StreamOptionsEvent,
    ThreadItemAddedEvent,
    ThreadItemDoneEvent,
    ThreadItemRemovedEvent,
    ThreadItemReplacedEvent,
    ThreadItemUpdatedEvent,
    ThreadStreamEvent,
    ThreadUpdatedEvent,
)

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 20
DEFAULT_ERROR_MESSAGE = "An error occurred when generating a response."


# ============================================================================
# Helpers
# ============================================================================


def apply_assistant_message_update(
    item: AssistantMessageItem,
    update: AssistantMessageUpdate,
) -> AssistantMessageItem:
    """Return a copy of `item` with one content-part update applied.

    Missing parts up to `content_index` are padded with empty output_text parts.
    """
    updated = item.model_copy(deep=True)
    content = updated.content
    index = update.content_index
    while len(content) <= index:
        content.append(AssistantMessageContent())

    match update:
        case AssistantMessageContentPartAdded() | AssistantMessageContentPartDone():
            content[index] = update.content.model_copy(deep=True)
        case AssistantMessageContentPartTextDelta():
            content[index].text += update.delta
        case AssistantMessageContentPartAnnotationAdded():
            annotations = content[index].annotations
            if update.annotation_index <= len(annotations):
                annotations.insert(update.annotation_index, update.annotation)
            else:
                annotations.append(update.annotation)

    return updated


async def load_full_thread(
    store: Store,
    thread_id: str,
    context: Any,
    page_size: int = DEFAULT_PAGE_SIZE,
) -> Thread:
    """Load thread metadata plus its first page of items in ascending order.

    Snapshots carry at most page_size items, oldest first; clients fetch the
    rest with items.list.
    """
    metadata = await store.load_thread(thread_id, context)
    items = await store.load_thread_items(thread_id, None, page_size, "asc", context)
    return Thread(**dict(metadata), items=items)


def to_thread_response(thread: ThreadMetadata) -> Thread:
    """Client view of a thread: hidden items removed."""
    items = getattr(thread, "items", None) or Page[ThreadItem]()
    return Thread(
        id=thread.id,
        title=thread.title,
        created_at=thread.created_at,
        status=thread.status,
        metadata=thread.metadata,
        items=Page[ThreadItem](
            data=[item for item in items.data if not is_hidden(item)],
            has_more=items.has_more,
            after=items.after,
        ),
    )


def _closing(stream: AsyncIterable):
    if hasattr(stream, "aclose"):
        return aclosing(stream)
    return nullcontext(stream)


# ============================================================================
# Coordinator
# ============================================================================


class ThreadEventCoordinator:
    """Runs one turn and owns its pending items.

    `pending_items` maps item id to the latest value of every item that was
    added but is not yet durable. Callers read it after a cancellation to
    decide what to persist.
    """

    def __init__(
        self,
        store: Store,
        thread: ThreadMetadata,
        context: Any,
        stream_options: StreamOptions,
        page_size: int = DEFAULT_PAGE_SIZE,
    ):
        self.store = store
        self.thread = thread
        self.context = context
        self.stream_options = stream_options
        self.page_size = page_size
        self.pending_items: dict[str, ThreadItem] = {}

    async def run(
        self,
        turn_source: Callable[[], AsyncIterable[ThreadStreamEvent]],
    ) -> AsyncIterator[ThreadStreamEvent]:
        """Consume the turn source and yield the events to send to the client.

        Args:
            turn_source: Called once to obtain the turn's event stream

        Yields:
            stream_options, the forwarded turn events interleaved with
            thread.updated snapshots, and a final thread.updated
        """
        yield StreamOptionsEvent(stream_options=self.stream_options)

        # Turn sources mutate the thread in place to change its metadata
        last_thread = self.thread.model_copy(deep=True)

        try:
            async with _closing(turn_source()) as events:
                async for event in events:
                    changed = await self._apply(event)

                    if not self._should_swallow(event):
                        yield event

                    if changed or self.thread != last_thread:
                        if self.thread != last_thread:
                            last_thread = self.thread.model_copy(deep=True)
                            await self.store.save_thread(self.thread, self.context)
                        yield await self._thread_updated()

            yield await self._thread_updated()
        except Exception as error:
            if isinstance(error, CustomStreamError):
                yield ErrorEvent(code="custom", message=error.message, allow_retry=error.allow_retry)
            elif isinstance(error, StreamError):
                yield ErrorEvent(code="stream_error", allow_retry=error.allow_retry)
            else:
                logger.exception("Error while processing turn for thread %s", self.thread.id)
                yield ErrorEvent(
                    code="stream_error",
                    message=DEFAULT_ERROR_MESSAGE,
                    allow_retry=True,
                )

            if self.thread != last_thread:
                await self.store.save_thread(self.thread, self.context)
            yield await self._thread_updated()

    async def _apply(self, event: ThreadStreamEvent) -> bool:
        """Apply the persistence side effect of one event.

        Returns:
            True when durable or pending items changed
        """
        match event:
            case ThreadItemAddedEvent(item=item):
                self.pending_items[item.id] = item
                return True
            case ThreadItemDoneEvent(item=item):
                await self.store.add_thread_item(self.thread.id, item, self.context)
                self.pending_items.pop(item.id, None)
                return True
            case ThreadItemRemovedEvent(item_id=item_id):
                await self.store.delete_thread_item(self.thread.id, item_id, self.context)
                self.pending_items.pop(item_id, None)
                return True
            case ThreadItemReplacedEvent(item=item):
                await self.store.save_item(self.thread.id, item, self.context)
                self.pending_items.pop(item.id, None)
                return True
            case ThreadItemUpdatedEvent(item_id=item_id, update=update):
                pending = self.pending_items.get(item_id)
                if isinstance(pending, AssistantMessageItem) and isinstance(
                    update, ASSISTANT_MESSAGE_UPDATE_TYPES
                ):
                    self.pending_items[item_id] = apply_assistant_message_update(pending, update)
                return False
        return False

    @staticmethod
    def _should_swallow(event: ThreadStreamEvent) -> bool:
        return isinstance(event, ThreadItemDoneEvent) and is_hidden(event.item)

    async def _thread_updated(self) -> ThreadUpdatedEvent:
        """Durable thread overlaid with pending items not yet in the store."""
        thread = await load_full_thread(self.store, self.thread.id, self.context, self.page_size)
        seen = {item.id for item in thread.items.data}
        pending = [item for item in self.pending_items.values() if item.id not in seen]
        thread.items = Page[ThreadItem](
            data=[*thread.items.data, *pending],
            has_more=thread.items.has_more,
            after=thread.items.after,
        )
        return ThreadUpdatedEvent(thread=to_thread_response(thread))
