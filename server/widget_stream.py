"""Streaming widget emitter

Turns a widget, or an async iterator of successive widget snapshots, into
the item events for one WidgetItem:
- A single widget yields one thread.item.done
- An iterator yields thread.item.added, one thread.item.updated per diff
  delta, then thread.item.done carrying the final snapshot
"""

from collections.abc import AsyncIterable, AsyncIterator, Callable
from datetime import datetime

from store import default_generate_id
from threads import StoreItemType, ThreadMetadata, WidgetItem
from widgets import WidgetRoot, diff_widget

from .events import ThreadItemAddedEvent, ThreadItemDoneEvent, ThreadItemUpdatedEvent


async def stream_widget(
    thread: ThreadMetadata,
    widget: WidgetRoot | AsyncIterable[WidgetRoot],
    copy_text: str | None = None,
    generate_id: Callable[[StoreItemType], str] = default_generate_id,
) -> AsyncIterator[ThreadItemAddedEvent | ThreadItemUpdatedEvent | ThreadItemDoneEvent]:
    """Stream one widget item.

    Args:
        thread: Thread the item belongs to
        widget: A widget root, or an async iterable of successive snapshots
        copy_text: Plain-text rendering of the widget
        generate_id: Id factory, called once with StoreItemType.MESSAGE

    Yields:
        Item events for a single WidgetItem sharing one id

    Raises:
        StructuralError / NonCumulativeUpdateError: Snapshots break the diff contract
    """
    item_id = generate_id(StoreItemType.MESSAGE)

    if not isinstance(widget, AsyncIterable):
        yield ThreadItemDoneEvent(
            item=WidgetItem(
                id=item_id,
                thread_id=thread.id,
                created_at=datetime.now(),
                widget=widget,
                copy_text=copy_text,
            )
        )
        return

    snapshots = aiter(widget)
    try:
        last_state = await anext(snapshots)
    except StopAsyncIteration:
        return

    item = WidgetItem(
        id=item_id,
        thread_id=thread.id,
        created_at=datetime.now(),
        widget=last_state,
        copy_text=copy_text,
    )
    yield ThreadItemAddedEvent(item=item)

    async for snapshot in snapshots:
        for update in diff_widget(last_state, snapshot):
            yield ThreadItemUpdatedEvent(item_id=item_id, update=update)
        last_state = snapshot

    yield ThreadItemDoneEvent(item=item.model_copy(update={"widget": last_state}))
