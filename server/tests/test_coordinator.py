"""Thread event coordinator tests

These tests verify the per-event side effects and the framing of a turn:
- stream_options first, one thread.updated last
- done/removed/replaced persist; added/updated only touch pending items
- hidden-context items are persisted but never forwarded
- turn-source exceptions become a single error event
"""

import logging

import pytest

from server.coordinator import (
    DEFAULT_ERROR_MESSAGE,
    ThreadEventCoordinator,
    apply_assistant_message_update,
)
from server.enums import ErrorCode
from server.errors import CustomStreamError, StreamError
from server.events import (
    AssistantMessageContentPartAdded,
    AssistantMessageContentPartAnnotationAdded,
    AssistantMessageContentPartDone,
    AssistantMessageContentPartTextDelta,
    ErrorEvent,
    ProgressUpdateEvent,
    StreamOptions,
    StreamOptionsEvent,
    ThreadItemAddedEvent,
    ThreadItemDoneEvent,
    ThreadItemRemovedEvent,
    ThreadItemReplacedEvent,
    ThreadItemUpdatedEvent,
    ThreadUpdatedEvent,
)
from threads import (
    Annotation,
    AssistantMessageContent,
    AssistantMessageItem,
    HiddenContextItem,
    SDKHiddenContextItem,
    URLSource,
    WidgetItem,
)
from widgets import Card, Text, WidgetStreamingTextValueDelta


def make_coordinator(store, thread, context, allow_cancel=True) -> ThreadEventCoordinator:
    return ThreadEventCoordinator(store, thread, context, StreamOptions(allow_cancel=allow_cancel))


async def run_turn(coordinator, *events):
    async def turn():
        for event in events:
            yield event

    return [event async for event in coordinator.run(turn)]


def annotation(title: str) -> Annotation:
    return Annotation(source=URLSource(title=title, url=f"https://example.com/{title}"))


class TestFraming:
    """Every turn is framed by stream_options and a trailing snapshot."""

    async def test_empty_turn(self, store, thread, context):
        events = await run_turn(make_coordinator(store, thread, context, allow_cancel=False))

        assert [type(event) for event in events] == [StreamOptionsEvent, ThreadUpdatedEvent]
        assert events[0].stream_options.allow_cancel is False

    async def test_single_trailing_snapshot(self, store, thread, context):
        item = AssistantMessageItem(id="msg_1", thread_id=thread.id)
        events = await run_turn(
            make_coordinator(store, thread, context),
            ThreadItemAddedEvent(item=item),
            ThreadItemDoneEvent(item=item),
        )

        assert [type(event) for event in events] == [
            StreamOptionsEvent,
            ThreadItemAddedEvent,
            ThreadUpdatedEvent,
            ThreadItemDoneEvent,
            ThreadUpdatedEvent,
            ThreadUpdatedEvent,
        ]

    async def test_transient_events_do_not_snapshot(self, store, thread, context):
        events = await run_turn(
            make_coordinator(store, thread, context),
            ProgressUpdateEvent(text="Searching"),
        )

        assert [type(event) for event in events] == [
            StreamOptionsEvent,
            ProgressUpdateEvent,
            ThreadUpdatedEvent,
        ]


class TestSideEffects:
    async def test_snapshot_holds_first_page(self, store, thread, context, make_user_message):
        for index in range(3):
            await store.add_thread_item(thread.id, make_user_message(f"msg_{index}", thread.id), context)
        coordinator = ThreadEventCoordinator(store, thread, context, StreamOptions(allow_cancel=True), page_size=2)

        events = await run_turn(coordinator, ThreadItemDoneEvent(item=AssistantMessageItem(id="msg_3", thread_id=thread.id)))

        snapshot = events[-1].thread.items
        assert [i.id for i in snapshot.data] == ["msg_0", "msg_1"]
        assert snapshot.has_more is True

    async def test_done_appends_item(self, store, thread, context):
        item = AssistantMessageItem(
            id="msg_1", thread_id=thread.id, content=[AssistantMessageContent(text="Hi")]
        )
        events = await run_turn(make_coordinator(store, thread, context), ThreadItemDoneEvent(item=item))

        assert await store.load_item(thread.id, "msg_1", context) == item
        assert [i.id for i in events[-1].thread.items.data] == ["msg_1"]

    async def test_removed_deletes_item(self, store, thread, context, make_user_message):
        await store.add_thread_item(thread.id, make_user_message("msg_1", thread.id), context)

        await run_turn(make_coordinator(store, thread, context), ThreadItemRemovedEvent(item_id="msg_1"))

        page = await store.load_thread_items(thread.id, None, 10, "asc", context)
        assert page.data == []

    async def test_replaced_saves_in_place(self, store, thread, context):
        original = WidgetItem(id="msg_w", thread_id=thread.id, widget=Card(children=[Text(value="old")]))
        await store.add_thread_item(thread.id, original, context)
        replacement = original.model_copy(update={"widget": Card(children=[Text(value="new")])})

        await run_turn(make_coordinator(store, thread, context), ThreadItemReplacedEvent(item=replacement))

        loaded = await store.load_item(thread.id, "msg_w", context)
        assert loaded.widget.children[0].value == "new"

    async def test_added_item_is_pending_until_done(self, store, thread, context):
        item = AssistantMessageItem(id="msg_1", thread_id=thread.id)
        coordinator = make_coordinator(store, thread, context)

        async def turn():
            yield ThreadItemAddedEvent(item=item)
            assert "msg_1" in coordinator.pending_items
            yield ThreadItemDoneEvent(item=item)

        events = [event async for event in coordinator.run(turn)]

        assert coordinator.pending_items == {}
        # The snapshot after `added` already shows the pending item
        assert [i.id for i in events[2].thread.items.data] == ["msg_1"]
        assert await store.load_item(thread.id, "msg_1", context) == item

    async def test_widget_updates_leave_pending_item_untouched(self, store, thread, context):
        item = WidgetItem(
            id="msg_w", thread_id=thread.id, widget=Card(children=[Text(id="t", value="", streaming=True)])
        )
        coordinator = make_coordinator(store, thread, context)

        events = await run_turn(
            coordinator,
            ThreadItemAddedEvent(item=item),
            ThreadItemUpdatedEvent(
                item_id="msg_w",
                update=WidgetStreamingTextValueDelta(component_id="t", delta="Hi", done=False),
            ),
        )

        assert coordinator.pending_items["msg_w"] == item
        assert isinstance(events[3], ThreadItemUpdatedEvent)


class TestAssistantMessageAccumulation:
    async def test_deltas_accumulate_in_pending_item(self, store, thread, context):
        item = AssistantMessageItem(id="msg_1", thread_id=thread.id)
        coordinator = make_coordinator(store, thread, context)

        await run_turn(
            coordinator,
            ThreadItemAddedEvent(item=item),
            ThreadItemUpdatedEvent(
                item_id="msg_1",
                update=AssistantMessageContentPartTextDelta(content_index=0, delta="Hello, "),
            ),
            ThreadItemUpdatedEvent(
                item_id="msg_1",
                update=AssistantMessageContentPartTextDelta(content_index=0, delta="world"),
            ),
        )

        pending = coordinator.pending_items["msg_1"]
        assert pending.content[0].text == "Hello, world"

    def test_pads_missing_parts(self):
        item = AssistantMessageItem(id="msg_1", thread_id="thr_1")
        updated = apply_assistant_message_update(
            item, AssistantMessageContentPartTextDelta(content_index=2, delta="third")
        )

        assert [part.text for part in updated.content] == ["", "", "third"]
        assert item.content == []

    def test_added_and_done_replace_part(self):
        item = AssistantMessageItem(
            id="msg_1", thread_id="thr_1", content=[AssistantMessageContent(text="draft")]
        )

        added = apply_assistant_message_update(
            item,
            AssistantMessageContentPartAdded(content_index=0, content=AssistantMessageContent(text="")),
        )
        assert added.content[0].text == ""

        done = apply_assistant_message_update(
            added,
            AssistantMessageContentPartDone(content_index=0, content=AssistantMessageContent(text="final")),
        )
        assert done.content[0].text == "final"

    def test_annotation_insert_and_append(self):
        item = AssistantMessageItem(
            id="msg_1",
            thread_id="thr_1",
            content=[AssistantMessageContent(text="cited", annotations=[annotation("a"), annotation("c")])],
        )

        inserted = apply_assistant_message_update(
            item,
            AssistantMessageContentPartAnnotationAdded(
                content_index=0, annotation_index=1, annotation=annotation("b")
            ),
        )
        assert [a.source.title for a in inserted.content[0].annotations] == ["a", "b", "c"]

        appended = apply_assistant_message_update(
            inserted,
            AssistantMessageContentPartAnnotationAdded(
                content_index=0, annotation_index=10, annotation=annotation("z")
            ),
        )
        assert [a.source.title for a in appended.content[0].annotations] == ["a", "b", "c", "z"]


class TestHiddenItems:
    @pytest.mark.parametrize(
        "item",
        [
            HiddenContextItem(id="msg_h", thread_id="thr_test", content={"note": "secret"}),
            SDKHiddenContextItem(id="shcx_h", thread_id="thr_test", content="secret"),
        ],
    )
    async def test_persisted_but_not_forwarded(self, store, thread, context, item):
        events = await run_turn(make_coordinator(store, thread, context), ThreadItemDoneEvent(item=item))

        assert not any(isinstance(event, ThreadItemDoneEvent) for event in events)
        assert await store.load_item(thread.id, item.id, context) == item
        for event in events:
            if isinstance(event, ThreadUpdatedEvent):
                assert event.thread.items.data == []


class TestMetadataChanges:
    async def test_title_change_is_saved_and_snapshotted(self, store, thread, context):
        coordinator = make_coordinator(store, thread, context)

        async def turn():
            thread.title = "New title"
            yield ProgressUpdateEvent(text="Renaming")

        events = [event async for event in coordinator.run(turn)]

        assert (await store.load_thread(thread.id, context)).title == "New title"
        assert [type(event) for event in events] == [
            StreamOptionsEvent,
            ProgressUpdateEvent,
            ThreadUpdatedEvent,
            ThreadUpdatedEvent,
        ]
        assert events[2].thread.title == "New title"


class TestErrors:
    async def test_unexpected_exception(self, store, thread, context, caplog):
        async def turn():
            raise RuntimeError("model exploded")
            yield

        with caplog.at_level(logging.ERROR, logger="server.coordinator"):
            events = [event async for event in make_coordinator(store, thread, context).run(turn)]

        assert [type(event) for event in events] == [StreamOptionsEvent, ErrorEvent, ThreadUpdatedEvent]
        assert events[1] == ErrorEvent(code="stream_error", message=DEFAULT_ERROR_MESSAGE, allow_retry=True)
        assert "model exploded" in caplog.text

    async def test_custom_stream_error(self, store, thread, context):
        async def turn():
            yield ProgressUpdateEvent(text="Working")
            raise CustomStreamError("Quota reached")

        events = [event async for event in make_coordinator(store, thread, context).run(turn)]

        assert events[-2] == ErrorEvent(code="custom", message="Quota reached", allow_retry=False)
        assert isinstance(events[-1], ThreadUpdatedEvent)

    async def test_custom_stream_error_retry_override(self, store, thread, context):
        async def turn():
            raise CustomStreamError("Try again", allow_retry=True)
            yield

        events = [event async for event in make_coordinator(store, thread, context).run(turn)]

        assert events[1].allow_retry is True

    @pytest.mark.parametrize("allow_retry, expected", [(None, True), (False, False)])
    async def test_stream_error(self, store, thread, context, allow_retry, expected):
        async def turn():
            raise StreamError(ErrorCode.STREAM_ERROR, allow_retry=allow_retry)
            yield

        events = [event async for event in make_coordinator(store, thread, context).run(turn)]

        assert events[1] == ErrorEvent(code="stream_error", allow_retry=expected)

    async def test_metadata_saved_on_failure(self, store, thread, context):
        async def turn():
            thread.title = "Before failure"
            raise RuntimeError("boom")
            yield

        events = [event async for event in make_coordinator(store, thread, context).run(turn)]

        assert (await store.load_thread(thread.id, context)).title == "Before failure"
        assert events[-1].thread.title == "Before failure"

    async def test_pending_items_in_failure_snapshot(self, store, thread, context):
        item = AssistantMessageItem(id="msg_1", thread_id=thread.id)

        async def turn():
            yield ThreadItemAddedEvent(item=item)
            raise RuntimeError("boom")

        events = [event async for event in make_coordinator(store, thread, context).run(turn)]

        assert isinstance(events[-2], ErrorEvent)
        assert [i.id for i in events[-1].thread.items.data] == ["msg_1"]
