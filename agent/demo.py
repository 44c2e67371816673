"""Demo turn source

A model-free ThreadServer used by the bundled FastAPI app and the tests.
Commands are read from the start of the user's message:
- /widget: stream a greeting card whose text grows snapshot by snapshot
- /tool: ask the client to run the `get_location` tool, then continue
  with its output
- /fail: raise a CustomStreamError shown to the user
- anything else: echo the message back word by word

The first message of a thread also becomes its title.
"""

import asyncio
from collections.abc import AsyncIterator
from datetime import datetime
from typing import Any

from server.enums import ErrorCode
from server.errors import CustomStreamError, StreamError
from server.events import (
    AssistantMessageContentPartAdded,
    AssistantMessageContentPartDone,
    AssistantMessageContentPartTextDelta,
    ClientEffectEvent,
    ProgressUpdateEvent,
    ThreadItemAddedEvent,
    ThreadItemDoneEvent,
    ThreadItemReplacedEvent,
    ThreadItemUpdatedEvent,
    ThreadStreamEvent,
)
from server.payloads import Action
from server.thread_server import ThreadServer
from server.widget_stream import stream_widget
from threads import (
    AssistantMessageContent,
    AssistantMessageItem,
    ClientToolCallItem,
    StoreItemType,
    ThreadMetadata,
    UserMessageItem,
    UserMessageTextContent,
    WidgetItem,
)
from widgets import ActionConfig, Button, Card, Text, Title

ACKNOWLEDGE_ACTION = "demo.acknowledge"
TITLE_MAX_LENGTH = 40


def message_text(item: UserMessageItem) -> str:
    """Concatenate the text parts of a user message."""
    return "".join(part.text for part in item.content if isinstance(part, UserMessageTextContent)).strip()


def greeting_card(value: str, streaming: bool) -> Card:
    children = [
        Title(value="Hello from the demo"),
        Text(id="greeting", value=value, streaming=streaming),
    ]
    if not streaming:
        children.append(Button(label="Acknowledge", onClickAction=ActionConfig(type=ACKNOWLEDGE_ACTION)))
    return Card(children=children)


class DemoThreadServer(ThreadServer[dict]):
    """ThreadServer that answers without a model.

    Args:
        word_delay: Seconds to sleep between streamed words
    """

    def __init__(self, *args: Any, word_delay: float = 0.0, **kwargs: Any):
        super().__init__(*args, **kwargs)
        self.word_delay = word_delay

    def _generate_id(self, thread: ThreadMetadata, context: dict):
        return lambda item_type: self.store.generate_item_id(item_type, thread, context)

    async def respond(
        self,
        thread: ThreadMetadata,
        input_user_message: UserMessageItem | None,
        context: dict,
    ) -> AsyncIterator[ThreadStreamEvent]:
        if input_user_message is None:
            async for event in self._continue_after_tool(thread, context):
                yield event
            return

        text = message_text(input_user_message)
        if thread.title is None and text:
            thread.title = text[:TITLE_MAX_LENGTH]

        if text.startswith("/fail"):
            raise CustomStreamError("The demo was asked to fail.", allow_retry=True)

        if text.startswith("/widget"):
            async for event in stream_widget(
                thread,
                self._greeting_snapshots(),
                copy_text="Hello from the demo",
                generate_id=self._generate_id(thread, context),
            ):
                yield event
            return

        if text.startswith("/tool"):
            yield ThreadItemDoneEvent(
                item=ClientToolCallItem(
                    id=self.store.generate_item_id(StoreItemType.TOOL_CALL, thread, context),
                    thread_id=thread.id,
                    created_at=datetime.now(),
                    call_id=f"call_{input_user_message.id}",
                    name="get_location",
                )
            )
            return

        yield ProgressUpdateEvent(icon="sparkle", text="Echoing your message")
        async for event in self._stream_text(thread, f"You said: {text}", context):
            yield event

    async def action(
        self,
        thread: ThreadMetadata,
        action: Action,
        sender: WidgetItem | None,
        context: dict,
    ) -> AsyncIterator[ThreadStreamEvent]:
        if action.type != ACKNOWLEDGE_ACTION or sender is None:
            raise StreamError(ErrorCode.STREAM_ERROR, allow_retry=False)

        yield ThreadItemReplacedEvent(
            item=sender.model_copy(
                update={"widget": Card(children=[Text(id="greeting", value="Acknowledged")])}
            )
        )
        yield ClientEffectEvent(name="toast", data={"text": "Acknowledged"})

    # ------------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------------

    async def _greeting_snapshots(self) -> AsyncIterator[Card]:
        value = ""
        yield greeting_card(value, streaming=True)
        for word in ["Hello", "there,", "nice", "to", "meet", "you!"]:
            value = f"{value} {word}" if value else word
            if self.word_delay:
                await asyncio.sleep(self.word_delay)
            yield greeting_card(value, streaming=True)
        yield greeting_card(value, streaming=False)

    async def _continue_after_tool(self, thread: ThreadMetadata, context: dict) -> AsyncIterator[ThreadStreamEvent]:
        items = await self.store.load_thread_items(thread.id, None, self.page_size, "desc", context)
        tool_call = next((item for item in items.data if isinstance(item, ClientToolCallItem)), None)
        output = tool_call.output if tool_call is not None else None
        async for event in self._stream_text(thread, f"The tool returned: {output}", context):
            yield event

    async def _stream_text(self, thread: ThreadMetadata, text: str, context: dict) -> AsyncIterator[ThreadStreamEvent]:
        """Stream `text` as one assistant message, one word per delta."""
        item = AssistantMessageItem(
            id=self.store.generate_item_id(StoreItemType.MESSAGE, thread, context),
            thread_id=thread.id,
            created_at=datetime.now(),
        )
        yield ThreadItemAddedEvent(item=item)
        yield ThreadItemUpdatedEvent(
            item_id=item.id,
            update=AssistantMessageContentPartAdded(content_index=0, content=AssistantMessageContent()),
        )

        for index, word in enumerate(text.split(" ")):
            if self.word_delay:
                await asyncio.sleep(self.word_delay)
            yield ThreadItemUpdatedEvent(
                item_id=item.id,
                update=AssistantMessageContentPartTextDelta(
                    content_index=0, delta=word if index == 0 else f" {word}"
                ),
            )

        content = AssistantMessageContent(text=text)
        yield ThreadItemUpdatedEvent(
            item_id=item.id,
            update=AssistantMessageContentPartDone(content_index=0, content=content),
        )
        yield ThreadItemDoneEvent(item=item.model_copy(update={"content": [content]}))
