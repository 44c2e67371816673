"""Thread stream event types

These types form the wire protocol streamed to the client as SSE frames:
- thread.created / thread.updated: full thread snapshots
- thread.item.added / updated / done / removed / replaced: item lifecycle
- stream_options: always the first event of a turn
- progress_update / client_effect: transient UI hints, never persisted
- error: terminal failure of a turn

Each SSE frame is `data: <json>\\n\\n` with one event per frame.
"""

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field

from threads import Annotation, AssistantMessageContent, Thread, ThreadItem
from widgets import WidgetRootUpdated, WidgetStreamingTextValueDelta


# ============================================================================
# Assistant Message Updates
# ============================================================================


class AssistantMessageContentPartAdded(BaseModel):
    type: Literal["assistant_message.content_part.added"] = "assistant_message.content_part.added"
    content_index: int
    content: AssistantMessageContent


class AssistantMessageContentPartTextDelta(BaseModel):
    type: Literal["assistant_message.content_part.text_delta"] = "assistant_message.content_part.text_delta"
    content_index: int
    delta: str


class AssistantMessageContentPartAnnotationAdded(BaseModel):
    type: Literal["assistant_message.content_part.annotation_added"] = (
        "assistant_message.content_part.annotation_added"
    )
    content_index: int
    annotation_index: int
    annotation: Annotation


class AssistantMessageContentPartDone(BaseModel):
    type: Literal["assistant_message.content_part.done"] = "assistant_message.content_part.done"
    content_index: int
    content: AssistantMessageContent


AssistantMessageUpdate = Annotated[
    Union[
        AssistantMessageContentPartAdded,
        AssistantMessageContentPartTextDelta,
        AssistantMessageContentPartAnnotationAdded,
        AssistantMessageContentPartDone,
    ],
    Field(discriminator="type"),
]

ThreadItemUpdate = Annotated[
    Union[
        WidgetStreamingTextValueDelta,
        WidgetRootUpdated,
        AssistantMessageContentPartAdded,
        AssistantMessageContentPartTextDelta,
        AssistantMessageContentPartAnnotationAdded,
        AssistantMessageContentPartDone,
    ],
    Field(discriminator="type"),
]

ASSISTANT_MESSAGE_UPDATE_TYPES = (
    AssistantMessageContentPartAdded,
    AssistantMessageContentPartTextDelta,
    AssistantMessageContentPartAnnotationAdded,
    AssistantMessageContentPartDone,
)


# ============================================================================
# Thread Events
# ============================================================================


class ThreadCreatedEvent(BaseModel):
    type: Literal["thread.created"] = "thread.created"
    thread: Thread


class ThreadUpdatedEvent(BaseModel):
    """Snapshot of durable items overlaid with items still being streamed."""

    type: Literal["thread.updated"] = "thread.updated"
    thread: Thread


# ============================================================================
# Item Events
# ============================================================================


class ThreadItemAddedEvent(BaseModel):
    """An item started streaming. It is pending until done/removed/replaced."""

    type: Literal["thread.item.added"] = "thread.item.added"
    item: ThreadItem


class ThreadItemUpdatedEvent(BaseModel):
    type: Literal["thread.item.updated"] = "thread.item.updated"
    item_id: str
    update: ThreadItemUpdate


class ThreadItemDoneEvent(BaseModel):
    """An item is complete; the coordinator appends it to the store."""

    type: Literal["thread.item.done"] = "thread.item.done"
    item: ThreadItem


class ThreadItemRemovedEvent(BaseModel):
    type: Literal["thread.item.removed"] = "thread.item.removed"
    item_id: str


class ThreadItemReplacedEvent(BaseModel):
    """An existing item is overwritten in place."""

    type: Literal["thread.item.replaced"] = "thread.item.replaced"
    item: ThreadItem


# ============================================================================
# Stream Control Events
# ============================================================================


class StreamOptions(BaseModel):
    allow_cancel: bool


class StreamOptionsEvent(BaseModel):
    type: Literal["stream_options"] = "stream_options"
    stream_options: StreamOptions


class ProgressUpdateEvent(BaseModel):
    type: Literal["progress_update"] = "progress_update"
    icon: str | None = None
    text: str


class ClientEffectEvent(BaseModel):
    """Fire-and-forget instruction for the client, e.g. a toast."""

    type: Literal["client_effect"] = "client_effect"
    name: str
    data: dict[str, Any] = Field(default_factory=dict)


class ErrorEvent(BaseModel):
    """Terminal error of a turn.

    code="custom" carries a message meant for the user; code="stream_error"
    lets the client show its own generic message.
    """

    type: Literal["error"] = "error"
    code: Literal["stream_error", "custom"] = "stream_error"
    message: str | None = None
    allow_retry: bool = False


ThreadStreamEvent = Annotated[
    Union[
        ThreadCreatedEvent,
        ThreadUpdatedEvent,
        ThreadItemAddedEvent,
        ThreadItemUpdatedEvent,
        ThreadItemDoneEvent,
        ThreadItemRemovedEvent,
        ThreadItemReplacedEvent,
        StreamOptionsEvent,
        ProgressUpdateEvent,
        ClientEffectEvent,
        ErrorEvent,
    ],
    Field(discriminator="type"),
]


def encode_event(event: BaseModel) -> bytes:
    """Serialize one event as an SSE frame."""
    return b"data: " + event.model_dump_json(by_alias=True, exclude_none=True).encode() + b"\n\n"
