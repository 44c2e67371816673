"""Server-side components for threadkit

This package contains the request router (ThreadServer), the thread event
coordinator, the streaming widget emitter, wire event and request payload
types, and the FastAPI application (server.app, imported separately).
"""

from .coordinator import (
    DEFAULT_ERROR_MESSAGE,
    DEFAULT_PAGE_SIZE,
    ThreadEventCoordinator,
    apply_assistant_message_update,
    load_full_thread,
    to_thread_response,
)
from .enums import ErrorCode, RequestType
from .errors import (
    BaseStreamError,
    CustomStreamError,
    InvalidRequestError,
    InvalidStateError,
    StreamError,
)
from .events import (
    AssistantMessageContentPartAdded,
    AssistantMessageContentPartAnnotationAdded,
    AssistantMessageContentPartDone,
    AssistantMessageContentPartTextDelta,
    ClientEffectEvent,
    ErrorEvent,
    ProgressUpdateEvent,
    StreamOptions,
    StreamOptionsEvent,
    ThreadCreatedEvent,
    ThreadItemAddedEvent,
    ThreadItemDoneEvent,
    ThreadItemRemovedEvent,
    ThreadItemReplacedEvent,
    ThreadItemUpdatedEvent,
    ThreadStreamEvent,
    ThreadUpdatedEvent,
    encode_event,
)
from .payloads import Action, ThreadRequest, UserMessageInput
from .thread_server import (
    CANCELLED_STREAM_CONTEXT,
    NonStreamingResult,
    StreamingResult,
    ThreadServer,
    is_streaming_request,
)
from .widget_stream import stream_widget

__all__ = [
    # Router
    "ThreadServer",
    "StreamingResult",
    "NonStreamingResult",
    "is_streaming_request",
    "CANCELLED_STREAM_CONTEXT",
    # Coordinator
    "ThreadEventCoordinator",
    "apply_assistant_message_update",
    "load_full_thread",
    "to_thread_response",
    "DEFAULT_ERROR_MESSAGE",
    "DEFAULT_PAGE_SIZE",
    "stream_widget",
    # Errors
    "ErrorCode",
    "BaseStreamError",
    "StreamError",
    "CustomStreamError",
    "InvalidRequestError",
    "InvalidStateError",
    # Requests
    "RequestType",
    "ThreadRequest",
    "UserMessageInput",
    "Action",
    # Events
    "AssistantMessageContentPartAdded",
    "AssistantMessageContentPartAnnotationAdded",
    "AssistantMessageContentPartDone",
    "AssistantMessageContentPartTextDelta",
    "ClientEffectEvent",
    "ErrorEvent",
    "ProgressUpdateEvent",
    "StreamOptions",
    "StreamOptionsEvent",
    "ThreadCreatedEvent",
    "ThreadItemAddedEvent",
    "ThreadItemDoneEvent",
    "ThreadItemRemovedEvent",
    "ThreadItemReplacedEvent",
    "ThreadItemUpdatedEvent",
    "ThreadStreamEvent",
    "ThreadUpdatedEvent",
    "encode_event",
]
