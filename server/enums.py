"""Server-specific enums

Contains enums used by the request router and the wire protocol.
"""

from enum import Enum


class ErrorCode(str, Enum):
    """Error codes carried by StreamError.

    The wire `error` event always reports these as code "stream_error";
    the code selects the default retry policy.
    """

    STREAM_ERROR = "stream.error"


class RequestType(str, Enum):
    """Inbound request kinds accepted by ThreadServer.process.

    Streaming kinds produce an SSE event stream:
    - THREADS_CREATE, THREADS_ADD_USER_MESSAGE, THREADS_ADD_CLIENT_TOOL_OUTPUT
    - THREADS_RETRY_AFTER_ITEM, THREADS_CUSTOM_ACTION

    All other kinds return a single JSON document.
    """

    THREADS_CREATE = "threads.create"
    THREADS_ADD_USER_MESSAGE = "threads.add_user_message"
    THREADS_ADD_CLIENT_TOOL_OUTPUT = "threads.add_client_tool_output"
    THREADS_RETRY_AFTER_ITEM = "threads.retry_after_item"
    THREADS_CUSTOM_ACTION = "threads.custom_action"
    THREADS_GET_BY_ID = "threads.get_by_id"
    THREADS_LIST = "threads.list"
    THREADS_UPDATE = "threads.update"
    THREADS_DELETE = "threads.delete"
    ITEMS_LIST = "items.list"
    ITEMS_FEEDBACK = "items.feedback"
    ATTACHMENTS_CREATE = "attachments.create"
    ATTACHMENTS_DELETE = "attachments.delete"


STREAMING_REQUEST_TYPES = frozenset(
    {
        RequestType.THREADS_CREATE,
        RequestType.THREADS_ADD_USER_MESSAGE,
        RequestType.THREADS_ADD_CLIENT_TOOL_OUTPUT,
        RequestType.THREADS_RETRY_AFTER_ITEM,
        RequestType.THREADS_CUSTOM_ACTION,
    }
)
