"""Thread enums for the conversation model

Provides enums used for id generation and thread item lifecycle.
These are shared between the store, the server and turn sources.
"""

from enum import Enum


class StoreItemType(str, Enum):
    """Kind of object an id is generated for."""

    THREAD = "thread"
    MESSAGE = "message"
    TOOL_CALL = "tool_call"
    TASK = "task"
    WORKFLOW = "workflow"
    ATTACHMENT = "attachment"
    SDK_HIDDEN_CONTEXT = "sdk_hidden_context"


class ToolCallStatus(str, Enum):
    """Status of a client tool call item."""

    PENDING = "pending"
    COMPLETED = "completed"
