"""Thread package for the conversation model

This package provides:
- Thread and thread item types (the closed ThreadItem union)
- Attachments, annotations and message content parts
- Enums (StoreItemType, ToolCallStatus)

This package is shared between the store, the server and turn sources.
"""

from .enums import StoreItemType, ToolCallStatus
from .types import (
    HIDDEN_ITEM_TYPES,
    ActiveStatus,
    Annotation,
    AssistantMessageContent,
    AssistantMessageItem,
    Attachment,
    AttachmentItem,
    ClientToolCallItem,
    ClosedStatus,
    EntitySource,
    FileAttachment,
    FileSource,
    HiddenContextItem,
    ImageAttachment,
    InferenceOptions,
    LockedStatus,
    Page,
    SDKHiddenContextItem,
    Task,
    TaskItem,
    Thread,
    ThreadItem,
    ThreadMetadata,
    ThreadStatus,
    ToolChoice,
    URLSource,
    UserMessageContent,
    UserMessageItem,
    UserMessageTagContent,
    UserMessageTextContent,
    WidgetItem,
    Workflow,
    WorkflowItem,
    is_hidden,
)

__all__ = [
    # Enums
    "StoreItemType",
    "ToolCallStatus",
    # Threads
    "Page",
    "Thread",
    "ThreadMetadata",
    "ThreadStatus",
    "ActiveStatus",
    "LockedStatus",
    "ClosedStatus",
    # Items
    "ThreadItem",
    "UserMessageItem",
    "AssistantMessageItem",
    "WidgetItem",
    "ClientToolCallItem",
    "HiddenContextItem",
    "SDKHiddenContextItem",
    "WorkflowItem",
    "TaskItem",
    "AttachmentItem",
    "HIDDEN_ITEM_TYPES",
    "is_hidden",
    # Content
    "AssistantMessageContent",
    "Annotation",
    "EntitySource",
    "FileSource",
    "URLSource",
    "UserMessageContent",
    "UserMessageTextContent",
    "UserMessageTagContent",
    "InferenceOptions",
    "ToolChoice",
    "Task",
    "Workflow",
    # Attachments
    "Attachment",
    "FileAttachment",
    "ImageAttachment",
]
