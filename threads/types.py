"""Thread and thread item types

These types are the single source of truth for conversation state, used
across the store, the event coordinator, REST payloads and turn sources.

Thread items form a closed union discriminated on `type`:
- user_message / assistant_message: the visible conversation
- widget: an interactive widget tree
- client_tool_call: a tool the client runs, pending until its output arrives
- hidden_context / sdk_hidden_context: never shown to clients
- workflow / task / attachment: auxiliary content
"""

from datetime import datetime
from typing import Annotated, Any, Generic, Literal, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field

from widgets import WidgetRoot

from .enums import ToolCallStatus

T = TypeVar("T")


class Page(BaseModel, Generic[T]):
    """Cursor-paginated slice of a collection.

    `after` is the id of the last element in `data`, used as the cursor
    for the next page.
    """

    data: list[T] = Field(default_factory=list)
    has_more: bool = False
    after: str | None = None


# ============================================================================
# Attachments
# ============================================================================


class AttachmentBase(BaseModel):
    id: str
    name: str
    mime_type: str
    upload_url: str | None = None  # Set while a two-phase upload is outstanding


class FileAttachment(AttachmentBase):
    type: Literal["file"] = "file"


class ImageAttachment(AttachmentBase):
    type: Literal["image"] = "image"
    preview_url: str | None = None


Attachment = Annotated[Union[FileAttachment, ImageAttachment], Field(discriminator="type")]


# ============================================================================
# Annotations
# ============================================================================


class SourceBase(BaseModel):
    title: str
    description: str | None = None
    timestamp: str | None = None
    group: str | None = None


class FileSource(SourceBase):
    type: Literal["file"] = "file"
    filename: str


class URLSource(SourceBase):
    type: Literal["url"] = "url"
    url: str
    attribution: str | None = None


class EntitySource(SourceBase):
    type: Literal["entity"] = "entity"
    id: str
    icon: str | None = None
    data: dict[str, Any] = Field(default_factory=dict)


Source = Annotated[Union[FileSource, URLSource, EntitySource], Field(discriminator="type")]


class Annotation(BaseModel):
    """Citation attached to a span of assistant output."""

    type: Literal["annotation"] = "annotation"
    source: Source
    index: int | None = None  # Character offset in the part's text


# ============================================================================
# Message Content
# ============================================================================


class UserMessageTextContent(BaseModel):
    type: Literal["input_text"] = "input_text"
    text: str


class UserMessageTagContent(BaseModel):
    type: Literal["input_tag"] = "input_tag"
    id: str
    text: str
    data: dict[str, Any] = Field(default_factory=dict)
    group: str | None = None
    interactive: bool = False


# No discriminator: text content may arrive without its `type`
UserMessageContent = Union[UserMessageTextContent, UserMessageTagContent]


class ToolChoice(BaseModel):
    id: str


class InferenceOptions(BaseModel):
    """Per-message model options chosen in the composer."""

    tool_choice: ToolChoice | None = None
    model: str | None = None


class AssistantMessageContent(BaseModel):
    """One output part of an assistant message."""

    type: Literal["output_text"] = "output_text"
    text: str = ""
    annotations: list[Annotation] = Field(default_factory=list)


# ============================================================================
# Thread Items
# ============================================================================


class ThreadItemBase(BaseModel):
    id: str
    thread_id: str
    created_at: datetime = Field(default_factory=datetime.now)


class UserMessageItem(ThreadItemBase):
    type: Literal["user_message"] = "user_message"
    content: list[UserMessageContent]
    attachments: list[Attachment] = Field(default_factory=list)
    quoted_text: str | None = None
    inference_options: InferenceOptions | None = None


class AssistantMessageItem(ThreadItemBase):
    type: Literal["assistant_message"] = "assistant_message"
    content: list[AssistantMessageContent] = Field(default_factory=list)


class WidgetItem(ThreadItemBase):
    type: Literal["widget"] = "widget"
    widget: WidgetRoot
    copy_text: str | None = None  # Plain-text rendering used by "copy" in the UI


class ClientToolCallItem(ThreadItemBase):
    """Tool call executed by the client.

    Created with status="pending"; completed when the client posts the
    result through `threads.add_client_tool_output`.
    """

    model_config = ConfigDict(use_enum_values=True)

    type: Literal["client_tool_call"] = "client_tool_call"
    status: ToolCallStatus = ToolCallStatus.PENDING
    call_id: str
    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)
    output: Any = None


class HiddenContextItem(ThreadItemBase):
    """Application-authored context the model sees but the user never does."""

    type: Literal["hidden_context"] = "hidden_context"
    content: Any


class SDKHiddenContextItem(ThreadItemBase):
    """Context recorded by the server itself, e.g. after a cancelled stream."""

    type: Literal["sdk_hidden_context"] = "sdk_hidden_context"
    content: str


class Task(BaseModel):
    model_config = ConfigDict(extra="allow")

    type: str = "custom"
    title: str | None = None
    content: str | None = None
    status_indicator: Literal["none", "loading", "complete"] = "none"


class Workflow(BaseModel):
    type: Literal["custom", "reasoning"] = "custom"
    tasks: list[Task] = Field(default_factory=list)
    expanded: bool = False


class WorkflowItem(ThreadItemBase):
    type: Literal["workflow"] = "workflow"
    workflow: Workflow


class TaskItem(ThreadItemBase):
    type: Literal["task"] = "task"
    task: Task


class AttachmentItem(ThreadItemBase):
    type: Literal["attachment"] = "attachment"
    attachment: Attachment


ThreadItem = Annotated[
    Union[
        UserMessageItem,
        AssistantMessageItem,
        WidgetItem,
        ClientToolCallItem,
        HiddenContextItem,
        SDKHiddenContextItem,
        WorkflowItem,
        TaskItem,
        AttachmentItem,
    ],
    Field(discriminator="type"),
]

HIDDEN_ITEM_TYPES = frozenset({"hidden_context", "sdk_hidden_context"})


def is_hidden(item: ThreadItemBase) -> bool:
    """Return True for items that must never reach the client."""
    return getattr(item, "type", None) in HIDDEN_ITEM_TYPES


# ============================================================================
# Threads
# ============================================================================


class ActiveStatus(BaseModel):
    type: Literal["active"] = "active"


class LockedStatus(BaseModel):
    type: Literal["locked"] = "locked"
    reason: str | None = None


class ClosedStatus(BaseModel):
    type: Literal["closed"] = "closed"
    reason: str | None = None


ThreadStatus = Annotated[
    Union[ActiveStatus, LockedStatus, ClosedStatus],
    Field(discriminator="type"),
]


class ThreadMetadata(BaseModel):
    """Thread without its items, as owned by the store."""

    id: str
    title: str | None = None
    created_at: datetime = Field(default_factory=datetime.now)
    status: ThreadStatus = Field(default_factory=ActiveStatus)
    metadata: dict[str, Any] = Field(default_factory=dict)


class Thread(ThreadMetadata):
    """Thread with a page of its items, as sent to clients."""

    items: Page[ThreadItem] = Field(default_factory=lambda: Page[ThreadItem]())
