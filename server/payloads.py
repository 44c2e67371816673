"""Request payload types

Every request to POST /api/chatkit is a JSON object `{"type": ..., "params": ...}`
validated against the ThreadRequest union. Streaming kinds start a turn;
all other kinds perform one store operation and return JSON.
"""

from typing import Annotated, Any, Literal, Union

from pydantic import AliasChoices, BaseModel, Field, TypeAdapter

from store import Order
from threads import InferenceOptions, UserMessageContent


class UserMessageInput(BaseModel):
    """User message as typed in the composer."""

    content: list[UserMessageContent]
    attachments: list[str] = Field(default_factory=list)  # Attachment ids
    quoted_text: str | None = None
    inference_options: InferenceOptions | None = None


class Action(BaseModel):
    """Widget action sent back to the server."""

    type: str
    payload: Any = None


class BaseRequest(BaseModel):
    metadata: dict[str, Any] = Field(default_factory=dict)


# ============================================================================
# Streaming Requests
# ============================================================================


class ThreadCreateParams(BaseModel):
    input: UserMessageInput


class ThreadsCreateReq(BaseRequest):
    type: Literal["threads.create"] = "threads.create"
    params: ThreadCreateParams


class ThreadAddUserMessageParams(BaseModel):
    thread_id: str
    input: UserMessageInput


class ThreadsAddUserMessageReq(BaseRequest):
    type: Literal["threads.add_user_message"] = "threads.add_user_message"
    params: ThreadAddUserMessageParams


class ThreadAddClientToolOutputParams(BaseModel):
    thread_id: str
    result: Any = None


class ThreadsAddClientToolOutputReq(BaseRequest):
    type: Literal["threads.add_client_tool_output"] = "threads.add_client_tool_output"
    params: ThreadAddClientToolOutputParams


class ThreadRetryAfterItemParams(BaseModel):
    thread_id: str
    item_id: str


class ThreadsRetryAfterItemReq(BaseRequest):
    type: Literal["threads.retry_after_item"] = "threads.retry_after_item"
    params: ThreadRetryAfterItemParams


class ThreadCustomActionParams(BaseModel):
    thread_id: str
    item_id: str | None = None
    action: Action


class ThreadsCustomActionReq(BaseRequest):
    type: Literal["threads.custom_action"] = "threads.custom_action"
    params: ThreadCustomActionParams


# ============================================================================
# Non-streaming Requests
# ============================================================================


class ThreadGetByIdParams(BaseModel):
    thread_id: str


class ThreadsGetByIdReq(BaseRequest):
    type: Literal["threads.get_by_id"] = "threads.get_by_id"
    params: ThreadGetByIdParams


class ThreadListParams(BaseModel):
    limit: int | None = None
    after: str | None = None
    order: Order = "desc"


class ThreadsListReq(BaseRequest):
    type: Literal["threads.list"] = "threads.list"
    params: ThreadListParams = Field(default_factory=ThreadListParams)


class ThreadUpdateParams(BaseModel):
    thread_id: str
    title: str


class ThreadsUpdateReq(BaseRequest):
    type: Literal["threads.update"] = "threads.update"
    params: ThreadUpdateParams


class ThreadDeleteParams(BaseModel):
    thread_id: str


class ThreadsDeleteReq(BaseRequest):
    type: Literal["threads.delete"] = "threads.delete"
    params: ThreadDeleteParams


class ItemsListParams(BaseModel):
    thread_id: str
    limit: int | None = None
    after: str | None = None
    order: Order = "asc"


class ItemsListReq(BaseRequest):
    type: Literal["items.list"] = "items.list"
    params: ItemsListParams


class ItemFeedbackParams(BaseModel):
    thread_id: str
    item_ids: list[str]
    kind: Literal["positive", "negative"]


class ItemsFeedbackReq(BaseRequest):
    type: Literal["items.feedback"] = "items.feedback"
    params: ItemFeedbackParams


class AttachmentCreateRequestParams(BaseModel):
    name: str
    size: int = 0
    mime_type: str = Field(validation_alias=AliasChoices("mime_type", "mimeType"))


class AttachmentsCreateReq(BaseRequest):
    type: Literal["attachments.create"] = "attachments.create"
    params: AttachmentCreateRequestParams


class AttachmentDeleteParams(BaseModel):
    attachment_id: str


class AttachmentsDeleteReq(BaseRequest):
    type: Literal["attachments.delete"] = "attachments.delete"
    params: AttachmentDeleteParams


StreamingReq = Union[
    ThreadsCreateReq,
    ThreadsAddUserMessageReq,
    ThreadsAddClientToolOutputReq,
    ThreadsRetryAfterItemReq,
    ThreadsCustomActionReq,
]

NonStreamingReq = Union[
    ThreadsGetByIdReq,
    ThreadsListReq,
    ThreadsUpdateReq,
    ThreadsDeleteReq,
    ItemsListReq,
    ItemsFeedbackReq,
    AttachmentsCreateReq,
    AttachmentsDeleteReq,
]

ThreadRequest = Annotated[
    Union[
        ThreadsCreateReq,
        ThreadsAddUserMessageReq,
        ThreadsAddClientToolOutputReq,
        ThreadsRetryAfterItemReq,
        ThreadsCustomActionReq,
        ThreadsGetByIdReq,
        ThreadsListReq,
        ThreadsUpdateReq,
        ThreadsDeleteReq,
        ItemsListReq,
        ItemsFeedbackReq,
        AttachmentsCreateReq,
        AttachmentsDeleteReq,
    ],
    Field(discriminator="type"),
]

THREAD_REQUEST_ADAPTER: TypeAdapter[ThreadRequest] = TypeAdapter(ThreadRequest)
