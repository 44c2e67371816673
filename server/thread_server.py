"""Request router and turn lifecycle

ThreadServer maps each request kind onto store mutations and, for kinds that
start a turn, a ThreadEventCoordinator run over the application's `respond`
or `action` turn source.

Subclass it and implement `respond`:

    class MyServer(ThreadServer[dict]):
        async def respond(self, thread, input_user_message, context):
            yield ThreadItemDoneEvent(item=...)

    result = await server.process(request_body, {"user_id": "u1"})
"""

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Callable
from contextlib import aclosing
from datetime import datetime
from typing import Generic

from pydantic import BaseModel, ValidationError

from store import AttachmentCreateParams, AttachmentStore, NotFoundError, Order, Store, TContext
from threads import (
    AssistantMessageItem,
    ClientToolCallItem,
    Page,
    SDKHiddenContextItem,
    StoreItemType,
    Thread,
    ThreadItem,
    ThreadMetadata,
    ToolCallStatus,
    UserMessageItem,
    WidgetItem,
    is_hidden,
)

from .coordinator import (
    DEFAULT_PAGE_SIZE,
    ThreadEventCoordinator,
    load_full_thread,
    to_thread_response,
)
from .enums import STREAMING_REQUEST_TYPES, RequestType
from .errors import InvalidRequestError, InvalidStateError
from .events import (
    ErrorEvent,
    StreamOptions,
    ThreadCreatedEvent,
    ThreadItemDoneEvent,
    ThreadStreamEvent,
    encode_event,
)
from .payloads import (
    THREAD_REQUEST_ADAPTER,
    Action,
    AttachmentsCreateReq,
    AttachmentsDeleteReq,
    ItemsFeedbackReq,
    ItemsListReq,
    ThreadRequest,
    ThreadsAddClientToolOutputReq,
    ThreadsAddUserMessageReq,
    ThreadsCreateReq,
    ThreadsCustomActionReq,
    ThreadsDeleteReq,
    ThreadsGetByIdReq,
    ThreadsListReq,
    ThreadsRetryAfterItemReq,
    ThreadsUpdateReq,
    UserMessageInput,
)

logger = logging.getLogger(__name__)

CANCELLED_STREAM_CONTEXT = "The user cancelled the stream. Stop responding to the prior request."


# ============================================================================
# Results
# ============================================================================


class StreamingResult:
    """Async iterator of SSE frames for a turn-producing request."""

    def __init__(self, stream: AsyncIterator[bytes]):
        self.json_events = stream

    def __aiter__(self) -> AsyncIterator[bytes]:
        return self.json_events

    async def aclose(self) -> None:
        await self.json_events.aclose()


class NonStreamingResult:
    """Buffered JSON body for an administrative request."""

    def __init__(self, json: bytes):
        self.json = json


def is_streaming_request(request: ThreadRequest) -> bool:
    return RequestType(request.type) in STREAMING_REQUEST_TYPES


def _serialize(value: BaseModel) -> bytes:
    return value.model_dump_json(by_alias=True, exclude_none=True).encode()


# ============================================================================
# Thread Server
# ============================================================================


class ThreadServer(ABC, Generic[TContext]):
    """Base class for conversation servers.

    Args:
        store: Durable storage for threads and items
        attachment_store: Blob storage, required for attachment requests
        page_size: Items loaded per page for snapshots and cleanup scans
        allow_cancel: Whether clients may cancel a running turn
    """

    def __init__(
        self,
        store: Store[TContext],
        attachment_store: AttachmentStore[TContext] | None = None,
        page_size: int = DEFAULT_PAGE_SIZE,
        allow_cancel: bool = True,
    ):
        self.store = store
        self.attachment_store = attachment_store
        self.page_size = page_size
        self.allow_cancel = allow_cancel

    # ------------------------------------------------------------------------
    # Hooks
    # ------------------------------------------------------------------------

    @abstractmethod
    def respond(
        self,
        thread: ThreadMetadata,
        input_user_message: UserMessageItem | None,
        context: TContext,
    ) -> AsyncIterator[ThreadStreamEvent]:
        """Produce the events of one assistant turn.

        `input_user_message` is None when the turn continues after a client
        tool call output.
        """

    def action(
        self,
        thread: ThreadMetadata,
        action: Action,
        sender: WidgetItem | None,
        context: TContext,
    ) -> AsyncIterator[ThreadStreamEvent]:
        """Produce the events answering a widget action."""
        raise NotImplementedError(
            f"{type(self).__name__} must override action() to handle custom actions"
        )

    async def add_feedback(
        self,
        thread_id: str,
        item_ids: list[str],
        feedback: str,
        context: TContext,
    ) -> None:
        pass

    def get_stream_options(self, thread: ThreadMetadata, context: TContext) -> StreamOptions:
        return StreamOptions(allow_cancel=self.allow_cancel)

    async def handle_stream_cancelled(
        self,
        thread: ThreadMetadata,
        pending_items: list[ThreadItem],
        context: TContext,
    ) -> None:
        """Persist what the user already saw, then record the cancellation.

        Pending assistant messages with non-blank text are saved as they are;
        one sdk_hidden_context item tells later turns to drop the request.
        """
        for item in pending_items:
            if not isinstance(item, AssistantMessageItem):
                continue
            if any(part.text.strip() for part in item.content):
                await self.store.add_thread_item(thread.id, item, context)

        await self.store.add_thread_item(
            thread.id,
            SDKHiddenContextItem(
                id=self.store.generate_item_id(StoreItemType.SDK_HIDDEN_CONTEXT, thread, context),
                thread_id=thread.id,
                created_at=datetime.now(),
                content=CANCELLED_STREAM_CONTEXT,
            ),
            context,
        )

    def get_attachment_store(self) -> AttachmentStore[TContext]:
        if self.attachment_store is None:
            raise RuntimeError(
                "AttachmentStore is not configured. Provide one to ThreadServer "
                "to handle attachment requests."
            )
        return self.attachment_store

    # ------------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------------

    async def process(
        self,
        request: str | bytes | dict | BaseModel,
        context: TContext,
    ) -> StreamingResult | NonStreamingResult:
        """Dispatch one request.

        Args:
            request: Raw JSON body, decoded dict, or a parsed request model
            context: Opaque value passed to every store call

        Returns:
            StreamingResult for turn-producing kinds, NonStreamingResult otherwise

        Raises:
            InvalidRequestError: Malformed body or unknown request kind
            NotFoundError: Thread, item or attachment does not exist
        """
        parsed = self._parse_request(request)
        if is_streaming_request(parsed):
            return StreamingResult(self._process_streaming(parsed, context))
        return NonStreamingResult(await self._process_non_streaming(parsed, context))

    @staticmethod
    def _parse_request(request: str | bytes | dict | BaseModel) -> ThreadRequest:
        if isinstance(request, BaseModel):
            request = request.model_dump()
        elif isinstance(request, (str, bytes)):
            try:
                request = json.loads(request)
            except json.JSONDecodeError as e:
                raise InvalidRequestError(f"Request body is not valid JSON: {e}") from e

        if not isinstance(request, dict):
            raise InvalidRequestError("Request body must be a JSON object")

        kind = request.get("type")
        try:
            RequestType(kind)
        except ValueError:
            raise InvalidRequestError(f"Unknown request type: {kind}") from None

        try:
            return THREAD_REQUEST_ADAPTER.validate_python(request)
        except ValidationError as e:
            raise InvalidRequestError(f"Invalid {kind} request: {e}") from e

    # ------------------------------------------------------------------------
    # Non-streaming requests
    # ------------------------------------------------------------------------

    async def _process_non_streaming(self, request: ThreadRequest, context: TContext) -> bytes:
        match request:
            case ThreadsGetByIdReq(params=params):
                thread = await load_full_thread(self.store, params.thread_id, context, self.page_size)
                return _serialize(to_thread_response(thread))

            case ThreadsListReq(params=params):
                threads = await self.store.load_threads(
                    params.limit or self.page_size, params.after, params.order, context
                )
                return _serialize(
                    Page[Thread](
                        data=[to_thread_response(thread) for thread in threads.data],
                        has_more=threads.has_more,
                        after=threads.after,
                    )
                )

            case ThreadsUpdateReq(params=params):
                thread = await self.store.load_thread(params.thread_id, context)
                thread.title = params.title
                await self.store.save_thread(thread, context)
                return _serialize(to_thread_response(thread))

            case ThreadsDeleteReq(params=params):
                await self.store.delete_thread(params.thread_id, context)
                return b"{}"

            case ItemsListReq(params=params):
                items = await self.store.load_thread_items(
                    params.thread_id,
                    params.after,
                    params.limit or self.page_size,
                    params.order,
                    context,
                )
                return _serialize(
                    Page[ThreadItem](
                        data=[item for item in items.data if not is_hidden(item)],
                        has_more=items.has_more,
                        after=items.after,
                    )
                )

            case ItemsFeedbackReq(params=params):
                await self.add_feedback(params.thread_id, params.item_ids, params.kind, context)
                return b"{}"

            case AttachmentsCreateReq(params=params):
                attachment = await self.get_attachment_store().create_attachment(
                    AttachmentCreateParams(
                        name=params.name, size=params.size, mime_type=params.mime_type
                    ),
                    context,
                )
                await self.store.save_attachment(attachment, context)
                return _serialize(attachment)

            case AttachmentsDeleteReq(params=params):
                await self.get_attachment_store().delete_attachment(params.attachment_id, context)
                await self.store.delete_attachment(params.attachment_id, context)
                return b"{}"

        raise InvalidRequestError(f"Unknown non-streaming request type: {request.type}")

    # ------------------------------------------------------------------------
    # Streaming requests
    # ------------------------------------------------------------------------

    async def _process_streaming(self, request: ThreadRequest, context: TContext) -> AsyncIterator[bytes]:
        try:
            async with aclosing(self._process_streaming_impl(request, context)) as events:
                async for event in events:
                    yield encode_event(event)
        except (NotFoundError, InvalidRequestError, InvalidStateError):
            raise
        except Exception:
            logger.exception("Error while generating streamed response")
            raise

    async def _process_streaming_impl(
        self, request: ThreadRequest, context: TContext
    ) -> AsyncIterator[ThreadStreamEvent]:
        match request:
            case ThreadsCreateReq(params=params):
                thread = ThreadMetadata(id=self.store.generate_thread_id(context), created_at=datetime.now())
                await self.store.save_thread(thread, context)
                yield ThreadCreatedEvent(thread=to_thread_response(thread))

                user_message = await self._build_user_message_item(params.input, thread, context)
                async with aclosing(self._process_new_thread_item_respond(thread, user_message, context)) as events:
                    async for event in events:
                        yield event

            case ThreadsAddUserMessageReq(params=params):
                thread = await self.store.load_thread(params.thread_id, context)
                user_message = await self._build_user_message_item(params.input, thread, context)
                async with aclosing(self._process_new_thread_item_respond(thread, user_message, context)) as events:
                    async for event in events:
                        yield event

            case ThreadsAddClientToolOutputReq(params=params):
                thread = await self.store.load_thread(params.thread_id, context)
                items = await self.store.load_thread_items(thread.id, None, self.page_size, "desc", context)
                tool_call = next(
                    (
                        item
                        for item in items.data
                        if isinstance(item, ClientToolCallItem) and item.status == ToolCallStatus.PENDING
                    ),
                    None,
                )
                if tool_call is None:
                    raise InvalidStateError(f"No pending client tool call in thread {thread.id}")

                tool_call.output = params.result
                tool_call.status = ToolCallStatus.COMPLETED.value
                await self.store.save_item(thread.id, tool_call, context)
                await self._cleanup_pending_client_tool_calls(thread, context)

                async with aclosing(
                    self._process_events(thread, context, lambda: self.respond(thread, None, context))
                ) as events:
                    async for event in events:
                        yield event

            case ThreadsRetryAfterItemReq(params=params):
                thread = await self.store.load_thread(params.thread_id, context)

                items_to_remove: list[ThreadItem] = []
                user_message: UserMessageItem | None = None
                async with aclosing(self._paginate_thread_items(thread.id, "desc", context)) as items:
                    async for item in items:
                        if item.id == params.item_id:
                            if not isinstance(item, UserMessageItem):
                                raise InvalidRequestError(f"Item {item.id} is not a user message")
                            user_message = item
                            break
                        items_to_remove.append(item)

                if user_message is None:
                    raise NotFoundError(f"Item {params.item_id} not found in thread {thread.id}")

                for item in items_to_remove:
                    await self.store.delete_thread_item(thread.id, item.id, context)

                async with aclosing(
                    self._process_events(thread, context, lambda: self.respond(thread, user_message, context))
                ) as events:
                    async for event in events:
                        yield event

            case ThreadsCustomActionReq(params=params):
                thread = await self.store.load_thread(params.thread_id, context)

                sender = None
                if params.item_id:
                    sender = await self.store.load_item(thread.id, params.item_id, context)
                if sender is not None and not isinstance(sender, WidgetItem):
                    # Actions only originate from widgets
                    yield ErrorEvent(code="stream_error", allow_retry=False)
                    return

                async with aclosing(
                    self._process_events(
                        thread, context, lambda: self.action(thread, params.action, sender, context)
                    )
                ) as events:
                    async for event in events:
                        yield event

            case _:
                raise InvalidRequestError(f"Unknown streaming request type: {request.type}")

    async def _process_new_thread_item_respond(
        self,
        thread: ThreadMetadata,
        item: UserMessageItem,
        context: TContext,
    ) -> AsyncIterator[ThreadStreamEvent]:
        await self.store.add_thread_item(thread.id, item, context)
        await self._cleanup_pending_client_tool_calls(thread, context)
        yield ThreadItemDoneEvent(item=item)

        async with aclosing(
            self._process_events(thread, context, lambda: self.respond(thread, item, context))
        ) as events:
            async for event in events:
                yield event

    async def _process_events(
        self,
        thread: ThreadMetadata,
        context: TContext,
        turn_source: Callable[[], AsyncIterator[ThreadStreamEvent]],
    ) -> AsyncIterator[ThreadStreamEvent]:
        coordinator = ThreadEventCoordinator(
            self.store,
            thread,
            context,
            self.get_stream_options(thread, context),
            page_size=self.page_size,
        )
        try:
            async with aclosing(coordinator.run(turn_source)) as events:
                async for event in events:
                    yield event
        except (asyncio.CancelledError, GeneratorExit):
            logger.info("Stream for thread %s was cancelled", thread.id)
            # Shielded so a transport-level cancel cannot interrupt the durable tail
            await asyncio.shield(
                self.handle_stream_cancelled(thread, list(coordinator.pending_items.values()), context)
            )
            raise

    # ------------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------------

    async def _cleanup_pending_client_tool_calls(self, thread: ThreadMetadata, context: TContext) -> None:
        """Delete client tool calls that never received an output."""
        items = await self.store.load_thread_items(thread.id, None, self.page_size, "desc", context)
        for item in items.data:
            if isinstance(item, ClientToolCallItem) and item.status == ToolCallStatus.PENDING:
                logger.warning("Client tool call %s was not completed, ignoring", item.call_id)
                await self.store.delete_thread_item(thread.id, item.id, context)

    async def _paginate_thread_items(
        self,
        thread_id: str,
        order: Order,
        context: TContext,
    ) -> AsyncIterator[ThreadItem]:
        after = None
        while True:
            page = await self.store.load_thread_items(thread_id, after, self.page_size, order, context)
            for item in page.data:
                yield item
            if not page.has_more:
                break
            after = page.after

    async def _build_user_message_item(
        self,
        user_input: UserMessageInput,
        thread: ThreadMetadata,
        context: TContext,
    ) -> UserMessageItem:
        attachments = [
            await self.store.load_attachment(attachment_id, context)
            for attachment_id in user_input.attachments
        ]
        return UserMessageItem(
            id=self.store.generate_item_id(StoreItemType.MESSAGE, thread, context),
            thread_id=thread.id,
            created_at=datetime.now(),
            content=user_input.content,
            attachments=attachments,
            quoted_text=user_input.quoted_text,
            inference_options=user_input.inference_options,
        )
