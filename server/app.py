"""FastAPI server for threadkit conversations

Includes:
- POST /api/chatkit: single entry point for every request kind, answered with
  SSE (Server-Sent Events) for turns and JSON for everything else
- Two-phase attachment upload (upload bytes, then fetch them back)

The request context is `{"user_id": <X-User-Id header or "anonymous">}`.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, File, HTTPException, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response, StreamingResponse

from agent import DemoThreadServer
from store import DiskAttachmentStore, InMemoryStore, NotFoundError, SQLiteStore

from . import config as server_config
from .config import ServerConfig
from .errors import InvalidRequestError, InvalidStateError
from .logger import configure_logging
from .thread_server import StreamingResult, ThreadServer

logger = logging.getLogger(__name__)

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}

DEFAULT_USER_ID = "anonymous"


def request_context(request: Request) -> dict:
    return {"user_id": request.headers.get("x-user-id") or DEFAULT_USER_ID}


async def build_thread_server(config: ServerConfig | None = None) -> DemoThreadServer:
    """Build the demo server and its stores.

    Args:
        config: Configuration to use; the installed SERVER_CONFIG if None
    """
    config = config or server_config.SERVER_CONFIG
    if config.store_backend == "sqlite":
        store = SQLiteStore(config.db_path)
        await store.initialize()
    else:
        store = InMemoryStore()

    attachment_store = DiskAttachmentStore(config.attachments_dir, config.base_url)
    return DemoThreadServer(
        store,
        attachment_store,
        page_size=config.page_size,
        allow_cancel=config.allow_cancel,
    )


def _http_error(error: Exception) -> HTTPException:
    if isinstance(error, NotFoundError):
        return HTTPException(status_code=404, detail=str(error))
    if isinstance(error, InvalidStateError):
        return HTTPException(status_code=409, detail=str(error))
    return HTTPException(status_code=400, detail=str(error))


async def _prime(result: StreamingResult) -> AsyncIterator[bytes]:
    """Pull the first frame before the response starts.

    Errors raised before a turn emits anything (unknown thread, no pending
    tool call) can then still be answered with an HTTP status.
    """
    frames = aiter(result)
    try:
        first = await anext(frames)
    except StopAsyncIteration:
        first = None

    async def stream() -> AsyncIterator[bytes]:
        try:
            if first is not None:
                yield first
            async for frame in frames:
                yield frame
        finally:
            await result.aclose()

    return stream()


def _attachment_store(request: Request) -> DiskAttachmentStore:
    attachment_store = request.app.state.thread_server.attachment_store
    if not isinstance(attachment_store, DiskAttachmentStore):
        raise HTTPException(status_code=501, detail="File uploads are not supported by this server")
    return attachment_store


def create_app(thread_server: ThreadServer | None = None) -> FastAPI:
    """Create the FastAPI application.

    Args:
        thread_server: Server to use; built from environment configuration if None
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        server_config.load_config_from_env()
        configure_logging(server_config.SERVER_CONFIG.log_level)

        owned = thread_server is None
        app.state.thread_server = thread_server or await build_thread_server()
        logger.info("Thread server ready (store=%s)", type(app.state.thread_server.store).__name__)
        try:
            yield
        finally:
            store = app.state.thread_server.store
            if owned and isinstance(store, SQLiteStore):
                await store.cleanup()

    app = FastAPI(
        title="threadkit",
        description="Streaming conversation server with persisted threads and widgets",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.post("/api/chatkit")
    async def chatkit(request: Request) -> Response:
        """Process one request; turns stream back as SSE."""
        server: ThreadServer = request.app.state.thread_server
        body = await request.body()

        try:
            result = await server.process(body, request_context(request))
            if isinstance(result, StreamingResult):
                return StreamingResponse(
                    await _prime(result),
                    media_type="text/event-stream",
                    headers=SSE_HEADERS,
                )
            return Response(content=result.json, media_type="application/json")
        except (NotFoundError, InvalidRequestError, InvalidStateError) as e:
            raise _http_error(e) from e

    @app.post("/api/chatkit/attachments/{attachment_id}/upload")
    async def upload_attachment(
        attachment_id: str,
        request: Request,
        file: UploadFile = File(...),
    ) -> Response:
        """Receive the bytes of an attachment created by attachments.create."""
        server: ThreadServer = request.app.state.thread_server
        attachment_store = _attachment_store(request)
        context = request_context(request)

        try:
            attachment = await server.store.load_attachment(attachment_id, context)
            await attachment_store.store_file_data(attachment_id, await file.read())
        except NotFoundError as e:
            raise _http_error(e) from e

        # The upload is complete once the bytes are stored
        attachment = attachment.model_copy(update={"upload_url": None})
        await server.store.save_attachment(attachment, context)
        return Response(
            content=attachment.model_dump_json(exclude_none=True),
            media_type="application/json",
        )

    @app.get("/api/chatkit/attachments/{attachment_id}/file")
    async def get_attachment_file(attachment_id: str, request: Request) -> Response:
        """Serve the uploaded bytes of an attachment."""
        server: ThreadServer = request.app.state.thread_server
        attachment_store = _attachment_store(request)

        try:
            attachment = await server.store.load_attachment(attachment_id, request_context(request))
            data = await attachment_store.get_file_data(attachment_id)
        except NotFoundError as e:
            raise _http_error(e) from e

        return Response(
            content=data,
            media_type=attachment.mime_type,
            headers={"Content-Disposition": f'inline; filename="{attachment.name}"'},
        )

    return app


app = create_app()
