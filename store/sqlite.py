"""SQLite Store implementation

Persists threads, items and attachment metadata with aiosqlite.
Items and attachments are stored as JSON documents; threads are stored as
columns. Rows are scoped by the `user_id` found in the request context.

Usage:
    store = SQLiteStore(db_path="./threadkit.db")
    await store.initialize()
    ...
    await store.cleanup()
"""

import json
import logging
from datetime import datetime
from typing import Any

import aiosqlite
from pydantic import TypeAdapter

from threads import Attachment, Page, StoreItemType, ThreadItem, ThreadMetadata, ThreadStatus

from .base import NotFoundError, Order, Store, unique_generate_id

logger = logging.getLogger(__name__)

ITEM_ADAPTER: TypeAdapter[ThreadItem] = TypeAdapter(ThreadItem)
ATTACHMENT_ADAPTER: TypeAdapter[Attachment] = TypeAdapter(Attachment)
STATUS_ADAPTER: TypeAdapter[ThreadStatus] = TypeAdapter(ThreadStatus)

DEFAULT_USER_ID = "anonymous"

SCHEMA = """
CREATE TABLE IF NOT EXISTS threads (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    created_at TEXT NOT NULL,
    title TEXT,
    status TEXT,
    metadata TEXT
);
CREATE INDEX IF NOT EXISTS idx_threads_user_created ON threads(user_id, created_at);

CREATE TABLE IF NOT EXISTS thread_items (
    seq INTEGER PRIMARY KEY AUTOINCREMENT,
    id TEXT UNIQUE NOT NULL,
    thread_id TEXT NOT NULL,
    user_id TEXT NOT NULL,
    created_at TEXT NOT NULL,
    item_json TEXT NOT NULL,
    FOREIGN KEY (thread_id) REFERENCES threads(id) ON DELETE CASCADE
);
CREATE INDEX IF NOT EXISTS idx_thread_items_thread_seq ON thread_items(thread_id, seq);

CREATE TABLE IF NOT EXISTS attachments (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    attachment_json TEXT NOT NULL
);
"""


def user_id_from_context(context: Any) -> str:
    """Extract the user id used for row scoping from a request context."""
    if isinstance(context, dict):
        return context.get("user_id") or DEFAULT_USER_ID
    return getattr(context, "user_id", None) or DEFAULT_USER_ID


def _thread_from_row(row: aiosqlite.Row) -> ThreadMetadata:
    return ThreadMetadata(
        id=row["id"],
        title=row["title"],
        created_at=datetime.fromisoformat(row["created_at"]),
        status=STATUS_ADAPTER.validate_json(row["status"]) if row["status"] else None,
        metadata=json.loads(row["metadata"]) if row["metadata"] else {},
    )


class SQLiteStore(Store[Any]):
    """Store backed by a single aiosqlite connection."""

    def __init__(self, db_path: str = "./threadkit.db"):
        self.db_path = db_path
        self._connection: aiosqlite.Connection | None = None

    async def initialize(self) -> None:
        """Open the connection and create tables if needed."""
        self._connection = await aiosqlite.connect(self.db_path)
        self._connection.row_factory = aiosqlite.Row
        await self._connection.execute("PRAGMA foreign_keys = ON")
        await self._connection.executescript(SCHEMA)
        await self._connection.commit()
        logger.info("SQLite store initialized at %s", self.db_path)

    async def cleanup(self) -> None:
        """Close the connection."""
        if self._connection is not None:
            await self._connection.close()
            self._connection = None

    @property
    def db(self) -> aiosqlite.Connection:
        if self._connection is None:
            raise RuntimeError("SQLiteStore.initialize() must be awaited before use")
        return self._connection

    async def _fetchone(self, sql: str, params: tuple) -> aiosqlite.Row | None:
        async with self.db.execute(sql, params) as cursor:
            return await cursor.fetchone()

    async def _fetchall(self, sql: str, params: tuple) -> list[aiosqlite.Row]:
        async with self.db.execute(sql, params) as cursor:
            return list(await cursor.fetchall())

    def generate_thread_id(self, context: Any) -> str:
        return unique_generate_id(StoreItemType.THREAD)

    def generate_item_id(self, item_type: StoreItemType | str, thread: ThreadMetadata, context: Any) -> str:
        return unique_generate_id(item_type)

    async def _require_thread(self, thread_id: str, user_id: str) -> None:
        row = await self._fetchone(
            "SELECT id FROM threads WHERE id = ? AND user_id = ?", (thread_id, user_id)
        )
        if row is None:
            raise NotFoundError(f"Thread {thread_id} not found")

    # ------------------------------------------------------------------------
    # Threads
    # ------------------------------------------------------------------------

    async def load_thread(self, thread_id: str, context: Any) -> ThreadMetadata:
        row = await self._fetchone(
            "SELECT * FROM threads WHERE id = ? AND user_id = ?",
            (thread_id, user_id_from_context(context)),
        )
        if row is None:
            raise NotFoundError(f"Thread {thread_id} not found")
        return _thread_from_row(row)

    async def save_thread(self, thread: ThreadMetadata, context: Any) -> None:
        cursor = await self.db.execute(
            """
            INSERT INTO threads (id, user_id, created_at, title, status, metadata)
            VALUES (?, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                title = excluded.title,
                status = excluded.status,
                metadata = excluded.metadata
            WHERE threads.user_id = excluded.user_id
            """,
            (
                thread.id,
                user_id_from_context(context),
                thread.created_at.isoformat(),
                thread.title,
                thread.status.model_dump_json(),
                json.dumps(thread.metadata),
            ),
        )
        await self.db.commit()
        # An id owned by another user is left untouched by the upsert
        if cursor.rowcount == 0:
            raise NotFoundError(f"Thread {thread.id} not found")

    async def load_threads(
        self,
        limit: int,
        after: str | None,
        order: Order,
        context: Any,
    ) -> Page[ThreadMetadata]:
        user_id = user_id_from_context(context)
        direction = "DESC" if order == "desc" else "ASC"
        comparison = "<" if order == "desc" else ">"

        where = "user_id = ?"
        params: list[Any] = [user_id]
        if after is not None:
            cursor_row = await self._fetchone(
                "SELECT created_at FROM threads WHERE id = ? AND user_id = ?", (after, user_id)
            )
            if cursor_row is not None:
                where += (
                    f" AND (created_at {comparison} ?"
                    f" OR (created_at = ? AND id {comparison} ?))"
                )
                params += [cursor_row["created_at"], cursor_row["created_at"], after]

        rows = await self._fetchall(
            f"SELECT * FROM threads WHERE {where} "
            f"ORDER BY created_at {direction}, id {direction} LIMIT ?",
            (*params, limit + 1),
        )
        threads = [_thread_from_row(row) for row in rows[:limit]]
        return Page[ThreadMetadata](
            data=threads,
            has_more=len(rows) > limit,
            after=threads[-1].id if threads else None,
        )

    async def delete_thread(self, thread_id: str, context: Any) -> None:
        user_id = user_id_from_context(context)
        await self._require_thread(thread_id, user_id)
        await self.db.execute(
            "DELETE FROM thread_items WHERE thread_id = ? AND user_id = ?", (thread_id, user_id)
        )
        await self.db.execute(
            "DELETE FROM threads WHERE id = ? AND user_id = ?", (thread_id, user_id)
        )
        await self.db.commit()

    # ------------------------------------------------------------------------
    # Items
    # ------------------------------------------------------------------------

    async def load_thread_items(
        self,
        thread_id: str,
        after: str | None,
        limit: int,
        order: Order,
        context: Any,
    ) -> Page[ThreadItem]:
        user_id = user_id_from_context(context)
        await self._require_thread(thread_id, user_id)
        direction = "DESC" if order == "desc" else "ASC"
        comparison = "<" if order == "desc" else ">"

        where = "thread_id = ? AND user_id = ?"
        params: list[Any] = [thread_id, user_id]
        if after is not None:
            cursor_row = await self._fetchone(
                "SELECT seq FROM thread_items WHERE id = ? AND user_id = ?", (after, user_id)
            )
            if cursor_row is not None:
                where += f" AND seq {comparison} ?"
                params.append(cursor_row["seq"])

        rows = await self._fetchall(
            f"SELECT item_json FROM thread_items WHERE {where} ORDER BY seq {direction} LIMIT ?",
            (*params, limit + 1),
        )
        items = [ITEM_ADAPTER.validate_json(row["item_json"]) for row in rows[:limit]]
        return Page[ThreadItem](
            data=items,
            has_more=len(rows) > limit,
            after=items[-1].id if items else None,
        )

    async def add_thread_item(self, thread_id: str, item: ThreadItem, context: Any) -> None:
        user_id = user_id_from_context(context)
        await self._require_thread(thread_id, user_id)
        await self.db.execute(
            """
            INSERT INTO thread_items (id, thread_id, user_id, created_at, item_json)
            VALUES (?, ?, ?, ?, ?)
            """,
            (
                item.id,
                thread_id,
                user_id,
                item.created_at.isoformat(),
                ITEM_ADAPTER.dump_json(item).decode(),
            ),
        )
        await self.db.commit()

    async def save_item(self, thread_id: str, item: ThreadItem, context: Any) -> None:
        user_id = user_id_from_context(context)
        await self._require_thread(thread_id, user_id)
        # Upsert keeps the original seq so the item stays in place
        await self.db.execute(
            """
            INSERT INTO thread_items (id, thread_id, user_id, created_at, item_json)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET item_json = excluded.item_json
            WHERE thread_items.user_id = excluded.user_id AND thread_items.thread_id = excluded.thread_id
            """,
            (
                item.id,
                thread_id,
                user_id,
                item.created_at.isoformat(),
                ITEM_ADAPTER.dump_json(item).decode(),
            ),
        )
        await self.db.commit()

    async def load_item(self, thread_id: str, item_id: str, context: Any) -> ThreadItem:
        row = await self._fetchone(
            "SELECT item_json FROM thread_items WHERE id = ? AND thread_id = ? AND user_id = ?",
            (item_id, thread_id, user_id_from_context(context)),
        )
        if row is None:
            raise NotFoundError(f"Item {item_id} not found in thread {thread_id}")
        return ITEM_ADAPTER.validate_json(row["item_json"])

    async def delete_thread_item(self, thread_id: str, item_id: str, context: Any) -> None:
        await self.db.execute(
            "DELETE FROM thread_items WHERE id = ? AND thread_id = ? AND user_id = ?",
            (item_id, thread_id, user_id_from_context(context)),
        )
        await self.db.commit()

    # ------------------------------------------------------------------------
    # Attachments
    # ------------------------------------------------------------------------

    async def save_attachment(self, attachment: Attachment, context: Any) -> None:
        cursor = await self.db.execute(
            """
            INSERT INTO attachments (id, user_id, attachment_json) VALUES (?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET attachment_json = excluded.attachment_json
            WHERE attachments.user_id = excluded.user_id
            """,
            (
                attachment.id,
                user_id_from_context(context),
                ATTACHMENT_ADAPTER.dump_json(attachment).decode(),
            ),
        )
        await self.db.commit()
        if cursor.rowcount == 0:
            raise NotFoundError(f"Attachment {attachment.id} not found")

    async def load_attachment(self, attachment_id: str, context: Any) -> Attachment:
        row = await self._fetchone(
            "SELECT attachment_json FROM attachments WHERE id = ? AND user_id = ?",
            (attachment_id, user_id_from_context(context)),
        )
        if row is None:
            raise NotFoundError(f"Attachment {attachment_id} not found")
        return ATTACHMENT_ADAPTER.validate_json(row["attachment_json"])

    async def delete_attachment(self, attachment_id: str, context: Any) -> None:
        await self.db.execute(
            "DELETE FROM attachments WHERE id = ? AND user_id = ?",
            (attachment_id, user_id_from_context(context)),
        )
        await self.db.commit()
