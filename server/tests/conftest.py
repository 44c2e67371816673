"""Shared fixtures for server tests

Provides an in-memory store, a request context, a scriptable ThreadServer
whose turns are supplied by each test, and helpers to decode SSE frames.
"""

import json
from datetime import datetime

import pytest

from server.thread_server import StreamingResult, ThreadServer
from store import InMemoryStore
from threads import ThreadMetadata, UserMessageItem, UserMessageTextContent


class ScriptedServer(ThreadServer[dict]):
    """ThreadServer whose respond/action turns are plain async generator functions."""

    def __init__(self, store, respond_fn=None, action_fn=None, **kwargs):
        super().__init__(store, **kwargs)
        self.respond_fn = respond_fn
        self.action_fn = action_fn
        self.respond_calls: list[tuple[ThreadMetadata, UserMessageItem | None]] = []
        self.action_calls: list[tuple] = []
        self.feedback: list[tuple] = []

    async def respond(self, thread, input_user_message, context):
        self.respond_calls.append((thread, input_user_message))
        if self.respond_fn is not None:
            async for event in self.respond_fn(thread, input_user_message, context):
                yield event

    async def action(self, thread, action, sender, context):
        self.action_calls.append((thread, action, sender))
        if self.action_fn is not None:
            async for event in self.action_fn(thread, action, sender, context):
                yield event

    async def add_feedback(self, thread_id, item_ids, feedback, context):
        self.feedback.append((thread_id, item_ids, feedback))


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def context():
    return {"user_id": "tester"}


@pytest.fixture
def make_server(store):
    """Factory building a ScriptedServer over the shared store."""

    def make(respond_fn=None, action_fn=None, **kwargs) -> ScriptedServer:
        return ScriptedServer(store, respond_fn=respond_fn, action_fn=action_fn, **kwargs)

    return make


@pytest.fixture
async def thread(store, context):
    thread = ThreadMetadata(id="thr_test", created_at=datetime(2024, 1, 1))
    await store.save_thread(thread, context)
    return thread


def parse_frame(frame: bytes) -> dict:
    assert frame.startswith(b"data: ")
    assert frame.endswith(b"\n\n")
    return json.loads(frame[len(b"data: "):])


@pytest.fixture
def read_events():
    """Drain a StreamingResult into decoded event dicts."""

    async def read(result: StreamingResult) -> list[dict]:
        return [parse_frame(frame) async for frame in result]

    return read


def user_message(item_id: str, thread_id: str, text: str = "hi") -> UserMessageItem:
    return UserMessageItem(id=item_id, thread_id=thread_id, content=[UserMessageTextContent(text=text)])


@pytest.fixture
def make_user_message():
    return user_message
