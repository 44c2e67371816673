"""FastAPI app tests

Drives the bundled demo server over HTTP:
- SSE framing and headers for turns, JSON for everything else
- HTTP status codes for request errors
- two-phase attachment upload
- demo commands (/widget, /tool, /fail)
"""

import itertools
import json

import pytest
from fastapi.testclient import TestClient

from agent import ACKNOWLEDGE_ACTION, DemoThreadServer
from server.app import create_app
from store import DiskAttachmentStore, InMemoryStore
from store import base as store_base


@pytest.fixture
def client(tmp_path):
    server = DemoThreadServer(InMemoryStore(), DiskAttachmentStore(tmp_path, "http://testserver"))
    with TestClient(create_app(thread_server=server)) as client:
        yield client


def sse_events(response) -> list[dict]:
    frames = [frame for frame in response.text.split("\n\n") if frame]
    assert all(frame.startswith("data: ") for frame in frames)
    return [json.loads(frame[len("data: "):]) for frame in frames]


def message_input(text: str) -> dict:
    return {"content": [{"type": "input_text", "text": text}]}


def create_thread(client, text: str = "hello", headers: dict | None = None) -> tuple[str, list[dict]]:
    response = client.post(
        "/api/chatkit",
        json={"type": "threads.create", "params": {"input": message_input(text)}},
        headers=headers or {},
    )
    assert response.status_code == 200
    events = sse_events(response)
    return events[0]["thread"]["id"], events


def add_message(client, thread_id: str, text: str) -> list[dict]:
    response = client.post(
        "/api/chatkit",
        json={"type": "threads.add_user_message", "params": {"thread_id": thread_id, "input": message_input(text)}},
    )
    assert response.status_code == 200
    return sse_events(response)


class TestStreaming:
    def test_sse_response(self, client):
        response = client.post(
            "/api/chatkit",
            json={"type": "threads.create", "params": {"input": message_input("hello")}},
        )

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        assert response.headers["cache-control"] == "no-cache"
        assert response.text.endswith("\n\n")

    def test_echo_turn(self, client):
        thread_id, events = create_thread(client, "hello there")

        types = [event["type"] for event in events]
        assert types[0] == "thread.created"
        assert "progress_update" in types
        assert types[-1] == "thread.updated"

        deltas = [
            event["update"]["delta"]
            for event in events
            if event["type"] == "thread.item.updated"
            and event["update"]["type"] == "assistant_message.content_part.text_delta"
        ]
        assert "".join(deltas) == "You said: hello there"

        final = events[-1]["thread"]
        assert final["id"] == thread_id
        assert final["title"] == "hello there"
        assert [item["type"] for item in final["items"]["data"]] == ["user_message", "assistant_message"]

    def test_custom_error(self, client):
        _, events = create_thread(client, "/fail")

        error = next(event for event in events if event["type"] == "error")
        assert error == {
            "type": "error",
            "code": "custom",
            "message": "The demo was asked to fail.",
            "allow_retry": True,
        }
        assert events[-1]["type"] == "thread.updated"

    def test_client_tool_round_trip(self, client):
        thread_id, events = create_thread(client, "/tool")
        tool_call = next(event["item"] for event in events if event.get("item", {}).get("type") == "client_tool_call")
        assert tool_call["status"] == "pending"

        response = client.post(
            "/api/chatkit",
            json={"type": "threads.add_client_tool_output", "params": {"thread_id": thread_id, "result": "Paris"}},
        )

        done = [event["item"] for event in sse_events(response) if event["type"] == "thread.item.done"]
        assert done[-1]["content"][0]["text"] == "The tool returned: Paris"

    def test_widget_then_action(self, client):
        thread_id, _ = create_thread(client)
        events = add_message(client, thread_id, "/widget")

        types = [event["type"] for event in events]
        assert "thread.item.added" in types
        widget_item = next(
            event["item"] for event in events if event["type"] == "thread.item.done" and event["item"]["type"] == "widget"
        )
        greeting = widget_item["widget"]["children"][1]
        assert greeting["value"] == "Hello there, nice to meet you!"

        response = client.post(
            "/api/chatkit",
            json={
                "type": "threads.custom_action",
                "params": {
                    "thread_id": thread_id,
                    "item_id": widget_item["id"],
                    "action": {"type": ACKNOWLEDGE_ACTION},
                },
            },
        )
        events = sse_events(response)

        replaced = next(event for event in events if event["type"] == "thread.item.replaced")
        assert replaced["item"]["id"] == widget_item["id"]
        effect = next(event for event in events if event["type"] == "client_effect")
        assert effect == {"type": "client_effect", "name": "toast", "data": {"text": "Acknowledged"}}


class TestRequestErrors:
    def test_invalid_json(self, client):
        response = client.post("/api/chatkit", content=b"{nope", headers={"content-type": "application/json"})
        assert response.status_code == 400

    def test_unknown_type(self, client):
        response = client.post("/api/chatkit", json={"type": "threads.nope", "params": {}})
        assert response.status_code == 400

    def test_missing_thread(self, client):
        response = client.post(
            "/api/chatkit",
            json={"type": "threads.add_user_message", "params": {"thread_id": "thr_missing", "input": message_input("x")}},
        )
        assert response.status_code == 404

    def test_tool_output_without_pending_call(self, client):
        thread_id, _ = create_thread(client)

        response = client.post(
            "/api/chatkit",
            json={"type": "threads.add_client_tool_output", "params": {"thread_id": thread_id, "result": 1}},
        )
        assert response.status_code == 409


class TestNonStreaming:
    def test_list_threads(self, client):
        thread_id, _ = create_thread(client)

        response = client.post("/api/chatkit", json={"type": "threads.list", "params": {}})

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("application/json")
        assert [thread["id"] for thread in response.json()["data"]] == [thread_id]


class TestAttachments:
    def test_upload_and_fetch(self, client):
        created = client.post(
            "/api/chatkit",
            json={"type": "attachments.create", "params": {"name": "notes.txt", "size": 5, "mimeType": "text/plain"}},
        ).json()
        assert created["upload_url"] == f"http://testserver/api/chatkit/attachments/{created['id']}/upload"

        uploaded = client.post(
            f"/api/chatkit/attachments/{created['id']}/upload",
            files={"file": ("notes.txt", b"hello", "text/plain")},
        )
        assert uploaded.status_code == 200
        assert "upload_url" not in uploaded.json()

        fetched = client.get(f"/api/chatkit/attachments/{created['id']}/file")
        assert fetched.status_code == 200
        assert fetched.content == b"hello"
        assert fetched.headers["content-type"].startswith("text/plain")

    def test_upload_unknown_attachment(self, client):
        response = client.post(
            "/api/chatkit/attachments/atc_missing/upload",
            files={"file": ("a.txt", b"x", "text/plain")},
        )
        assert response.status_code == 404

    def test_fetch_before_upload(self, client):
        created = client.post(
            "/api/chatkit",
            json={"type": "attachments.create", "params": {"name": "a.txt", "mime_type": "text/plain"}},
        ).json()

        assert client.get(f"/api/chatkit/attachments/{created['id']}/file").status_code == 404


class TestConfiguredApp:
    """App built from environment configuration with the SQLite backend."""

    @pytest.fixture
    def sqlite_client(self, tmp_path, monkeypatch):
        monkeypatch.setenv("THREADKIT_STORE", "sqlite")
        monkeypatch.setenv("THREADKIT_DB_PATH", str(tmp_path / "threads.db"))
        monkeypatch.setenv("THREADKIT_ATTACHMENTS_DIR", str(tmp_path / "blobs"))
        with TestClient(create_app()) as client:
            yield client

    def test_threads_are_scoped_by_user(self, sqlite_client):
        thread_id, _ = create_thread(sqlite_client, headers={"X-User-Id": "alice"})

        def get(user_id: str):
            return sqlite_client.post(
                "/api/chatkit",
                json={"type": "threads.get_by_id", "params": {"thread_id": thread_id}},
                headers={"X-User-Id": user_id},
            )

        assert get("alice").status_code == 200
        assert get("bob").status_code == 404

    def test_threads_survive_restart(self, sqlite_client, monkeypatch):
        thread_id, _ = create_thread(sqlite_client, "first conversation")

        # A restarted process starts its id counter from scratch
        monkeypatch.setattr(store_base, "_id_counter", itertools.count(1))
        with TestClient(create_app()) as restarted:
            new_thread_id, events = create_thread(restarted, "second conversation")
            response = restarted.post(
                "/api/chatkit", json={"type": "threads.get_by_id", "params": {"thread_id": thread_id}}
            )

        assert new_thread_id != thread_id
        assert "error" not in [event["type"] for event in events]
        assert response.status_code == 200
        thread = response.json()
        assert thread["title"] == "first conversation"
        assert [item["type"] for item in thread["items"]["data"]] == ["user_message", "assistant_message"]
