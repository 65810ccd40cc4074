import pytest
from fastapi import WebSocketDisconnect
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import NullPool

from app.main import create_app

INTRO_STREAM = [
    {"type": "user-message-id", "content": "msg-1"},
    {"type": "id", "content": "doc-1"},
    {"type": "title", "content": "Intro"},
    {"type": "kind", "content": "text"},
    {"type": "text-delta", "content": "hello"},
    {"type": "finish"},
]


@pytest.fixture
def client(database_url):
    engine = create_async_engine(database_url, poolclass=NullPool)
    with TestClient(create_app(engine=engine)) as client:
        yield client


def save_version(client, content, document_id="doc-1", title="Intro"):
    response = client.post(
        f"/documents/{document_id}/versions",
        json={"title": title, "kind": "text", "content": content, "author_id": "user-1"}
    )
    assert response.status_code == 201
    return response.json()


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "active_sessions": 0}


def test_save_and_list_versions(client):
    save_version(client, "first")
    created = save_version(client, "second draft")

    response = client.get("/documents/doc-1/versions")

    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 2
    assert data["current_index"] == 1
    assert [v["content"] for v in data["versions"]] == ["first", "second draft"]
    assert data["versions"][-1]["created_at"] == created["created_at"]
    assert created["word_count"] == 2


def test_list_unknown_document_is_empty(client):
    response = client.get("/documents/missing/versions")

    assert response.status_code == 200
    assert response.json() == {"versions": [], "current_index": -1, "total": 0}


def test_restore_appends_version(client):
    first = save_version(client, "v0")
    save_version(client, "v1")
    save_version(client, "v2")

    response = client.patch("/documents/doc-1", json={"timestamp": first["created_at"]})

    assert response.status_code == 200
    assert response.json()["content"] == "v0"

    versions = client.get("/documents/doc-1/versions").json()["versions"]
    assert [v["content"] for v in versions] == ["v0", "v1", "v2", "v0"]


def test_restore_missing_version(client):
    save_version(client, "v0")

    response = client.patch("/documents/doc-1", json={"timestamp": "2000-01-01T00:00:00Z"})

    assert response.status_code == 404
    assert response.json()["detail"]["kind"] == "not_found"


def test_diff_and_navigation(client):
    save_version(client, "line one\n")
    save_version(client, "line two\n")

    diff = client.get("/documents/doc-1/versions/diff", params={"from_index": 0, "to_index": 1})
    assert diff.status_code == 200
    assert "+line two" in diff.json()["diff"]

    missing = client.get("/documents/doc-1/versions/diff", params={"from_index": 0, "to_index": 9})
    assert missing.status_code == 404

    response = client.post("/documents/doc-1/versions/navigate", params={"direction": "prev"})
    assert response.json() == {
        "document_id": "doc-1",
        "current_index": 0,
        "is_current_version": False,
        "mode": "edit"
    }

    bad = client.post("/documents/doc-1/versions/navigate", params={"direction": "sideways"})
    assert bad.status_code == 422


def test_suggestions(client):
    version = save_version(client, "the cat sat")

    response = client.post("/documents/doc-1/suggestions", json=[{
        "document_created_at": version["created_at"],
        "original_text": "cat",
        "suggested_text": "dog",
        "description": "Prefer dogs"
    }])

    assert response.status_code == 201
    assert response.json()[0]["original_text"] == "cat"

    listed = client.get("/documents/doc-1/suggestions").json()
    assert [s["suggested_text"] for s in listed] == ["dog"]

    missing = client.post("/documents/doc-1/suggestions", json=[{
        "document_created_at": "2000-01-01T00:00:00Z",
        "original_text": "cat",
        "suggested_text": "dog"
    }])
    assert missing.status_code == 404

    empty = client.post("/documents/doc-1/suggestions", json=[])
    assert empty.status_code == 400


def test_open_document_in_chat(client):
    save_version(client, "hello")

    response = client.post("/chats/chat-1/documents/doc-1/open")

    assert response.status_code == 200
    assert response.json()["content"] == "hello"
    assert response.json()["status"] == "idle"

    draft = client.get("/chats/chat-1/draft")
    assert draft.json()["document_id"] == "doc-1"

    assert client.post("/chats/chat-1/documents/missing/open").status_code == 404

    assert client.delete("/chats/chat-1").status_code == 204
    assert client.get("/chats/chat-1/draft").status_code == 404


def test_console_endpoints(client):
    response = client.post("/chats/chat-1/console", json={"id": "run-1", "content": "running"})
    assert response.json()["revision"] == 1

    response = client.post(
        "/chats/chat-1/console",
        json={"id": "run-1", "status": "completed", "content": "42"}
    )
    assert response.json() == {
        "outputs": [{"id": "run-1", "status": "completed", "content": "42"}],
        "revision": 1
    }

    response = client.post(
        "/chats/chat-1/console",
        json={"id": "run-2", "status": "failed", "content": {"type": "ValueError"}}
    )
    assert response.status_code == 422

    assert client.delete("/chats/chat-1/console").status_code == 204

    response = client.get("/chats/chat-1/console")
    assert response.json() == {"outputs": [], "revision": 2}

    assert client.get("/chats/unknown/console").status_code == 404


def test_websocket_stream(client):
    with client.websocket_connect("/chats/chat-1/stream/client-1") as websocket:
        for position, record in enumerate(INTRO_STREAM):
            websocket.send_json({"type": "delta", "data": record, "position": position})
        # Повторная доставка отбрасывается
        websocket.send_json({"type": "delta", "data": INTRO_STREAM[4], "position": 4})
        websocket.send_json({"type": "sync_request"})

        drafts = []
        while True:
            message = websocket.receive_json()
            if message["type"] == "sync_response":
                break
            assert message["type"] == "draft"
            drafts.append(message["data"])

        assert len(drafts) == 5
        assert drafts[-1] == {
            "document_id": "doc-1",
            "title": "Intro",
            "kind": "text",
            "content": "hello",
            "status": "idle",
            "is_visible": False
        }
        assert message["data"]["processed"] == 6
        assert message["data"]["last_message_id"] == "msg-1"

        websocket.send_json({"type": "ping"})
        assert websocket.receive_json() == {"type": "pong"}

    versions = client.get("/documents/doc-1/versions").json()
    assert versions["total"] == 1
    assert versions["versions"][0]["content"] == "hello"


def test_websocket_reports_malformed_delta(client):
    with client.websocket_connect("/chats/chat-1/stream/client-1") as websocket:
        websocket.send_json({"type": "delta", "data": {"type": "image-delta", "content": "..."}})

        message = websocket.receive_json()

        assert message["type"] == "error"
        assert message["data"]["kind"] == "malformed_delta"
        assert message["data"]["position"] == 0


def test_restore_resets_every_open_session(client):
    first = save_version(client, "v0")
    save_version(client, "v1")
    client.post("/chats/chat-1/documents/doc-1/open")
    client.post("/chats/chat-2/documents/doc-1/open")

    response = client.patch("/documents/doc-1", json={"timestamp": first["created_at"]})

    assert response.status_code == 200
    assert client.get("/chats/chat-1/draft").json()["content"] == "v0"
    assert client.get("/chats/chat-2/draft").json()["content"] == "v0"


def test_explicit_save_resets_open_session(client):
    save_version(client, "v0")
    client.post("/chats/chat-1/documents/doc-1/open")

    save_version(client, "saved elsewhere")

    assert client.get("/chats/chat-1/draft").json()["content"] == "saved elsewhere"


def test_edit_and_save_draft(client):
    save_version(client, "hello")
    client.post("/chats/chat-1/documents/doc-1/open")

    response = client.patch("/chats/chat-1/draft", json={"content": "hello, world"})
    assert response.status_code == 200
    assert response.json()["content"] == "hello, world"

    response = client.post("/chats/chat-1/draft/versions", params={"author_id": "user-2"})
    assert response.status_code == 201
    assert response.json()["content"] == "hello, world"
    assert response.json()["author_id"] == "user-2"

    versions = client.get("/documents/doc-1/versions").json()["versions"]
    assert [v["content"] for v in versions] == ["hello", "hello, world"]

    assert client.patch("/chats/unknown/draft", json={"content": "x"}).status_code == 404


def test_closing_session_drops_its_connections(client):
    with client.websocket_connect("/chats/chat-1/stream/client-1") as websocket:
        assert client.delete("/chats/chat-1").status_code == 204

        with pytest.raises(WebSocketDisconnect):
            websocket.receive_json()

    with client.websocket_connect("/chats/chat-1/stream/client-1") as websocket:
        websocket.send_json({"type": "delta", "data": {"type": "text-delta", "content": "hello"}})

        message = websocket.receive_json()

        assert message["type"] == "draft"
        assert message["data"]["content"] == "hello"


def test_websocket_rejects_malformed_messages(client):
    with client.websocket_connect("/chats/chat-1/stream/client-1") as websocket:
        websocket.send_json(["delta"])
        assert websocket.receive_json()["type"] == "error"

        websocket.send_json({"type": "deltas", "data": {"type": "finish"}})
        assert websocket.receive_json()["type"] == "error"

        websocket.send_text("not json")
        assert websocket.receive_json()["type"] == "error"

        websocket.send_json({"type": "ping"})
        assert websocket.receive_json() == {"type": "pong"}
