import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from supporthub.core import dependencies
from supporthub.core.websocket import manager
from supporthub.domain.agents.agent import Agent
from supporthub.main import create_app
from supporthub.services.agent_service import AgentService
from supporthub.services.chat_service import ChatService
from supporthub.utils.security import Security


@pytest.fixture
def chat_service(session_repo, message_repo, config_service):
    # real connection manager so WebSocket subscribers see events
    return ChatService(session_repo, message_repo, config_service, notifier=manager)


@pytest.fixture
def security(cache, env):
    return Security(cache, env=env)


@pytest.fixture
def agent_service(agent_repo, cache, security):
    return AgentService(agent_repo, cache, security)


@pytest.fixture
def app(chat_service, config_service, agent_service, security):
    app = create_app(with_lifespan=False)
    app.dependency_overrides[dependencies.get_chat_service] = lambda: chat_service
    app.dependency_overrides[dependencies.get_config_service] = lambda: config_service
    app.dependency_overrides[dependencies.get_agent_service] = lambda: agent_service
    app.dependency_overrides[dependencies.get_security] = lambda: security
    return app


@pytest.fixture
def client(app):
    with TestClient(app) as client:
        yield client


@pytest.fixture
def agent_headers(client, agent_repo):
    stored = Agent(name="Grace Hopper", email="grace@acme.io", password="s3cret!").to_dict()
    stored["_id"] = "agent-1"
    agent_repo.agents["agent-1"] = stored

    resp = client.post("/api/auth/login", data={"username": "grace@acme.io", "password": "s3cret!"})
    assert resp.status_code == 200, resp.text
    return {"Authorization": f"Bearer {resp.json()['access_token']}"}


def _start(client, **overrides):
    body = {"name": "Ada", "email": "ada@x.com", "message": "Help", **overrides}
    return client.post("/api/public/chat/start", json=body)


def test_start_chat(client):
    resp = _start(client, websiteUrl="https://shop.example/cart")

    assert resp.status_code == 201
    body = resp.json()
    assert body["status"] == "waiting"
    assert body["websiteUrl"] == "https://shop.example/cart"
    assert [m["sender"] for m in body["messages"]] == ["system", "customer"]


def test_start_chat_with_blank_field_is_400(client):
    resp = _start(client, email="")

    assert resp.status_code == 400
    assert "Email" in resp.json()["detail"]


def test_customer_message_and_public_transcript(client):
    session_id = _start(client).json()["id"]

    resp = client.post("/api/public/chat/message", json={"sessionId": session_id, "content": "Order 42"})
    assert resp.status_code == 201
    assert resp.json()["sender"] == "customer"
    assert resp.json()["senderName"] == "Ada"

    transcript = client.get(f"/api/public/chat/session/{session_id}").json()
    assert [m["content"] for m in transcript["messages"]][-1] == "Order 42"


def test_customer_message_requires_session_and_content(client):
    resp = client.post("/api/public/chat/message", json={"content": "hi"})

    assert resp.status_code == 400


def test_customer_message_to_unknown_session_is_404(client):
    resp = client.post("/api/public/chat/message", json={"sessionId": "nope", "content": "hi"})

    assert resp.status_code == 404


def test_public_chat_settings(client):
    resp = client.get("/api/public/settings/chat")

    assert resp.status_code == 200
    assert resp.json()["enabled"] is True
    assert resp.json()["companyName"] == "Acme"


def test_agent_routes_require_token(client):
    assert client.get("/api/agent/chat-sessions").status_code == 401
    bad = client.get("/api/agent/chat-sessions", headers={"Authorization": "Bearer nonsense"})
    assert bad.status_code == 401


def test_agent_flow(client, agent_headers):
    session_id = _start(client).json()["id"]

    listed = client.get("/api/agent/chat-sessions", headers=agent_headers).json()
    assert [s["id"] for s in listed] == [session_id]

    assigned = client.post(f"/api/agent/chat-sessions/{session_id}/assign", headers=agent_headers)
    assert assigned.status_code == 200
    assert assigned.json()["status"] == "active"
    assert assigned.json()["assignedAgentName"] == "Grace Hopper"

    again = client.post(f"/api/agent/chat-sessions/{session_id}/assign", headers=agent_headers)
    assert again.status_code == 409
    assert "taken by another agent" in again.json()["detail"]

    sent = client.post(f"/api/agent/chat-sessions/{session_id}/messages", json={"content": "Hi"}, headers=agent_headers)
    assert sent.status_code == 201
    assert sent.json()["sender"] == "agent"
    assert sent.json()["senderName"] == "Grace Hopper"

    detail = client.get(f"/api/agent/chat-sessions/{session_id}", headers=agent_headers).json()
    assert [m["sender"] for m in detail["messages"]] == ["system", "customer", "agent"]

    ended = client.post(f"/api/agent/chat-sessions/{session_id}/end", headers=agent_headers)
    assert ended.status_code == 200
    assert ended.json()["session"]["status"] == "ended"

    late = client.post(f"/api/agent/chat-sessions/{session_id}/messages", json={"content": "Bye"}, headers=agent_headers)
    assert late.status_code == 409
    assert client.get("/api/agent/chat-sessions", headers=agent_headers).json() == []


def test_logout_revokes_token(client, agent_headers):
    assert client.get("/api/auth/me", headers=agent_headers).json()["name"] == "Grace Hopper"

    assert client.post("/api/auth/logout", headers=agent_headers).status_code == 200

    assert client.get("/api/auth/me", headers=agent_headers).status_code == 401


def test_admin_routes_reject_agents(client, agent_headers):
    assert client.get("/api/admin/agents", headers=agent_headers).status_code == 403


def test_login_with_wrong_password(client, agent_headers):
    resp = client.post("/api/auth/login", data={"username": "grace@acme.io", "password": "wrong"})

    assert resp.status_code == 401


def test_session_websocket_pushes_new_messages(client):
    session_id = _start(client).json()["id"]

    with client.websocket_connect(f"/api/public/chat/ws/{session_id}") as ws:
        snapshot = ws.receive_json()
        assert snapshot["type"] == "snapshot"
        assert len(snapshot["data"]["messages"]) == 2

        client.post("/api/public/chat/message", json={"sessionId": session_id, "content": "Anyone?"})

        event = ws.receive_json()
        assert event["type"] == "message"
        assert event["data"]["content"] == "Anyone?"



def test_session_websocket_keeps_events_published_while_snapshot_is_read(client, chat_service, monkeypatch):
    session_id = _start(client).json()["id"]
    read = chat_service.get_session_with_messages

    async def read_then_customer_posts(sid):
        snapshot = await read(sid)
        await chat_service.send_customer_message(sid, "Sent mid-read")
        return snapshot
    monkeypatch.setattr(chat_service, "get_session_with_messages", read_then_customer_posts)

    with client.websocket_connect(f"/api/public/chat/ws/{session_id}") as ws:
        received = [ws.receive_json(), ws.receive_json()]

    assert sorted(e["type"] for e in received) == ["message", "snapshot"]
    event = next(e for e in received if e["type"] == "message")
    assert event["data"]["content"] == "Sent mid-read"

def test_session_websocket_rejects_unknown_session(client):
    with pytest.raises(WebSocketDisconnect):
        with client.websocket_connect("/api/public/chat/ws/unknown") as ws:
            ws.receive_json()


def test_agent_websocket_requires_token(client):
    with pytest.raises(WebSocketDisconnect):
        with client.websocket_connect("/api/agent/chat-sessions/ws") as ws:
            ws.receive_json()
