"""End-to-end tests for the chat and conversation endpoints."""

from uuid import uuid4

import pytest

from echo_api.services.model_gateway import PLACEHOLDER_RESPONSE, ModelGateway


async def test_health(client):
    response = await client.get("/api/health")
    assert response.status_code == 200
    assert response.json() == {
        "success": True,
        "status": "healthy",
        "storage": "memory",
        "aiConfigured": True,
    }


async def test_unknown_route_uses_error_envelope(client):
    response = await client.get("/api/nothing-here")
    assert response.status_code == 404
    assert response.json() == {"success": False, "message": "Route GET /api/nothing-here not found"}


async def test_chat_requires_auth(client):
    response = await client.post("/api/chat", json={"message": "What is 2+2?"})
    assert response.status_code == 401


async def test_first_message_then_history_and_conversation(client, login, test_app):
    user, headers = await login()

    response = await client.post("/api/chat", json={"message": "What is 2+2?"}, headers=headers)
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["response"] == "2 + 2 = 4"
    assert body["metadata"]["title"] == "What is 2+2?"
    assert body["metadata"]["messageCount"] == 2
    assert body["metadata"]["persona"] == "default"
    conversation_id = body["conversationId"]

    await test_app.state.orchestrator.drain()

    response = await client.get(f"/api/history/{user['id']}", headers=headers)
    history = response.json()
    assert history["count"] == 1
    assert history["conversations"][0]["id"] == conversation_id
    assert history["conversations"][0]["title"] == "Simple Arithmetic Question"
    assert "lastActivity" in history["conversations"][0]

    response = await client.get(f"/api/conversation/{conversation_id}", headers=headers)
    conversation = response.json()["conversation"]
    assert [(m["role"], m["text"]) for m in conversation["messages"]] == [
        ("user", "What is 2+2?"),
        ("assistant", "2 + 2 = 4"),
    ]


async def test_follow_up_in_same_conversation(client, login, gateway):
    _, headers = await login()
    first = (await client.post("/api/chat", json={"message": "My name is Ada"}, headers=headers)).json()

    response = await client.post(
        "/api/chat",
        json={"message": "What is my name?", "conversationId": first["conversationId"], "persona": "writer"},
        headers=headers,
    )
    body = response.json()
    assert body["conversationId"] == first["conversationId"]
    assert body["metadata"]["messageCount"] == 4
    assert body["metadata"]["persona"] == "writer"
    assert gateway.calls[-1]["temperature"] == 0.9


@pytest.mark.parametrize(
    "payload",
    [
        {},
        {"message": "   "},
        {"message": "x" * 10001},
        {"message": "hi", "temperature": 3},
        {"message": "hi", "conversationId": "not-a-uuid"},
    ],
)
async def test_chat_rejects_invalid_input(client, login, payload):
    _, headers = await login()
    response = await client.post("/api/chat", json=payload, headers=headers)
    assert response.status_code == 400
    assert response.json()["success"] is False


async def test_chat_user_id_must_match_caller(client, login):
    _, headers = await login()
    response = await client.post(
        "/api/chat", json={"message": "hi", "userId": str(uuid4())}, headers=headers
    )
    assert response.status_code == 403


async def test_conversations_are_private(client, login):
    owner, owner_headers = await login()
    _, other_headers = await login(name="Mallory", email="mallory@example.com")

    conversation_id = (
        await client.post("/api/chat", json={"message": "secret"}, headers=owner_headers)
    ).json()["conversationId"]

    for method, url, kwargs in [
        ("GET", f"/api/conversation/{conversation_id}", {}),
        ("PATCH", f"/api/conversation/{conversation_id}", {"json": {"title": "mine now"}}),
        ("DELETE", f"/api/conversation/{conversation_id}", {}),
        ("POST", "/api/chat", {"json": {"message": "hi", "conversationId": conversation_id}}),
        ("GET", f"/api/history/{owner['id']}", {}),
    ]:
        response = await client.request(method, url, headers=other_headers, **kwargs)
        assert response.status_code == 403, (method, url)

    response = await client.get(f"/api/conversation/{conversation_id}", headers=owner_headers)
    assert len(response.json()["conversation"]["messages"]) == 2


async def test_unknown_conversation_is_404(client, login):
    _, headers = await login()
    response = await client.get(f"/api/conversation/{uuid4()}", headers=headers)
    assert response.status_code == 404
    assert response.json()["message"] == "Conversation not found"


async def test_model_failure_returns_502_and_keeps_user_message(client, login, gateway):
    _, headers = await login()
    gateway.fail_with("connection reset")

    response = await client.post("/api/chat", json={"message": "What is 2+2?"}, headers=headers)
    assert response.status_code == 502
    body = response.json()
    assert body["success"] is False
    assert body["message"] == "Error generating AI response."
    assert body["error"] == "connection reset"
    conversation_id = body["conversationId"]

    response = await client.get(f"/api/conversation/{conversation_id}", headers=headers)
    messages = response.json()["conversation"]["messages"]
    assert [(m["role"], m["text"]) for m in messages] == [("user", "What is 2+2?")]


async def test_placeholder_response_without_api_key(client, login, test_app, settings):
    gateway = ModelGateway(settings)
    test_app.state.gateway = gateway
    test_app.state.orchestrator.gateway = gateway
    _, headers = await login()

    response = await client.post("/api/chat", json={"message": "hello"}, headers=headers)
    assert response.status_code == 200
    body = response.json()
    assert body["response"] == PLACEHOLDER_RESPONSE
    assert body["metadata"]["model"] is None


async def test_rename_and_delete_conversation(client, login, test_app):
    user, headers = await login()
    conversation_id = (
        await client.post("/api/chat", json={"message": "hello"}, headers=headers)
    ).json()["conversationId"]
    await test_app.state.orchestrator.drain()

    response = await client.patch(
        f"/api/conversation/{conversation_id}", json={"title": "Greetings"}, headers=headers
    )
    assert response.status_code == 200
    assert response.json()["conversation"]["title"] == "Greetings"

    response = await client.delete(f"/api/conversation/{conversation_id}", headers=headers)
    assert response.status_code == 200
    assert response.json() == {"success": True, "message": "Conversation deleted successfully"}

    response = await client.get(f"/api/conversation/{conversation_id}", headers=headers)
    assert response.status_code == 404
    history = (await client.get(f"/api/history/{user['id']}", headers=headers)).json()
    assert history["count"] == 0


async def test_personas_are_public(client):
    response = await client.get("/api/personas")
    assert response.status_code == 200
    keys = [p["key"] for p in response.json()["personas"]]
    assert keys == ["default", "developer", "debugger", "writer"]
    assert "displayName" in response.json()["personas"][0]


async def test_reply_whitespace_is_returned_verbatim(client, login, gateway):
    _, headers = await login()
    gateway.reply = "    def f():\n        return 1\n"

    body = (await client.post("/api/chat", json={"message": "show code"}, headers=headers)).json()
    assert body["response"] == "    def f():\n        return 1\n"

    response = await client.get(f"/api/conversation/{body['conversationId']}", headers=headers)
    messages = response.json()["conversation"]["messages"]
    assert messages[1]["text"] == "    def f():\n        return 1\n"
