from __future__ import annotations


def _register(client, first_name: str, phone: str) -> tuple[str, str]:
    response = client.post(
        "/v1/auth/register",
        json={
            "first_name": first_name,
            "last_name": "Test",
            "phone": phone,
            "password": "password123",
            "account_type": "individual",
        },
    )
    assert response.status_code == 201
    data = response.json()["data"]
    return data["user"]["id"], data["tokens"]["access_token"]


def _auth_headers(access_token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {access_token}"}


def _open_conversation(client, token: str, participant_id: str) -> str:
    response = client.post(
        "/v1/messages/conversations", json={"participant_id": participant_id}, headers=_auth_headers(token)
    )
    assert response.status_code == 200
    return response.json()["data"]["conversation"]["id"]


def _send(client, token: str, conversation_id: str, **body):
    return client.post(
        f"/v1/messages/conversations/{conversation_id}/messages",
        json=body,
        headers=_auth_headers(token),
    )


def test_send_message_payload(client):
    alice_id, alice_token = _register(client, "Alice", "+33 6 30 00 00 01")
    bob_id, _ = _register(client, "Bob", "+33 6 30 00 00 02")
    conversation_id = _open_conversation(client, alice_token, bob_id)

    response = _send(
        client,
        alice_token,
        conversation_id,
        content="  Here is the quote  ",
        message_type="file",
        attachments=[{"type": "file", "url": "https://cdn.example.com/q.pdf", "filename": "q.pdf", "size": 1200}],
    )

    assert response.status_code == 201
    message = response.json()["data"]
    assert message["content"] == "Here is the quote"
    assert message["seq"] == 1
    assert message["sender"]["id"] == alice_id
    assert message["sender"]["name"] == "Alice Test"
    assert message["is_from_current_user"] is True
    assert message["attachments"] == [
        {"type": "file", "url": "https://cdn.example.com/q.pdf", "filename": "q.pdf", "size": 1200}
    ]
    assert message["is_read"] is False
    assert message["reply_to"] is None


def test_overlong_message_reports_content_field(client):
    _, alice_token = _register(client, "Alice", "+33 6 30 00 00 03")
    bob_id, _ = _register(client, "Bob", "+33 6 30 00 00 04")
    conversation_id = _open_conversation(client, alice_token, bob_id)

    response = _send(client, alice_token, conversation_id, content="x" * 1001)

    assert response.status_code == 422
    error = response.json()["error"]
    assert error["code"] == "validation_error"
    assert error["details"][0]["field"] == "content"

    page = client.get(
        f"/v1/messages/conversations/{conversation_id}/messages", headers=_auth_headers(alice_token)
    ).json()["data"]
    assert page["messages"] == []


def test_unknown_conversation_id_is_not_found(client):
    _, alice_token = _register(client, "Alice", "+33 6 30 00 00 05")

    for conversation_id in ("does-not-exist", "44444444-4444-4444-4444-444444444444"):
        response = _send(client, alice_token, conversation_id, content="hi")
        assert response.status_code == 404


def test_edit_and_read_single_message(client):
    _, alice_token = _register(client, "Alice", "+33 6 30 00 00 06")
    bob_id, bob_token = _register(client, "Bob", "+33 6 30 00 00 07")
    conversation_id = _open_conversation(client, alice_token, bob_id)
    message_id = _send(client, alice_token, conversation_id, content="draft").json()["data"]["id"]

    edited = client.patch(f"/v1/messages/{message_id}", json={"content": "final"}, headers=_auth_headers(alice_token))
    assert edited.status_code == 200
    assert edited.json()["data"]["content"] == "final"
    assert edited.json()["data"]["is_edited"] is True

    forbidden = client.patch(f"/v1/messages/{message_id}", json={"content": "mine now"}, headers=_auth_headers(bob_token))
    assert forbidden.status_code == 403
    assert forbidden.json()["error"]["code"] == "not_message_sender"

    assert client.get("/v1/messages/unread-count", headers=_auth_headers(bob_token)).json()["data"]["unread_count"] == 1
    read = client.put(f"/v1/messages/{message_id}/read", headers=_auth_headers(bob_token))
    assert read.status_code == 200
    assert read.json()["data"]["is_read"] is True
    assert client.get("/v1/messages/unread-count", headers=_auth_headers(bob_token)).json()["data"]["unread_count"] == 0

    conversations = client.get("/v1/messages/conversations", headers=_auth_headers(bob_token)).json()["data"]
    assert conversations[0]["unread_count"] == 0
    assert conversations[0]["last_message"]["content"] == "draft"


def test_reply_preview(client):
    _, alice_token = _register(client, "Alice", "+33 6 30 00 00 08")
    bob_id, bob_token = _register(client, "Bob", "+33 6 30 00 00 09")
    conversation_id = _open_conversation(client, alice_token, bob_id)
    question_id = _send(client, alice_token, conversation_id, content="Tuesday?").json()["data"]["id"]

    reply = _send(client, bob_token, conversation_id, content="Works for me", reply_to=question_id)

    assert reply.status_code == 201
    assert reply.json()["data"]["reply_to"] == {"id": question_id, "content": "Tuesday?", "sender_name": "Alice Test"}


def test_search_endpoint(client):
    _, alice_token = _register(client, "Alice", "+33 6 30 00 00 10")
    bob_id, bob_token = _register(client, "Bob", "+33 6 30 00 00 11")
    conversation_id = _open_conversation(client, alice_token, bob_id)
    _send(client, alice_token, conversation_id, content="Can you fix the BOILER?")
    _send(client, bob_token, conversation_id, content="Yes, boiler service is 80 euros")
    _send(client, bob_token, conversation_id, content="See you tomorrow")

    everywhere = client.get("/v1/messages/search", params={"q": "boiler"}, headers=_auth_headers(alice_token))
    assert everywhere.status_code == 200
    body = everywhere.json()["data"]
    assert body["count"] == 2
    assert [hit["content"] for hit in body["messages"]] == [
        "Yes, boiler service is 80 euros",
        "Can you fix the BOILER?",
    ]

    scoped = client.get(
        "/v1/messages/search",
        params={"q": "tomorrow", "conversation_id": conversation_id},
        headers=_auth_headers(bob_token),
    )
    assert scoped.json()["data"]["count"] == 1

    blank = client.get("/v1/messages/search", params={"q": "  "}, headers=_auth_headers(alice_token))
    assert blank.status_code == 422
    assert blank.json()["error"]["details"][0]["field"] == "q"

    malformed = client.get(
        "/v1/messages/search",
        params={"q": "boiler", "conversation_id": "not-an-id"},
        headers=_auth_headers(alice_token),
    )
    assert malformed.status_code == 422
    assert malformed.json()["error"]["details"][0]["field"] == "conversation_id"


def test_health_check(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["data"]["status"] == "ok"
