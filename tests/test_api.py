"""HTTP and WebSocket tests against the assembled application."""

import pytest
from fastapi.testclient import TestClient

from relaychat.main import create_app


@pytest.fixture
def client(config):
    with TestClient(create_app(config)) as test_client:
        yield test_client


def register(client: TestClient, username: str) -> dict:
    response = client.post(
        "/register",
        json={"username": username, "email": f"{username}@example.com", "password": "secret123"},
    )
    assert response.status_code == 201, response.text
    return response.json()


def auth(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def ws_auth(ws, token: str) -> dict:
    ws.send_json({"event": "authenticate", "data": {"token": token}})
    frame = ws.receive_json()
    assert frame["event"] == "authenticated"
    assert ws.receive_json()["event"] == "online-users"
    return frame["data"]


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["online_users"] == 0


class TestAuthEndpoints:
    def test_register_and_login(self, client):
        created = register(client, "alice")
        assert created["success"] is True
        assert created["user"]["username"] == "alice"
        assert created["token"]

        response = client.post("/login", json={"username": "alice", "password": "secret123"})
        assert response.status_code == 200
        assert response.json()["user"]["id"] == created["user"]["id"]

    def test_duplicate_username_conflict(self, client):
        register(client, "alice")

        response = client.post(
            "/register",
            json={"username": "Alice", "email": "other@example.com", "password": "secret123"},
        )

        assert response.status_code == 409
        assert response.json()["kind"] == "DuplicateUsername"

    def test_invalid_registration(self, client):
        response = client.post(
            "/register", json={"username": "al", "email": "al@example.com", "password": "secret123"}
        )

        assert response.status_code == 400
        assert response.json()["kind"] == "ValidationError"

    def test_wrong_password(self, client):
        register(client, "alice")

        response = client.post("/login", json={"username": "alice", "password": "nope-nope"})

        assert response.status_code == 401
        assert response.json()["kind"] == "InvalidCredentials"

    def test_me_and_users(self, client):
        alice = register(client, "alice")
        register(client, "bob")

        me = client.get("/me", headers=auth(alice["token"]))
        assert me.status_code == 200
        assert me.json()["username"] == "alice"
        assert "hashed_password" not in me.json()

        users = client.get("/users", headers=auth(alice["token"]))
        assert [u["username"] for u in users.json()["users"]] == ["alice", "bob"]

    def test_bad_token_is_unauthorized(self, client):
        response = client.get("/me", headers=auth("garbage"))

        assert response.status_code == 401
        assert response.json()["kind"] == "InvalidToken"

    def test_missing_token_is_unauthorized(self, client):
        assert client.get("/me").status_code == 401


class TestContactEndpoints:
    def test_contacts_and_blocks(self, client):
        alice = register(client, "alice")
        bob = register(client, "bob")
        headers = auth(alice["token"])

        created = client.post("/contacts", json={"contact_email": "bob@example.com"}, headers=headers)
        assert created.status_code == 201
        assert created.json()["contact_name"] == "bob"

        duplicate = client.post("/contacts", json={"contact_email": "bob@example.com"}, headers=headers)
        assert duplicate.status_code == 409

        listed = client.get("/contacts", headers=headers).json()
        assert [c["contact_id"] for c in listed] == [bob["user"]["id"]]

        assert client.delete(f"/contacts/{created.json()['id']}", headers=headers).status_code == 200
        assert client.get("/contacts", headers=headers).json() == []

        blocked = client.post("/blocks", json={"blocked_user_id": bob["user"]["id"]}, headers=headers)
        assert blocked.status_code == 201
        assert [b["blocked_username"] for b in client.get("/blocks", headers=headers).json()] == ["bob"]

        assert client.delete(f"/blocks/{bob['user']['id']}", headers=headers).status_code == 200
        assert client.get("/blocks", headers=headers).json() == []

    def test_unknown_contact_email(self, client):
        alice = register(client, "alice")

        response = client.post(
            "/contacts", json={"contact_email": "ghost@example.com"}, headers=auth(alice["token"])
        )

        assert response.status_code == 404


class TestRealtime:
    def test_chat_over_websocket(self, client):
        alice = register(client, "alice")
        bob = register(client, "bob")

        with client.websocket_connect("/ws") as alice_ws:
            user = ws_auth(alice_ws, alice["token"])
            assert user["user"]["id"] == alice["user"]["id"]

            with client.websocket_connect("/ws") as bob_ws:
                ws_auth(bob_ws, bob["token"])
                status = alice_ws.receive_json()
                assert status == {
                    "event": "user-status",
                    "data": {"userId": bob["user"]["id"], "username": "bob", "online": True},
                }

                alice_ws.send_json({
                    "event": "send-message",
                    "data": {"receiverId": bob["user"]["id"], "message": "hi bob"},
                })
                incoming = bob_ws.receive_json()
                assert incoming["event"] == "new-message"
                assert incoming["data"]["message"] == "hi bob"
                sent = alice_ws.receive_json()
                assert sent["event"] == "message-sent"
                assert sent["data"]["id"] == incoming["data"]["id"]

                bob_ws.send_json({"event": "typing", "data": {"receiverId": alice["user"]["id"], "isTyping": True}})
                typing = alice_ws.receive_json()
                assert typing["event"] == "user-typing"
                assert typing["data"]["isTyping"] is True

            offline = alice_ws.receive_json()
            assert offline["event"] == "user-status"
            assert offline["data"]["online"] is False

        history = client.get(f"/messages/{bob['user']['id']}", headers=auth(alice["token"]))
        assert [m["message"] for m in history.json()] == ["hi bob"]
        assert history.json()[0]["delivered"] is True

    def test_unauthenticated_socket(self, client):
        with client.websocket_connect("/ws") as ws:
            ws.send_json({"event": "send-message", "data": {"receiverId": 1, "message": "x"}})
            assert ws.receive_json() == {
                "event": "error",
                "data": {"kind": "NotAuthenticated", "error": "Not authenticated"},
            }

            ws.send_json({"event": "authenticate", "data": {"token": "garbage"}})
            assert ws.receive_json() == {"event": "auth-error", "data": {"error": "Invalid token"}}

    def test_frame_without_event(self, client):
        with client.websocket_connect("/ws") as ws:
            ws.send_json(["not", "an", "object"])
            frame = ws.receive_json()

            assert frame["event"] == "error"
            assert frame["data"]["kind"] == "ValidationError"

    def test_binary_frame_is_rejected_and_socket_stays_open(self, client):
        alice = register(client, "alice")

        with client.websocket_connect("/ws") as ws:
            ws.send_bytes(b"\x00\x01")
            frame = ws.receive_json()
            assert frame["event"] == "error"
            assert frame["data"]["kind"] == "ValidationError"

            user = ws_auth(ws, alice["token"])
            assert user["user"]["username"] == "alice"


class TestMessageEndpoints:
    def test_rest_edit_delete_and_views(self, client):
        alice = register(client, "alice")
        bob = register(client, "bob")

        with client.websocket_connect("/ws") as alice_ws:
            ws_auth(alice_ws, alice["token"])
            alice_ws.send_json({
                "event": "send-message",
                "data": {"receiverId": bob["user"]["id"], "message": "helo"},
            })
            message_id = alice_ws.receive_json()["data"]["id"]

        unread = client.get("/unread", headers=auth(bob["token"])).json()
        assert unread == [{"sender_id": alice["user"]["id"], "count": 1}]

        chats = client.get("/chats", headers=auth(bob["token"])).json()
        assert chats[0]["username"] == "alice"
        assert chats[0]["unread_count"] == 1

        forged = client.put(f"/messages/{message_id}", json={"message": "x"}, headers=auth(bob["token"]))
        assert forged.status_code == 403

        edited = client.put(f"/messages/{message_id}", json={"message": "hello"}, headers=auth(alice["token"]))
        assert edited.status_code == 200
        assert edited.json()["message"] == "hello"
        assert edited.json()["edited"] is True

        deleted = client.delete(
            f"/messages/{message_id}",
            params={"delete_for_everyone": True},
            headers=auth(alice["token"]),
        )
        assert deleted.json() == {"success": True, "message_id": message_id, "delete_for_everyone": True}

        history = client.get(f"/messages/{alice['user']['id']}", headers=auth(bob["token"])).json()
        assert history[0]["message"] == "This message was deleted"
        assert history[0]["deleted"] is True

        missing = client.put("/messages/9999", json={"message": "x"}, headers=auth(alice["token"]))
        assert missing.status_code == 404
