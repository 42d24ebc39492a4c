# tests/unit/api/presence/test_routes.py
import pytest


@pytest.fixture
def alice_headers(alice, auth_headers):
    return auth_headers(alice)


@pytest.fixture
def bob_headers(bob, auth_headers):
    return auth_headers(bob)


@pytest.fixture
def general(client, alice_headers, bob):
    response = client.post(
        "/api/channels", json={"name": "general", "members": [bob.id]}, headers=alice_headers
    )
    return response.json["channel"]


def test_update_and_read_presence(client, alice, general, alice_headers, bob_headers):
    response = client.post(
        "/api/presence",
        json={"status": "away", "status_message": "back soon", "current_channel_id": general["id"]},
        headers=alice_headers,
    )
    assert response.status_code == 200
    assert response.json["presence"]["status"] == "away"

    seen = client.get("/api/presence", headers=bob_headers).json
    assert [(e["user_id"], e["status"]) for e in seen["presence"]] == [(alice.id, "away")]
    assert seen["summary"]["away_count"] == 1

    own = client.get("/api/presence?include_self=true", headers=alice_headers).json
    assert own["summary"]["total_users"] == 1


def test_update_presence_validation(client, alice_headers):
    assert client.post("/api/presence", json={}, headers=alice_headers).status_code == 400
    response = client.post("/api/presence", json={"status": "sleeping"}, headers=alice_headers)
    assert response.status_code == 400


def test_channel_presence_of_hidden_channel(client, alice_headers, carol, auth_headers):
    secret = client.post(
        "/api/channels", json={"name": "secret", "type": "private"}, headers=alice_headers
    ).json["channel"]

    response = client.get(f"/api/presence?channel_id={secret['id']}", headers=auth_headers(carol))
    assert response.status_code == 403


def test_typing_indicator(client, general, alice_headers, bob_headers):
    response = client.post(
        "/api/presence/typing", json={"channel_id": general["id"]}, headers=alice_headers
    )
    assert response.status_code == 200
    assert response.json == {"channel_id": general["id"], "is_typing": True}

    stopped = client.post(
        "/api/presence/typing", json={"channel_id": general["id"], "is_typing": False}, headers=alice_headers
    )
    assert stopped.json["is_typing"] is False
    assert client.post("/api/presence/typing", json={}, headers=bob_headers).status_code == 400


def test_presence_requires_session(client):
    assert client.get("/api/presence").status_code == 401
