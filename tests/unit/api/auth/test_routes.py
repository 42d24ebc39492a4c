# tests/unit/api/auth/test_routes.py
import pytest

from collabchat.models import AuditLog
from tests.utils import PASSWORD


def test_login_success(client, alice, tenant_one):
    """Login returns a bearer token and the caller's active tenant"""
    response = client.post("/api/auth/login", json={"email": "alice@example.com", "password": PASSWORD})

    assert response.status_code == 200
    data = response.json
    assert data["token"]
    assert data["user"]["id"] == alice.id
    assert data["user"]["role"] == "standard_user"
    assert data["active_tenant_id"] == tenant_one.id
    assert data["active_tenant"]["code"] == "acme"
    assert data["expires_at"]


def test_login_invalid_credentials(client, alice):
    """Test login with wrong password and with unknown email"""
    wrong = client.post("/api/auth/login", json={"email": "alice@example.com", "password": "nope"})
    unknown = client.post("/api/auth/login", json={"email": "ghost@example.com", "password": PASSWORD})

    assert wrong.status_code == 401
    assert unknown.status_code == 401
    assert wrong.json == unknown.json
    assert wrong.json["error"] == "invalid_credentials"


def test_login_missing_fields(client):
    response = client.post("/api/auth/login", json={"email": "alice@example.com"})
    assert response.status_code == 400
    assert response.json["error"] == "validation_error"
    assert "password" in response.json["fields"]


def test_login_is_audited(client, alice):
    client.post(
        "/api/auth/login",
        json={"email": "alice@example.com", "password": PASSWORD},
        headers={"User-Agent": "pytest-client"},
    )
    entry = AuditLog.query.filter_by(action="login", user_id=alice.id).one()
    assert entry.user_agent == "pytest-client"


def test_me(client, special_user, auth_headers):
    response = client.get("/api/auth/me", headers=auth_headers(special_user))

    assert response.status_code == 200
    data = response.json
    assert data["user"]["email"] == "sam@example.com"
    assert {t["code"] for t in data["tenants"]} == {"acme", "globex"}


@pytest.mark.parametrize(
    "headers",
    [{}, {"Authorization": "Bearer"}, {"Authorization": "Basic abc"}, {"Authorization": "Bearer junk"}],
)
def test_me_requires_valid_token(client, headers):
    response = client.get("/api/auth/me", headers=headers)
    assert response.status_code == 401
    assert response.json["error"] == "unauthenticated"


def test_logout_revokes_token(client, alice, auth_headers):
    headers = auth_headers(alice)

    response = client.post("/api/auth/logout", headers=headers)
    assert response.status_code == 200

    assert client.get("/api/auth/me", headers=headers).status_code == 401
