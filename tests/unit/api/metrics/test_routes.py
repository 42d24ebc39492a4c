# tests/unit/api/metrics/test_routes.py


def test_metrics_for_admin(client, admin_user, auth_headers):
    headers = auth_headers(admin_user)
    client.get("/api/health")

    response = client.get("/api/metrics", headers=headers)

    assert response.status_code == 200
    data = response.json
    assert data["total_requests"] >= 2
    assert "polls" in data
    assert "health.health_check" in data["endpoints"]


def test_metrics_forbidden_for_users(client, alice, auth_headers):
    response = client.get("/api/metrics", headers=auth_headers(alice))
    assert response.status_code == 403


def test_metrics_requires_authentication(client):
    assert client.get("/api/metrics").status_code == 401


def test_root(client):
    response = client.get("/")
    assert response.status_code == 200
    assert response.json["service"] == "collabchat"
