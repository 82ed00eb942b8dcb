"""
Tests for API token management endpoints.
"""

from datetime import datetime, timedelta, timezone

from fastapi.testclient import TestClient
from loguru import logger

from factories import create_project


def _issue(client, headers, project_id, permissions=None, **extra):
    return client.post(
        f"/api/v1/projects/{project_id}/tokens",
        json={"name": "ci", "permissions": permissions or {"admin": True}, **extra},
        headers=headers,
    )


def _read(client, token, environment="dev"):
    return client.get(
        "/v1/secrets",
        params={"environment": environment},
        headers={"Authorization": f"Bearer {token}"},
    )


def test_create_returns_plaintext_once(client: TestClient, auth_headers):
    project = create_project(client, auth_headers)

    response = _issue(client, auth_headers, project["id"])

    assert response.status_code == 201
    data = response.json()
    assert data["token"].startswith("crypt_")
    assert data["token_prefix"] == data["token"][:12]
    assert data["permissions"] == {"admin": True}

    listed = client.get(f"/api/v1/projects/{project['id']}/tokens", headers=auth_headers).json()
    assert [t["id"] for t in listed] == [data["id"]]
    assert "token" not in listed[0]
    assert data["token"] not in str(listed)


def test_altered_token_is_rejected(client: TestClient, auth_headers):
    project = create_project(client, auth_headers)
    plain = _issue(client, auth_headers, project["id"]).json()["token"]

    assert _read(client, plain).status_code == 200
    assert _read(client, plain + "x").status_code == 401
    assert _read(client, plain.replace("crypt_", "other_", 1)).status_code == 401


def test_permissions_must_grant_something(client: TestClient, auth_headers):
    project = create_project(client, auth_headers)

    response = _issue(client, auth_headers, project["id"], permissions={"environments": {}})

    assert response.status_code == 400


def test_unknown_action_is_rejected(client: TestClient, auth_headers):
    project = create_project(client, auth_headers)

    response = _issue(client, auth_headers, project["id"], permissions={"environments": {"dev": ["delete"]}})

    assert response.status_code == 400


def test_disabled_token_is_rejected(client: TestClient, auth_headers):
    project = create_project(client, auth_headers)
    created = _issue(client, auth_headers, project["id"]).json()

    response = client.patch(
        f"/api/v1/projects/{project['id']}/tokens/{created['id']}",
        json={"is_active": False},
        headers=auth_headers,
    )

    assert response.status_code == 200
    assert response.json()["is_active"] is False
    assert _read(client, created["token"]).status_code == 401


def test_update_replaces_permissions(client: TestClient, auth_headers):
    project = create_project(client, auth_headers)
    created = _issue(client, auth_headers, project["id"]).json()

    response = client.patch(
        f"/api/v1/projects/{project['id']}/tokens/{created['id']}",
        json={"name": "renamed", "permissions": {"environments": {"stg": ["read"]}}},
        headers=auth_headers,
    )

    assert response.status_code == 200
    assert response.json()["name"] == "renamed"
    assert _read(client, created["token"], "dev").status_code == 403
    assert _read(client, created["token"], "stg").status_code == 200


def test_expired_token_is_rejected(client: TestClient, auth_headers):
    project = create_project(client, auth_headers)
    expired = (datetime.now(timezone.utc) - timedelta(minutes=1)).isoformat()
    created = _issue(client, auth_headers, project["id"], expires_at=expired).json()

    response = _read(client, created["token"])

    assert response.status_code == 401


def test_future_expiry_is_usable(client: TestClient, auth_headers):
    project = create_project(client, auth_headers)
    later = (datetime.now(timezone.utc) + timedelta(days=1)).isoformat()
    created = _issue(client, auth_headers, project["id"], expires_at=later).json()

    assert _read(client, created["token"]).status_code == 200


def test_use_records_last_used(client: TestClient, auth_headers):
    project = create_project(client, auth_headers)
    created = _issue(client, auth_headers, project["id"]).json()
    assert created["last_used"] is None

    _read(client, created["token"])

    listed = client.get(f"/api/v1/projects/{project['id']}/tokens", headers=auth_headers).json()
    assert listed[0]["last_used"] is not None


def test_delete_token(client: TestClient, auth_headers):
    project = create_project(client, auth_headers)
    created = _issue(client, auth_headers, project["id"]).json()

    response = client.delete(f"/api/v1/projects/{project['id']}/tokens/{created['id']}", headers=auth_headers)

    assert response.status_code == 200
    assert _read(client, created["token"]).status_code == 401
    again = client.delete(f"/api/v1/projects/{project['id']}/tokens/{created['id']}", headers=auth_headers)
    assert again.status_code == 404


def test_token_changes_are_logged_with_acting_user(client: TestClient, auth_headers):
    project = create_project(client, auth_headers)
    created = _issue(client, auth_headers, project["id"]).json()
    user_id = client.get("/api/v1/auth/me", headers=auth_headers).json()["id"]
    messages = []
    sink_id = logger.add(messages.append, level="INFO", format="{message}")
    try:
        client.patch(
            f"/api/v1/projects/{project['id']}/tokens/{created['id']}",
            json={"is_active": False},
            headers=auth_headers,
        )
        client.delete(f"/api/v1/projects/{project['id']}/tokens/{created['id']}", headers=auth_headers)
    finally:
        logger.remove(sink_id)

    assert any(f"User {user_id} updated API token {created['token_prefix']}" in m for m in messages)
    assert any(f"User {user_id} deleted API token {created['token_prefix']}" in m for m in messages)


def test_tokens_of_foreign_project_are_404(client: TestClient, auth_headers, other_headers):
    project = create_project(client, auth_headers)
    created = _issue(client, auth_headers, project["id"]).json()

    assert client.get(f"/api/v1/projects/{project['id']}/tokens", headers=other_headers).status_code == 404
    assert _issue(client, other_headers, project["id"]).status_code == 404
    response = client.patch(
        f"/api/v1/projects/{project['id']}/tokens/{created['id']}",
        json={"is_active": False},
        headers=other_headers,
    )
    assert response.status_code == 404


def test_deleting_project_revokes_tokens(client: TestClient, auth_headers):
    project = create_project(client, auth_headers)
    created = _issue(client, auth_headers, project["id"]).json()

    client.delete(f"/api/v1/projects/{project['id']}", headers=auth_headers)

    assert _read(client, created["token"]).status_code == 401
