"""
Tests for secret endpoints.
"""

from fastapi.testclient import TestClient

from app.services.secret_service import secret_service
from factories import add_secret, audit_entries, config_ids, create_project


def test_secret_order_starts_at_one_and_increments(client: TestClient, auth_headers):
    project = create_project(client, auth_headers, "P1")
    _, config_id = config_ids(client, auth_headers, project["id"], "dev")

    first = add_secret(client, auth_headers, project["id"], config_id, "DB_URL", "postgres://x")
    second = add_secret(client, auth_headers, project["id"], config_id, "API_KEY", "abc")

    assert first["order"] == 1
    assert first["value"] == "postgres://x"
    assert first["type"] == "text"
    assert second["order"] == 2


def test_duplicate_key_is_rejected(client: TestClient, auth_headers):
    project = create_project(client, auth_headers)
    _, config_id = config_ids(client, auth_headers, project["id"])
    add_secret(client, auth_headers, project["id"], config_id, "DB_URL", "one")

    response = client.post(
        f"/api/v1/projects/{project['id']}/secrets",
        json={"secret_config_id": config_id, "key": "DB_URL", "value": "two"},
        headers=auth_headers,
    )

    assert response.status_code == 400
    assert "DB_URL" in response.json()["detail"]


def test_duplicate_key_rejected_by_unique_constraint(client: TestClient, auth_headers, monkeypatch):
    project = create_project(client, auth_headers)
    _, config_id = config_ids(client, auth_headers, project["id"])
    add_secret(client, auth_headers, project["id"], config_id, "DB_URL", "one")

    async def key_not_found(db, secret_config_id, key):
        return None

    # Only the database constraint stands between the request and a second row
    monkeypatch.setattr(secret_service, "find_by_key", key_not_found)

    response = client.post(
        f"/api/v1/projects/{project['id']}/secrets",
        json={"secret_config_id": config_id, "key": "DB_URL", "value": "two"},
        headers=auth_headers,
    )

    assert response.status_code == 400
    assert response.json()["detail"] == "Secret 'DB_URL' already exists in this config"
    created = [e for e in audit_entries(client, auth_headers, project["id"]) if e["action"] == "secret_created"]
    assert len(created) == 1


def test_same_key_in_other_config_is_allowed(client: TestClient, auth_headers):
    project = create_project(client, auth_headers)
    _, dev_config = config_ids(client, auth_headers, project["id"], "dev")
    _, prd_config = config_ids(client, auth_headers, project["id"], "prd")

    add_secret(client, auth_headers, project["id"], dev_config, "DB_URL", "dev")
    created = add_secret(client, auth_headers, project["id"], prd_config, "DB_URL", "prd")

    assert created["order"] == 1


def test_unknown_type_is_rejected(client: TestClient, auth_headers):
    project = create_project(client, auth_headers)
    _, config_id = config_ids(client, auth_headers, project["id"])

    response = client.post(
        f"/api/v1/projects/{project['id']}/secrets",
        json={"secret_config_id": config_id, "key": "K", "value": "v", "type": "binary"},
        headers=auth_headers,
    )

    assert response.status_code == 400
    assert response.json()["field"] == "type"


def test_missing_field_is_400(client: TestClient, auth_headers):
    project = create_project(client, auth_headers)
    _, config_id = config_ids(client, auth_headers, project["id"])

    response = client.post(
        f"/api/v1/projects/{project['id']}/secrets",
        json={"secret_config_id": config_id, "key": "K"},
        headers=auth_headers,
    )

    assert response.status_code == 400


def test_config_of_other_project_is_404(client: TestClient, auth_headers):
    mine = create_project(client, auth_headers, "Mine")
    other = create_project(client, auth_headers, "Other")
    _, other_config = config_ids(client, auth_headers, other["id"])

    response = client.post(
        f"/api/v1/projects/{mine['id']}/secrets",
        json={"secret_config_id": other_config, "key": "K", "value": "v"},
        headers=auth_headers,
    )

    assert response.status_code == 404


def test_create_secret_is_audited(client: TestClient, auth_headers):
    project = create_project(client, auth_headers)
    _, config_id = config_ids(client, auth_headers, project["id"])
    add_secret(client, auth_headers, project["id"], config_id, "DB_URL", "postgres://x")

    entry = audit_entries(client, auth_headers, project["id"])[0]

    assert entry["action"] == "secret_created"
    assert entry["user_name"] == "Testuser"
    assert entry["user_email"] == "test@example.com"
    assert entry["metadata"]["secret_key"] == "DB_URL"
    assert entry["metadata"]["new_value"] == "postgres://x"
    assert entry["metadata"]["config_name"] == "dev"
    assert entry["metadata"]["secret_config_id"] == config_id


def test_update_and_delete_secret_record_old_value(client: TestClient, auth_headers):
    project = create_project(client, auth_headers)
    _, config_id = config_ids(client, auth_headers, project["id"])
    secret = add_secret(client, auth_headers, project["id"], config_id, "PORT", "80", "integer")

    response = client.put(
        f"/api/v1/projects/{project['id']}/secrets/{secret['id']}",
        json={"value": "8080"},
        headers=auth_headers,
    )
    assert response.status_code == 200
    assert response.json()["value"] == "8080"
    assert response.json()["type"] == "integer"

    response = client.delete(f"/api/v1/projects/{project['id']}/secrets/{secret['id']}", headers=auth_headers)
    assert response.status_code == 200

    deleted, updated, _ = audit_entries(client, auth_headers, project["id"])
    assert updated["action"] == "secret_updated"
    assert updated["metadata"]["old_value"] == "80"
    assert updated["metadata"]["new_value"] == "8080"
    assert deleted["action"] == "secret_deleted"
    assert deleted["metadata"]["old_value"] == "8080"
    assert deleted["metadata"]["secret_type"] == "integer"


def test_clear_secrets(client: TestClient, auth_headers):
    project = create_project(client, auth_headers)
    _, config_id = config_ids(client, auth_headers, project["id"])
    add_secret(client, auth_headers, project["id"], config_id, "A", "1")
    add_secret(client, auth_headers, project["id"], config_id, "B", "2")

    response = client.post(
        f"/api/v1/projects/{project['id']}/secrets/clear",
        json={"secret_config_id": config_id},
        headers=auth_headers,
    )

    assert response.status_code == 200
    assert response.json()["cleared"] == 2
    entry = audit_entries(client, auth_headers, project["id"])[0]
    assert entry["action"] == "secret_bulk_clear"
    assert entry["metadata"]["secrets_count"] == 2


def test_clear_empty_config_succeeds_with_zero_count(client: TestClient, auth_headers):
    project = create_project(client, auth_headers)
    _, config_id = config_ids(client, auth_headers, project["id"])

    for _ in range(2):
        response = client.post(
            f"/api/v1/projects/{project['id']}/secrets/clear",
            json={"secret_config_id": config_id},
            headers=auth_headers,
        )
        assert response.status_code == 200
        assert response.json()["cleared"] == 0

    entries = audit_entries(client, auth_headers, project["id"])
    assert [e["metadata"]["secrets_count"] for e in entries] == [0, 0]


def test_history_filters_by_key(client: TestClient, auth_headers):
    project = create_project(client, auth_headers)
    _, config_id = config_ids(client, auth_headers, project["id"])
    secret = add_secret(client, auth_headers, project["id"], config_id, "TARGET", "v1")
    add_secret(client, auth_headers, project["id"], config_id, "OTHER", "x")
    client.put(
        f"/api/v1/projects/{project['id']}/secrets/{secret['id']}",
        json={"value": "v2"},
        headers=auth_headers,
    )

    response = client.get(
        f"/api/v1/projects/{project['id']}/secrets/history",
        params={"key": "TARGET"},
        headers=auth_headers,
    )

    assert response.status_code == 200
    assert [e["action"] for e in response.json()] == ["secret_updated", "secret_created"]
