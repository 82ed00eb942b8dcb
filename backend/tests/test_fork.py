"""
Tests for forking secret configs.
"""

from fastapi.testclient import TestClient

from factories import (
    add_secret,
    audit_entries,
    config_ids,
    create_project,
    environment_by_shortcut,
    project_tree,
)


def _fork(client, headers, project_id, source_config_id, environment_id, name):
    return client.post(
        f"/api/v1/projects/{project_id}/fork",
        json={
            "source_config_id": source_config_id,
            "new_config_name": name,
            "environment_id": environment_id,
        },
        headers=headers,
    )


def test_fork_copies_secrets_verbatim(client: TestClient, auth_headers):
    project = create_project(client, auth_headers)
    env_id, config_id = config_ids(client, auth_headers, project["id"], "dev")
    add_secret(client, auth_headers, project["id"], config_id, "DB_URL", "postgres://x")
    add_secret(client, auth_headers, project["id"], config_id, "DEBUG", "true", "boolean")

    response = _fork(client, auth_headers, project["id"], config_id, env_id, "dev_local")

    assert response.status_code == 201
    data = response.json()
    assert data["copied_secrets"] == 2
    assert data["new_config"]["name"] == "dev_local"

    env = environment_by_shortcut(project_tree(client, auth_headers, project["id"]), "dev")
    configs = {c["name"]: c for c in env["secret_configs"]}
    source = [(s["key"], s["value"], s["type"], s["order"]) for s in configs["dev"]["secrets"]]
    fork = [(s["key"], s["value"], s["type"], s["order"]) for s in configs["dev_local"]["secrets"]]
    assert fork == source
    source_ids = {s["id"] for s in configs["dev"]["secrets"]}
    assert source_ids.isdisjoint(s["id"] for s in configs["dev_local"]["secrets"])

    entry = audit_entries(client, auth_headers, project["id"])[0]
    assert entry["action"] == "config_forked"
    assert entry["metadata"]["source_config_name"] == "dev"
    assert entry["metadata"]["new_config_name"] == "dev_local"
    assert entry["metadata"]["copied_secrets"] == 2


def test_fork_into_other_environment(client: TestClient, auth_headers):
    project = create_project(client, auth_headers)
    _, dev_config = config_ids(client, auth_headers, project["id"], "dev")
    prd_env, _ = config_ids(client, auth_headers, project["id"], "prd")
    add_secret(client, auth_headers, project["id"], dev_config, "K", "v")

    response = _fork(client, auth_headers, project["id"], dev_config, prd_env, "from_dev")

    assert response.status_code == 201
    assert response.json()["new_config"]["environment_id"] == prd_env


def test_fork_into_existing_name_leaves_source_untouched(client: TestClient, auth_headers):
    project = create_project(client, auth_headers)
    env_id, config_id = config_ids(client, auth_headers, project["id"], "dev")
    add_secret(client, auth_headers, project["id"], config_id, "K", "v")
    before = project_tree(client, auth_headers, project["id"])

    response = _fork(client, auth_headers, project["id"], config_id, env_id, "dev")

    assert response.status_code == 400
    assert project_tree(client, auth_headers, project["id"]) == before


def test_fork_name_must_be_identifier(client: TestClient, auth_headers):
    project = create_project(client, auth_headers)
    env_id, config_id = config_ids(client, auth_headers, project["id"], "dev")

    response = _fork(client, auth_headers, project["id"], config_id, env_id, "9lives")

    assert response.status_code == 400
    assert response.json()["field"] == "new_config_name"


def test_fork_across_projects_is_404(client: TestClient, auth_headers):
    mine = create_project(client, auth_headers, "Mine")
    other = create_project(client, auth_headers, "Other")
    env_id, _ = config_ids(client, auth_headers, mine["id"], "dev")
    _, other_config = config_ids(client, auth_headers, other["id"], "dev")

    response = _fork(client, auth_headers, mine["id"], other_config, env_id, "stolen")

    assert response.status_code == 404
