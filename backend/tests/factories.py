"""
Test factories for creating test data.
"""

from typing import Dict, Optional, Tuple

from fastapi.testclient import TestClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.project import Environment, Project, SecretConfig
from app.models.user import User
from app.services.auth_service import AuthService
from app.services.project_service import project_service


async def create_test_user(
    db: AsyncSession,
    username: str = "testuser",
    email: str = "test@example.com",
    password: str = "testpassword123",
) -> User:
    """Create a test user."""
    auth_service = AuthService()
    return await auth_service.create_user(
        username=username,
        email=email,
        password=password,
        full_name="Test User",
        db=db
    )


async def create_test_project(db: AsyncSession, user: User, name: str = "P1") -> Project:
    """Create a project with its default environments."""
    return await project_service.create_project(db, user_id=user.id, name=name)


async def default_config(db: AsyncSession, project: Project, shortcut: str = "dev") -> Tuple[Environment, SecretConfig]:
    """The environment with `shortcut` and its default config."""
    row = (await db.execute(
        select(Environment, SecretConfig)
        .join(SecretConfig, SecretConfig.environment_id == Environment.id)
        .where(
            Environment.project_id == project.id,
            Environment.shortcut == shortcut,
            SecretConfig.name == shortcut,
        )
    )).first()
    return row[0], row[1]


def login_headers(
    client: TestClient,
    username: str,
    password: str,
    email: Optional[str] = None,
) -> Dict[str, str]:
    """Register a user through the API and return its bearer headers."""
    client.post(
        "/api/v1/auth/register",
        json={
            "username": username,
            "email": email or f"{username}@example.com",
            "password": password,
            "full_name": username.title(),
        }
    )
    response = client.post(
        "/api/v1/auth/login",
        json={"username": username, "password": password}
    )
    token = response.json()["access_token"]
    return {"Authorization": f"Bearer {token}"}


def create_project(client: TestClient, headers: Dict[str, str], name: str = "P1") -> dict:
    response = client.post("/api/v1/projects", json={"name": name}, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


def project_tree(client: TestClient, headers: Dict[str, str], project_id: str) -> dict:
    response = client.get(f"/api/v1/projects/{project_id}/details", headers=headers)
    assert response.status_code == 200, response.text
    return response.json()


def environment_by_shortcut(tree: dict, shortcut: str) -> dict:
    return next(env for env in tree["environments"] if env["shortcut"] == shortcut)


def config_ids(client: TestClient, headers: Dict[str, str], project_id: str, shortcut: str = "dev") -> Tuple[str, str]:
    """(environment_id, default config id) of an environment, looked up via the details tree."""
    env = environment_by_shortcut(project_tree(client, headers, project_id), shortcut)
    config = next(c for c in env["secret_configs"] if c["name"] == shortcut)
    return env["id"], config["id"]


def add_secret(
    client: TestClient,
    headers: Dict[str, str],
    project_id: str,
    config_id: str,
    key: str,
    value: str,
    secret_type: str = "text",
) -> dict:
    response = client.post(
        f"/api/v1/projects/{project_id}/secrets",
        json={"secret_config_id": config_id, "key": key, "value": value, "type": secret_type},
        headers=headers,
    )
    assert response.status_code == 201, response.text
    return response.json()


def audit_entries(client: TestClient, headers: Dict[str, str], project_id: str) -> list:
    response = client.get(f"/api/v1/projects/{project_id}/audit", headers=headers)
    assert response.status_code == 200, response.text
    return response.json()


def fork_config(
    client: TestClient,
    headers: Dict[str, str],
    project_id: str,
    source_config_id: str,
    environment_id: str,
    name: str,
) -> dict:
    """Fork a config and return the new config."""
    response = client.post(
        f"/api/v1/projects/{project_id}/fork",
        json={
            "source_config_id": source_config_id,
            "new_config_name": name,
            "environment_id": environment_id,
        },
        headers=headers,
    )
    assert response.status_code == 201, response.text
    return response.json()["new_config"]
