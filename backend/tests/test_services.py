"""
Tests for core services.
"""

import hashlib

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.api_token import ApiToken
from app.models.audit_log import AuditLog
from app.models.project import Secret
from app.models.user import User
from app.schemas.api_token import TokenPermissions
from app.services.api_token_service import api_token_service, authorize
from app.services.audit_service import audit_service
from app.services.auth_service import AuthService
from app.services.secret_format_service import secret_format_service
from app.services.secret_service import secret_service
from app.utils.exceptions import ValidationError
from factories import create_test_project, default_config


@pytest.mark.asyncio
async def test_auth_service_create_user(db_session: AsyncSession):
    """Test AuthService.create_user."""
    service = AuthService()

    user = await service.create_user(
        username="testuser2",
        email="testuser2@example.com",
        password="password123",
        full_name="Test User 2",
        db=db_session
    )

    assert user is not None
    assert user.username == "testuser2"
    assert user.hashed_password != "password123"  # Should be hashed


@pytest.mark.asyncio
async def test_auth_service_authenticate_user(db_session: AsyncSession, test_user: User):
    """Test AuthService.authenticate_user."""
    service = AuthService()

    authenticated_user = await service.authenticate_user(
        username="testuser",
        password="testpassword123",
        db=db_session
    )

    assert authenticated_user is not None
    assert authenticated_user.id == test_user.id


@pytest.mark.asyncio
async def test_auth_service_authenticate_user_wrong_password(db_session: AsyncSession, test_user: User):
    """Test AuthService.authenticate_user with wrong password."""
    service = AuthService()

    authenticated_user = await service.authenticate_user(
        username="testuser",
        password="wrongpassword",
        db=db_session
    )

    assert authenticated_user is None


def test_long_passwords_are_not_truncated():
    service = AuthService()
    hashed = service.hash_password("a" * 80)

    assert service.verify_password("a" * 80, hashed)
    assert not service.verify_password("a" * 72, hashed)


@pytest.mark.parametrize(
    "permissions,action,environment,expected",
    [
        ({"admin": True}, "write", "anything", True),
        ({"environments": {"production": ["read"]}}, "read", "production", True),
        ({"environments": {"production": ["read"]}}, "write", "production", False),
        ({"environments": {"production": ["read"]}}, "read", "staging", False),
        ({"environments": {"production": ["*"]}}, "write", "production", True),
        ({"environments": {"*": ["read"]}}, "read", "staging", True),
        ({"environments": {"*": ["read"], "dev": ["write"]}}, "write", "dev", True),
        ({"admin": False, "environments": {}}, "read", "dev", False),
        ({}, "read", "dev", False),
        (None, "read", "dev", False),
    ],
)
def test_authorize(permissions, action, environment, expected):
    assert authorize(permissions, action, environment) is expected


def test_parse_env_lines():
    content = '# header\n\nA=1\nB = "quoted value"\nURL=x=y\nEMPTY=\n'

    entries = secret_format_service.parse(content, "env")

    assert [(e["key"], e["value"]) for e in entries] == [
        ("A", "1"),
        ("B", "quoted value"),
        ("URL", "x=y"),
        ("EMPTY", ""),
    ]
    assert {e["type"] for e in entries} == {"text"}


def test_parse_json_classifies_values():
    content = '{"s": "x", "b": true, "i": 3, "f": 1.5, "o": {"k": [1]}, "n": null}'

    entries = {e["key"]: (e["value"], e["type"]) for e in secret_format_service.parse(content, "json")}

    assert entries == {
        "s": ("x", "text"),
        "b": ("true", "boolean"),
        "i": ("3", "integer"),
        "f": ("1.5", "decimal"),
        "o": ('{"k":[1]}', "json"),
        "n": ("null", "json"),
    }


def test_parse_yaml_dates():
    entries = secret_format_service.parse("RELEASED: 2024-01-31\n", "yaml")

    assert entries == [{"key": "RELEASED", "value": "2024-01-31", "type": "date"}]


@pytest.mark.parametrize("content,fmt", [("[1, 2]", "json"), ("- a\n- b\n", "yaml"), ("name,value\nA,1\n", "csv")])
def test_parse_rejects_non_mapping_content(content, fmt):
    with pytest.raises(ValidationError) as exc:
        secret_format_service.parse(content, fmt)
    assert exc.value.field == "file"


def test_render_rejects_unknown_format():
    with pytest.raises(ValidationError) as exc:
        secret_format_service.render([], "toml")
    assert exc.value.field == "format"


def test_render_keeps_unparseable_typed_values_as_strings():
    rendered = secret_format_service.render([("PORT", "not-a-number", "integer")], "json")

    assert '"PORT": "not-a-number"' in rendered


@pytest.mark.asyncio
async def test_secret_values_are_encrypted_at_rest(db_session: AsyncSession, test_user: User):
    project = await create_test_project(db_session, test_user)
    _, config = await default_config(db_session, project)

    await secret_service.create_secret(
        db_session, test_user.id, project.id, config.id, "DB_PASSWORD", "hunter2", "password"
    )

    stored = (await db_session.execute(select(Secret.encrypted_value))).scalar_one()
    assert "hunter2" not in stored
    audit = (await db_session.execute(select(AuditLog.metadata_))).scalar_one()
    assert audit["secret_key"] == "DB_PASSWORD"
    assert "hunter2" not in str(audit)


@pytest.mark.asyncio
async def test_failed_audit_write_does_not_abort_mutation(
    db_session: AsyncSession, test_user: User, monkeypatch
):
    project = await create_test_project(db_session, test_user)
    _, config = await default_config(db_session, project)

    def broken_seal(metadata):
        raise RuntimeError("ledger unavailable")

    monkeypatch.setattr(audit_service, "seal_metadata", broken_seal)

    secret = await secret_service.create_secret(db_session, test_user.id, project.id, config.id, "KEY", "value")

    assert secret.id is not None
    assert (await db_session.execute(select(func.count(Secret.id)))).scalar_one() == 1
    assert (await db_session.execute(select(func.count(AuditLog.id)))).scalar_one() == 0


@pytest.mark.asyncio
async def test_token_hash_stored_not_plaintext(db_session: AsyncSession, test_user: User):
    project = await create_test_project(db_session, test_user)

    _, plain = await api_token_service.issue(
        db_session,
        user_id=test_user.id,
        project_id=project.id,
        name="ci",
        permissions=TokenPermissions(admin=True),
    )

    stored = (await db_session.execute(select(ApiToken))).scalar_one()
    assert stored.token_hash == hashlib.sha256(plain.encode()).hexdigest()
    assert plain not in (stored.token_hash, stored.token_prefix)

    context = await api_token_service.validate(db_session, f"Bearer {plain}")
    assert context is not None
    assert context.project.id == project.id
    assert await api_token_service.validate(db_session, f"Basic {plain}") is None
    assert await api_token_service.validate(db_session, None) is None


@pytest.mark.asyncio
async def test_unknown_audit_action_is_not_recorded(db_session: AsyncSession, test_user: User):
    project = await create_test_project(db_session, test_user)
    before = (await db_session.execute(select(func.count(AuditLog.id)))).scalar_one()

    entry_id = await audit_service.record(
        db_session, project.id, test_user.id, "token_created", "Issued token", {"name": "ci"}
    )

    assert entry_id is None
    assert (await db_session.execute(select(func.count(AuditLog.id)))).scalar_one() == before
