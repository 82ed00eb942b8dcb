"""
API token service.

Handles issuing, validating, authorizing and revoking the project-scoped
bearer tokens of the programmatic API. Only a SHA-256 hash of a token is
stored; the plaintext is returned once at creation.
"""

import secrets
import hashlib
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update
from loguru import logger

from app.core.config import settings
from app.models.api_token import ApiToken
from app.models.project import Project
from app.schemas.api_token import TokenPermissions


@dataclass
class AuthorizedContext:
    """What a valid token resolves to."""
    token: ApiToken
    project: Project
    permissions: Dict[str, Any]


def authorize(permissions: Optional[Dict[str, Any]], action: str, environment: str) -> bool:
    """
    Check a permission document for an action on an environment.

    True when the document is admin, or when the environment's own entry or
    the "*" entry lists the action or "*".
    """
    if not permissions:
        return False
    if permissions.get("admin") is True:
        return True

    environments = permissions.get("environments") or {}
    for env_key in (environment, "*"):
        actions = environments.get(env_key) or []
        if action in actions or "*" in actions:
            return True
    return False


class ApiTokenService:
    """Service for managing API tokens."""

    TOKEN_BYTES = 32
    DISPLAY_PREFIX_LENGTH = 12  # "crypt_" + first 6 chars

    def generate_token(self) -> Tuple[str, str, str]:
        """
        Generate a new token.

        Returns:
            Tuple of (full_token, token_prefix, token_hash)
        """
        full_token = f"{settings.API_TOKEN_PREFIX}{secrets.token_urlsafe(self.TOKEN_BYTES)}"
        token_prefix = full_token[:self.DISPLAY_PREFIX_LENGTH]
        return full_token, token_prefix, self.hash_token(full_token)

    def hash_token(self, token: str) -> str:
        """Hash a token for storage and comparison."""
        return hashlib.sha256(token.encode()).hexdigest()

    async def issue(
        self,
        db: AsyncSession,
        user_id: UUID,
        project_id: UUID,
        name: str,
        permissions: TokenPermissions,
        expires_at: Optional[datetime] = None,
    ) -> Tuple[ApiToken, str]:
        """
        Create a token for a project.

        Returns:
            Tuple of (ApiToken model, plaintext token)
            The plaintext token is only available here!
        """
        full_token, token_prefix, token_hash = self.generate_token()

        if expires_at is not None and expires_at.tzinfo is not None:
            expires_at = expires_at.astimezone(timezone.utc)

        api_token = ApiToken(
            name=name,
            token_prefix=token_prefix,
            token_hash=token_hash,
            user_id=user_id,
            project_id=project_id,
            permissions=permissions.to_document(),
            expires_at=expires_at,
            is_active=True,
        )

        db.add(api_token)
        await db.commit()
        await db.refresh(api_token)

        logger.info(f"User {user_id} issued API token '{name}' ({token_prefix}...) for project {project_id}")

        return api_token, full_token

    async def validate(
        self,
        db: AsyncSession,
        authorization: Optional[str],
    ) -> Optional[AuthorizedContext]:
        """
        Resolve a `Bearer <token>` header.

        Returns:
            AuthorizedContext if the token is usable, None otherwise
        """
        if not authorization:
            return None

        scheme, _, token = authorization.partition(" ")
        token = token.strip()
        if scheme.lower() != "bearer" or not token.startswith(settings.API_TOKEN_PREFIX):
            return None

        result = await db.execute(
            select(ApiToken).where(ApiToken.token_hash == self.hash_token(token))
        )
        api_token = result.scalar_one_or_none()

        if not api_token:
            return None

        now = datetime.now(timezone.utc)
        if not api_token.is_valid(now):
            logger.warning(f"Rejected unusable API token: {api_token.token_prefix}...")
            return None

        project = await db.get(Project, api_token.project_id)
        if project is None:
            return None

        # Last write wins under concurrent use
        await db.execute(
            update(ApiToken)
            .where(ApiToken.id == api_token.id)
            .values(last_used=now)
        )
        await db.commit()

        return AuthorizedContext(
            token=api_token,
            project=project,
            permissions=api_token.permissions or {},
        )

    async def list(self, db: AsyncSession, project_id: UUID) -> List[ApiToken]:
        """List all tokens of a project, newest first."""
        result = await db.execute(
            select(ApiToken)
            .where(ApiToken.project_id == project_id)
            .order_by(ApiToken.created_at.desc())
        )
        return list(result.scalars().all())

    async def get(self, db: AsyncSession, project_id: UUID, token_id: UUID) -> Optional[ApiToken]:
        """Get a specific token of a project."""
        result = await db.execute(
            select(ApiToken).where(
                ApiToken.id == token_id,
                ApiToken.project_id == project_id,
            )
        )
        return result.scalar_one_or_none()

    async def update(
        self,
        db: AsyncSession,
        project_id: UUID,
        token_id: UUID,
        user_id: UUID,
        name: Optional[str] = None,
        permissions: Optional[TokenPermissions] = None,
        is_active: Optional[bool] = None,
    ) -> Optional[ApiToken]:
        """Update a token's name, permissions or active flag."""
        api_token = await self.get(db, project_id, token_id)

        if not api_token:
            return None

        if name is not None:
            api_token.name = name
        if permissions is not None:
            api_token.permissions = permissions.to_document()
        if is_active is not None:
            api_token.is_active = is_active

        await db.commit()
        await db.refresh(api_token)

        logger.info(
            f"User {user_id} updated API token {api_token.token_prefix}... "
            f"(project: {project_id}, active={api_token.is_active})"
        )
        return api_token

    async def delete(self, db: AsyncSession, project_id: UUID, token_id: UUID, user_id: UUID) -> bool:
        """
        Delete a token.

        Returns:
            True if deleted, False if not found
        """
        api_token = await self.get(db, project_id, token_id)

        if not api_token:
            return False

        await db.delete(api_token)
        await db.commit()
        logger.info(
            f"User {user_id} deleted API token {api_token.token_prefix}... "
            f"(name: {api_token.name}, project: {project_id})"
        )

        return True


# Singleton instance
api_token_service = ApiTokenService()
