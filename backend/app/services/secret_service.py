"""
Secret service: single-secret mutations, bulk clear and key upserts.

Every mutation of a secret writes a ledger entry carrying the secret key,
its config and the values involved, so it can later be rolled back.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from loguru import logger

from app.models.project import Environment, Secret, SecretConfig
from app.services.audit_service import audit_service
from app.services.encryption_service import encryption_service
from app.services.project_service import project_service
from app.utils.exceptions import ConflictError, NotFoundError, ValidationError
from app.utils.validators import validate_secret_type


@dataclass
class UpsertResult:
    created: int = 0
    updated: int = 0
    rejected: List[str] = field(default_factory=list)


class SecretService:
    """Service for secrets within a config."""

    async def next_order(self, db: AsyncSession, secret_config_id: UUID) -> int:
        """max(order) + 1, with the max of an empty config taken as 0."""
        max_order = (await db.execute(
            select(func.max(Secret.order)).where(Secret.secret_config_id == secret_config_id)
        )).scalar()
        return (max_order or 0) + 1

    async def find_by_key(self, db: AsyncSession, secret_config_id: UUID, key: str) -> Optional[Secret]:
        result = await db.execute(
            select(Secret).where(Secret.secret_config_id == secret_config_id, Secret.key == key)
        )
        return result.scalar_one_or_none()

    async def list_values(self, db: AsyncSession, secret_config_id: UUID) -> List[Tuple[str, str, str]]:
        """(key, decrypted value, type) of a config's secrets by order."""
        secrets = (await db.execute(
            select(Secret)
            .where(Secret.secret_config_id == secret_config_id)
            .order_by(Secret.order, Secret.created_at)
        )).scalars().all()
        return [
            (secret.key, encryption_service.reveal(secret.encrypted_value), secret.type)
            for secret in secrets
        ]

    async def get_owned_secret(self, db: AsyncSession, project_id: UUID, secret_id: UUID):
        """Resolve a secret with its config and environment inside a project."""
        row = (await db.execute(
            select(Secret, SecretConfig, Environment)
            .join(SecretConfig, Secret.secret_config_id == SecretConfig.id)
            .join(Environment, SecretConfig.environment_id == Environment.id)
            .where(Secret.id == secret_id, Environment.project_id == project_id)
        )).first()
        if row is None:
            raise NotFoundError("Secret")
        return row[0], row[1], row[2]

    async def insert(
        self,
        db: AsyncSession,
        config: SecretConfig,
        key: str,
        value: str,
        secret_type: str,
        order: int,
    ) -> Secret:
        """
        Insert one secret inside a savepoint.

        Raises:
            ConflictError: the key already exists in the config
        """
        secret = Secret(
            secret_config_id=config.id,
            key=key,
            encrypted_value=encryption_service.encrypt(value),
            type=secret_type,
            order=order,
        )
        try:
            async with db.begin_nested():
                db.add(secret)
                await db.flush()
        except IntegrityError:
            raise ConflictError(f"Secret '{key}' already exists in this config")
        return secret

    async def create_secret(
        self,
        db: AsyncSession,
        user_id: UUID,
        project_id: UUID,
        secret_config_id: UUID,
        key: str,
        value: str,
        secret_type: str = "text",
    ) -> Secret:
        project = await project_service.get_owned_project(db, user_id, project_id)

        if not validate_secret_type(secret_type):
            raise ValidationError(f"Unknown secret type '{secret_type}'", field="type")

        config, environment = await project_service.get_config(db, project.id, secret_config_id)

        if await self.find_by_key(db, config.id, key) is not None:
            raise ConflictError(f"Secret '{key}' already exists in this config")

        secret = await self.insert(db, config, key, value, secret_type, await self.next_order(db, config.id))

        await audit_service.record(
            db,
            project_id=project.id,
            user_id=user_id,
            action="secret_created",
            details=f"Created secret '{key}' in {config.name}",
            metadata={
                "secret_key": key,
                "new_value": value,
                "secret_type": secret_type,
                "config_name": config.name,
                "environment_name": environment.name,
                "secret_config_id": str(config.id),
            },
        )

        await db.commit()
        await db.refresh(secret)

        logger.info(f"Created secret {key} in config {config.id}")
        return secret

    async def update_secret(
        self,
        db: AsyncSession,
        user_id: UUID,
        project_id: UUID,
        secret_id: UUID,
        value: Optional[str] = None,
        secret_type: Optional[str] = None,
    ) -> Secret:
        project = await project_service.get_owned_project(db, user_id, project_id)
        secret, config, environment = await self.get_owned_secret(db, project.id, secret_id)

        if secret_type is not None and not validate_secret_type(secret_type):
            raise ValidationError(f"Unknown secret type '{secret_type}'", field="type")

        old_value = encryption_service.reveal(secret.encrypted_value)
        new_value = value if value is not None else old_value

        secret.encrypted_value = encryption_service.encrypt(new_value)
        if secret_type is not None:
            secret.type = secret_type
        await db.flush()

        await audit_service.record(
            db,
            project_id=project.id,
            user_id=user_id,
            action="secret_updated",
            details=f"Updated secret '{secret.key}' in {config.name}",
            metadata={
                "secret_key": secret.key,
                "old_value": old_value,
                "new_value": new_value,
                "secret_type": secret.type,
                "config_name": config.name,
                "environment_name": environment.name,
                "secret_config_id": str(config.id),
            },
        )

        await db.commit()
        await db.refresh(secret)
        return secret

    async def delete_secret(
        self,
        db: AsyncSession,
        user_id: UUID,
        project_id: UUID,
        secret_id: UUID,
    ) -> None:
        project = await project_service.get_owned_project(db, user_id, project_id)
        secret, config, environment = await self.get_owned_secret(db, project.id, secret_id)

        old_value = encryption_service.reveal(secret.encrypted_value)

        await audit_service.record(
            db,
            project_id=project.id,
            user_id=user_id,
            action="secret_deleted",
            details=f"Deleted secret '{secret.key}' from {config.name}",
            metadata={
                "secret_key": secret.key,
                "old_value": old_value,
                "secret_type": secret.type,
                "config_name": config.name,
                "environment_name": environment.name,
                "secret_config_id": str(config.id),
            },
        )

        await db.delete(secret)
        await db.commit()

    async def clear_secrets(
        self,
        db: AsyncSession,
        user_id: UUID,
        project_id: UUID,
        secret_config_id: UUID,
    ) -> int:
        """Delete every secret of a config. An empty config still succeeds."""
        project = await project_service.get_owned_project(db, user_id, project_id)
        config, environment = await project_service.get_config(db, project.id, secret_config_id)

        count = (await db.execute(
            select(func.count(Secret.id)).where(Secret.secret_config_id == config.id)
        )).scalar() or 0

        await db.execute(delete(Secret).where(Secret.secret_config_id == config.id))

        await audit_service.record(
            db,
            project_id=project.id,
            user_id=user_id,
            action="secret_bulk_clear",
            details=f"Cleared {count} secrets from {config.name}",
            metadata={
                "secrets_count": count,
                "config_name": config.name,
                "environment_name": environment.name,
                "secret_config_id": str(config.id),
            },
        )

        await db.commit()

        logger.info(f"Cleared {count} secrets from config {config.id}")
        return count

    async def upsert_secrets(
        self,
        db: AsyncSession,
        user_id: UUID,
        project_id: UUID,
        config: SecretConfig,
        environment: Environment,
        values: Dict[str, Any],
    ) -> UpsertResult:
        """
        Create or update keys of a config from a mapping.

        Only string values are accepted; other values are rejected by key
        without failing the batch. Each change is audited separately.
        """
        outcome = UpsertResult()

        for key, value in values.items():
            if not isinstance(value, str) or not key:
                outcome.rejected.append(key)
                continue

            secret = await self.find_by_key(db, config.id, key)
            if secret is None:
                await self.insert(db, config, key, value, "text", await self.next_order(db, config.id))
                outcome.created += 1
                await audit_service.record(
                    db,
                    project_id=project_id,
                    user_id=user_id,
                    action="secret_created",
                    details=f"Created secret '{key}' in {config.name} via API token",
                    metadata={
                        "secret_key": key,
                        "new_value": value,
                        "secret_type": "text",
                        "config_name": config.name,
                        "environment_name": environment.name,
                        "secret_config_id": str(config.id),
                    },
                )
                continue

            old_value = encryption_service.reveal(secret.encrypted_value)
            secret.encrypted_value = encryption_service.encrypt(value)
            await db.flush()
            outcome.updated += 1
            await audit_service.record(
                db,
                project_id=project_id,
                user_id=user_id,
                action="secret_updated",
                details=f"Updated secret '{key}' in {config.name} via API token",
                metadata={
                    "secret_key": key,
                    "old_value": old_value,
                    "new_value": value,
                    "secret_type": secret.type,
                    "config_name": config.name,
                    "environment_name": environment.name,
                    "secret_config_id": str(config.id),
                },
            )

        await db.commit()
        return outcome


# Singleton instance
secret_service = SecretService()
