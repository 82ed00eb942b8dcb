"""
Config fork: deep copy of a secret config into a new named config.
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from loguru import logger

from app.models.project import Secret, SecretConfig
from app.services.audit_service import audit_service
from app.services.project_service import project_service
from app.utils.exceptions import ConflictError, ValidationError
from app.utils.validators import validate_identifier


class ForkService:
    """Copies configs within a project in one transaction."""

    async def fork(
        self,
        db: AsyncSession,
        user_id: UUID,
        project_id: UUID,
        source_config_id: UUID,
        new_config_name: str,
        environment_id: UUID,
    ):
        """
        Fork a config into a target environment.

        Secrets are copied with key, value, type and order unchanged; the
        copies are new rows.

        Returns:
            Tuple of (new SecretConfig, number of secrets copied)
        """
        if not validate_identifier(new_config_name):
            raise ValidationError(
                "Config name must be a valid identifier (letters, numbers, underscores, cannot start with a number)",
                field="new_config_name",
            )

        project = await project_service.get_owned_project(db, user_id, project_id)
        source, _ = await project_service.get_config(db, project.id, source_config_id)
        target_env = await project_service.get_environment(db, project.id, environment_id)

        if await project_service.config_name_taken(db, target_env.id, new_config_name):
            raise ConflictError(f"A config named '{new_config_name}' already exists in the environment")

        new_config = SecretConfig(environment_id=target_env.id, name=new_config_name)
        db.add(new_config)
        try:
            await db.flush()
        except IntegrityError:
            await db.rollback()
            raise ConflictError(f"A config named '{new_config_name}' already exists in the environment")

        source_secrets = (await db.execute(
            select(Secret)
            .where(Secret.secret_config_id == source.id)
            .order_by(Secret.order)
        )).scalars().all()

        for secret in source_secrets:
            db.add(Secret(
                secret_config_id=new_config.id,
                key=secret.key,
                encrypted_value=secret.encrypted_value,
                type=secret.type,
                order=secret.order,
            ))
        await db.flush()

        copied = len(source_secrets)
        await audit_service.record(
            db,
            project_id=project.id,
            user_id=user_id,
            action="config_forked",
            details=f"Forked config '{source.name}' to '{new_config_name}' with {copied} secrets",
            metadata={
                "source_config_name": source.name,
                "new_config_name": new_config_name,
                "copied_secrets": copied,
                "environment_name": target_env.display_name,
                "source_config_id": str(source.id),
                "target_config_id": str(new_config.id),
            },
        )

        await db.commit()
        await db.refresh(new_config)

        logger.info(f"Forked config {source.id} into {new_config.id} ({copied} secrets)")
        return new_config, copied


# Singleton instance
fork_service = ForkService()
