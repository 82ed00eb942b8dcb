"""
Project hierarchy service.

Resolves the ownership chain User -> Project -> Environment -> SecretConfig
-> Secret and implements project and environment mutations. Every
resolution failure is a NotFoundError, whether the row is missing or owned
by someone else.
"""

from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from loguru import logger

from app.models.api_token import ApiToken
from app.models.audit_log import AuditLog
from app.models.project import Environment, Project, Secret, SecretConfig
from app.schemas.project import (
    EnvironmentTree,
    ProjectDetailsResponse,
    SecretConfigTree,
)
from app.schemas.secret import SecretResponse
from app.services.audit_service import audit_service
from app.services.encryption_service import encryption_service
from app.utils.exceptions import ConflictError, NotFoundError, ValidationError
from app.utils.validators import validate_shortcut

# (name, display_name, shortcut) created with every project
DEFAULT_ENVIRONMENTS = (
    ("dev", "Development", "dev"),
    ("stg", "Staging", "stg"),
    ("prd", "Production", "prd"),
)


def serialize_secret(secret: Secret) -> SecretResponse:
    return SecretResponse(
        id=secret.id,
        key=secret.key,
        value=encryption_service.reveal(secret.encrypted_value),
        type=secret.type,
        order=secret.order,
        secret_config_id=secret.secret_config_id,
        created_at=secret.created_at,
        updated_at=secret.updated_at,
    )


class ProjectService:
    """Service for projects, environments and secret configs."""

    # ------------------------------------------------------------------
    # Ownership chain
    # ------------------------------------------------------------------

    async def get_owned_project(self, db: AsyncSession, user_id: UUID, project_id: UUID) -> Project:
        result = await db.execute(
            select(Project).where(Project.id == project_id, Project.user_id == user_id)
        )
        project = result.scalar_one_or_none()
        if project is None:
            raise NotFoundError("Project")
        return project

    async def get_environment(self, db: AsyncSession, project_id: UUID, environment_id: UUID) -> Environment:
        result = await db.execute(
            select(Environment).where(
                Environment.id == environment_id,
                Environment.project_id == project_id,
            )
        )
        environment = result.scalar_one_or_none()
        if environment is None:
            raise NotFoundError("Environment")
        return environment

    async def get_config(
        self,
        db: AsyncSession,
        project_id: UUID,
        secret_config_id: UUID,
        environment_id: Optional[UUID] = None,
    ) -> Tuple[SecretConfig, Environment]:
        """Resolve a config (optionally pinned to an environment) within a project."""
        query = (
            select(SecretConfig, Environment)
            .join(Environment, SecretConfig.environment_id == Environment.id)
            .where(
                SecretConfig.id == secret_config_id,
                Environment.project_id == project_id,
            )
        )
        if environment_id is not None:
            query = query.where(Environment.id == environment_id)

        row = (await db.execute(query)).first()
        if row is None:
            raise NotFoundError("Secret config")
        return row[0], row[1]

    async def find_config_by_name(
        self,
        db: AsyncSession,
        project_id: UUID,
        environment_ref: str,
        config_name: Optional[str] = None,
    ) -> Tuple[SecretConfig, Environment]:
        """
        Resolve an environment by name, then by shortcut, and one of its configs.

        The config defaults to the one named after the environment's shortcut.
        """
        environment = None
        for column in (Environment.name, Environment.shortcut):
            result = await db.execute(
                select(Environment)
                .where(Environment.project_id == project_id, column == environment_ref)
                .order_by(Environment.order)
                .limit(1)
            )
            environment = result.scalar_one_or_none()
            if environment is not None:
                break
        if environment is None:
            raise NotFoundError("Environment")

        result = await db.execute(
            select(SecretConfig).where(
                SecretConfig.environment_id == environment.id,
                SecretConfig.name == (config_name or environment.shortcut),
            )
        )
        config = result.scalar_one_or_none()
        if config is None:
            raise NotFoundError("Secret config")
        return config, environment

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------

    async def create_project(
        self,
        db: AsyncSession,
        user_id: UUID,
        name: str,
        description: Optional[str] = None,
        icon: Optional[str] = None,
    ) -> Project:
        """Create a project with its dev/stg/prd environments and their default configs."""
        project = Project(user_id=user_id, name=name, description=description, icon=icon)
        db.add(project)
        await db.flush()

        for order, (env_name, display_name, shortcut) in enumerate(DEFAULT_ENVIRONMENTS):
            environment = Environment(
                project_id=project.id,
                name=env_name,
                display_name=display_name,
                shortcut=shortcut,
                order=order,
            )
            db.add(environment)
            await db.flush()
            db.add(SecretConfig(environment_id=environment.id, name=shortcut))

        await db.commit()
        await db.refresh(project)

        logger.info(f"Created project {project.id} for user {user_id}")
        return project

    async def list_projects(self, db: AsyncSession, user_id: UUID) -> List[Project]:
        result = await db.execute(
            select(Project)
            .where(Project.user_id == user_id)
            .order_by(Project.created_at.desc())
        )
        return list(result.scalars().all())

    async def update_project(
        self,
        db: AsyncSession,
        user_id: UUID,
        project_id: UUID,
        name: str,
        description: Optional[str] = None,
        icon: Optional[str] = None,
    ) -> Project:
        project = await self.get_owned_project(db, user_id, project_id)
        project.name = name
        project.description = description
        project.icon = icon

        await db.commit()
        await db.refresh(project)
        return project

    async def delete_project(self, db: AsyncSession, user_id: UUID, project_id: UUID) -> None:
        """Delete a project and everything rooted at it, leaf first, in one transaction."""
        project = await self.get_owned_project(db, user_id, project_id)

        environment_ids = select(Environment.id).where(Environment.project_id == project.id)
        config_ids = select(SecretConfig.id).where(SecretConfig.environment_id.in_(environment_ids))

        await db.execute(delete(Secret).where(Secret.secret_config_id.in_(config_ids)))
        await db.execute(delete(SecretConfig).where(SecretConfig.environment_id.in_(environment_ids)))
        await db.execute(delete(Environment).where(Environment.project_id == project.id))
        await db.execute(delete(ApiToken).where(ApiToken.project_id == project.id))
        await db.execute(delete(AuditLog).where(AuditLog.project_id == project.id))
        await db.delete(project)
        await db.commit()

        logger.info(f"Deleted project {project_id}")

    async def get_project_details(self, db: AsyncSession, user_id: UUID, project_id: UUID) -> ProjectDetailsResponse:
        """Project with environments by order, their configs, and decrypted secrets by order."""
        project = await self.get_owned_project(db, user_id, project_id)

        environments = (await db.execute(
            select(Environment)
            .where(Environment.project_id == project.id)
            .order_by(Environment.order)
        )).scalars().all()

        env_ids = [env.id for env in environments]
        configs = (await db.execute(
            select(SecretConfig)
            .where(SecretConfig.environment_id.in_(env_ids))
            .order_by(SecretConfig.created_at, SecretConfig.name)
        )).scalars().all() if env_ids else []

        config_ids = [config.id for config in configs]
        secrets = (await db.execute(
            select(Secret)
            .where(Secret.secret_config_id.in_(config_ids))
            .order_by(Secret.order)
        )).scalars().all() if config_ids else []

        secrets_by_config = {}
        for secret in secrets:
            secrets_by_config.setdefault(secret.secret_config_id, []).append(serialize_secret(secret))

        configs_by_env = {}
        for config in configs:
            configs_by_env.setdefault(config.environment_id, []).append(
                SecretConfigTree(
                    id=config.id,
                    name=config.name,
                    environment_id=config.environment_id,
                    secrets=secrets_by_config.get(config.id, []),
                )
            )

        return ProjectDetailsResponse(
            id=project.id,
            name=project.name,
            description=project.description,
            icon=project.icon,
            user_id=project.user_id,
            created_at=project.created_at,
            updated_at=project.updated_at,
            environments=[
                EnvironmentTree(
                    id=env.id,
                    name=env.name,
                    display_name=env.display_name,
                    shortcut=env.shortcut,
                    order=env.order,
                    project_id=env.project_id,
                    secret_configs=configs_by_env.get(env.id, []),
                )
                for env in environments
            ],
        )

    # ------------------------------------------------------------------
    # Environments
    # ------------------------------------------------------------------

    async def create_environment(
        self,
        db: AsyncSession,
        user_id: UUID,
        project_id: UUID,
        name: str,
        display_name: str,
        shortcut: str,
    ) -> Tuple[Environment, SecretConfig]:
        """Create an environment at the end of the order with a default config named after its shortcut."""
        project = await self.get_owned_project(db, user_id, project_id)

        if not validate_shortcut(shortcut):
            raise ValidationError("Shortcut must be 1-3 lowercase letters", field="shortcut")

        existing = await db.execute(
            select(Environment.id).where(
                Environment.project_id == project.id,
                Environment.shortcut == shortcut,
            )
        )
        if existing.first() is not None:
            raise ConflictError(f"Environment shortcut '{shortcut}' already exists")

        max_order = (await db.execute(
            select(func.max(Environment.order)).where(Environment.project_id == project.id)
        )).scalar()

        environment = Environment(
            project_id=project.id,
            name=name,
            display_name=display_name,
            shortcut=shortcut,
            order=(max_order if max_order is not None else -1) + 1,
        )
        db.add(environment)
        try:
            await db.flush()
        except IntegrityError:
            await db.rollback()
            raise ConflictError(f"Environment shortcut '{shortcut}' already exists")

        config = SecretConfig(environment_id=environment.id, name=shortcut)
        db.add(config)
        await db.flush()

        await audit_service.record(
            db,
            project_id=project.id,
            user_id=user_id,
            action="environment_created",
            details=f"Created environment '{display_name}' ({shortcut})",
            metadata={
                "environment_name": name,
                "shortcut": shortcut,
                "config_name": shortcut,
                "environment_id": str(environment.id),
            },
        )

        await db.commit()
        await db.refresh(environment)
        await db.refresh(config)

        logger.info(f"Created environment {shortcut} in project {project.id}")
        return environment, config

    async def delete_environment(
        self,
        db: AsyncSession,
        user_id: UUID,
        project_id: UUID,
        environment_id: UUID,
    ) -> None:
        """Delete an environment with its configs and secrets; audited before the cascade."""
        project = await self.get_owned_project(db, user_id, project_id)
        environment = await self.get_environment(db, project.id, environment_id)

        config_ids = select(SecretConfig.id).where(SecretConfig.environment_id == environment.id)
        config_count = (await db.execute(
            select(func.count(SecretConfig.id)).where(SecretConfig.environment_id == environment.id)
        )).scalar() or 0
        secret_count = (await db.execute(
            select(func.count(Secret.id)).where(Secret.secret_config_id.in_(config_ids))
        )).scalar() or 0

        await audit_service.record(
            db,
            project_id=project.id,
            user_id=user_id,
            action="environment_deleted",
            details=f"Deleted environment '{environment.display_name}' ({environment.shortcut})",
            metadata={
                "environment_name": environment.name,
                "shortcut": environment.shortcut,
                "configs_count": config_count,
                "secrets_count": secret_count,
            },
        )

        await db.execute(delete(Secret).where(Secret.secret_config_id.in_(config_ids)))
        await db.execute(delete(SecretConfig).where(SecretConfig.environment_id == environment.id))
        await db.delete(environment)
        await db.commit()

        logger.info(f"Deleted environment {environment_id} ({config_count} configs, {secret_count} secrets)")

    # ------------------------------------------------------------------
    # Config names
    # ------------------------------------------------------------------

    async def config_name_taken(self, db: AsyncSession, environment_id: UUID, name: str) -> bool:
        result = await db.execute(
            select(SecretConfig.id).where(
                SecretConfig.environment_id == environment_id,
                SecretConfig.name == name,
            )
        )
        return result.first() is not None


# Singleton instance
project_service = ProjectService()
