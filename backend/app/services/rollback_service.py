"""
Rollback of secret mutations recorded in the audit ledger.

Only leaf secret actions can be rolled back. The inverse is applied and a
new ledger entry referencing the original is appended; nothing is removed
from the ledger.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from loguru import logger

from app.models.audit_log import ROLLBACK_INVERSES
from app.models.project import Environment, Secret, SecretConfig
from app.services.audit_service import audit_service
from app.services.encryption_service import encryption_service
from app.services.project_service import project_service
from app.services.secret_service import secret_service
from app.utils.exceptions import ConflictError, NotFoundError, RollbackError


@dataclass
class RollbackOutcome:
    action: str
    details: str
    audit_log_id: Optional[UUID]


class RollbackService:
    """Applies the inverse of a ledger entry."""

    async def _config_from_metadata(
        self,
        db: AsyncSession,
        project_id: UUID,
        metadata: Dict[str, Any],
    ) -> Optional[SecretConfig]:
        """The recorded config id when it still exists, else the first config with the recorded name."""
        config_id = metadata.get("secret_config_id")
        if config_id:
            try:
                config, _ = await project_service.get_config(db, project_id, UUID(str(config_id)))
                return config
            except (NotFoundError, ValueError):
                pass

        config_name = metadata.get("config_name")
        if not config_name:
            return None
        return (await db.execute(
            select(SecretConfig)
            .join(Environment, SecretConfig.environment_id == Environment.id)
            .where(Environment.project_id == project_id, SecretConfig.name == config_name)
            .order_by(Environment.order)
            .limit(1)
        )).scalars().first()

    async def _find_target_secret(
        self,
        db: AsyncSession,
        project_id: UUID,
        metadata: Dict[str, Any],
    ) -> Optional[Tuple[Secret, SecretConfig]]:
        key = metadata["secret_key"]

        config_id = metadata.get("secret_config_id")
        if config_id:
            try:
                config, _ = await project_service.get_config(db, project_id, UUID(str(config_id)))
            except (NotFoundError, ValueError):
                config = None
            if config is not None:
                secret = await secret_service.find_by_key(db, config.id, key)
                return (secret, config) if secret is not None else None

        # Entries without a config id resolve to the first match in the project
        row = (await db.execute(
            select(Secret, SecretConfig)
            .join(SecretConfig, Secret.secret_config_id == SecretConfig.id)
            .join(Environment, SecretConfig.environment_id == Environment.id)
            .where(Environment.project_id == project_id, Secret.key == key)
            .order_by(Environment.order, Secret.order)
            .limit(1)
        )).first()
        return (row[0], row[1]) if row is not None else None

    async def rollback(
        self,
        db: AsyncSession,
        user_id: UUID,
        project_id: UUID,
        audit_log_id: UUID,
    ) -> RollbackOutcome:
        """
        Roll back one ledger entry.

        Raises:
            NotFoundError: project or entry not in the caller's ownership chain
            RollbackError: action not eligible, metadata incomplete, or target unresolvable
        """
        project = await project_service.get_owned_project(db, user_id, project_id)

        entry = await audit_service.get_entry(db, project.id, audit_log_id)
        if entry is None:
            raise NotFoundError("Audit log")

        if entry.action not in ROLLBACK_INVERSES:
            raise RollbackError("Cannot rollback this type of action")

        metadata = audit_service.open_metadata(entry.metadata_) or {}
        key = metadata.get("secret_key")
        if not key:
            raise RollbackError("Insufficient metadata for rollback")

        inverse = ROLLBACK_INVERSES[entry.action]
        new_metadata: Dict[str, Any] = {
            "secret_key": key,
            "original_audit_log_id": str(entry.id),
        }
        details = None

        if entry.action == "secret_created":
            target = await self._find_target_secret(db, project.id, metadata)
            if target is not None:
                secret, config = target
                new_metadata.update({
                    "old_value": encryption_service.reveal(secret.encrypted_value),
                    "secret_type": secret.type,
                    "config_name": config.name,
                    "secret_config_id": str(config.id),
                })
                await db.delete(secret)
                details = f"Rolled back creation of secret '{key}'"

        elif entry.action == "secret_updated":
            old_value = metadata.get("old_value")
            target = await self._find_target_secret(db, project.id, metadata) if old_value else None
            if target is not None:
                secret, config = target
                current = encryption_service.reveal(secret.encrypted_value)
                secret.encrypted_value = encryption_service.encrypt(old_value)
                new_metadata.update({
                    "old_value": current,
                    "new_value": old_value,
                    "secret_type": secret.type,
                    "config_name": config.name,
                    "secret_config_id": str(config.id),
                })
                details = f"Rolled back update of secret '{key}' to previous value"

        else:  # secret_deleted
            old_value = metadata.get("old_value")
            config = await self._config_from_metadata(db, project.id, metadata) if old_value else None
            if config is not None:
                secret_type = metadata.get("secret_type") or "text"
                try:
                    await secret_service.insert(
                        db, config, key, old_value, secret_type,
                        await secret_service.next_order(db, config.id),
                    )
                except ConflictError:
                    raise RollbackError(f"Cannot restore secret '{key}': the key already exists in {config.name}")
                new_metadata.update({
                    "new_value": old_value,
                    "secret_type": secret_type,
                    "config_name": config.name,
                    "secret_config_id": str(config.id),
                })
                details = f"Rolled back deletion of secret '{key}'"

        if details is None:
            raise RollbackError("Rollback failed - could not find target secret or config")

        await db.flush()
        new_entry_id = await audit_service.record(
            db,
            project_id=project.id,
            user_id=user_id,
            action=inverse,
            details=details,
            metadata=new_metadata,
        )
        await db.commit()

        logger.info(f"Rolled back audit entry {entry.id} ({entry.action} -> {inverse})")
        return RollbackOutcome(action=inverse, details=details, audit_log_id=new_entry_id)


# Singleton instance
rollback_service = RollbackService()
