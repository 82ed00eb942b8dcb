"""
Audit ledger service.

Entries are append-only. Writes happen inside a SAVEPOINT of the caller's
transaction so that a failed ledger insert never aborts the mutation it
describes; the failure is logged and swallowed.
"""

from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from loguru import logger

from app.models.audit_log import AUDIT_ACTIONS, AuditLog
from app.models.user import User
from app.services.encryption_service import encryption_service
from app.utils.formatters import format_user_display_name

# Metadata fields carrying secret values; sealed before they reach the ledger
SEALED_FIELDS = ("old_value", "new_value")

SECRET_ACTIONS = ("secret_created", "secret_updated", "secret_deleted")


class AuditService:
    """Service for writing and reading the audit ledger."""

    def seal_metadata(self, metadata: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
        if metadata is None:
            return None
        sealed = dict(metadata)
        for field in SEALED_FIELDS:
            if isinstance(sealed.get(field), str):
                sealed[field] = encryption_service.encrypt(sealed[field])
        return sealed

    def open_metadata(self, metadata: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
        if metadata is None:
            return None
        opened = dict(metadata)
        for field in SEALED_FIELDS:
            if isinstance(opened.get(field), str):
                value = encryption_service.decrypt(opened[field])
                if value is None:
                    logger.warning(f"Audit metadata field '{field}' could not be decrypted")
                opened[field] = value
        return opened

    async def record(
        self,
        db: AsyncSession,
        project_id: UUID,
        user_id: UUID,
        action: str,
        details: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Optional[UUID]:
        """
        Append one ledger entry.

        Returns:
            The new entry id, or None when the action is unknown or the write failed
        """
        if action not in AUDIT_ACTIONS:
            logger.error(f"Refusing audit entry with unknown action '{action}' for project {project_id}")
            return None

        try:
            async with db.begin_nested():
                entry = AuditLog(
                    project_id=project_id,
                    user_id=user_id,
                    action=action,
                    details=details,
                    metadata_=self.seal_metadata(metadata),
                )
                db.add(entry)
                await db.flush()
            logger.debug(f"Audit entry {action} recorded for project {project_id}")
            return entry.id
        except Exception as e:
            logger.error(f"Failed to record audit entry {action} for project {project_id}: {e}")
            return None

    async def get_entry(self, db: AsyncSession, project_id: UUID, audit_log_id: UUID) -> Optional[AuditLog]:
        """Get one entry, scoped to its project."""
        result = await db.execute(
            select(AuditLog).where(
                AuditLog.id == audit_log_id,
                AuditLog.project_id == project_id,
            )
        )
        return result.scalar_one_or_none()

    async def list_by_project(
        self,
        db: AsyncSession,
        project_id: UUID,
        limit: int = 100,
    ) -> List[Dict[str, Any]]:
        """List entries newest first, joined with the acting user."""
        result = await db.execute(
            select(AuditLog, User)
            .outerjoin(User, AuditLog.user_id == User.id)
            .where(AuditLog.project_id == project_id)
            .order_by(AuditLog.timestamp.desc())
            .limit(limit)
        )
        return [self._to_dict(entry, user) for entry, user in result.all()]

    async def get_history(
        self,
        db: AsyncSession,
        project_id: UUID,
        secret_key: str,
    ) -> List[Dict[str, Any]]:
        """Secret mutations of one key within a project, newest first."""
        result = await db.execute(
            select(AuditLog, User)
            .outerjoin(User, AuditLog.user_id == User.id)
            .where(
                AuditLog.project_id == project_id,
                AuditLog.action.in_(SECRET_ACTIONS),
            )
            .order_by(AuditLog.timestamp.desc())
        )
        return [
            self._to_dict(entry, user)
            for entry, user in result.all()
            if (entry.metadata_ or {}).get("secret_key") == secret_key
        ]

    def _to_dict(self, entry: AuditLog, user: Optional[User]) -> Dict[str, Any]:
        return {
            "id": entry.id,
            "action": entry.action,
            "details": entry.details,
            "metadata": self.open_metadata(entry.metadata_),
            "timestamp": entry.timestamp,
            "user_id": entry.user_id,
            "user_name": format_user_display_name(user.full_name, user.username) if user else None,
            "user_email": user.email if user else None,
        }


# Singleton instance
audit_service = AuditService()
