"""
Import/merge of parsed secret entries into an existing config.
"""

from dataclasses import dataclass
from typing import Dict, List
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession
from loguru import logger

from app.models.project import Secret
from app.services.audit_service import audit_service
from app.services.project_service import project_service
from app.services.secret_service import secret_service
from app.utils.exceptions import ConflictError
from app.utils.validators import validate_secret_type


@dataclass
class ImportOutcome:
    imported: int
    skipped: int
    failed: int
    total: int


class ImportService:
    """Merges entries into a config; the whole import is one audited unit."""

    async def import_into(
        self,
        db: AsyncSession,
        user_id: UUID,
        project_id: UUID,
        environment_id: UUID,
        secret_config_id: UUID,
        entries: List[Dict[str, str]],
        overwrite: bool = False,
        import_format: str = "env",
    ) -> ImportOutcome:
        """
        Insert entries in input order.

        With `overwrite`, the config is emptied first. Otherwise keys that
        already exist are skipped. An entry whose insert fails (unknown type
        or a key repeated within the batch) is counted as failed.
        Entries with an empty key are ignored. New secrets take their index
        in the input as order.
        """
        project = await project_service.get_owned_project(db, user_id, project_id)
        config, environment = await project_service.get_config(
            db, project.id, secret_config_id, environment_id=environment_id
        )

        if overwrite:
            await db.execute(delete(Secret).where(Secret.secret_config_id == config.id))

        existing_keys = set((await db.execute(
            select(Secret.key).where(Secret.secret_config_id == config.id)
        )).scalars().all())

        imported = skipped = failed = 0
        for index, entry in enumerate(entries):
            key = entry.get("key") or ""
            if not key:
                continue

            if not overwrite and key in existing_keys:
                skipped += 1
                continue

            secret_type = entry.get("type") or "text"
            if not validate_secret_type(secret_type):
                logger.warning(f"Import of '{key}' failed: unknown type '{secret_type}'")
                failed += 1
                continue

            try:
                await secret_service.insert(db, config, key, entry.get("value") or "", secret_type, index)
                imported += 1
            except ConflictError:
                logger.warning(f"Import of '{key}' failed: duplicate key in config {config.id}")
                failed += 1

        outcome = ImportOutcome(imported=imported, skipped=skipped, failed=failed, total=len(entries))

        await audit_service.record(
            db,
            project_id=project.id,
            user_id=user_id,
            action="secret_bulk_import",
            details=f"Imported {imported} secrets into {config.name} from {import_format}",
            metadata={
                "import_format": import_format,
                "overwrite": overwrite,
                "imported": imported,
                "skipped": skipped,
                "failed": failed,
                "total": outcome.total,
                "config_name": config.name,
                "environment_name": environment.name,
                "secret_config_id": str(config.id),
            },
        )

        await db.commit()

        logger.info(
            f"Import into config {config.id}: {imported} imported, {skipped} skipped, "
            f"{failed} failed of {outcome.total}"
        )
        return outcome


# Singleton instance
import_service = ImportService()
