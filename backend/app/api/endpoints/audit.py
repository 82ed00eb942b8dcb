"""
Audit ledger endpoints.
"""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.database import get_db
from app.models.user import User
from app.schemas.audit import AuditLogResponse
from app.services.audit_service import audit_service
from app.services.auth_service import get_current_user
from app.services.project_service import project_service

router = APIRouter()


@router.get("/{project_id}/audit", response_model=List[AuditLogResponse])
async def list_audit_logs(
    project_id: UUID,
    limit: Optional[int] = Query(None, ge=1, le=settings.AUDIT_MAX_LIMIT),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Project ledger, newest first, with the acting user's name and e-mail."""
    project = await project_service.get_owned_project(db, current_user.id, project_id)
    return await audit_service.list_by_project(
        db, project.id, limit=limit or settings.AUDIT_DEFAULT_LIMIT
    )
