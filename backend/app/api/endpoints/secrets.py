"""
Secret endpoints: create, update, delete, clear, history and rollback.
"""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.models.user import User
from app.schemas.audit import AuditLogResponse, RollbackRequest, RollbackResponse
from app.schemas.project import MessageResponse
from app.schemas.secret import (
    SecretClearRequest,
    SecretClearResponse,
    SecretCreate,
    SecretResponse,
    SecretUpdate,
)
from app.services.audit_service import audit_service
from app.services.auth_service import get_current_user
from app.services.project_service import project_service, serialize_secret
from app.services.rollback_service import rollback_service
from app.services.secret_service import secret_service

router = APIRouter()


@router.post("/{project_id}/secrets", response_model=SecretResponse, status_code=status.HTTP_201_CREATED)
async def create_secret(
    project_id: UUID,
    payload: SecretCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Add a secret at the end of its config."""
    secret = await secret_service.create_secret(
        db,
        user_id=current_user.id,
        project_id=project_id,
        secret_config_id=payload.secret_config_id,
        key=payload.key,
        value=payload.value,
        secret_type=payload.type,
    )
    return serialize_secret(secret)


@router.post("/{project_id}/secrets/clear", response_model=SecretClearResponse)
async def clear_secrets(
    project_id: UUID,
    payload: SecretClearRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    cleared = await secret_service.clear_secrets(
        db,
        user_id=current_user.id,
        project_id=project_id,
        secret_config_id=payload.secret_config_id,
    )
    return SecretClearResponse(message="Secrets cleared successfully", cleared=cleared)


@router.get("/{project_id}/secrets/history", response_model=List[AuditLogResponse])
async def get_secret_history(
    project_id: UUID,
    key: str = Query(..., min_length=1),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Ledger entries touching one secret key, newest first."""
    project = await project_service.get_owned_project(db, current_user.id, project_id)
    return await audit_service.get_history(db, project.id, key)


@router.post("/{project_id}/secrets/rollback", response_model=RollbackResponse)
async def rollback_secret_change(
    project_id: UUID,
    payload: RollbackRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Apply the inverse of a secret_created, secret_updated or secret_deleted entry."""
    outcome = await rollback_service.rollback(
        db,
        user_id=current_user.id,
        project_id=project_id,
        audit_log_id=payload.audit_log_id,
    )
    return RollbackResponse(
        message="Rollback completed successfully",
        action=outcome.action,
        details=outcome.details,
        audit_log_id=outcome.audit_log_id,
    )


@router.put("/{project_id}/secrets/{secret_id}", response_model=SecretResponse)
async def update_secret(
    project_id: UUID,
    secret_id: UUID,
    payload: SecretUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    secret = await secret_service.update_secret(
        db,
        user_id=current_user.id,
        project_id=project_id,
        secret_id=secret_id,
        value=payload.value,
        secret_type=payload.type,
    )
    return serialize_secret(secret)


@router.delete("/{project_id}/secrets/{secret_id}", response_model=MessageResponse)
async def delete_secret(
    project_id: UUID,
    secret_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await secret_service.delete_secret(db, current_user.id, project_id, secret_id)
    return MessageResponse(message="Secret deleted successfully")
