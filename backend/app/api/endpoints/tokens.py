"""
API token management endpoints.

Tokens authenticate the programmatic /v1 API for one project. The plaintext
token is only returned by the create call.
"""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.models.user import User
from app.schemas.api_token import (
    ApiTokenCreate,
    ApiTokenCreateResponse,
    ApiTokenResponse,
    ApiTokenUpdate,
)
from app.schemas.project import MessageResponse
from app.services.api_token_service import api_token_service
from app.services.auth_service import get_current_user
from app.services.project_service import project_service

router = APIRouter()


@router.get("/{project_id}/tokens", response_model=List[ApiTokenResponse])
async def list_tokens(
    project_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    project = await project_service.get_owned_project(db, current_user.id, project_id)
    tokens = await api_token_service.list(db, project.id)
    return [ApiTokenResponse.model_validate(t) for t in tokens]


@router.post(
    "/{project_id}/tokens",
    response_model=ApiTokenCreateResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_token(
    project_id: UUID,
    payload: ApiTokenCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Create a token.

    **Permissions**:
    - `{"admin": true}`: every action on every environment
    - `{"environments": {"production": ["read"], "*": ["read", "write"]}}`:
      actions per environment name, `"*"` matching any environment
    """
    project = await project_service.get_owned_project(db, current_user.id, project_id)
    api_token, plain_token = await api_token_service.issue(
        db,
        user_id=current_user.id,
        project_id=project.id,
        name=payload.name,
        permissions=payload.permissions,
        expires_at=payload.expires_at,
    )
    return ApiTokenCreateResponse(
        id=api_token.id,
        name=api_token.name,
        token_prefix=api_token.token_prefix,
        permissions=api_token.permissions,
        is_active=api_token.is_active,
        last_used=api_token.last_used,
        expires_at=api_token.expires_at,
        created_at=api_token.created_at,
        token=plain_token,
    )


@router.patch("/{project_id}/tokens/{token_id}", response_model=ApiTokenResponse)
async def update_token(
    project_id: UUID,
    token_id: UUID,
    payload: ApiTokenUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Rename a token, replace its permissions, or enable/disable it."""
    project = await project_service.get_owned_project(db, current_user.id, project_id)
    api_token = await api_token_service.update(
        db,
        project_id=project.id,
        token_id=token_id,
        user_id=current_user.id,
        name=payload.name,
        permissions=payload.permissions,
        is_active=payload.is_active,
    )
    if not api_token:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Token not found")
    return ApiTokenResponse.model_validate(api_token)


@router.delete("/{project_id}/tokens/{token_id}", response_model=MessageResponse)
async def delete_token(
    project_id: UUID,
    token_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    project = await project_service.get_owned_project(db, current_user.id, project_id)
    if not await api_token_service.delete(db, project.id, token_id, current_user.id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Token not found")
    return MessageResponse(message="Token deleted successfully")
