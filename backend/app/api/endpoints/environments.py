"""
Environment and config fork endpoints.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.models.user import User
from app.schemas.project import (
    EnvironmentCreate,
    EnvironmentCreateResponse,
    EnvironmentResponse,
    ForkRequest,
    ForkResponse,
    MessageResponse,
    SecretConfigResponse,
)
from app.services.auth_service import get_current_user
from app.services.fork_service import fork_service
from app.services.project_service import project_service

router = APIRouter()


@router.post(
    "/{project_id}/environments",
    response_model=EnvironmentCreateResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_environment(
    project_id: UUID,
    payload: EnvironmentCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Add an environment; a config named after its shortcut is created with it."""
    environment, config = await project_service.create_environment(
        db,
        user_id=current_user.id,
        project_id=project_id,
        name=payload.name,
        display_name=payload.display_name,
        shortcut=payload.shortcut,
    )
    return EnvironmentCreateResponse(
        message="Environment created successfully",
        environment=EnvironmentResponse.model_validate(environment),
        config_id=config.id,
    )


@router.delete("/{project_id}/environments/{environment_id}", response_model=MessageResponse)
async def delete_environment(
    project_id: UUID,
    environment_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await project_service.delete_environment(db, current_user.id, project_id, environment_id)
    return MessageResponse(message="Environment deleted successfully")


@router.post("/{project_id}/fork", response_model=ForkResponse, status_code=status.HTTP_201_CREATED)
async def fork_config(
    project_id: UUID,
    payload: ForkRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Copy a config with all its secrets into a new config."""
    new_config, copied = await fork_service.fork(
        db,
        user_id=current_user.id,
        project_id=project_id,
        source_config_id=payload.source_config_id,
        new_config_name=payload.new_config_name,
        environment_id=payload.environment_id,
    )
    return ForkResponse(
        message="Config forked successfully",
        new_config=SecretConfigResponse.model_validate(new_config),
        new_config_id=new_config.id,
        copied_secrets=copied,
    )
