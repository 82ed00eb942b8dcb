"""
Project API endpoints.
"""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.models.user import User
from app.schemas.project import (
    MessageResponse,
    ProjectCreate,
    ProjectDetailsResponse,
    ProjectResponse,
    ProjectUpdate,
)
from app.services.auth_service import get_current_user
from app.services.project_service import project_service

router = APIRouter()


@router.get("", response_model=List[ProjectResponse])
async def list_projects(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """List the caller's projects, newest first."""
    projects = await project_service.list_projects(db, current_user.id)
    return [ProjectResponse.model_validate(p) for p in projects]


@router.post("", response_model=ProjectResponse, status_code=status.HTTP_201_CREATED)
async def create_project(
    payload: ProjectCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Create a project together with its dev, stg and prd environments."""
    project = await project_service.create_project(
        db,
        user_id=current_user.id,
        name=payload.name,
        description=payload.description,
        icon=payload.icon,
    )
    return ProjectResponse.model_validate(project)


@router.get("/{project_id}", response_model=ProjectResponse)
async def get_project(
    project_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    project = await project_service.get_owned_project(db, current_user.id, project_id)
    return ProjectResponse.model_validate(project)


@router.get("/{project_id}/details", response_model=ProjectDetailsResponse)
async def get_project_details(
    project_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Project with its environments, configs and secret values."""
    return await project_service.get_project_details(db, current_user.id, project_id)


@router.put("/{project_id}", response_model=ProjectResponse)
async def update_project(
    project_id: UUID,
    payload: ProjectUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    project = await project_service.update_project(
        db,
        user_id=current_user.id,
        project_id=project_id,
        name=payload.name,
        description=payload.description,
        icon=payload.icon,
    )
    return ProjectResponse.model_validate(project)


@router.delete("/{project_id}", response_model=MessageResponse)
async def delete_project(
    project_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Delete a project and everything under it, including its tokens and audit log."""
    await project_service.delete_project(db, current_user.id, project_id)
    return MessageResponse(message="Project deleted successfully")
