"""
Pydantic schemas for projects, environments and secret configs.
"""

from datetime import datetime
from typing import Optional, List
from uuid import UUID
from pydantic import BaseModel, Field

from app.schemas.secret import SecretResponse


class ProjectCreate(BaseModel):
    """Schema for creating a project."""
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    icon: Optional[str] = Field(None, max_length=100)


class ProjectUpdate(ProjectCreate):
    """Schema for updating a project (full replacement, like create)."""


class ProjectResponse(BaseModel):
    """Schema for project response."""
    id: UUID
    name: str
    description: Optional[str]
    icon: Optional[str]
    user_id: UUID
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class EnvironmentCreate(BaseModel):
    """
    Schema for creating an environment.

    The shortcut format is checked by the service so that a bad value comes
    back as a field-specific 400 like every other validation failure.
    """
    name: str = Field(..., min_length=1, max_length=100)
    display_name: str = Field(..., min_length=1, max_length=200)
    shortcut: str = Field(..., min_length=1, max_length=10)


class EnvironmentResponse(BaseModel):
    """Schema for environment response."""
    id: UUID
    name: str
    display_name: str
    shortcut: str
    order: int
    project_id: UUID

    class Config:
        from_attributes = True


class EnvironmentCreateResponse(BaseModel):
    """Environment plus the default config created with it."""
    message: str
    environment: EnvironmentResponse
    config_id: UUID


class SecretConfigResponse(BaseModel):
    """Schema for secret config response."""
    id: UUID
    name: str
    environment_id: UUID

    class Config:
        from_attributes = True


class SecretConfigTree(SecretConfigResponse):
    secrets: List[SecretResponse] = []


class EnvironmentTree(EnvironmentResponse):
    secret_configs: List[SecretConfigTree] = []


class ProjectDetailsResponse(ProjectResponse):
    """Project with its full environment/config/secret tree."""
    environments: List[EnvironmentTree] = []


class ForkRequest(BaseModel):
    """Schema for forking a secret config."""
    source_config_id: UUID
    new_config_name: str = Field(..., min_length=1, max_length=100)
    environment_id: UUID


class ForkResponse(BaseModel):
    message: str
    new_config: SecretConfigResponse
    new_config_id: UUID
    copied_secrets: int


class MessageResponse(BaseModel):
    message: str
