"""
Pydantic schemas for API token operations.
"""

from datetime import datetime
from typing import Dict, List, Literal, Optional
from uuid import UUID
from pydantic import BaseModel, Field, model_validator

TokenAction = Literal["read", "write", "*"]


class TokenPermissions(BaseModel):
    """
    Permission document of a token.

    Either `{"admin": true}` (everything) or a mapping from environment name
    (or the wildcard "*") to the actions allowed there.
    """
    admin: bool = False
    environments: Dict[str, List[TokenAction]] = Field(default_factory=dict)

    @model_validator(mode="after")
    def grants_something(self) -> "TokenPermissions":
        if not self.admin and not self.environments:
            raise ValueError("permissions must set admin or list at least one environment")
        return self

    def to_document(self) -> dict:
        if self.admin:
            return {"admin": True}
        return {"environments": {env: list(actions) for env, actions in self.environments.items()}}


class ApiTokenCreate(BaseModel):
    """Schema for creating a new API token."""
    name: str = Field(..., min_length=1, max_length=100, description="Human-readable name for the token")
    permissions: TokenPermissions
    expires_at: Optional[datetime] = Field(None, description="Expiry timestamp. None means never expires")


class ApiTokenUpdate(BaseModel):
    """Schema for updating an API token."""
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    permissions: Optional[TokenPermissions] = None
    is_active: Optional[bool] = None


class ApiTokenResponse(BaseModel):
    """Schema for API token response (without the actual token)."""
    id: UUID
    name: str
    token_prefix: str
    permissions: dict
    is_active: bool
    last_used: Optional[datetime]
    expires_at: Optional[datetime]
    created_at: datetime

    class Config:
        from_attributes = True


class ApiTokenCreateResponse(ApiTokenResponse):
    """Schema for API token creation response (includes the plaintext token once)."""
    token: str
    message: str = "Store this token securely. It will not be shown again!"
