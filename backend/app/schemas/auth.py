"""
Authentication-related Pydantic schemas.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID
from pydantic import BaseModel, EmailStr, Field, field_validator

from app.utils.validators import validate_username


class UserLogin(BaseModel):
    """Schema for user login."""
    username: str = Field(..., min_length=3, max_length=50)
    password: str = Field(..., min_length=6, max_length=100)


class UserRegister(BaseModel):
    """Schema for user registration."""
    username: str = Field(..., min_length=3, max_length=50)
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=100)
    full_name: Optional[str] = Field(None, max_length=200)

    @field_validator("username")
    @classmethod
    def username_format(cls, v: str) -> str:
        if not validate_username(v):
            raise ValueError("Username may only contain letters, digits and underscores")
        return v


class UserResponse(BaseModel):
    """Schema for user response."""
    id: UUID
    username: str
    email: str
    full_name: Optional[str]
    is_active: bool
    last_login: Optional[datetime]
    login_count: int
    created_at: datetime

    class Config:
        from_attributes = True


class TokenResponse(BaseModel):
    """Schema for token response."""
    access_token: str
    token_type: str
    user: UserResponse
