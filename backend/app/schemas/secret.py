"""
Pydantic schemas for secret operations.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field


class SecretCreate(BaseModel):
    secret_config_id: UUID
    key: str = Field(..., min_length=1, max_length=255)
    value: str = Field(..., min_length=1, max_length=65536)
    type: str = Field("text", max_length=20)


class SecretUpdate(BaseModel):
    value: Optional[str] = Field(None, min_length=1, max_length=65536)
    type: Optional[str] = Field(None, max_length=20)


class SecretResponse(BaseModel):
    id: UUID
    key: str
    value: str
    type: str
    order: int
    secret_config_id: UUID
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class SecretClearRequest(BaseModel):
    secret_config_id: UUID


class SecretClearResponse(BaseModel):
    message: str
    cleared: int


class ImportResult(BaseModel):
    """
    Outcome of an import.

    `failed` counts entries whose insert was rejected by the store (e.g. a
    key repeated within the same file), so imported + skipped + failed can
    be less than total only when entries had an empty key.
    """
    message: str
    imported: int
    skipped: int
    failed: int
    total: int
