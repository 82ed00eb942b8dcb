"""
Schemas for the token-authenticated /v1 API.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class PublicSecretsResponse(BaseModel):
    project: str
    environment: str
    config: str
    secrets: Dict[str, str]


class PublicSecretsWrite(BaseModel):
    environment: str = Field(..., min_length=1, max_length=100)
    config: Optional[str] = Field(None, min_length=1, max_length=100)
    # Values are checked per key: non-strings are rejected individually
    secrets: Dict[str, Any]


class PublicSecretsWriteResponse(BaseModel):
    message: str
    created: int
    updated: int
    rejected: List[str] = []
