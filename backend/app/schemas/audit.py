"""
Pydantic schemas for the audit ledger and rollback.
"""

from datetime import datetime
from typing import Any, Dict, Optional
from uuid import UUID

from pydantic import BaseModel


class AuditLogResponse(BaseModel):
    id: UUID
    action: str
    details: str
    metadata: Optional[Dict[str, Any]] = None
    timestamp: datetime
    user_id: UUID
    user_name: Optional[str] = None
    user_email: Optional[str] = None


class RollbackRequest(BaseModel):
    audit_log_id: UUID


class RollbackResponse(BaseModel):
    message: str
    action: str
    details: str
    audit_log_id: Optional[UUID] = None
