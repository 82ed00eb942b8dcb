"""
Append-only audit ledger of project mutations.
"""

from datetime import datetime
from uuid import uuid4

from sqlalchemy import Column, String, DateTime, ForeignKey, Text, JSON
from sqlalchemy.dialects.postgresql import UUID

from app.core.database import Base


AUDIT_ACTIONS = (
    "secret_created",
    "secret_updated",
    "secret_deleted",
    "secret_bulk_import",
    "secret_bulk_clear",
    "config_created",
    "config_deleted",
    "config_forked",
    "environment_created",
    "environment_deleted",
)

# Leaf actions whose inverse can be applied by the rollback engine
ROLLBACK_INVERSES = {
    "secret_created": "secret_deleted",
    "secret_updated": "secret_updated",
    "secret_deleted": "secret_created",
}


class AuditLog(Base):
    """One immutable ledger entry; rows are only ever inserted."""

    __tablename__ = "audit_logs"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)

    project_id = Column(UUID(as_uuid=True), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False)

    action = Column(String(64), nullable=False, index=True)
    details = Column(Text, nullable=False)
    # "metadata" is reserved on declarative classes
    metadata_ = Column("metadata", JSON, nullable=True)

    timestamp = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False, index=True)

    def __repr__(self):
        return f"<AuditLog(id={self.id}, action='{self.action}', project_id={self.project_id})>"
