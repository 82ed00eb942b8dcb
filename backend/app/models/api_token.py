"""
API token model for the programmatic (bearer token) API.
"""

from datetime import datetime, timezone
from sqlalchemy import Column, String, DateTime, Boolean, JSON, ForeignKey
from sqlalchemy.dialects.postgresql import UUID
import uuid

from app.core.database import Base


class ApiToken(Base):
    """Capability token scoped to one project."""

    __tablename__ = "api_tokens"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    # Key identification
    name = Column(String(100), nullable=False)  # Human-readable name
    token_prefix = Column(String(16), nullable=False)  # First chars for identification
    token_hash = Column(String(128), nullable=False, unique=True, index=True)  # SHA256 of the full token

    # Ownership
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    project_id = Column(UUID(as_uuid=True), ForeignKey("projects.id", ondelete="CASCADE"), nullable=True, index=True)

    # {"admin": true} or {"environments": {"<env>|*": ["read", "write", "*"]}}
    permissions = Column(JSON, nullable=False)

    # Status
    is_active = Column(Boolean, default=True, nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=True)  # Null = never expires
    last_used = Column(DateTime(timezone=True), nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<ApiToken(id={self.id}, name='{self.name}', project_id={self.project_id})>"

    def is_expired(self, now: datetime) -> bool:
        """Check expiry against an aware UTC timestamp."""
        if self.expires_at is None:
            return False
        expires_at = self.expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        return expires_at <= now

    def is_valid(self, now: datetime) -> bool:
        """Check if the token is currently usable."""
        if not self.is_active:
            return False
        if self.project_id is None:
            return False
        return not self.is_expired(now)
