"""
Project hierarchy models: Project -> Environment -> SecretConfig -> Secret.

Every row below a project is owned by exactly one parent. Foreign keys
cascade on delete; services still delete children explicitly, leaf first,
inside one transaction.
"""

from datetime import datetime
from sqlalchemy import Column, String, Text, DateTime, ForeignKey, Integer, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
import uuid

from app.core.database import Base


class Project(Base):
    """Top-level tenant-owned container."""

    __tablename__ = "projects"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    icon = Column(String(100), nullable=True)

    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    created_at = Column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<Project(id={self.id}, name='{self.name}', user_id={self.user_id})>"


class Environment(Base):
    """A deployment stage (dev/stg/prd) within a project."""

    __tablename__ = "environments"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(100), nullable=False)
    display_name = Column(String(200), nullable=False)
    shortcut = Column(String(3), nullable=False)  # 1-3 lowercase letters
    order = Column(Integer, nullable=False, default=0)

    project_id = Column(UUID(as_uuid=True), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)

    created_at = Column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("project_id", "shortcut", name="uq_environments_project_shortcut"),
    )

    def __repr__(self):
        return f"<Environment(id={self.id}, shortcut='{self.shortcut}', project_id={self.project_id})>"


class SecretConfig(Base):
    """A named variant of an environment's configuration (e.g. prd, prd_local)."""

    __tablename__ = "secret_configs"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(100), nullable=False)

    environment_id = Column(UUID(as_uuid=True), ForeignKey("environments.id", ondelete="CASCADE"), nullable=False, index=True)

    created_at = Column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("environment_id", "name", name="uq_secret_configs_environment_name"),
    )

    def __repr__(self):
        return f"<SecretConfig(id={self.id}, name='{self.name}', environment_id={self.environment_id})>"


class Secret(Base):
    """
    A single typed key/value entry.

    The value is always stored as text (its string representation for
    non-text types), encrypted at rest.
    """

    __tablename__ = "secrets"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    key = Column(String(255), nullable=False)
    encrypted_value = Column(Text, nullable=False)
    type = Column(String(20), nullable=False, default="text")
    order = Column(Integer, nullable=False, default=0)

    secret_config_id = Column(UUID(as_uuid=True), ForeignKey("secret_configs.id", ondelete="CASCADE"), nullable=False, index=True)

    created_at = Column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("secret_config_id", "key", name="uq_secrets_config_key"),
    )

    def __repr__(self):
        return f"<Secret(id={self.id}, key='{self.key}', secret_config_id={self.secret_config_id})>"
