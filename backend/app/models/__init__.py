"""
Database models for the CryptVault application.
"""

from .user import User
from .project import Project, Environment, SecretConfig, Secret
from .audit_log import AuditLog
from .api_token import ApiToken

__all__ = [
    "User",
    "Project",
    "Environment",
    "SecretConfig",
    "Secret",
    "AuditLog",
    "ApiToken",
]
