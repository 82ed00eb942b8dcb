"""
Utility modules for the CryptVault application.
"""

from .exceptions import (
    CryptVaultException,
    NotFoundError,
    AuthenticationError,
    PermissionDeniedError,
    ValidationError,
    ConflictError,
    RollbackError,
)

__all__ = [
    "CryptVaultException",
    "NotFoundError",
    "AuthenticationError",
    "PermissionDeniedError",
    "ValidationError",
    "ConflictError",
    "RollbackError",
]
