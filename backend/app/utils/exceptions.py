"""
Custom exception classes for the CryptVault application.
"""

from typing import Optional


class CryptVaultException(Exception):
    """Base exception for all CryptVault errors."""

    def __init__(self, message: str, detail: Optional[str] = None):
        self.message = message
        self.detail = detail
        super().__init__(self.message)


class NotFoundError(CryptVaultException):
    """
    Raised when a resource does not resolve within the caller's ownership chain.

    Used both for rows that do not exist and rows owned by someone else, so
    the response never reveals which of the two happened.
    """

    def __init__(self, resource: str, detail: Optional[str] = None):
        super().__init__(f"{resource} not found", detail)
        self.resource = resource


class AuthenticationError(CryptVaultException):
    """Raised when authentication fails."""

    def __init__(self, message: str = "Authentication failed", detail: Optional[str] = None):
        super().__init__(message, detail)


class PermissionDeniedError(CryptVaultException):
    """Raised when a valid credential lacks the requested permission."""

    def __init__(self, message: str = "Insufficient permissions", detail: Optional[str] = None):
        super().__init__(message, detail)


class ValidationError(CryptVaultException):
    """Raised when input validation fails."""

    def __init__(self, message: str, field: Optional[str] = None, detail: Optional[str] = None):
        if field:
            message = f"Validation error for field '{field}': {message}"
        super().__init__(message, detail)
        self.field = field


class ConflictError(CryptVaultException):
    """Raised when a shortcut, config name or secret key is already taken."""


class RollbackError(CryptVaultException):
    """Raised when an audit entry cannot be rolled back."""
