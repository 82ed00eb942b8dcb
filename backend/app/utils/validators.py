"""
Input validation utilities.
"""

import re
from typing import Optional


# Environment shortcut: 1-3 lowercase letters (e.g. "dev", "prd")
SHORTCUT_PATTERN = re.compile(r'^[a-z]{1,3}$')

# Config names double as shell identifiers (e.g. "prd_local")
IDENTIFIER_PATTERN = re.compile(r'^[a-zA-Z_][a-zA-Z0-9_]*$')

SECRET_TYPES = (
    "text",
    "email",
    "password",
    "uuid",
    "date",
    "datetime",
    "integer",
    "decimal",
    "boolean",
    "url",
    "json",
    "xml",
    "yaml",
)

EXPORT_FORMATS = ("env", "json", "yaml", "csv")


def validate_shortcut(shortcut: str) -> bool:
    """
    Validate an environment shortcut.

    Args:
        shortcut: Shortcut to validate

    Returns:
        True if shortcut is 1-3 lowercase letters, False otherwise
    """
    return bool(shortcut) and bool(SHORTCUT_PATTERN.match(shortcut))


def validate_identifier(name: str) -> bool:
    """
    Validate a secret config name.

    Args:
        name: Name to validate

    Returns:
        True if name is a valid identifier, False otherwise
    """
    return bool(name) and bool(IDENTIFIER_PATTERN.match(name))


def validate_secret_type(secret_type: Optional[str]) -> bool:
    """Check a secret type against the fixed enumeration."""
    return secret_type in SECRET_TYPES


def validate_username(username: str) -> bool:
    """
    Validate username format.

    Args:
        username: Username to validate

    Returns:
        True if username is valid, False otherwise
    """
    # Username should be 3-50 characters, alphanumeric and underscores only
    pattern = r'^[a-zA-Z0-9_]{3,50}$'
    return bool(re.match(pattern, username))
