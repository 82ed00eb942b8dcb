"""
Data formatting utilities.
"""

from typing import Any, Dict, Optional


def format_error_response(error: Exception, status_code: int = 500) -> Dict[str, Any]:
    """
    Format error response for API.

    Args:
        error: Exception object
        status_code: HTTP status code

    Returns:
        Formatted error response dictionary
    """
    response = {
        "error": error.__class__.__name__,
        "detail": str(error),
        "status_code": status_code,
    }

    # Add additional details for custom exceptions
    if hasattr(error, 'detail') and error.detail:
        response["detail"] = error.detail

    if getattr(error, 'field', None):
        response["field"] = error.field

    return response


def format_user_display_name(full_name: Optional[str], username: Optional[str]) -> Optional[str]:
    """Name shown next to audit entries: full name when set, else username."""
    if full_name:
        return full_name
    return username
