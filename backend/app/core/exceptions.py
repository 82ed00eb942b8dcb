"""
Global exception handlers for FastAPI application.
"""

from fastapi import Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from loguru import logger
from sqlalchemy.exc import TimeoutError as SQLAlchemyTimeoutError

from app.core.logging import log_error
from app.utils.exceptions import (
    CryptVaultException,
    NotFoundError,
    AuthenticationError,
    PermissionDeniedError,
    ValidationError as CustomValidationError,
    ConflictError,
    RollbackError,
)
from app.utils.formatters import format_error_response


async def cryptvault_exception_handler(request: Request, exc: CryptVaultException) -> JSONResponse:
    """Handle custom CryptVault exceptions."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    # Map exception types to status codes
    if isinstance(exc, NotFoundError):
        status_code = status.HTTP_404_NOT_FOUND
    elif isinstance(exc, AuthenticationError):
        status_code = status.HTTP_401_UNAUTHORIZED
    elif isinstance(exc, PermissionDeniedError):
        status_code = status.HTTP_403_FORBIDDEN
    elif isinstance(exc, (CustomValidationError, ConflictError, RollbackError)):
        status_code = status.HTTP_400_BAD_REQUEST

    error_response = format_error_response(exc, status_code)

    if status_code >= 500:
        log_error(exc, context={"path": request.url.path})
        error_response["detail"] = "Internal server error"
    else:
        logger.info(f"{exc.__class__.__name__} on {request.url.path}: {exc.message}")

    headers = {"WWW-Authenticate": "Bearer"} if status_code == status.HTTP_401_UNAUTHORIZED else None

    return JSONResponse(
        status_code=status_code,
        content=error_response,
        headers=headers,
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handle Pydantic validation errors as 400 with per-field messages."""
    errors = []
    for error in exc.errors():
        field = ".".join(str(loc) for loc in error.get("loc", []) if loc not in ("body", "query", "path", "form"))
        errors.append({
            "field": field,
            "message": error.get("msg"),
            "type": error.get("type")
        })

    first = errors[0] if errors else None
    detail = f"{first['field']}: {first['message']}" if first else "Request validation failed"

    error_response = {
        "error": "ValidationError",
        "detail": detail,
        "status_code": status.HTTP_400_BAD_REQUEST,
        "errors": errors
    }

    logger.warning(f"Validation error: {errors}")

    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=error_response
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions without leaking internals."""
    if isinstance(exc, SQLAlchemyTimeoutError):
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "error": "ServiceUnavailable",
                "detail": "Database is busy (connection pool exhausted). Please retry in a moment.",
                "status_code": status.HTTP_503_SERVICE_UNAVAILABLE,
            },
            headers={"Retry-After": "3"},
        )

    log_error(exc, context={"path": request.url.path, "method": request.method})

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "InternalServerError",
            "detail": "Internal server error",
            "status_code": status.HTTP_500_INTERNAL_SERVER_ERROR
        }
    )
