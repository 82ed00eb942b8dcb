"""
Authentication-related API endpoints.
"""

from datetime import datetime
from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from loguru import logger

from app.core.database import get_db
from app.core.rate_limit import limiter, AUTH_LIMIT
from app.models.user import User
from app.services.auth_service import auth_service, get_current_user
from app.schemas.auth import (
    UserLogin,
    UserRegister,
    UserResponse,
    TokenResponse
)

router = APIRouter()


@router.post("/register", response_model=UserResponse)
@limiter.limit(AUTH_LIMIT)
async def register(
    request: Request,
    user_data: UserRegister,
    db: AsyncSession = Depends(get_db)
):
    """Register a new user."""
    try:
        user = await auth_service.create_user(
            username=user_data.username,
            email=user_data.email,
            password=user_data.password,
            full_name=user_data.full_name,
            db=db
        )
        return UserResponse.model_validate(user)

    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/login", response_model=TokenResponse)
@limiter.limit(AUTH_LIMIT)
async def login(
    request: Request,
    user_data: UserLogin,
    db: AsyncSession = Depends(get_db)
):
    """Login user and return access token."""
    user = await auth_service.authenticate_user(
        username=user_data.username,
        password=user_data.password,
        db=db
    )

    if not user:
        logger.info(f"Failed login for '{user_data.username}'")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect username or password"
        )

    access_token = auth_service.create_access_token(user.id)

    # Update last login
    user.last_login = datetime.utcnow()
    user.login_count = (user.login_count or 0) + 1
    await db.commit()
    await db.refresh(user)

    return TokenResponse(
        access_token=access_token,
        token_type="bearer",
        user=UserResponse.model_validate(user)
    )


@router.get("/me", response_model=UserResponse)
async def get_current_user_info(
    current_user: User = Depends(get_current_user)
):
    """Get current user information."""
    return UserResponse.model_validate(current_user)
