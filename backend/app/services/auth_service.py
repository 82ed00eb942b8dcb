"""
Authentication service for user management and JWT session tokens.
"""

from datetime import datetime, timedelta
from typing import Optional
from uuid import UUID
import hashlib
import bcrypt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from jose import JWTError, jwt
from loguru import logger

from app.core.database import get_db
from app.core.config import settings
from app.models.user import User

# auto_error=False so a missing header is a 401 like any other bad credential
bearer_scheme = HTTPBearer(auto_error=False)


class AuthService:
    """Service for authentication of the interactive API."""

    def hash_password(self, password: str) -> str:
        """Hash a password using bcrypt."""
        password_bytes = password.encode('utf-8')

        # Bcrypt has a 72-byte limit - handle long passwords
        if len(password_bytes) > 72:
            logger.debug(f"Password exceeds 72 bytes ({len(password_bytes)}), pre-hashing with SHA256")
            password_bytes = hashlib.sha256(password_bytes).hexdigest().encode('utf-8')

        salt = bcrypt.gensalt()
        hashed = bcrypt.hashpw(password_bytes, salt)
        return hashed.decode('utf-8')

    def verify_password(self, plain_password: str, hashed_password: str) -> bool:
        """Verify a password against its hash."""
        password_bytes = plain_password.encode('utf-8')
        hashed_bytes = hashed_password.encode('utf-8')

        if len(password_bytes) > 72:
            password_bytes = hashlib.sha256(password_bytes).hexdigest().encode('utf-8')

        return bcrypt.checkpw(password_bytes, hashed_bytes)

    def create_access_token(self, user_id: UUID) -> str:
        """Create a JWT access token."""
        expire = datetime.utcnow() + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
        to_encode = {
            "sub": str(user_id),
            "exp": expire,
            "type": "access"
        }
        return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)

    async def get_user_by_username(self, username: str, db: AsyncSession) -> Optional[User]:
        """Get user by username."""
        result = await db.execute(
            select(User).where(User.username == username)
        )
        return result.scalar_one_or_none()

    async def get_user_by_email(self, email: str, db: AsyncSession) -> Optional[User]:
        """Get user by email."""
        result = await db.execute(
            select(User).where(User.email == email)
        )
        return result.scalar_one_or_none()

    async def get_user_by_id(self, user_id: str, db: AsyncSession) -> Optional[User]:
        """Get user by ID."""
        try:
            user_uuid = UUID(user_id)
        except ValueError:
            return None
        result = await db.execute(
            select(User).where(User.id == user_uuid)
        )
        return result.scalar_one_or_none()

    async def create_user(
        self,
        username: str,
        email: str,
        password: str,
        db: AsyncSession,
        full_name: Optional[str] = None
    ) -> User:
        """Create a new user."""
        if await self.get_user_by_username(username, db):
            raise ValueError("Username already exists")

        if await self.get_user_by_email(email, db):
            raise ValueError("Email already exists")

        user = User(
            username=username,
            email=email,
            hashed_password=self.hash_password(password),
            full_name=full_name,
            is_active=True,
            login_count=0,
        )

        db.add(user)
        await db.commit()
        await db.refresh(user)

        logger.info(f"Created new user: {username}")
        return user

    async def authenticate_user(
        self,
        username: str,
        password: str,
        db: AsyncSession
    ) -> Optional[User]:
        """Authenticate a user with username and password."""
        user = await self.get_user_by_username(username, db)

        if not user:
            return None

        if not user.is_active:
            return None

        if not self.verify_password(password, user.hashed_password):
            return None

        return user

    async def get_current_user(
        self,
        credentials: Optional[HTTPAuthorizationCredentials],
        db: AsyncSession
    ) -> User:
        """Get current user from JWT token."""
        credentials_exception = HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

        if credentials is None:
            raise credentials_exception

        try:
            payload = jwt.decode(
                credentials.credentials,
                settings.SECRET_KEY,
                algorithms=[settings.ALGORITHM]
            )
            user_id = payload.get("sub")
            if user_id is None or payload.get("type") != "access":
                raise credentials_exception
        except JWTError:
            raise credentials_exception

        user = await self.get_user_by_id(user_id, db)
        if user is None:
            raise credentials_exception

        if not user.is_active:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="User account is disabled"
            )

        return user


# Global instance for dependency injection
auth_service = AuthService()


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db)
) -> User:
    """Dependency for getting current user."""
    return await auth_service.get_current_user(credentials, db)
