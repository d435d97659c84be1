"""
Authentication endpoints for login, logout, and user management.
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, or_

from chatrelay.core.config import settings
from chatrelay.core.security import verify_password, get_password_hash, create_access_token
from chatrelay.db.database import get_db
from chatrelay.models.user import User
from chatrelay.schemas.auth import UserLogin, UserCreate, UserResponse, Token
from chatrelay.api.deps import get_current_active_user


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Authentication"])


@router.post("/login", response_model=Token)
async def login(
    user_data: UserLogin,
    response: Response,
    db: AsyncSession = Depends(get_db)
):
    """
    Login endpoint - authenticates user and returns JWT token.

    The token is also set as an HTTP-only session cookie so browser
    clients are identified without an Authorization header.

    Raises:
        HTTPException: If credentials are invalid
    """
    result = await db.execute(select(User).where(User.username == user_data.username))
    user = result.scalar_one_or_none()

    if not user or not verify_password(user_data.password, user.hashed_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect username or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is inactive"
        )

    access_token = create_access_token(data={"sub": str(user.id)})
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=access_token,
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        httponly=True,
        samesite="lax",
        secure=settings.ENVIRONMENT == "production",
    )
    logger.info("User %s logged in", user.id)

    return Token(access_token=access_token, user=UserResponse.model_validate(user))


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def register(
    user_data: UserCreate,
    db: AsyncSession = Depends(get_db)
):
    """
    Register a new user.

    Raises:
        HTTPException: If username or email already exists
    """
    result = await db.execute(
        select(User).where(or_(User.username == user_data.username, User.email == user_data.email))
    )
    existing = result.scalars().first()
    if existing is not None:
        field = "Username" if existing.username == user_data.username else "Email"
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"{field} already registered"
        )

    new_user = User(
        username=user_data.username,
        email=user_data.email,
        hashed_password=get_password_hash(user_data.password),
        is_active=True
    )

    db.add(new_user)
    await db.commit()
    await db.refresh(new_user)
    logger.info("Registered user %s", new_user.id)

    return UserResponse.model_validate(new_user)


@router.get("/me", response_model=UserResponse)
async def get_current_user_info(
    current_user: User = Depends(get_current_active_user)
):
    """
    Get current authenticated user information.
    """
    return UserResponse.model_validate(current_user)


@router.post("/logout")
async def logout(response: Response):
    """
    Logout endpoint - clears the session cookie.

    Bearer-token clients discard their token themselves.
    """
    response.delete_cookie(settings.SESSION_COOKIE_NAME)
    return {"message": "Successfully logged out"}
