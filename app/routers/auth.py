"""
BettsTax Practice - Authentication Router

API endpoints for user authentication.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import get_async_session
from app.dependencies import get_current_user
from app.models.user import User
from app.schemas.auth import TokenResponse, UserLoginRequest, UserResponse, UserWithTokenResponse
from app.utils.security import create_access_token, verify_password


logger = logging.getLogger(__name__)

router = APIRouter()


def create_user_token(user: User) -> TokenResponse:
    """Issue a bearer access token for a user."""
    token_data = {
        "sub": str(user.id),
        "email": user.email,
        "role": user.role.value if user.role else None,
        "client_id": str(user.client_id) if user.client_id else None,
    }
    return TokenResponse(
        access_token=create_access_token(token_data),
        token_type="bearer",
        expires_in=settings.access_token_expire_minutes * 60,
    )


@router.post(
    "/login",
    response_model=UserWithTokenResponse,
    summary="Login user",
    description="Authenticate with email and password and receive a bearer token.",
)
async def login(
    request: UserLoginRequest,
    db: AsyncSession = Depends(get_async_session),
):
    """Login with email and password."""
    result = await db.execute(select(User).where(User.email == request.email.lower()))
    user = result.scalar_one_or_none()

    if not user or not verify_password(request.password, user.hashed_password):
        logger.warning(f"Failed login attempt for {request.email}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is deactivated",
        )

    logger.info(f"User {user.id} logged in")
    return UserWithTokenResponse(
        user=UserResponse.model_validate(user),
        tokens=create_user_token(user),
    )


@router.get(
    "/me",
    response_model=UserResponse,
    summary="Get current user",
)
async def get_me(current_user: User = Depends(get_current_user)):
    return UserResponse.model_validate(current_user)
