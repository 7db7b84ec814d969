from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from choreograph.db.database import get_async_session
from choreograph.schemas.auth import (
    SignupRequest,
    LoginRequest,
    RefreshTokenRequest,
    AccessTokenResponse,
    AuthResponse,
    UserResponse
)
from choreograph.core.errors import DuplicateEmailError
from choreograph.services.security_service import SecurityService
from choreograph.services.user_service import UserService
from choreograph.api.dependencies.auth import get_current_user
from choreograph.models.user import User
from choreograph.logs import debug_logger

# Create router
router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/signup", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def signup(
    user_data: SignupRequest,
    db: AsyncSession = Depends(get_async_session)
):
    """
    Register a new user and log them in
    """
    # Check if email already exists
    existing_user = await UserService.get_by_email(db, user_data.email)
    if existing_user:
        raise DuplicateEmailError()

    user = await UserService.create(
        db,
        email=user_data.email,
        name=user_data.name,
        password=user_data.password
    )
    debug_logger.info(f"User {user.id} signed up")

    tokens = await SecurityService.issue_tokens(db, user)
    return {**tokens, "user": user}


@router.post("/login", response_model=AuthResponse)
async def login(
    credentials: LoginRequest,
    db: AsyncSession = Depends(get_async_session)
):
    """
    Exchange email and password for an access/refresh token pair
    """
    user = await SecurityService.authenticate_user(
        db, credentials.email, credentials.password
    )

    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    tokens = await SecurityService.issue_tokens(db, user)
    return {**tokens, "user": user}


@router.post("/refresh", response_model=AccessTokenResponse)
async def refresh_token(
    refresh_data: RefreshTokenRequest,
    db: AsyncSession = Depends(get_async_session)
):
    """
    Issue a new access token from a stored refresh token
    """
    access_token = await SecurityService.refresh_access_token(db, refresh_data.refresh_token)

    if not access_token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid refresh token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return {"access_token": access_token}


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(
    db: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user)
):
    """
    Revoke every refresh token of the current user
    """
    revoked = await SecurityService.revoke_user_tokens(db, current_user.id)
    debug_logger.info(f"User {current_user.id} logged out, {revoked} refresh tokens revoked")


@router.get("/me", response_model=UserResponse)
async def get_current_user_info(
    current_user: User = Depends(get_current_user)
):
    """
    Get current user information
    """
    return current_user
