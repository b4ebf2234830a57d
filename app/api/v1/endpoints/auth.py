"""Authentication endpoints."""

import logging
from datetime import datetime, timedelta, timezone

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import RedirectResponse
from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user
from app.core.config import settings
from app.core.database import get_db
from app.core.exceptions import AppError, AuthenticationError, ConflictError, ValidationError
from app.core.rate_limit import limiter, RATE_LIMITS
from app.core.security import (
    create_access_token,
    generate_reset_token,
    hash_password,
    verify_password,
)
from app.models.user import User
from app.schemas.auth import (
    LoginRequest,
    PasswordResetConfirm,
    PasswordResetRequest,
    RegisterRequest,
    Token,
)
from app.schemas.portfolio import MessageResponse
from app.schemas.user import UserPublic, UserResponse, UserUpdate
from app.services import oauth_service
from app.services.email_service import email_service

logger = logging.getLogger(__name__)

router = APIRouter()


def _issue_token(user: User, message: str) -> Token:
    token = create_access_token(
        subject=str(user.id),
        username=user.username,
        email=user.email,
    )
    return Token(message=message, token=token, user=UserPublic.from_user(user))


@router.post("/register", response_model=Token, status_code=status.HTTP_201_CREATED)
@limiter.limit(RATE_LIMITS["auth_register"])
async def register(
    request: Request,
    register_data: RegisterRequest,
    db: AsyncSession = Depends(get_db),
) -> Token:
    """Create an account and sign it in."""
    email = register_data.email.lower()
    result = await db.execute(
        select(User.id).where(
            or_(User.username == register_data.username, User.email == email)
        )
    )
    if result.first():
        raise ConflictError("Username or email already exists")

    user = User(
        username=register_data.username,
        email=email,
        password_hash=hash_password(register_data.password),
    )
    db.add(user)
    try:
        await db.flush()
    except IntegrityError:
        # Concurrent registration with the same username/email
        raise ConflictError("Username or email already exists")
    await db.refresh(user)

    logger.info(f"New user registered: {user.id}")
    await email_service.send_welcome_email(user.email, user.username)

    return _issue_token(user, "User created successfully")


@router.post("/login", response_model=Token)
@limiter.limit(RATE_LIMITS["auth_login"])
async def login(
    request: Request,
    login_data: LoginRequest,
    db: AsyncSession = Depends(get_db),
) -> Token:
    """Authenticate with username or email and return an access token."""
    identifier = login_data.identifier
    if not identifier:
        raise ValidationError("Username or email is required")

    result = await db.execute(
        select(User).where(
            or_(User.username == identifier, User.email == identifier.lower())
        )
    )
    user = result.scalars().first()

    if not user or not verify_password(login_data.password, user.password_hash):
        raise AuthenticationError("Invalid credentials")

    if not user.is_active:
        raise AuthenticationError("Account is inactive")

    return _issue_token(user, "Login successful")


@router.get("/me", response_model=UserResponse)
async def get_current_user_info(
    current_user: User = Depends(get_current_user),
) -> UserResponse:
    """Get current user information."""
    return UserResponse(user=UserPublic.from_user(current_user))


@router.put("/me", response_model=UserResponse)
async def update_profile(
    data: UserUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> UserResponse:
    """Update username and/or email of the current user."""
    username = data.username.strip() if data.username else None
    email = data.email.lower() if data.email else None

    clashes = []
    if username and username != current_user.username:
        clashes.append(User.username == username)
    if email and email != current_user.email:
        clashes.append(User.email == email)

    if clashes:
        result = await db.execute(
            select(User.id).where(or_(*clashes), User.id != current_user.id)
        )
        if result.first():
            raise ConflictError("Username or email already taken")

    if username:
        current_user.username = username
    if email:
        current_user.email = email

    await db.flush()
    await db.refresh(current_user)

    return UserResponse(user=UserPublic.from_user(current_user))


@router.post("/forgot-password", response_model=MessageResponse)
@limiter.limit(RATE_LIMITS["auth_password_reset"])
async def forgot_password(
    request: Request,
    data: PasswordResetRequest,
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    """Request a password reset link. Always returns success to avoid email enumeration."""
    result = await db.execute(select(User).where(User.email == data.email.lower()))
    user = result.scalar_one_or_none()

    if user and user.is_active:
        token = generate_reset_token()
        user.password_reset_token = token
        user.password_reset_expires = datetime.now(timezone.utc) + timedelta(
            minutes=settings.PASSWORD_RESET_EXPIRE_MINUTES
        )
        await db.flush()
        await email_service.send_password_reset_email(user.email, token)

    return MessageResponse(
        message="If an account exists for this email, a password reset link has been sent"
    )


@router.post("/reset-password", response_model=MessageResponse)
async def reset_password(
    data: PasswordResetConfirm,
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    """Reset password using a token from the forgot-password email."""
    result = await db.execute(
        select(User).where(User.password_reset_token == data.token)
    )
    user = result.scalar_one_or_none()

    if not user or not user.password_reset_expires:
        raise ValidationError("Invalid or expired reset token")

    expires = user.password_reset_expires
    if expires.tzinfo is None:
        expires = expires.replace(tzinfo=timezone.utc)
    if datetime.now(timezone.utc) > expires:
        raise ValidationError("Invalid or expired reset token")

    user.password_hash = hash_password(data.password)
    user.password_reset_token = None
    user.password_reset_expires = None
    await db.flush()

    return MessageResponse(message="Password reset successfully")


@router.get("/google")
async def google_login():
    """Redirect to Google's consent screen."""
    return RedirectResponse(oauth_service.authorization_url())


@router.get("/google/callback")
async def google_callback(
    code: str = Query(""),
    db: AsyncSession = Depends(get_db),
):
    """Finish Google sign-in and hand the token to the web client."""
    failure = RedirectResponse(f"{settings.CLIENT_URL}/login?error=google_auth_failed")
    if not code:
        return failure

    try:
        profile = await oauth_service.fetch_google_profile(code)
        user, created = await oauth_service.link_or_create_user(db, profile)
    except AppError as e:
        logger.warning(f"Google callback failed: {e.message}")
        return failure

    if created:
        await email_service.send_welcome_email(user.email, user.username)

    token = create_access_token(subject=str(user.id), username=user.username, email=user.email)
    return RedirectResponse(f"{settings.CLIENT_URL}/auth/callback?token={token}")
