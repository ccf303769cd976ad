"""Authentication router.

API endpoints for user registration, login, and the current user.
"""

from datetime import UTC, datetime

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from apptime_api.config import settings
from apptime_api.core.auth import CurrentUser
from apptime_api.core.security import (
    create_access_token,
    hash_password,
    verify_password,
)
from apptime_api.database import get_db
from apptime_api.logging_config import get_logger
from apptime_api.middleware.rate_limit import limiter
from apptime_api.models.user import User
from apptime_api.schemas.auth import (
    ErrorResponse,
    LoginRequest,
    LoginResponse,
    UserRegistrationRequest,
    UserRegistrationResponse,
    UserResponse,
)
from apptime_api.services.secret_store import provision_secret

logger = get_logger(__name__)

router = APIRouter(prefix="/api/auth", tags=["authentication"])

_REGISTRATION_FAILED = "Registration failed. Please try again or contact support."


@router.post(
    "/register",
    response_model=UserRegistrationResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        201: {"description": "User registered successfully"},
        409: {"model": ErrorResponse, "description": "Username or email taken"},
    },
)
async def register_user(
    body: UserRegistrationRequest,
    db: AsyncSession = Depends(get_db),
) -> UserRegistrationResponse:
    """Register a new user account.

    Provisions the user's access-code secret; this is the only place a
    secret is ever generated.

    Raises:
        HTTPException 409: If the username or email already exists
    """
    email = body.email.lower()
    existing_user = await db.execute(
        select(User.id).where(or_(User.email == email, User.username == body.username))
    )
    if existing_user.scalar_one_or_none():
        logger.warning("Registration attempt with existing username or email")
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=_REGISTRATION_FAILED,
        )

    user = User(
        username=body.username,
        email=email,
        display_name=body.display_name,
        hashed_password=hash_password(body.password),
        is_active=True,
    )
    provision_secret(user)

    try:
        db.add(user)
        await db.commit()
        await db.refresh(user)
    except IntegrityError:
        await db.rollback()
        logger.warning("Registration failed - integrity error")
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=_REGISTRATION_FAILED,
        )

    logger.info(
        "User registered successfully",
        user_id=str(user.id),
        username=user.username,
    )

    return UserRegistrationResponse(
        id=user.id,
        username=user.username,
        email=user.email,
        totp_enabled=user.totp_enabled,
    )


@router.post(
    "/login",
    response_model=LoginResponse,
    responses={
        200: {"description": "Login successful"},
        401: {"model": ErrorResponse, "description": "Invalid credentials"},
    },
)
@limiter.limit("10/minute")
async def login(
    body: LoginRequest,
    response: Response,
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> LoginResponse:
    """Authenticate a user and create a session.

    Returns a JWT both in an httpOnly cookie and in the body.
    """
    client_ip = request.client.host if request.client else "unknown"

    result = await db.execute(select(User).where(User.email == body.email.lower()))
    user = result.scalar_one_or_none()

    if not user or not verify_password(body.password, user.hashed_password):
        logger.warning(
            "Failed login attempt",
            client_ip=client_ip,
            reason="invalid_credentials",
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )

    if not user.is_active:
        logger.warning(
            "Failed login attempt",
            client_ip=client_ip,
            reason="account_disabled",
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )

    token = create_access_token(user_id=user.id, username=user.username)
    expires_in = settings.session_expire_hours * 3600

    response.set_cookie(
        key=settings.jwt_cookie_name,
        value=token,
        httponly=True,
        secure=settings.cookie_secure,
        samesite="lax",
        max_age=expires_in,
        path="/",
    )

    user.last_login_at = datetime.now(UTC)
    await db.commit()
    await db.refresh(user)

    logger.info(
        "User logged in successfully",
        user_id=str(user.id),
        client_ip=client_ip,
    )

    return LoginResponse(
        access_token=token,
        expires_in=expires_in,
        user=UserResponse.model_validate(user),
    )


@router.get("/me", response_model=UserResponse)
async def get_current_user_profile(current_user: CurrentUser) -> UserResponse:
    """Return the authenticated user."""
    return UserResponse.model_validate(current_user)
