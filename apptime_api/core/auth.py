"""Authentication and delegated-access dependencies.

Authentication paths:
1. httpOnly session cookie (web)
2. Authorization Bearer JWT (mobile)

``require_access`` guards every endpoint that returns one user's protected
data to another user.
"""

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Annotated

from fastapi import Cookie, Depends, HTTPException, Request, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from apptime_api.config import settings
from apptime_api.core.security import TokenData, decode_access_token
from apptime_api.database import get_db
from apptime_api.logging_config import get_logger
from apptime_api.models.user import User
from apptime_api.services import access_sessions
from apptime_api.services.access_gate import authorize
from apptime_api.services.access_sessions import SessionDetails
from apptime_api.services.secret_store import get_user_by_username

logger = get_logger(__name__)


async def get_current_user(
    request: Request,
    session_token: Annotated[str | None, Cookie(alias=settings.jwt_cookie_name)] = None,
    db: AsyncSession = Depends(get_db),
) -> User:
    """Extract and validate the current user.

    Raises:
        HTTPException 401: If no valid credentials are found
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Not authenticated",
        headers={"WWW-Authenticate": "Bearer"},
    )

    if not session_token:
        auth_header = request.headers.get("Authorization")
        if auth_header and auth_header.startswith("Bearer "):
            session_token = auth_header[7:]

    if not session_token:
        raise credentials_exception

    payload = decode_access_token(session_token)
    if payload is None:
        raise credentials_exception

    try:
        token_data = TokenData(payload)
    except (KeyError, ValueError):
        raise credentials_exception

    result = await db.execute(select(User).where(User.id == token_data.user_id))
    user = result.scalar_one_or_none()
    if user is None:
        raise credentials_exception
    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User account is disabled",
        )
    return user


# Type aliases for cleaner route signatures
CurrentUser = Annotated[User, Depends(get_current_user)]


@dataclass(frozen=True)
class AccessGrant:
    """Target resolved by ``require_access`` plus the session allowing it."""

    target: User
    session: SessionDetails


async def require_access(
    username: str,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db),
) -> AccessGrant:
    """Resolve ``username`` and insist the caller holds a live session for it.

    Raises:
        HTTPException 404: If the user does not exist
        HTTPException 403: If the caller has no live session for the user
    """
    target = await get_user_by_username(db, username)
    if target is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found",
        )

    no_access = HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail="No valid access session. Please verify an access code first.",
    )

    now = datetime.now(UTC)
    if not await authorize(db, current_user.id, target.id, now):
        logger.warning(
            "Protected read denied",
            requester_id=str(current_user.id),
            target_id=str(target.id),
        )
        raise no_access

    details = await access_sessions.describe(db, current_user.id, target.id, now)
    if details is None:
        # Expired between the two reads
        raise no_access

    return AccessGrant(target=target, session=details)
