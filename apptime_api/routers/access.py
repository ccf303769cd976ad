"""Delegated access router.

Endpoints for issuing and verifying access codes and for inspecting and
revoking the sessions they create.
"""

from datetime import UTC, datetime

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from apptime_api.config import settings
from apptime_api.core.auth import CurrentUser
from apptime_api.database import get_db
from apptime_api.middleware.rate_limit import get_requester_key, limiter
from apptime_api.schemas.access import (
    AccessCodeResponse,
    AccessorListResponse,
    AccessorResponse,
    AccessSessionListResponse,
    AccessSessionResponse,
    AccessStatusResponse,
    CodeVerifyRequest,
    CodeVerifyResponse,
    RevokeAccessRequest,
    RevokeAccessResponse,
)
from apptime_api.services import access_sessions
from apptime_api.services.access_gate import (
    AccessCodeUnavailableError,
    CodeSnapshot,
    code_for_user,
    generate_code_for_username,
    verify_and_establish_session,
)
from apptime_api.services.secret_store import get_user_by_username

# Operations addressed at another user by public handle
router = APIRouter(prefix="/api/users", tags=["access"])

# Self-service operations on the caller's own codes and sessions
self_router = APIRouter(prefix="/api/v1/user/totp", tags=["access"])


def _code_response(snapshot: CodeSnapshot) -> AccessCodeResponse:
    return AccessCodeResponse(
        code=snapshot.code,
        remaining_seconds=snapshot.remaining_seconds,
        expires_at=snapshot.expires_at,
    )


@router.get("/{username}/totp/generate", response_model=AccessCodeResponse)
async def generate_code_for_target(
    username: str,
    db: AsyncSession = Depends(get_db),
) -> AccessCodeResponse:
    """Produce the current access code for a user.

    No authentication: the secret is never exposed, only a code the target
    relays out-of-band to whoever should gain access.
    """
    try:
        snapshot = await generate_code_for_username(db, username, datetime.now(UTC))
    except AccessCodeUnavailableError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

    return _code_response(snapshot)


@router.post("/{username}/totp/verify", response_model=CodeVerifyResponse)
@limiter.limit(settings.code_verify_rate_limit, key_func=get_requester_key)
async def verify_code_for_target(
    username: str,
    body: CodeVerifyRequest,
    request: Request,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db),
) -> CodeVerifyResponse:
    """Verify a user's access code and open a one-hour access session.

    Failures are reported as ``valid: false`` with a message; no session is
    created.
    """
    result = await verify_and_establish_session(
        db,
        requester_id=current_user.id,
        target_username=username,
        submitted_code=body.code,
        now=datetime.now(UTC),
    )

    if not result.granted:
        return CodeVerifyResponse(valid=False, message=result.message)

    return CodeVerifyResponse(
        valid=True,
        message=result.message,
        validity_seconds=result.validity_seconds,
        remaining_seconds=result.remaining_seconds,
        expires_at=result.expires_at,
    )


@router.get("/{username}/totp/status", response_model=AccessStatusResponse)
async def get_access_status(
    username: str,
    response: Response,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db),
) -> AccessStatusResponse:
    """Report whether the caller can currently read this user's data.

    Responds 403 with the same body shape when there is no live session.
    """
    target = await get_user_by_username(db, username)
    if target is None:
        response.status_code = status.HTTP_403_FORBIDDEN
        return AccessStatusResponse(has_access=False, message="User not found")

    details = await access_sessions.describe(
        db, current_user.id, target.id, datetime.now(UTC)
    )
    if details is None:
        response.status_code = status.HTTP_403_FORBIDDEN
        return AccessStatusResponse(
            has_access=False,
            message="No valid access session found. Please verify an access code first.",
        )

    return AccessStatusResponse(
        has_access=True,
        message=f"Access is valid. {details.remaining_seconds} second(s) remaining.",
        target_username=details.target_username,
        verified_at=details.verified_at,
        expires_at=details.expires_at,
        remaining_seconds=details.remaining_seconds,
        remaining_minutes=details.remaining_minutes,
    )


@self_router.get("/generate", response_model=AccessCodeResponse)
async def generate_own_code(current_user: CurrentUser) -> AccessCodeResponse:
    """Produce the caller's own current access code."""
    try:
        snapshot = code_for_user(current_user, datetime.now(UTC))
    except AccessCodeUnavailableError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

    return _code_response(snapshot)


@self_router.get("/sessions", response_model=AccessSessionListResponse)
async def list_my_sessions(
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db),
) -> AccessSessionListResponse:
    """List users whose data the caller can currently read."""
    sessions = await access_sessions.list_live_for_requester(
        db, current_user.id, datetime.now(UTC)
    )
    return AccessSessionListResponse(
        sessions=[
            AccessSessionResponse(
                target_username=s.target_username,
                verified_at=s.verified_at,
                expires_at=s.expires_at,
                remaining_seconds=s.remaining_seconds,
                remaining_minutes=s.remaining_minutes,
            )
            for s in sessions
        ]
    )


@self_router.get("/accessors", response_model=AccessorListResponse)
async def list_my_accessors(
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db),
) -> AccessorListResponse:
    """List users who can currently read the caller's data."""
    sessions = await access_sessions.list_live_for_target(
        db, current_user.id, datetime.now(UTC)
    )
    return AccessorListResponse(
        accessors=[
            AccessorResponse(
                requesting_username=s.requester_username,
                verified_at=s.verified_at,
                expires_at=s.expires_at,
                remaining_seconds=s.remaining_seconds,
            )
            for s in sessions
        ]
    )


@self_router.post("/revoke-access", response_model=RevokeAccessResponse)
async def revoke_access(
    body: RevokeAccessRequest,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db),
) -> RevokeAccessResponse:
    """End another user's access to the caller's data immediately.

    Raises:
        HTTPException 404: If the user is unknown or holds no live session
    """
    requester = await get_user_by_username(db, body.username)
    if requester is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found",
        )

    revoked = await access_sessions.revoke(
        db,
        requester_id=requester.id,
        target_id=current_user.id,
        now=datetime.now(UTC),
    )
    if not revoked:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No active session found to revoke",
        )

    return RevokeAccessResponse(success=True, message="Access revoked successfully")
