"""Protected profile reads.

Another user's profile is only served while the caller holds a live
access session for that user.
"""

from typing import Annotated

from fastapi import APIRouter, Depends

from apptime_api.core.auth import AccessGrant, require_access
from apptime_api.schemas.access import PublicProfileResponse

router = APIRouter(prefix="/api/users", tags=["profiles"])


@router.get("/{username}/profile", response_model=PublicProfileResponse)
async def get_user_profile(
    grant: Annotated[AccessGrant, Depends(require_access)],
) -> PublicProfileResponse:
    """Return a user's profile to a caller with delegated access."""
    target = grant.target
    return PublicProfileResponse(
        username=target.username,
        display_name=target.display_name,
        email=target.email,
        created_at=target.created_at,
        last_login_at=target.last_login_at,
        access_remaining_minutes=grant.session.remaining_minutes,
    )
