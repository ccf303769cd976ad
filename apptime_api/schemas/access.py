"""Delegated access schemas.

Request and response bodies for access codes, verification sessions and
protected profile reads.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class AccessCodeResponse(BaseModel):
    """Response schema for code generation."""

    code: str = Field(..., description="6-digit access code")
    remaining_seconds: int = Field(
        ..., description="Seconds the code stays current in its own time step"
    )
    expires_at: datetime


class CodeVerifyRequest(BaseModel):
    """Request schema for POST /api/users/{username}/totp/verify."""

    # Any JSON value; non-string or malformed codes get valid=false, not a 422
    code: Any = Field(..., description="Code relayed by the target")


class CodeVerifyResponse(BaseModel):
    """Response schema for code verification.

    Only ``valid`` and ``message`` are set when verification fails.
    """

    valid: bool
    message: str
    validity_seconds: int | None = None
    remaining_seconds: int | None = None
    expires_at: datetime | None = None


class AccessStatusResponse(BaseModel):
    """Whether the caller currently has access to a user's data."""

    has_access: bool
    message: str
    target_username: str | None = None
    verified_at: datetime | None = None
    expires_at: datetime | None = None
    remaining_seconds: int | None = None
    remaining_minutes: int | None = None


class AccessSessionResponse(BaseModel):
    """A live session the caller holds."""

    target_username: str | None
    verified_at: datetime
    expires_at: datetime
    remaining_seconds: int
    remaining_minutes: int


class AccessSessionListResponse(BaseModel):
    sessions: list[AccessSessionResponse]


class AccessorResponse(BaseModel):
    """Someone who can currently see the caller's data."""

    requesting_username: str | None
    verified_at: datetime
    expires_at: datetime
    remaining_seconds: int


class AccessorListResponse(BaseModel):
    accessors: list[AccessorResponse]


class RevokeAccessRequest(BaseModel):
    """Request schema for POST /api/v1/user/totp/revoke-access."""

    username: str = Field(..., min_length=1, description="User whose access ends")


class RevokeAccessResponse(BaseModel):
    success: bool
    message: str


class PublicProfileResponse(BaseModel):
    """Profile returned to a user holding a live session."""

    username: str
    display_name: str | None
    email: str
    created_at: datetime
    last_login_at: datetime | None
    access_remaining_minutes: int
