"""Authentication schemas.

Pydantic schemas for user registration, login and the current-user view.
"""

import re
import uuid
from datetime import datetime

from pydantic import BaseModel, EmailStr, Field, field_validator

_PASSWORD_RULES = "Password must be at least 8 characters with uppercase, lowercase, and number"


class UserRegistrationRequest(BaseModel):
    """Request schema for user registration."""

    username: str = Field(
        ...,
        min_length=3,
        max_length=32,
        pattern=r"^[A-Za-z0-9_.]+$",
        description="Public handle (letters, digits, '_' and '.')",
    )
    email: EmailStr = Field(..., description="User's email address")
    password: str = Field(
        ...,
        min_length=8,
        max_length=128,
        description="Password (min 8 chars, must include uppercase, lowercase, and number)",
    )
    display_name: str | None = Field(default=None, max_length=100)

    @field_validator("username")
    @classmethod
    def lowercase_username(cls, v: str) -> str:
        return v.lower()

    @field_validator("password")
    @classmethod
    def validate_password_strength(cls, v: str) -> str:
        """Validate password meets strength requirements."""
        if not re.search(r"[a-z]", v):
            raise ValueError(_PASSWORD_RULES)
        if not re.search(r"[A-Z]", v):
            raise ValueError(_PASSWORD_RULES)
        if not re.search(r"\d", v):
            raise ValueError(_PASSWORD_RULES)
        return v


class UserRegistrationResponse(BaseModel):
    """Response schema for successful registration.

    The access-code secret is provisioned but never returned.
    """

    id: uuid.UUID
    username: str
    email: str
    totp_enabled: bool
    message: str = Field(default="Registration successful")


class UserResponse(BaseModel):
    """Current-user information response."""

    model_config = {"from_attributes": True}

    id: uuid.UUID
    username: str
    email: str
    display_name: str | None = None
    totp_enabled: bool
    is_active: bool
    created_at: datetime


class ErrorResponse(BaseModel):
    """Error response schema."""

    detail: str = Field(..., description="Error message")


class LoginRequest(BaseModel):
    """Request schema for user login."""

    email: EmailStr = Field(..., description="User's email address")
    password: str = Field(..., min_length=1, description="User's password")


class LoginResponse(BaseModel):
    """Response schema for successful login.

    The token is set as an httpOnly cookie and also returned for bearer use.
    """

    message: str = Field(default="Login successful")
    access_token: str
    token_type: str = Field(default="bearer")
    expires_in: int = Field(..., description="Token expiration in seconds")
    user: UserResponse
