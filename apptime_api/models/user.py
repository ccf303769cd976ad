"""User model.

Owns the per-identity shared secret used to derive access codes.
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from apptime_api.models.base import Base, TimestampMixin


class User(Base, TimestampMixin):
    """User account model.

    Attributes:
        id: Unique user identifier (UUID), never exposed to other users
        username: Public handle other users address this account by
        email: Login email address (unique)
        display_name: Optional human-readable name
        hashed_password: Bcrypt-hashed password
        totp_secret: Base32 shared secret, generated once at registration
        totp_enabled: Whether others may gain access via codes
        is_active: Whether the account is active
        last_login_at: Timestamp of last successful login
    """

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    username: Mapped[str] = mapped_column(
        String(64),
        unique=True,
        nullable=False,
        index=True,
    )
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        index=True,
    )
    display_name: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
    )
    hashed_password: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    totp_secret: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
    )
    totp_enabled: Mapped[bool] = mapped_column(
        default=True,
    )
    is_active: Mapped[bool] = mapped_column(
        default=True,
    )
    last_login_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<User {self.username}>"
