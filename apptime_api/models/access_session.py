"""Verification sessions granting one user temporary read access to another.

A row is inserted for every successful code verification. Liveness is
``expires_at > now``; there is no status column and nothing deletes rows
except the optional retention purge.
"""

import uuid
from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from apptime_api.models.base import Base


class AccessVerificationSession(Base):
    """Capability for ``requester`` to read ``target``'s protected data.

    No unique constraint on (requester_id, target_id): expired rows for the
    same pair stay for history. At most one live row per pair is kept by
    the session service invalidating before it inserts.
    """

    __tablename__ = "access_verification_sessions"
    __table_args__ = (
        CheckConstraint("requester_id != target_id", name="ck_no_self_session"),
        Index("ix_access_sessions_pair", "requester_id", "target_id"),
        Index("ix_access_sessions_target_id", "target_id"),
        Index("ix_access_sessions_expires_at", "expires_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    requester_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )

    target_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )

    # Snapshot at verification time so listings need no join
    target_username: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
    )

    verified_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    requester = relationship("User", foreign_keys=[requester_id])
    target = relationship("User", foreign_keys=[target_id])

    def __repr__(self) -> str:
        return (
            f"<AccessVerificationSession(requester={self.requester_id}, "
            f"target={self.target_id}, expires_at={self.expires_at})>"
        )
