"""Verification session manager.

Creates, invalidates and answers liveness queries for access sessions.
A session is live while ``now < expires_at``. Re-verifying a pair forces
the previous session's ``expires_at`` to the verification instant and
inserts a new row, inside one transaction.

Only storage errors escape from here; "nothing found" is always
False / None / [].
"""

import uuid
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from sqlalchemy import and_, delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from apptime_api.logging_config import get_logger
from apptime_api.models.access_session import AccessVerificationSession
from apptime_api.models.user import User

logger = get_logger(__name__)

ACCESS_SESSION_SECONDS = 3600


@dataclass(frozen=True)
class SessionDetails:
    """Point-in-time view of a live session."""

    session_id: uuid.UUID
    requester_id: uuid.UUID
    target_id: uuid.UUID
    target_username: str | None
    verified_at: datetime
    expires_at: datetime
    remaining_seconds: int
    remaining_minutes: int
    requester_username: str | None = None


def as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything is stored in UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def _pair_is_live(
    requester_id: uuid.UUID,
    target_id: uuid.UUID,
    now: datetime,
):
    return and_(
        AccessVerificationSession.requester_id == requester_id,
        AccessVerificationSession.target_id == target_id,
        AccessVerificationSession.expires_at > now,
    )


def _to_details(
    session: AccessVerificationSession,
    now: datetime,
    requester_username: str | None = None,
) -> SessionDetails:
    expires_at = as_utc(session.expires_at)
    remaining = max(int((expires_at - as_utc(now)).total_seconds()), 0)
    return SessionDetails(
        session_id=session.id,
        requester_id=session.requester_id,
        target_id=session.target_id,
        target_username=session.target_username,
        verified_at=as_utc(session.verified_at),
        expires_at=expires_at,
        remaining_seconds=remaining,
        remaining_minutes=remaining // 60,
        requester_username=requester_username,
    )


async def create_session(
    db: AsyncSession,
    requester_id: uuid.UUID,
    target_id: uuid.UUID,
    target_username: str | None,
    now: datetime,
) -> AccessVerificationSession:
    """Supersede any live session for the pair and start a new one.

    Locks the requester's user row first so concurrent verifications by the
    same requester serialize; whichever commits second invalidates the
    other's row, leaving one live session.

    Args:
        db: Database session.
        requester_id: User gaining read access.
        target_id: User whose data becomes readable.
        target_username: Target's handle, stored as a snapshot.
        now: Verification instant.

    Returns:
        The inserted session (its ``id`` and ``expires_at`` are set).

    Raises:
        ValueError: If requester and target are the same user.
    """
    if requester_id == target_id:
        raise ValueError("Requester and target must be different users")

    await db.execute(
        select(User.id).where(User.id == requester_id).with_for_update()
    )

    invalidated = await db.execute(
        update(AccessVerificationSession)
        .where(_pair_is_live(requester_id, target_id, now))
        .values(expires_at=now)
        .execution_options(synchronize_session=False)
    )

    session = AccessVerificationSession(
        requester_id=requester_id,
        target_id=target_id,
        target_username=target_username,
        verified_at=now,
        expires_at=now + timedelta(seconds=ACCESS_SESSION_SECONDS),
        created_at=now,
    )
    db.add(session)
    await db.commit()
    await db.refresh(session)

    logger.info(
        "Access session created",
        session_id=str(session.id),
        requester_id=str(requester_id),
        target_id=str(target_id),
        superseded=invalidated.rowcount,
    )

    return session


async def is_live(
    db: AsyncSession,
    requester_id: uuid.UUID,
    target_id: uuid.UUID,
    now: datetime,
) -> bool:
    """True iff the pair has a session with ``expires_at`` after ``now``."""
    result = await db.execute(
        select(AccessVerificationSession.id)
        .where(_pair_is_live(requester_id, target_id, now))
        .limit(1)
    )
    return result.scalar_one_or_none() is not None


async def describe(
    db: AsyncSession,
    requester_id: uuid.UUID,
    target_id: uuid.UUID,
    now: datetime,
) -> SessionDetails | None:
    """Details of the live session for the pair, or None."""
    result = await db.execute(
        select(AccessVerificationSession)
        .where(_pair_is_live(requester_id, target_id, now))
        .order_by(AccessVerificationSession.verified_at.desc())
        .limit(1)
    )
    session = result.scalar_one_or_none()
    if session is None:
        return None
    return _to_details(session, now)


async def list_live_for_requester(
    db: AsyncSession,
    requester_id: uuid.UUID,
    now: datetime,
) -> list[SessionDetails]:
    """Live sessions this user holds, most recently verified first."""
    result = await db.execute(
        select(AccessVerificationSession)
        .where(
            AccessVerificationSession.requester_id == requester_id,
            AccessVerificationSession.expires_at > now,
        )
        .order_by(AccessVerificationSession.verified_at.desc())
    )
    return [_to_details(s, now) for s in result.scalars().all()]


async def list_live_for_target(
    db: AsyncSession,
    target_id: uuid.UUID,
    now: datetime,
) -> list[SessionDetails]:
    """Live sessions granting others access to this user, newest first."""
    result = await db.execute(
        select(AccessVerificationSession)
        .where(
            AccessVerificationSession.target_id == target_id,
            AccessVerificationSession.expires_at > now,
        )
        .options(selectinload(AccessVerificationSession.requester))
        .order_by(AccessVerificationSession.verified_at.desc())
    )
    return [
        _to_details(s, now, requester_username=s.requester.username)
        for s in result.scalars().all()
    ]


async def revoke(
    db: AsyncSession,
    requester_id: uuid.UUID,
    target_id: uuid.UUID,
    now: datetime,
) -> int:
    """Force the pair's live session to expire at ``now``.

    Returns:
        Number of sessions that were live and are now expired.
    """
    result = await db.execute(
        update(AccessVerificationSession)
        .where(_pair_is_live(requester_id, target_id, now))
        .values(expires_at=now)
        .execution_options(synchronize_session=False)
    )
    await db.commit()

    if result.rowcount:
        logger.info(
            "Access session revoked",
            requester_id=str(requester_id),
            target_id=str(target_id),
        )

    return result.rowcount


async def purge_expired_sessions(db: AsyncSession, older_than: datetime) -> int:
    """Delete sessions that expired before ``older_than``.

    Housekeeping only; liveness never depends on it.
    """
    result = await db.execute(
        delete(AccessVerificationSession)
        .where(AccessVerificationSession.expires_at < older_than)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    return result.rowcount
