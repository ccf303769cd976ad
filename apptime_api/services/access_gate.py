"""Access gate: code issuance, verification and the authorization check.

``authorize`` is the single check every endpoint serving one user's
protected data to another must pass. ``verify_and_establish_session`` is
the only way a session comes into existence.

Verification never raises for bad input or policy denials; the outcome is
a ``VerificationResult``. Storage errors propagate.
"""

import enum
import uuid
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from apptime_api.core import totp
from apptime_api.logging_config import get_logger
from apptime_api.models.user import User
from apptime_api.services import access_sessions
from apptime_api.services.secret_store import get_secret, get_user_by_username

logger = get_logger(__name__)


class VerificationReason(str, enum.Enum):
    """Why a verification attempt was granted or denied."""

    GRANTED = "granted"
    SELF_VERIFICATION = "self_verification"
    UNKNOWN_TARGET = "unknown_target"
    NOT_CONFIGURED = "not_configured"
    INVALID_CODE = "invalid_code"


_DENIAL_MESSAGES = {
    VerificationReason.SELF_VERIFICATION: "Cannot verify your own code",
    VerificationReason.UNKNOWN_TARGET: "User not found",
    VerificationReason.NOT_CONFIGURED: "Access codes are not enabled for this user",
    VerificationReason.INVALID_CODE: "Invalid code",
}


@dataclass(frozen=True)
class VerificationResult:
    """Outcome of a verification attempt."""

    granted: bool
    reason: VerificationReason
    message: str
    validity_seconds: int | None = None
    remaining_seconds: int | None = None
    expires_at: datetime | None = None
    session_id: uuid.UUID | None = None


@dataclass(frozen=True)
class CodeSnapshot:
    """A code and how long it stays current in its own time step."""

    code: str
    remaining_seconds: int
    expires_at: datetime


class AccessCodeUnavailableError(ValueError):
    """No code can be produced for the requested user."""


def _deny(reason: VerificationReason) -> VerificationResult:
    return VerificationResult(
        granted=False,
        reason=reason,
        message=_DENIAL_MESSAGES[reason],
    )


def _describe_duration(seconds: int) -> str:
    if seconds < 3600:
        return f"{seconds // 60} minute(s)"
    if seconds < 86400:
        return f"{seconds // 3600} hour(s)"
    return f"{seconds // 86400} day(s)"


def code_for_user(user: User, now: datetime) -> CodeSnapshot:
    """Produce the current code for ``user``.

    Raises:
        AccessCodeUnavailableError: If the user has no usable secret.
    """
    secret = get_secret(user)
    if secret is None:
        raise AccessCodeUnavailableError("Access codes are not enabled for this user")

    try:
        code = totp.generate_code(secret, now)
    except totp.InvalidSecretError as e:
        logger.error("Stored secret is not valid Base32", user_id=str(user.id))
        raise AccessCodeUnavailableError(
            "Access codes are not enabled for this user"
        ) from e

    return CodeSnapshot(
        code=code,
        remaining_seconds=totp.remaining_seconds(now),
        expires_at=totp.step_expires_at(now),
    )


async def generate_code_for_username(
    db: AsyncSession,
    username: str,
    now: datetime,
) -> CodeSnapshot:
    """Produce the current code for the user with this public handle.

    Raises:
        AccessCodeUnavailableError: If the user does not exist or has no
            usable secret.
    """
    user = await get_user_by_username(db, username)
    if user is None:
        raise AccessCodeUnavailableError("User not found")
    return code_for_user(user, now)


async def verify_and_establish_session(
    db: AsyncSession,
    requester_id: uuid.UUID,
    target_username: str,
    submitted_code: object,
    now: datetime,
) -> VerificationResult:
    """Check ``submitted_code`` against the target's secret and open a session.

    Args:
        db: Database session.
        requester_id: Authenticated user asking for access.
        target_username: Public handle of the user whose data is requested.
        submitted_code: Code relayed out-of-band by the target.
        now: Verification instant.

    Returns:
        VerificationResult; on success it carries the new session's expiry.
    """
    target = await get_user_by_username(db, target_username)
    if target is None:
        return _deny(VerificationReason.UNKNOWN_TARGET)

    if target.id == requester_id:
        logger.warning("Self-verification rejected", user_id=str(requester_id))
        return _deny(VerificationReason.SELF_VERIFICATION)

    secret = get_secret(target)
    if secret is None:
        return _deny(VerificationReason.NOT_CONFIGURED)

    if not totp.validate_code(secret, submitted_code, now):
        logger.info(
            "Access code rejected",
            requester_id=str(requester_id),
            target_id=str(target.id),
        )
        return _deny(VerificationReason.INVALID_CODE)

    session = await access_sessions.create_session(
        db,
        requester_id=requester_id,
        target_id=target.id,
        target_username=target.username,
        now=now,
    )

    lifetime = access_sessions.ACCESS_SESSION_SECONDS
    return VerificationResult(
        granted=True,
        reason=VerificationReason.GRANTED,
        message=(
            "Code verified successfully. "
            f"Access granted for {_describe_duration(lifetime)}."
        ),
        validity_seconds=lifetime,
        remaining_seconds=lifetime,
        expires_at=access_sessions.as_utc(session.expires_at),
        session_id=session.id,
    )


async def authorize(
    db: AsyncSession,
    requester_id: uuid.UUID,
    target_id: uuid.UUID,
    now: datetime,
) -> bool:
    """May ``requester_id`` read ``target_id``'s protected data right now?

    False is a hard deny.
    """
    return await access_sessions.is_live(db, requester_id, target_id, now)
