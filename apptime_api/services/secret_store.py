"""Lookup of users and their access-code secrets."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from apptime_api.core.totp import generate_secret
from apptime_api.models.user import User


def normalize_username(username: str) -> str:
    return username.strip().lower()


async def get_user_by_username(db: AsyncSession, username: str) -> User | None:
    """Resolve a public handle to an active user, or None."""
    result = await db.execute(
        select(User).where(
            User.username == normalize_username(username),
            User.is_active.is_(True),
        )
    )
    return result.scalar_one_or_none()


def get_secret(user: User) -> str | None:
    """Return the user's secret if code-based access is configured.

    None when the user disabled codes or never had a secret provisioned.
    """
    if not user.totp_enabled:
        return None
    if not user.totp_secret or not user.totp_secret.strip():
        return None
    return user.totp_secret


def provision_secret(user: User) -> str:
    """Generate the user's secret. Only valid once per account.

    Raises:
        ValueError: If the user already has a secret.
    """
    if user.totp_secret:
        raise ValueError("Secret already provisioned for this user")
    user.totp_secret = generate_secret()
    user.totp_enabled = True
    return user.totp_secret
