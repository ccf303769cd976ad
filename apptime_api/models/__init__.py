# Database Models
from apptime_api.models.access_session import AccessVerificationSession
from apptime_api.models.base import Base, TimestampMixin
from apptime_api.models.user import User

__all__ = [
    "AccessVerificationSession",
    "Base",
    "TimestampMixin",
    "User",
]
