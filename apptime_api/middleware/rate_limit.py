"""Rate limiting using slowapi.

Protects login and access-code verification from guessing. Login is keyed
on the client IP; code verification is keyed on the authenticated
requester so changing addresses does not buy more guesses.
"""

from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from starlette.requests import Request
from starlette.responses import JSONResponse

from apptime_api.config import settings
from apptime_api.core.security import decode_access_token

# Use in-memory storage during tests (no Redis dependency), otherwise Redis
_storage_uri = (
    "memory://"
    if settings.testing
    else (settings.redis_url if settings.redis_url else "memory://")
)


def _get_real_client_ip(request: Request) -> str:
    """Extract the client IP.

    Forwarding headers are client-controlled unless a trusted reverse proxy
    overwrites them, so they are only read with ``trust_forwarded_for`` on.
    """
    if settings.trust_forwarded_for:
        forwarded_for = request.headers.get("x-forwarded-for")
        if forwarded_for:
            # Leftmost entry is the original client
            return forwarded_for.split(",")[0].strip()
        real_ip = request.headers.get("x-real-ip")
        if real_ip:
            return real_ip.strip()
    return request.client.host if request.client else "unknown"


def get_requester_key(request: Request) -> str:
    """Key a request by the user in its session cookie or Bearer token.

    Falls back to the client IP when the request carries no valid token.
    """
    token = request.cookies.get(settings.jwt_cookie_name)
    if not token:
        auth_header = request.headers.get("authorization", "")
        if auth_header.startswith("Bearer "):
            token = auth_header[7:]

    payload = decode_access_token(token) if token else None
    if payload and payload.get("sub"):
        return f"user:{payload['sub']}"
    return f"ip:{_get_real_client_ip(request)}"


limiter = Limiter(
    key_func=_get_real_client_ip,
    storage_uri=_storage_uri,
    enabled=not settings.testing,
)

# Rate limits are applied per-endpoint via @limiter.limit() decorators:
# Login: 10/minute per client IP
# Code verification: settings.code_verify_rate_limit per requester


async def rate_limit_exceeded_handler(
    request: Request, exc: RateLimitExceeded
) -> JSONResponse:
    """Return a 429 JSON response when rate limit is exceeded."""
    return JSONResponse(
        status_code=429,
        content={"detail": f"Rate limit exceeded: {exc.detail}"},
    )
