"""Correlation ID middleware.

Generates or extracts correlation IDs for request tracing.

Uses the pure ASGI middleware pattern to avoid async event loop issues
that occur with Starlette's BaseHTTPMiddleware and asyncpg connections.
"""

import time
import uuid

from starlette.types import ASGIApp, Message, Receive, Scope, Send

from apptime_api.logging_config import correlation_id_ctx, get_logger

logger = get_logger(__name__)

CORRELATION_ID_HEADER = "X-Correlation-ID"


class CorrelationIdMiddleware:
    """Pure ASGI middleware that adds correlation IDs to requests.

    Uses the incoming X-Correlation-ID header when present, otherwise a new
    UUID. The ID is set in context for logging and echoed on the response.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        """Tag the request with a correlation ID and log its lifecycle."""
        # Lifespan events carry no headers
        if scope["type"] not in ("http", "websocket"):
            await self.app(scope, receive, send)
            return

        # Caller-supplied ID wins, otherwise a fresh UUID
        headers = dict(scope.get("headers", []))
        correlation_id = headers.get(b"x-correlation-id", b"").decode() or str(
            uuid.uuid4()
        )

        # Every log record emitted while handling the request carries it
        token = correlation_id_ctx.set(correlation_id)

        # Timing and response status; send_wrapper records the status
        start_time = time.perf_counter()
        status_code: int | None = None

        method = scope.get("method", "")
        path = scope.get("path", "")
        client = scope.get("client")
        client_ip = client[0] if client else None

        # Client IP here is the socket peer, not a forwarded header
        logger.info(
            "Request started",
            method=method,
            path=path,
            client_ip=client_ip,
        )

        async def send_wrapper(message: Message) -> None:
            nonlocal status_code

            if message["type"] == "http.response.start":
                status_code = message.get("status")
                # Echo the ID on the response
                headers = list(message.get("headers", []))
                headers.append(
                    (CORRELATION_ID_HEADER.lower().encode(), correlation_id.encode())
                )
                message = {**message, "headers": headers}

            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)

            duration_ms = (time.perf_counter() - start_time) * 1000
            logger.info(
                "Request completed",
                method=method,
                path=path,
                status_code=status_code,
                duration_ms=round(duration_ms, 2),
            )
        except Exception:
            duration_ms = (time.perf_counter() - start_time) * 1000
            logger.exception(
                "Request failed",
                method=method,
                path=path,
                duration_ms=round(duration_ms, 2),
            )
            raise
        finally:
            # Do not leak the ID into the next request on this task
            correlation_id_ctx.reset(token)
