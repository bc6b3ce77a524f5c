"""
Correlation ID middleware for request tracing.

Generates a UUID4 correlation ID per request (or accepts X-Correlation-ID from client).
Stores it in a contextvar so pipeline logs can be tied back to the request.
"""
import uuid
import time
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from app.utils.logger import correlation_id_var, logger


def get_correlation_id() -> str:
    """Get the current request's correlation ID"""
    return correlation_id_var.get("")


class CorrelationMiddleware(BaseHTTPMiddleware):
    """
    Accepts or generates X-Correlation-ID, logs request start/finish with
    timing, and echoes the ID back in the response headers.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        cid = request.headers.get("x-correlation-id") or str(uuid.uuid4())
        correlation_id_var.set(cid)

        user_id = request.headers.get("x-user-id", "")
        start = time.monotonic()
        method = request.method
        path = request.url.path

        logger.info(
            f"{method} {path}",
            extra={
                "correlation_id": cid,
                "method": method,
                "path": path,
                "user_id": user_id,
                "client_ip": request.client.host if request.client else "",
            }
        )

        try:
            response = await call_next(request)
        except Exception as exc:
            logger.error(
                "request.failed",
                extra={
                    "correlation_id": cid,
                    "method": method,
                    "path": path,
                    "duration_ms": round((time.monotonic() - start) * 1000),
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                }
            )
            raise

        status = response.status_code
        log_fn = logger.warning if status >= 400 else logger.info
        log_fn(
            f"Response: {status}",
            extra={
                "correlation_id": cid,
                "method": method,
                "path": path,
                "status": status,
                "duration_ms": round((time.monotonic() - start) * 1000),
            }
        )

        response.headers["X-Correlation-ID"] = cid
        return response
