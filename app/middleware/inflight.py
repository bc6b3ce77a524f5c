"""
Duplicate-submission guard for roadmap generation.

While a caller has a generation in flight, another POST from the same caller
is answered with 409 instead of starting a second search + insert. Callers are
identified by X-User-ID, falling back to client IP.

This only spares the search quota; correctness does not depend on it.
"""

import logging
from typing import Iterable, Set

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

_log = logging.getLogger("roadmap")

GUARDED_PATHS = frozenset({"/api/roadmap"})


def caller_key(request: Request) -> str:
    user_id = request.headers.get("x-user-id")
    if user_id:
        return f"user:{user_id}"
    client_ip = request.client.host if request.client else "unknown"
    return f"ip:{client_ip}"


class InFlightGuardMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, paths: Iterable[str] = GUARDED_PATHS):
        super().__init__(app)
        self.paths = frozenset(paths)
        self.in_flight: Set[str] = set()

    async def dispatch(self, request: Request, call_next):
        if request.method != "POST" or request.url.path not in self.paths:
            return await call_next(request)

        key = caller_key(request)
        if key in self.in_flight:
            _log.info(f"[inflight] rejected duplicate submission from {key}")
            return JSONResponse(
                status_code=409,
                content={
                    "error": "InProgress",
                    "detail": "A roadmap is already being generated. Please wait for it to finish.",
                },
            )

        self.in_flight.add(key)
        try:
            return await call_next(request)
        finally:
            self.in_flight.discard(key)
