"""
truleado.observability.middleware

Per-request log context and access logging.

Every response carries `x-request-id` (echoed from the caller when present).
Agency dashboards send the agency they are working in as `x-agency-id`; it is
bound for log correlation only and never consulted for access decisions.
"""

from __future__ import annotations

import time
import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from truleado.observability.logging import get_logger

log = get_logger(__name__)

_QUIET_PATHS = frozenset({"/healthz", "/readyz"})


def _agency_hint(request: Request) -> str | None:
    raw = request.headers.get("x-agency-id")
    if not raw:
        return None
    try:
        return str(uuid.UUID(raw))
    except ValueError:
        return None


class RequestContextMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
        structlog.contextvars.clear_contextvars()
        context = {"request_id": request_id, "method": request.method, "path": request.url.path}
        agency_id = _agency_hint(request)
        if agency_id:
            context["agency_id"] = agency_id
        structlog.contextvars.bind_contextvars(**context)

        started = time.perf_counter()
        try:
            response: Response = await call_next(request)
            if request.url.path not in _QUIET_PATHS:
                log.info(
                    "request_completed",
                    status_code=response.status_code,
                    duration_ms=round((time.perf_counter() - started) * 1000, 1),
                )
        finally:
            # Context must not leak into the next request handled by this task.
            structlog.contextvars.clear_contextvars()

        response.headers["x-request-id"] = request_id
        return response
