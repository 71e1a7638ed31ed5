"""Request middleware: bind request and session ids into the log context.

Pipeline runs are started from inside a request, so their tasks inherit
these contextvars and controller logs carry the HTTP request that caused
them.
"""

from __future__ import annotations

import re
import time
from uuid import uuid4

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from context_engine.observability.logger import get_logger

logger = get_logger("middleware")

_SESSION_PATH = re.compile(r"^/sessions/([^/]+)")


def session_id_from_path(path: str) -> str | None:
    match = _SESSION_PATH.match(path)
    return match.group(1) if match else None


class SessionContextMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid4())
        session_id = session_id_from_path(request.url.path)
        start = time.monotonic()

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(http_request_id=request_id)
        if session_id is not None:
            structlog.contextvars.bind_contextvars(session_id=session_id)

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                "request_failed",
                method=request.method,
                path=request.url.path,
                error=str(e),
            )
            raise

        duration_ms = round((time.monotonic() - start) * 1000, 2)
        response.headers["X-Request-ID"] = request_id
        if session_id is not None:
            response.headers["X-Session-ID"] = session_id
        log = logger.info if response.status_code < 500 else logger.warning
        log(
            "request_completed",
            method=request.method,
            path=request.url.path,
            status=response.status_code,
            duration_ms=duration_ms,
        )
        return response
