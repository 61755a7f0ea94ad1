"""Access log for the indexing API, one record per request."""

from __future__ import annotations

import logging
import time
import uuid
from typing import Any

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger("index_api.access")

CORRELATION_HEADER = "X-Correlation-ID"
_REDACTED_HEADERS = frozenset({"authorization", "x-api-key", "cookie"})


def _level_for(status_code: int) -> int:
    if status_code >= 500:
        return logging.ERROR
    if status_code >= 400:
        return logging.WARNING
    return logging.INFO


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Tags each request with a correlation id and logs its outcome.

    The id is reused from an incoming ``X-Correlation-ID`` header when the
    caller sends one, and echoed on the response either way.  The record's
    ``request`` extra holds method, path, status, duration and the headers
    with credentials redacted; ``duration_ms`` is what to watch when tuning
    ``max_steps`` per chunk.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        correlation_id = request.headers.get(CORRELATION_HEADER) or uuid.uuid4().hex
        started = time.monotonic()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            response.headers[CORRELATION_HEADER] = correlation_id
            return response
        finally:
            entry: dict[str, Any] = {
                "method": request.method,
                "path": request.url.path,
                "query": request.url.query or None,
                "status_code": status_code,
                "duration_ms": round((time.monotonic() - started) * 1000, 2),
                "client": request.client.host if request.client else None,
                "correlation_id": correlation_id,
                "headers": {
                    name: "***" if name.lower() in _REDACTED_HEADERS else value
                    for name, value in request.headers.items()
                },
            }
            logger.log(
                _level_for(status_code),
                "%s %s -> %d",
                request.method,
                request.url.path,
                status_code,
                extra={"request": entry},
            )
