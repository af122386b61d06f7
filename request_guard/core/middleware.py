"""HTTP middleware for request ID propagation and correlation.

Every request/response pair carries a request ID so guard decisions
(rate-limit rejections, CSRF failures, fail-open events) can be correlated
with the caller's request in the logs.

The middleware:
- Accepts the incoming request-id header or generates a UUID
- Stores request_id in contextvars for the rest of the request
- Echoes request_id and the total duration in the response headers
- Clears the context afterwards so ids never leak between requests

Usage:
    app.middleware("http")(build_request_id_middleware("X-Request-ID"))
"""

from __future__ import annotations

import time
import uuid
from typing import Awaitable, Callable

from fastapi import Request, Response

from request_guard.core.logging import clear_request_id, set_request_id

CallNext = Callable[[Request], Awaitable[Response]]


def build_request_id_middleware(
    header_name: str,
) -> Callable[[Request, CallNext], Awaitable[Response]]:
    """Create the request-id middleware bound to ``header_name``.

    Args:
        header_name: Header used to receive and return the request id.

    Returns:
        Coroutine function suitable for ``app.middleware("http")``.
    """

    async def request_id_middleware(request: Request, call_next: CallNext) -> Response:
        request_id = request.headers.get(header_name) or str(uuid.uuid4())
        set_request_id(request_id)
        start = time.perf_counter()
        try:
            response = await call_next(request)
        finally:
            clear_request_id()

        duration_ms = (time.perf_counter() - start) * 1000
        response.headers[header_name] = request_id
        response.headers.setdefault("X-Request-Duration-ms", f"{duration_ms:.2f}")
        return response

    return request_id_middleware
