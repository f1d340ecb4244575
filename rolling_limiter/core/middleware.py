"""HTTP middleware for request ID propagation.

Usage:
    app.middleware("http")(request_id_middleware)
"""

from __future__ import annotations

import time
import uuid

from fastapi import Request, Response

from rolling_limiter.core.config import settings
from rolling_limiter.core.logging import clear_request_id, set_request_id


async def request_id_middleware(request: Request, call_next) -> Response:
    """Tag the request with a correlation id and time it.

    The incoming id header (``LOG_REQUEST_ID_HEADER``, default X-Request-ID) is
    reused when present, otherwise a UUID is generated. The id is stored in a
    contextvar for the duration of the request so limiter logs carry it, then
    echoed back together with ``X-Request-Duration-ms``.
    """

    header_name = settings.log.request_id_header
    request_id = request.headers.get(header_name) or str(uuid.uuid4())
    set_request_id(request_id)
    start = time.perf_counter()
    try:
        response: Response = await call_next(request)
    finally:
        clear_request_id()

    duration_ms = (time.perf_counter() - start) * 1000
    response.headers[header_name] = request_id
    response.headers.setdefault("X-Request-Duration-ms", f"{duration_ms:.2f}")
    return response
