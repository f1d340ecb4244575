from __future__ import annotations

from fastapi import APIRouter
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from rolling_limiter.core.config import settings
from rolling_limiter.core.rate_limit import get_window_store

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check() -> dict:
    """Liveness probe."""

    return {"status": "ok"}


@router.get("/health/ready")
async def readiness_check() -> JSONResponse:
    """Readiness probe: the window store must answer a ping.

    Returns:
        JSONResponse: 200 with ``status: ready`` or 503 with ``status: unavailable``.
    """

    store = get_window_store()
    reachable = await run_in_threadpool(store.ping)
    body = {
        "status": "ready" if reachable else "unavailable",
        "store": settings.store.backend,
    }
    return JSONResponse(status_code=200 if reachable else 503, content=body)
