from __future__ import annotations

from fastapi import APIRouter
from fastapi.concurrency import run_in_threadpool

from rolling_limiter.core.rate_limit import get_rate_limiter
from rolling_limiter.schemas.limits import CheckRequest, CheckResponse

router = APIRouter(tags=["Limits"])


@router.post("/limits/check", response_model=CheckResponse)
async def check_limit(payload: CheckRequest) -> CheckResponse:
    """Check and record one action for an identity.

    Always answers 200 with the decision; callers act on ``allowed`` and
    ``wait_seconds``. Store failures surface as 503 through the exception
    handlers and are never reported as a decision.
    """
    limiter = get_rate_limiter()
    decision = await run_in_threadpool(limiter.evaluate, payload.identity)
    return CheckResponse(
        allowed=decision.allowed,
        wait_seconds=decision.wait_seconds,
        limit=decision.limit,
        in_window=decision.in_window,
        remaining=decision.remaining,
    )
