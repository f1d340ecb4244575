"""Rate limiting dependency for FastAPI routes.

This module wires the sliding-window limiter into the HTTP layer.

``enforce_rate_limit`` is meant for applications that embed this package
and attach it to their own routes, e.g.
``APIRouter(dependencies=[Depends(enforce_rate_limit)])``. The service's
own routes do not use it: ``/v1/limits/check`` answers limit queries for
other callers and is not throttled itself.

Strategy:
- One limiter per process, built from settings and sharing the configured
  store (Redis in multi-worker deployments).
- Identity is the API key when present, otherwise the client IP.
- Store outages are not treated as admissions unless ``LIMITER_FAIL_OPEN``
  is set; otherwise the error propagates to the exception handlers (503).
"""

from __future__ import annotations

import logging
import threading
from typing import Annotated

from fastapi import Header, HTTPException, Request, status
from fastapi.concurrency import run_in_threadpool

from rolling_limiter.adapters.store.base import AbstractWindowStore
from rolling_limiter.adapters.store.factory import create_window_store
from rolling_limiter.core.config import settings
from rolling_limiter.core.errors import StoreUnavailableError
from rolling_limiter.limiter.config import RateLimiterConfig
from rolling_limiter.limiter.rate_limiter import RateLimiter, hash_key

logger = logging.getLogger(__name__)


_lock = threading.Lock()
_limiter: RateLimiter | None = None
_limiter_config: RateLimiterConfig | None = None
_store: AbstractWindowStore | None = None
_store_config: tuple | None = None


def get_window_store() -> AbstractWindowStore:
    """Return the process-wide store, rebuilding it if store settings changed."""

    global _store, _store_config

    config = (
        settings.store.backend,
        settings.store.redis_url,
        settings.store.socket_timeout_seconds,
    )
    with _lock:
        if _store is None or _store_config != config:
            _store = create_window_store(settings.store)
            _store_config = config
        return _store


def get_rate_limiter() -> RateLimiter:
    """Return a process-wide rate limiter instance.

    The instance is cached in-module and rebuilt when limiter settings change
    (primarily in tests). Window state lives in the store, so rebuilding the
    limiter loses nothing.

    Returns:
        RateLimiter: Configured limiter instance.
    """

    global _limiter, _limiter_config

    config = RateLimiterConfig.from_settings(settings.limiter)
    store = get_window_store()

    with _lock:
        if _limiter is None or _limiter_config != config or _limiter.store is not store:
            _limiter = RateLimiter(config, store)
            _limiter_config = config
        return _limiter


def reset_rate_limiter() -> None:
    """Forget the cached limiter and store."""

    global _limiter, _limiter_config, _store, _store_config

    with _lock:
        _limiter = None
        _limiter_config = None
        _store = None
        _store_config = None


def _build_rate_limit_identity(request: Request, x_api_key: str | None) -> str:
    if x_api_key:
        return f"api_key:{x_api_key}"

    client_host = request.client.host if request.client else "unknown"
    return f"ip:{client_host}"


async def enforce_rate_limit(
    request: Request,
    x_api_key: Annotated[str | None, Header(alias="X-API-Key")] = None,
) -> None:
    """FastAPI dependency enforcing the sliding-window limit.

    Args:
        request: FastAPI request.
        x_api_key: API key from X-API-Key header.

    Raises:
        HTTPException: 429 Too Many Requests when the caller must wait.
        StoreUnavailableError: When the store fails and fail-open is disabled.
    """

    cfg = settings.limiter
    if not cfg.enabled:
        return

    limiter = get_rate_limiter()
    identity = _build_rate_limit_identity(request, x_api_key)
    key_hash = hash_key(limiter.config.key_for(identity))
    key_type = "api_key" if x_api_key else "ip"

    try:
        decision = await run_in_threadpool(limiter.evaluate, identity)
    except StoreUnavailableError as exc:
        if not cfg.fail_open:
            raise
        logger.warning(
            "rate_limit.fail_open",
            extra={"key_type": key_type, "key_hash": key_hash, "error_code": exc.code},
        )
        return

    if decision.allowed:
        logger.info(
            "rate_limit.allowed",
            extra={
                "key_type": key_type,
                "key_hash": key_hash,
                "limit": decision.limit,
                "remaining": decision.remaining,
                "window_ms": cfg.interval_millis,
            },
        )
        return

    logger.warning(
        "rate_limit.exceeded",
        extra={
            "key_type": key_type,
            "key_hash": key_hash,
            "limit": decision.limit,
            "in_window": decision.in_window,
            "window_ms": cfg.interval_millis,
            "retry_after_s": decision.wait_seconds,
        },
    )

    headers: dict[str, str] = {}
    if cfg.include_headers:
        headers["Retry-After"] = str(decision.wait_seconds)
        headers["X-RateLimit-Limit"] = str(decision.limit)
        headers["X-RateLimit-Remaining"] = str(decision.remaining)

    raise HTTPException(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        detail="Rate limit exceeded. Try again later.",
        headers=headers or None,
    )
