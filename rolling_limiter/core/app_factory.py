"""Application factory for the limiter HTTP service."""

from __future__ import annotations

from fastapi import FastAPI

from rolling_limiter.api.routes import health_router, limits_router
from rolling_limiter.core.config import settings
from rolling_limiter.core.exception_handlers import setup_exception_handlers
from rolling_limiter.core.logging import configure_logging
from rolling_limiter.core.middleware import request_id_middleware


def create_app() -> FastAPI:
    """Create and configure the FastAPI application instance.

    Returns:
        Configured FastAPI app with middleware, handlers and routers.
    """
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)

    app = FastAPI(
        title="Rolling Rate Limiter",
        description=(
            "Sliding-window rate limiter decision service. State is shared "
            "through Redis so every instance enforces the same windows."
        ),
        version="0.1.0",
    )

    app.middleware("http")(request_id_middleware)
    setup_exception_handlers(app)

    app.include_router(limits_router, prefix="/v1")
    app.include_router(health_router)

    return app
