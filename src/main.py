"""Main FastAPI application entry point."""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import ORJSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from api.exception_handlers import setup_exception_handlers
from api.middleware.logging import RequestLoggingMiddleware
from api.middleware.request_id import RequestIDMiddleware
from api.middleware.security import SecurityHeadersMiddleware
from api.routes.health import router as health_router
from api.v1 import router as v1_router
from api.v1.dependencies import get_invitation_service
from core.config import settings
from core.logging import setup_logging
from core.rate_limit import limiter, rate_limit_exceeded_handler
from infrastructure.database.session import engine

logger = structlog.get_logger()

setup_logging()


async def invitation_sweep_loop(interval_seconds: int) -> None:
    """Periodically mark overdue pending invitations expired.

    Reads already resolve expiry lazily; the sweep only keeps stored
    statuses tidy for reporting.
    """
    service = get_invitation_service()
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            await service.expire_stale_invitations()
        except Exception:
            logger.exception("invitation_sweep_failed")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan manager for startup/shutdown tasks."""
    logger.info("application_started", environment=settings.app_env, version=settings.app_version)
    sweep_task = None
    if settings.invitation_sweep_interval_seconds:
        sweep_task = asyncio.create_task(
            invitation_sweep_loop(settings.invitation_sweep_interval_seconds)
        )
    yield
    if sweep_task is not None:
        sweep_task.cancel()
    await engine.dispose()
    logger.info("application_stopped")


OPENAPI_TAGS = [
    {"name": "health", "description": "Liveness and readiness probes"},
    {"name": "workspaces", "description": "Workspace lifecycle, trash and ownership"},
    {"name": "members", "description": "Membership, roles and permission overrides"},
    {"name": "invitations", "description": "Invitation lifecycle, referrals and leaderboard"},
    {"name": "activity", "description": "Workspace audit trail"},
]

DESCRIPTION = (
    "## Workspace Access Control & Invitations\n\n"
    "Role-based membership for shared workspaces, with a single-use "
    "invitation lifecycle and referral tracking.\n\n"
    "### Features\n"
    "- **Roles**: owner > admin > member, with per-member permission overrides\n"
    "- **Invitations**: token-based, expiring, single-use invitations\n"
    "- **Referrals**: referral codes, perks, achievements and a leaderboard\n\n"
    "### Authentication\n"
    "All endpoints (except `/health` and the public invitation preview) "
    "require a valid JWT token in the Authorization header:\n"
    "```\nAuthorization: Bearer <your_token>\n```\n\n"
    "### Rate Limits\n"
    f"- GET endpoints: {settings.rate_limit_read}\n"
    f"- POST/PATCH/DELETE: {settings.rate_limit_write}"
)


def _install_middleware(app: FastAPI) -> None:
    # Starlette wraps in reverse: the last one added sees the request first.
    app.add_middleware(SlowAPIMiddleware)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(GZipMiddleware, minimum_size=1000)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "Retry-After"],
    )


def create_app() -> FastAPI:
    """Assemble the API: middleware, error envelope and routers."""
    app = FastAPI(
        lifespan=lifespan,
        default_response_class=ORJSONResponse,
        title=settings.app_name,
        description=DESCRIPTION,
        version=settings.app_version,
        debug=settings.debug,
        license_info={"name": "MIT"},
        openapi_tags=OPENAPI_TAGS,
    )

    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
    _install_middleware(app)
    setup_exception_handlers(app)

    app.include_router(health_router)
    app.include_router(v1_router, prefix="/api/v1")
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host=settings.host,
        port=settings.port,
        reload=not settings.is_production,
    )
