"""
truleado.api.app

FastAPI app factory for the Truleado agency backend.

Responsibilities:
- Build the FastAPI application and register routers, middleware and error handlers.
- Own shared infrastructure on app.state: settings, DB engine/session factory and
  the outbound HTTP client used by integrations.
"""

from __future__ import annotations

import httpx
from fastapi import FastAPI

from truleado import __version__
from truleado.api.errors import register_error_handlers
from truleado.api.routers.activity import router as activity_router
from truleado.api.routers.agencies import router as agencies_router
from truleado.api.routers.billing import router as billing_router
from truleado.api.routers.campaigns import router as campaigns_router
from truleado.api.routers.clients import router as clients_router
from truleado.api.routers.creators import router as creators_router
from truleado.api.routers.deliverables import router as deliverables_router
from truleado.api.routers.dev_auth import router as dev_auth_router
from truleado.api.routers.health import router as health_router
from truleado.api.routers.notifications import router as notifications_router
from truleado.api.routers.projects import router as projects_router
from truleado.api.routers.users import router as users_router
from truleado.db.init_db import init_db
from truleado.db.session import create_engine, create_sessionmaker
from truleado.observability.logging import configure_logging, get_logger
from truleado.observability.middleware import RequestContextMiddleware
from truleado.settings import Settings

log = get_logger(__name__)


def create_app(*, settings: Settings) -> FastAPI:
    configure_logging(service_name=settings.service_name, level=settings.log_level)

    app = FastAPI(
        title="Truleado API",
        version=__version__,
        docs_url="/docs",
        openapi_url="/openapi.json",
    )
    app.state.settings = settings

    app.add_middleware(RequestContextMiddleware)
    register_error_handlers(app)

    app.include_router(health_router, tags=["health"])
    app.include_router(dev_auth_router)
    app.include_router(users_router)
    app.include_router(agencies_router)
    app.include_router(clients_router)
    app.include_router(projects_router)
    app.include_router(campaigns_router)
    app.include_router(deliverables_router)
    app.include_router(creators_router)
    app.include_router(billing_router)
    app.include_router(notifications_router)
    app.include_router(activity_router)

    @app.on_event("startup")
    async def _startup() -> None:
        log.info("startup", env=settings.env)
        engine = create_engine(settings)
        app.state.engine = engine
        app.state.sessionmaker = create_sessionmaker(engine)
        app.state.http = httpx.AsyncClient(timeout=settings.http_timeout_seconds)
        if settings.env in ("dev", "test"):
            # Prod schemas are managed by Alembic.
            await init_db(engine)

    @app.on_event("shutdown")
    async def _shutdown() -> None:
        http = getattr(app.state, "http", None)
        if http is not None:
            await http.aclose()
        engine = getattr(app.state, "engine", None)
        if engine is not None:
            await engine.dispose()
        log.info("shutdown")

    return app
