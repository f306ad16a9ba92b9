"""FastAPI application factory: the composition root."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from fieldforce.core.config import Settings, settings as default_settings
from fieldforce.core.middleware import setup_middleware
from fieldforce.core.exceptions import FieldForceError
from fieldforce.core.security import TokenService
from fieldforce.db.session import Database

from fieldforce.api.auth import router as auth_router
from fieldforce.api.entities import router as entities_router
from fieldforce.api.roles import router as roles_router
from fieldforce.api.users import router as users_router

logger = logging.getLogger("fieldforce")


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=logging.DEBUG if settings.DEBUG else settings.LOG_LEVEL.upper(),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def create_app(
    settings: Optional[Settings] = None,
    database: Optional[Database] = None,
    tokens: Optional[TokenService] = None,
) -> FastAPI:
    """Build the app with explicitly constructed storage and token service."""
    settings = settings or default_settings
    configure_logging(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("🚀 Starting %s (%s)", settings.APP_NAME, settings.ENVIRONMENT)
        yield
        logger.info("🔻 Shutting down %s", settings.APP_NAME)
        app.state.database.dispose()

    app = FastAPI(
        title="FieldForce Auth API",
        description="Role, permission and hierarchy based authorization",
        version="0.1.0",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.state.settings = settings
    app.state.database = database or Database.from_settings(settings)
    app.state.tokens = tokens or TokenService(settings)

    # Middleware
    setup_middleware(app, settings)

    @app.exception_handler(FieldForceError)
    async def fieldforce_exception_handler(request: Request, exc: FieldForceError):
        logger.warning(
            "Operational error %s on %s %s: %s",
            exc.code, request.method, request.url.path, exc.message,
        )
        headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.message, "code": exc.code},
            headers=headers,
        )

    @app.exception_handler(Exception)
    async def unexpected_exception_handler(request: Request, exc: Exception):
        logger.error(
            "Unexpected error on %s %s", request.method, request.url.path, exc_info=exc,
        )
        content = {"detail": "Internal server error", "code": "INTERNAL_ERROR"}
        if settings.is_development:
            content["error"] = repr(exc)
        return JSONResponse(status_code=500, content=content)

    # Register routers
    app.include_router(auth_router, prefix="/api")
    app.include_router(entities_router, prefix="/api")
    app.include_router(roles_router, prefix="/api")
    app.include_router(users_router, prefix="/api")

    @app.get("/api/health")
    async def health():
        """Quick health check endpoint."""
        return {"status": "ok"}

    return app
