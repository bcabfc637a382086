"""
Feature definition service.

Run with:
    uvicorn featureflags.main:app
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from featureflags.core.config import settings
from featureflags.core.logging import configure_logging
from featureflags.core.features import ConfigurationError, UnsupportedFilterTypeError
from featureflags.core.features.dependencies import close_http_client
from featureflags.api.routes import router as api_router
from featureflags.models.database import init_db, close_db

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    configure_logging()

    if settings.features.backend == "database" and settings.features.create_tables:
        await init_db()
        logger.info("Feature flag tables created")

    logger.info(
        "Feature definition service started",
        environment=settings.environment,
        backend=settings.features.backend,
        provider=settings.features.provider,
    )

    yield

    await close_http_client()
    await close_db()
    logger.info("Feature definition service stopped")


def _error(status_code: int, error: str, exc: Exception) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": error, "message": str(exc) if settings.debug else error.replace("_", " ")},
    )


def create_app() -> FastAPI:
    """Build the application with routes and error handlers."""
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        debug=settings.debug,
        lifespan=lifespan,
        docs_url="/docs" if settings.is_development else None,
        redoc_url=None,
    )

    app.include_router(api_router, prefix="/api")

    @app.exception_handler(UnsupportedFilterTypeError)
    async def unsupported_filter_handler(request: Request, exc: UnsupportedFilterTypeError):
        logger.error("Stored flag has an unsupported filter", path=request.url.path, filter_type=str(exc.filter_type))
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "unsupported_filter_type", exc)

    @app.exception_handler(ConfigurationError)
    async def configuration_error_handler(request: Request, exc: ConfigurationError):
        logger.error("Feature flag configuration error", path=request.url.path, error=str(exc))
        return _error(status.HTTP_503_SERVICE_UNAVAILABLE, "configuration_error", exc)

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error", path=request.url.path)
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "internal_server_error", exc)

    @app.get("/health")
    async def health_check():
        return {
            "status": "healthy",
            "version": settings.app_version,
            "environment": settings.environment,
            "backend": settings.features.backend,
            "provider": settings.features.provider,
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "featureflags.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.reload,
        workers=settings.workers,
    )
