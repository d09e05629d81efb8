"""
FastAPI application entry point.

This module creates and configures the FastAPI application.
Using an application factory pattern (create_app function) because:
- Easier to test with different configurations
- Explicit about initialization order

For local development:
    SNOWFLAKE_MOCK_MODE=true R2_MOCK_MODE=true uvicorn plantstore.main:app --reload

For production:
    gunicorn plantstore.main:app -w 4 -k uvicorn.workers.UvicornWorker
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api.routes import health, plants
from .config.settings import get_settings
from .infrastructure.snowflake.client import SnowflakeConnectionError

logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=get_settings().log_level.upper(),
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Runs on startup and shutdown. Missing configuration is logged
    rather than fatal so mock-mode development keeps working.
    """
    settings = get_settings()

    logger.info(
        "Plant Registry API starting",
        extra={
            "version": settings.api_version,
            "mock_mode": {
                "snowflake": settings.snowflake_mock_mode,
                "r2": settings.r2_mock_mode,
            }
        }
    )

    missing_fields = settings.validate_required_fields()
    if missing_fields:
        logger.error(
            "Missing required configuration",
            extra={"missing_fields": missing_fields}
        )

    yield

    logger.info("Plant Registry API shutting down")


def create_app() -> FastAPI:
    """
    Application factory.

    Creates and configures the FastAPI application.
    """
    settings = get_settings()

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        description="""
        Plant records with images.

        ## Workflow

        1. **Create**: `POST /api/v1/plants`
           - Multipart form: `data` (JSON object of fields) and `images` (files)
        2. **List**: `GET /api/v1/plants?per_page=20`
           - Newest first; pass `last_key` from the previous page to continue
        3. **Consult**: `GET /api/v1/plants/{plant_id}`
           - Includes public image URLs
        """,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(
        health.router,
        prefix="/health",
        tags=["Health"],
    )

    app.include_router(
        plants.router,
        prefix="/api/v1/plants",
        tags=["Plants"],
    )

    @app.get("/", include_in_schema=False)
    async def root():
        return {
            "message": settings.api_title,
            "version": settings.api_version,
            "docs": "/docs",
            "health": "/health",
        }

    @app.exception_handler(SnowflakeConnectionError)
    async def snowflake_unavailable_handler(request, exc):
        logger.error(
            "Snowflake unavailable",
            extra={"path": request.url.path, "error": str(exc)},
        )

        return JSONResponse(
            status_code=503,
            content={"detail": "Plant storage is unavailable"}
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request, exc):
        """
        Catch-all exception handler.

        Prevents stack traces from leaking to clients. The full error
        is logged server-side.
        """
        logger.error(
            "Unhandled exception",
            extra={
                "path": request.url.path,
                "method": request.method,
                "error": str(exc),
            },
            exc_info=exc,
        )

        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"}
        )

    logger.info(
        "FastAPI application created",
        extra={
            "title": settings.api_title,
            "version": settings.api_version,
        }
    )

    return app


# This is what uvicorn/gunicorn will import
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "plantstore.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level=settings.log_level.lower(),
    )
