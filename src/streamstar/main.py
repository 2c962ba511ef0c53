"""
StreamStar - Generation Reconciler
FastAPI backend reconciling MusicGPT callbacks into songs, versions and notifications
"""

from contextlib import asynccontextmanager

import uvicorn
from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .api.dependencies import get_database_manager
from .api.routes import generations, musicgpt, notifications, songs, webhooks
from .core.config import get_settings
from .core.exceptions import StreamStarError
from .core.logging import setup_logging
from .database.connection import DatabaseManager, database_manager
from .database.repositories import ConflictError, NotFoundError
from .database.schemas import HealthResponse
from .services.musicgpt_provider import MusicGPTProvider

# Global settings
settings = get_settings()

# Setup logging
logger = setup_logging()


def build_provider() -> MusicGPTProvider:
    return MusicGPTProvider(
        api_key=settings.MUSICGPT_API_KEY,
        base_url=settings.MUSICGPT_BASE_URL,
        timeout=settings.MUSICGPT_TIMEOUT_SECONDS,
        conversion_type=settings.MUSICGPT_CONVERSION_TYPE
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown events"""

    # Startup
    logger.info("Starting StreamStar reconciler...")

    try:
        await database_manager.initialize()
        logger.info("Database connections initialized")

        provider = build_provider()
        result = await provider.initialize()
        if result.is_err():
            # Enrichment is skipped and submissions fail until a key is configured
            logger.warning(f"MusicGPT provider unavailable: {result.error}")
        app.state.musicgpt_provider = provider

        logger.info("StreamStar reconciler started successfully")

    except Exception as e:
        logger.error(f"Failed to start StreamStar reconciler: {e}")
        raise

    yield

    # Shutdown
    logger.info("Shutting down StreamStar reconciler...")

    try:
        await app.state.musicgpt_provider.cleanup()
        await database_manager.close()
        logger.info("Database connections closed")

    except Exception as e:
        logger.error(f"Error during shutdown: {e}")


def create_app() -> FastAPI:
    app = FastAPI(
        title="StreamStar Reconciler API",
        description="Webhook reconciliation for AI song generations",
        version=settings.APP_VERSION,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
        lifespan=lifespan
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=1000)

    # Exception handlers
    @app.exception_handler(StreamStarError)
    async def streamstar_error_handler(request: Request, exc: StreamStarError):
        return JSONResponse(status_code=exc.status_code, content={"error": str(exc)})

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError):
        return JSONResponse(status_code=404, content={"error": str(exc)})

    @app.exception_handler(ConflictError)
    async def conflict_handler(request: Request, exc: ConflictError):
        return JSONResponse(status_code=409, content={"error": str(exc)})

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)})

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=422, content={"error": "Invalid request"})

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Global exception handler for unhandled exceptions"""
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    @app.get("/health", response_model=HealthResponse)
    async def health_check(manager: DatabaseManager = Depends(get_database_manager)):
        """Health check endpoint"""
        healthy = await manager.check_health()
        body = HealthResponse(
            status="healthy" if healthy else "unhealthy",
            service=settings.APP_NAME,
            version=settings.APP_VERSION,
            database="healthy" if healthy else "unhealthy"
        )
        if not healthy:
            return JSONResponse(status_code=503, content=body.model_dump())
        return body

    # API Routes
    app.include_router(webhooks.router, prefix="/api/webhooks", tags=["Webhooks"])
    app.include_router(generations.router, prefix="/api/generations", tags=["Generations"])
    app.include_router(musicgpt.router, prefix="/api/musicgpt", tags=["MusicGPT"])
    app.include_router(songs.router, prefix="/api/songs", tags=["Songs"])
    app.include_router(notifications.router, prefix="/api/notifications", tags=["Notifications"])

    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run(
        "streamstar.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.is_development,
        log_level=settings.LOG_LEVEL.lower()
    )
