"""
Main FastAPI application entry point
"""
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from typing import Optional
import time
import logging

from studyhub.config import Settings, settings as default_settings
from studyhub.database import check_db_connection
from studyhub.routers import users, mains, classes, lessons, search, progress
from studyhub.seeding.seed_data import seed_sample_content
from studyhub.storage.base import ContentStorage
from studyhub.storage.exceptions import ConstraintViolationError, StorageConnectionError
from studyhub.storage.factory import create_storage

# Configure logging
logging.basicConfig(
    level=default_settings.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None, storage: Optional[ContentStorage] = None) -> FastAPI:
    """
    Build the application

    Args:
        settings: configuration, the environment's when omitted
        storage: ready storage backend; when omitted one is built from
            settings on startup and closed on shutdown
    """
    settings = settings or default_settings

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="Bible study content platform: topics, classes, lessons and reading progress",
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.state.storage = storage
    owns_storage = storage is None

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["*"],
    )

    @app.middleware("http")
    async def add_process_time_header(request: Request, call_next):
        """Add request processing time to response headers"""
        start_time = time.time()
        response = await call_next(request)
        process_time = time.time() - start_time
        response.headers["X-Process-Time"] = f"{process_time:.4f}"
        return response

    @app.on_event("startup")
    async def startup_event():
        """Build the storage backend and seed it if asked to"""
        logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION} ({settings.ENVIRONMENT})")

        if app.state.storage is None:
            # StorageConfigurationError here is fatal: the app must not serve without storage
            app.state.storage = create_storage(settings)

        if settings.SEED_SAMPLE_DATA:
            seed_sample_content(app.state.storage)

    @app.on_event("shutdown")
    async def shutdown_event():
        """Release database connections"""
        logger.info("Shutting down application...")
        if owns_storage and app.state.storage is not None:
            app.state.storage.close()

    @app.get("/", tags=["Health"])
    async def root():
        """Root endpoint"""
        return {
            "app": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "status": "running",
            "docs": "/docs"
        }

    @app.get("/health", tags=["Health"])
    async def health_check():
        """Health check endpoint"""
        engine = getattr(app.state.storage, "engine", None)
        db_status = check_db_connection(engine) if engine is not None else app.state.storage is not None

        return {
            "status": "healthy" if db_status else "unhealthy",
            "storage": type(app.state.storage).__name__,
            "database": "connected" if db_status else "disconnected",
            "version": settings.APP_VERSION
        }

    @app.exception_handler(ConstraintViolationError)
    async def constraint_violation_handler(request: Request, exc: ConstraintViolationError):
        logger.warning(f"Constraint violation on {request.method} {request.url.path}: {exc}")
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT,
            content={"detail": exc.message, "constraint": exc.constraint}
        )

    @app.exception_handler(StorageConnectionError)
    async def storage_connection_handler(request: Request, exc: StorageConnectionError):
        logger.error(f"Storage unavailable: {exc}")
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"detail": "Storage is unavailable"}
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Global exception handler"""
        logger.error(f"Global exception: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={
                "detail": "Internal server error",
                "error": str(exc) if settings.DEBUG else "An error occurred"
            }
        )

    # Include routers
    app.include_router(users.router, prefix="/api")
    app.include_router(mains.router, prefix="/api")
    app.include_router(classes.router, prefix="/api")
    app.include_router(lessons.router, prefix="/api")
    app.include_router(search.router, prefix="/api")
    app.include_router(progress.router, prefix="/api")

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "studyhub.main:app",
        host="0.0.0.0",
        port=8000,
        reload=default_settings.DEBUG
    )
