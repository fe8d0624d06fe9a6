"""
FastAPI application entry point.
Main application setup and configuration.
"""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException
from contextlib import asynccontextmanager
from pathlib import Path
from sqlalchemy.exc import SQLAlchemyError
import logging

from app.config import settings
from app.database import test_database_connection, create_tables, close_db_connection
from app.middleware import RequestLoggingMiddleware
from app.routers import (
    auth_router,
    listings_router,
    saved_properties_router,
    viewings_router,
    comparisons_router,
    tags_router,
    dashboard_router,
    health_router,
)
from app.services.error_handler import ErrorHandlerService
from app.services.image_reconciler import get_cleanup_queue
from app.utils.exceptions import APIException
from app.utils.storage import get_image_storage

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Check the database on startup (creating tables outside production), and on shutdown
    retry queued image deletions before closing the pool.
    """
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    logger.info(f"Environment: {settings.environment}")

    db_connected = await test_database_connection()
    if not db_connected:
        logger.error("Failed to connect to database on startup")
    elif settings.is_development or settings.is_testing:
        await create_tables()

    yield

    logger.info("Shutting down application")
    cleanup_queue = get_cleanup_queue()
    if len(cleanup_queue):
        deleted = await cleanup_queue.drain(get_image_storage())
        logger.info(f"Deleted {deleted} queued images on shutdown, {len(cleanup_queue)} left")
    await close_db_connection()


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="""
    An API for apartment hunters and the people listing apartments.

    ## Features

    * **Listings**: Post listings with images, search active listings
    * **Saved properties**: Keep a private list with status, notes, pros, cons and tags
    * **Viewings**: Schedule viewings and record how they went
    * **Comparisons**: Put listings side by side
    * **Dashboard**: Statistics for hunting and listing

    ## Authentication

    Register or log in through `/api/auth`, then send the token as `Authorization: Bearer <token>`
    or rely on the `jwt` cookie set by the login endpoints.
    """,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_tags=[
        {"name": "Authentication", "description": "Registration, login and Google sign-in"},
        {"name": "Listings", "description": "Listing management, search and images"},
        {"name": "Saved Properties", "description": "A hunter's saved listings"},
        {"name": "Viewings", "description": "Viewing appointments"},
        {"name": "Comparisons", "description": "Side-by-side listing comparisons"},
        {"name": "Tags", "description": "Labels for saved properties"},
        {"name": "Dashboard", "description": "Account statistics"},
        {"name": "Health", "description": "System health endpoints"},
    ],
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID", "X-Process-Time"],
)

app.add_middleware(RequestLoggingMiddleware, slow_request_threshold=2.0)

# Include API routers
for router in (
    auth_router,
    listings_router,
    saved_properties_router,
    viewings_router,
    comparisons_router,
    tags_router,
    dashboard_router,
    health_router,
):
    app.include_router(router, prefix=settings.api_v1_prefix)

if settings.storage_backend == "local":
    Path(settings.upload_dir).mkdir(parents=True, exist_ok=True)
    app.mount("/uploads", StaticFiles(directory=settings.upload_dir), name="uploads")


def _error_response(handler):
    async def handle(request: Request, exc: Exception):
        return handler(exc, request)
    return handle


# Every exception leaves through ErrorHandlerService; the most specific registered class wins
for exc_class, handler in (
    (APIException, ErrorHandlerService.handle_api_exception),
    (RequestValidationError, ErrorHandlerService.handle_validation_error),
    (SQLAlchemyError, ErrorHandlerService.handle_database_error),
    (StarletteHTTPException, ErrorHandlerService.handle_http_exception),
    (Exception, ErrorHandlerService.handle_unexpected_error),
):
    app.add_exception_handler(exc_class, _error_response(handler))


@app.get("/", tags=["Health"])
async def root():
    """Basic API information."""
    return {
        "message": f"Welcome to {settings.app_name}",
        "version": settings.app_version,
        "environment": settings.environment,
        "documentation": {
            "swagger_ui": "/docs",
            "redoc": "/redoc",
            "openapi_json": "/openapi.json"
        },
        "api_prefix": settings.api_v1_prefix
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "app.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug
    )
