"""
FastAPI Application - Gallery API
Image gallery with kind/value tags and automatically derived system tags
"""

import uuid
from collections.abc import AsyncGenerator, Awaitable, Callable
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from gallery.api.v1 import router as api_v1_router
from gallery.config import SessionMode, settings
from gallery.core.database import Database
from gallery.core.errors import GalleryError, gallery_error_handler
from gallery.core.logging import (
    clear_request_context,
    configure_logging,
    get_logger,
    set_request_context,
)
from gallery.services.storage import LocalBlobStore
from gallery.services.tags import ensure_system_tag_definitions

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Build the database, blob store and HTTP client; dispose them on shutdown."""
    configure_logging()

    database = Database.from_settings(settings)
    if settings.DB_CREATE_ALL:
        await database.create_all()
        async with database.session(SessionMode.WRITE) as session:
            await ensure_system_tag_definitions(session)
            await session.commit()

    app.state.database = database
    app.state.blob_store = LocalBlobStore(settings.STORAGE_PATH)
    app.state.http_client = httpx.AsyncClient(timeout=settings.REMOTE_FETCH_TIMEOUT)

    logger.info(
        "app_started",
        environment=settings.ENVIRONMENT,
        database=database.engine.url.render_as_string(hide_password=True),
        storage_path=settings.STORAGE_PATH,
    )
    try:
        yield
    finally:
        await app.state.http_client.aclose()
        await database.dispose()
        logger.info("app_stopped")


app = FastAPI(
    title=settings.PROJECT_NAME,
    description="Image gallery with tag-filtered browsing and derived system tags",
    version=settings.VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID"],
)

app.add_exception_handler(GalleryError, gallery_error_handler)


@app.middleware("http")
async def request_id_middleware(
    request: Request, call_next: Callable[[Request], Awaitable[Response]]
) -> Response:
    """Tag every request (and its logs) with an X-Request-ID."""
    request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
    set_request_context(request_id)
    try:
        response = await call_next(request)
    finally:
        clear_request_context()
    response.headers["X-Request-ID"] = request_id
    return response


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint - API information"""
    return {
        "name": settings.PROJECT_NAME,
        "version": settings.VERSION,
        "status": "running",
        "docs": "/docs",
    }


@app.get("/health")
async def health() -> dict[str, str]:
    """Health check endpoint"""
    return {"status": "healthy"}


app.include_router(api_v1_router, prefix=settings.API_V1_STR)

# Serve stored objects in development; production serves IMAGE_BASE_URL elsewhere
if settings.ENVIRONMENT == "development":
    app.mount(
        "/storage",
        StaticFiles(directory=settings.STORAGE_PATH, check_dir=False),
        name="storage",
    )
