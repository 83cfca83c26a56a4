"""
WorshipFlow Song Manager - Main Application

Single-process FastAPI application that serves:
- REST API endpoints for songs and tags CRUD and sheet transcription
- A printable song sheet page via Jinja2 templates
- Health check endpoint

The service keeps no state between requests apart from the document store
handle, which is built once from configuration when the app is created.
"""

import sys
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.templating import Jinja2Templates
from loguru import logger
from starlette.exceptions import HTTPException as StarletteHTTPException

from worshipflow.config import (
    APP_ENV,
    APP_HOST,
    APP_PORT,
    APP_VERSION,
    DB_PATH,
    DEBUG,
    LOG_LEVEL,
    TEMPLATES_DIR,
    ensure_directories,
)
from worshipflow.database import DocumentStore, StoreConfig, build_store
from worshipflow.errors import WorshipFlowError
from worshipflow.routes.api import router as api_router
from worshipflow.routes.pages import router as pages_router
from worshipflow.services.songs import SongService
from worshipflow.services.tags import TagService
from worshipflow.services.transcription import GeminiTranscriber

# ---------------------------------------------------------------------------
# Logging setup: stdout only
# ---------------------------------------------------------------------------
logger.remove()

logger.add(
    sys.stdout,
    level="DEBUG" if DEBUG else LOG_LEVEL,
    format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
    colorize=True,
)

# Marks "build the store from DB_PATH" as opposed to an explicit None
_FROM_CONFIG = object()


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------
@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    On startup:
        1. Create the local directory for the store file (store built from
           DB_PATH only)
        2. Create the document store schema (if a store is configured)

    On shutdown:
        3. Log shutdown
    """
    # --- Startup ---
    logger.info("🚀 Starting WorshipFlow Song Manager v{}", APP_VERSION)
    logger.info("📋 Environment: {} | Debug: {}", APP_ENV, DEBUG)

    if app.state.store_from_config:
        ensure_directories()

    store: Optional[DocumentStore] = app.state.store
    if store is not None:
        try:
            store.init()
        except Exception as e:
            logger.critical("❌ Document store initialization failed: {}", e)
            raise

    if not app.state.transcriber.is_configured:
        logger.warning("📷 GEMINI_API_KEY not set, image transcription disabled")

    logger.success("✅ Application ready, listening on {}:{}", APP_HOST, APP_PORT)

    yield

    # --- Shutdown ---
    logger.info("👋 Shutdown complete")


# ---------------------------------------------------------------------------
# Error handlers
# ---------------------------------------------------------------------------
def _register_error_handlers(app: FastAPI) -> None:
    """Render every failure as ``{"error": message}``."""

    @app.exception_handler(WorshipFlowError)
    async def worshipflow_error_handler(request: Request, exc: WorshipFlowError):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)})

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        detail = "; ".join(
            f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg', '')}"
            for err in errors
        )
        return JSONResponse(
            status_code=400, content={"error": f"Invalid request: {detail}"}
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("❌ Unhandled error on {} {}: {}", request.method, request.url.path, exc)
        return JSONResponse(status_code=500, content={"error": "Internal server error"})


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------
def create_app(
    store=_FROM_CONFIG,
    transcriber: Optional[GeminiTranscriber] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    *store* defaults to the store described by ``DB_PATH``; pass ``None``
    to run without one.  *transcriber* defaults to a Gemini client built
    from the environment.
    """
    store_from_config = store is _FROM_CONFIG
    if store_from_config:
        store = build_store(StoreConfig(db_path=DB_PATH))

    app = FastAPI(
        title="WorshipFlow Song Manager",
        description=(
            "Song and lyrics management for a worship team. "
            "Create, tag, search and print songs; import sheets from photos."
        ),
        version=APP_VERSION,
        lifespan=lifespan,
        docs_url="/docs" if DEBUG else None,
        redoc_url="/redoc" if DEBUG else None,
    )

    # ------------------------------------------------------------------
    # Services
    # ------------------------------------------------------------------
    app.state.store = store
    app.state.store_from_config = store_from_config
    app.state.song_service = SongService(store)
    app.state.tag_service = TagService(store)
    app.state.transcriber = transcriber or GeminiTranscriber()

    # ------------------------------------------------------------------
    # Jinja2 templates
    # ------------------------------------------------------------------
    app.state.templates = Jinja2Templates(directory=str(TEMPLATES_DIR))

    _register_error_handlers(app)

    # ------------------------------------------------------------------
    # Request logging middleware
    # ------------------------------------------------------------------
    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log every incoming HTTP request with timing information."""
        start = time.time()
        try:
            response = await call_next(request)
        except Exception as exc:
            duration = round(time.time() - start, 3)
            logger.error(
                "❌ {method} {path} unhandled error after {duration}s: {exc}",
                method=request.method,
                path=request.url.path,
                duration=duration,
                exc=exc,
            )
            raise

        duration = round(time.time() - start, 3)
        status = response.status_code

        if status >= 500:
            log = logger.error
        elif status >= 400:
            log = logger.warning
        else:
            log = logger.info
        log(
            "📤 {method} {path} -> {status} [{duration}s]",
            method=request.method,
            path=request.url.path,
            status=status,
            duration=duration,
        )
        return response

    # ------------------------------------------------------------------
    # Register routers
    # ------------------------------------------------------------------
    app.include_router(api_router)  # /api/*  JSON endpoints
    app.include_router(pages_router)  # /*      HTML pages

    return app


# ---------------------------------------------------------------------------
# Create the app instance (used by Uvicorn)
# ---------------------------------------------------------------------------
app = create_app()


# ---------------------------------------------------------------------------
# Direct execution (development)
# ---------------------------------------------------------------------------
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "worshipflow.main:app",
        host=APP_HOST,
        port=APP_PORT,
        reload=DEBUG,
        log_level="debug" if DEBUG else "info",
    )
