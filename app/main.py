"""
Main FastAPI application for the ResearchNavigator backend.
Handles CORS, request logging middleware, lifespan events, and router registration.
"""
import logging
import os
import time
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.config import settings
from app.database import AsyncSessionLocal, close_db, init_db
from app.exceptions import PipelineStageError
from app.routers import analyses, comments, documents, health, projects, users
from app.services.container import build_services

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Startup / shutdown helpers
# ---------------------------------------------------------------------------

async def _check_database() -> bool:
    """Initialise DB tables and verify the connection.  Returns True on success."""
    try:
        await init_db()
        logger.info("✓ Database connection OK")
        return True
    except Exception as exc:
        logger.error("✗ Database connection failed: %s", exc)
        raise


async def _check_provider(app: FastAPI) -> bool:
    """Report whether the text-generation provider answers.  Never raises."""
    llm = app.state.services.llm
    if not getattr(llm, "is_configured", True):
        logger.warning(
            "⚠ OPENAI_API_KEY is not set: summaries fall back to a placeholder "
            "and analyses will fail"
        )
        return False
    reachable = await llm.check_health()
    if reachable:
        logger.info("✓ Provider reachable at %s", settings.OPENAI_BASE_URL)
    else:
        logger.warning("⚠ Provider unreachable at %s", settings.OPENAI_BASE_URL)
    return reachable


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown event handler."""
    logger.info("=" * 60)
    logger.info("  Starting ResearchNavigator backend …")
    logger.info("=" * 60)

    # 1. Database (required; raises on failure)
    await _check_database()

    # 2. Provider (optional; logs warnings but continues)
    await _check_provider(app)

    # 3. Upload directory
    os.makedirs(settings.UPLOAD_DIR, exist_ok=True)
    logger.info("✓ Upload directory: %s", os.path.abspath(settings.UPLOAD_DIR))

    logger.info("=" * 60)
    logger.info("  ResearchNavigator ready on http://%s:%d", settings.HOST, settings.PORT)
    logger.info("  Swagger UI : http://%s:%d/docs", settings.HOST, settings.PORT)
    logger.info("=" * 60)

    yield  # ← server is running

    logger.info("Shutting down ResearchNavigator backend …")
    await app.state.services.close()
    await close_db()
    logger.info("✓ Shutdown complete.")


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------

app = FastAPI(
    title="ResearchNavigator API",
    description=(
        "**ResearchNavigator** analyses a project's research documents.\n\n"
        "Upload papers and notes, then run a five-stage analysis that profiles "
        "the project, scouts related literature, finds gaps, proposes research "
        "directions and critiques them.\n\n"
        "Key endpoints:\n"
        "- `POST /api/documents/upload`: upload a document (indexed in the background)\n"
        "- `POST /api/projects/{id}/analyze`: run the analysis pipeline\n"
        "- `GET  /api/analyses/{id}`: analysis with comments\n"
    ),
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)

# One service container per process; tests replace it.
app.state.services = build_services(AsyncSessionLocal)


# ---------------------------------------------------------------------------
# CORS
# ---------------------------------------------------------------------------

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_allowed_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Request / response logging middleware
# ---------------------------------------------------------------------------

@app.middleware("http")
async def log_requests(request: Request, call_next):
    """
    Log every request with method, path, status code, and elapsed time.
    Attaches an ``X-Process-Time`` header (milliseconds) to every response.
    """
    t0 = time.monotonic()
    response = await call_next(request)
    elapsed_ms = round((time.monotonic() - t0) * 1000, 2)

    # Skip noisy health-check polling from the frontend
    if request.url.path not in ("/api/health/", "/"):
        logger.info(
            "%s %s → %d  (%.2f ms)",
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
        )

    response.headers["X-Process-Time"] = f"{elapsed_ms}ms"
    return response


# ---------------------------------------------------------------------------
# Exception handlers
# ---------------------------------------------------------------------------

@app.exception_handler(PipelineStageError)
async def pipeline_error_handler(request: Request, exc: PipelineStageError):
    """A failed analysis run surfaces as one aggregate error naming the stage."""
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "detail": str(exc),
            "stage": exc.stage,
            "path": str(request.url.path),
            "timestamp": datetime.utcnow().isoformat(),
        },
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Return a structured JSON error for any unhandled exception."""
    logger.error(
        "Unhandled exception on %s %s: %s",
        request.method,
        request.url.path,
        exc,
        exc_info=True,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "detail": "Internal server error",
            "error": str(exc),
            "path": str(request.url.path),
            "timestamp": datetime.utcnow().isoformat(),
        },
    )


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------

app.include_router(health.router,    prefix="/api/health",    tags=["Health"])
app.include_router(users.router,     prefix="/api/users",     tags=["Users"])
app.include_router(projects.router,  prefix="/api/projects",  tags=["Projects"])
app.include_router(documents.router, prefix="/api/documents", tags=["Documents"])
app.include_router(analyses.router,  prefix="/api/analyses",  tags=["Analyses"])
app.include_router(comments.router,  prefix="/api/comments",  tags=["Comments"])


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------

@app.get("/", tags=["Root"], include_in_schema=False)
async def root():
    """API root: basic service info."""
    return {
        "name": "ResearchNavigator API",
        "version": "0.1.0",
        "docs": "/docs",
        "health": "/api/health/",
        "endpoints": {
            "users": "/api/users",
            "projects": "/api/projects",
            "documents": "/api/documents",
            "analyses": "/api/analyses",
            "comments": "/api/comments",
        },
    }


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=True,
        log_level="info",
    )
