"""Tally API: main entry point."""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from sqlalchemy import text
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.sessions import SessionMiddleware

from tally.config import settings
from tally.core.database import async_session_factory, engine
from tally.core.middleware import RequestLoggingMiddleware, http_exception_handler

logger = structlog.get_logger()

VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: startup and shutdown events."""
    # Startup
    settings.upload_path.mkdir(parents=True, exist_ok=True)
    logger.info("Starting Tally API", env=settings.app_env, upload_dir=str(settings.upload_path))
    yield
    # Shutdown
    logger.info("Shutting down Tally API")
    await engine.dispose()


app = FastAPI(
    title="Tally API",
    description="Personal home inventory with photo, barcode, QR and voice capture",
    version=VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
    # Disable trailing slash redirects (307/308) which strip Authorization headers
    # when the frontend proxy follows the redirect cross-origin.
    redirect_slashes=False,
)

# ── Middleware ─────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(
    SessionMiddleware,
    secret_key=settings.app_secret_key,
    session_cookie="tally_session",
    same_site="lax",
    https_only=settings.app_env == "production",
)
app.add_middleware(RequestLoggingMiddleware)

app.add_exception_handler(StarletteHTTPException, http_exception_handler)

# Uploaded photos
app.mount("/uploads", StaticFiles(directory=settings.upload_dir, check_dir=False), name="uploads")


# ── Health Check ──────────────────────────────────
@app.get("/health", tags=["system"])
async def health_check():
    """Liveness probe: always healthy while the process is running."""
    return {"status": "healthy", "version": VERSION}


@app.get("/ready", tags=["system"])
async def readiness_check():
    """Readiness probe: checks DB connectivity."""
    checks = {"database": "unknown", "api": "ok"}
    try:
        async with async_session_factory() as session:
            await session.execute(text("SELECT 1"))
            checks["database"] = "ok"
    except Exception as e:
        checks["database"] = f"error: {e}"
        return {"status": "degraded", "checks": checks}

    return {"status": "ready", "checks": checks}


# ── API Routes ────────────────────────────────────
from tally.api.v1 import auth, capture, categories, items, users  # noqa: E402

app.include_router(auth.redirect_router, prefix="/api", tags=["auth"])
app.include_router(auth.router, prefix="/api/v1/auth", tags=["auth"])
app.include_router(users.router, prefix="/api/v1/users", tags=["users"])
app.include_router(categories.router, prefix="/api/v1/categories", tags=["categories"])
app.include_router(items.router, prefix="/api/v1/items", tags=["items"])
app.include_router(capture.router, prefix="/api/v1/capture", tags=["capture"])
