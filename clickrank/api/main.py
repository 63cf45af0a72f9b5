"""
clickrank.api.main — FastAPI application entry point
=====================================================

Run with::

    uvicorn clickrank.api.main:app --reload --port 8000
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

load_dotenv()

from clickrank.api.deps import get_catalog, get_engine  # noqa: E402
from clickrank.api.routes.achievements import router as achievements_router  # noqa: E402
from clickrank.api.routes.clicks import router as clicks_router  # noqa: E402
from clickrank.api.routes.powers import router as powers_router  # noqa: E402
from clickrank.errors import (  # noqa: E402
    AuthenticationError,
    ConflictError,
    NotFoundError,
    ProgressionError,
    TransientStoreError,
    ValidationError,
)

logger = logging.getLogger(__name__)


def _cors_origins() -> list[str]:
    """Allowed CORS origins from ``CORS_ALLOW_ORIGINS`` (comma-separated)."""
    raw = os.getenv("CORS_ALLOW_ORIGINS", "").strip()
    if raw:
        return [origin.strip().rstrip("/") for origin in raw.split(",") if origin.strip()]
    return []


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle — warm the DB engine and the catalog."""
    engine = get_engine()
    get_catalog().load_all()
    logger.info("clickrank API started — engine ready (%s)", engine.url.database)
    yield
    logger.info("clickrank API shutting down")


app = FastAPI(
    title="clickrank API",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------------------
_STATUS_BY_ERROR: list[tuple[type[ProgressionError], int]] = [
    (ValidationError, 409),
    (AuthenticationError, 401),
    (NotFoundError, 404),
    (ConflictError, 409),
    (TransientStoreError, 503),
]


@app.exception_handler(ProgressionError)
async def progression_error_handler(request: Request, exc: ProgressionError):
    status_code = next(
        (code for cls, code in _STATUS_BY_ERROR if isinstance(exc, cls)), 400,
    )
    if status_code >= 500:
        logger.warning("%s %s → %d: %s", request.method, request.url.path, status_code, exc)
    detail = {"message": exc.message, **exc.details}
    return JSONResponse(status_code=status_code, content={"detail": detail})


# Mount routers
app.include_router(clicks_router, prefix="/api")
app.include_router(powers_router, prefix="/api")
app.include_router(achievements_router, prefix="/api")


@app.get("/api/health")
def health():
    return {"status": "ok"}
