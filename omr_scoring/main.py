"""FastAPI application for optical answer sheet decoding and scoring."""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Dict

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi.errors import RateLimitExceeded  # type: ignore[import-not-found]

from omr_scoring.config import get_settings
from omr_scoring.middleware.logging import RequestLoggingMiddleware, configure_logging
from omr_scoring.middleware.rate_limit import limiter, rate_limit_exceeded_handler
from omr_scoring.models.scoring import EXAM_PRESETS
from omr_scoring.models.template import PRESET_TEMPLATES

# Application metadata
VERSION = "1.0.0"
COMMIT_HASH = "development"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Lifespan event handler for startup and shutdown."""
    try:
        # Raises ValidationError on invalid environment values
        settings = get_settings()
        configure_logging(settings.log_level)

        print(f"Starting OMR Scoring API v{VERSION}")
        print(f"Default exam type: {settings.default_exam_type}")
        print(f"Answer characters: {settings.valid_answer_chars}, blank: {settings.blank_char!r}")
        print("Environment validation: OK")

    except Exception as e:
        print(f"Startup validation failed: {e}")
        raise

    yield

    print("Shutting down OMR Scoring API")


app = FastAPI(
    title="OMR Scoring API",
    description="Fixed-width optical reader decoding and LGS/TYT exam scoring",
    version=VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# Add rate limiter to app state (required by slowapi)
app.state.limiter = limiter

app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

app.add_middleware(RequestLoggingMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
async def health_check() -> Dict[str, Any]:
    """
    Health check endpoint.

    Returns:
        JSON with status, timestamp and the loaded presets.
    """
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "exam_presets": sorted(EXAM_PRESETS),
        "templates": sorted(PRESET_TEMPLATES),
    }


@app.get("/version")
async def version_info() -> Dict[str, str]:
    """
    Get version information for the API.

    Returns:
        JSON with version number and commit hash.
    """
    return {
        "version": VERSION,
        "commit_hash": COMMIT_HASH,
    }


from omr_scoring.routers import decode  # noqa: E402
app.include_router(decode.router)

from omr_scoring.routers import scoring  # noqa: E402
app.include_router(scoring.router)
