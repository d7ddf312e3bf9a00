import os
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import __version__
from .core.config import get_settings
from .core.errors import ConfigurationError
from .core.logging import configure_logging, get_logger, get_trace_id
from .core.metrics import record_http_request
from .core.middleware import TraceIDMiddleware
from .routes import health, metrics, rank

# JSON output in production (containerized), console output in development
log_level = os.getenv("LOG_LEVEL", "INFO")
json_output = os.getenv("LOG_JSON", "true").lower() == "true"
configure_logging(log_level=log_level, json_output=json_output)

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Load settings on startup so a malformed configuration fails fast."""
    logger.info("app_startup_started")
    settings = get_settings()
    logger.info(
        "app_startup_completed",
        ai_enabled=settings.ai.enabled,
        ai_model=settings.ai.model,
    )
    yield
    logger.info("app_shutdown_completed")


app = FastAPI(
    title="TaskRank Query & Ranking API",
    description="Natural-language task queries: parsing, filtering, ranking and AI prioritization",
    version=__version__,
    lifespan=lifespan,
)

# CORS for local dev; restrict in production
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Must be added after CORS middleware
app.add_middleware(TraceIDMiddleware)


def _error_response(status_code: int, content: dict) -> JSONResponse:
    trace_id = get_trace_id()
    content["trace_id"] = trace_id
    response = JSONResponse(status_code=status_code, content=content)
    if trace_id:
        response.headers["X-Trace-ID"] = trace_id
    return response


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """Handle HTTP exceptions."""
    start_time = getattr(request.state, "start_time", time.time())
    record_http_request(
        method=request.method,
        endpoint=request.url.path,
        status_code=exc.status_code,
        duration_seconds=time.time() - start_time,
    )
    logger.warning(
        "http_exception",
        status_code=exc.status_code,
        detail=exc.detail,
        path=request.url.path,
        method=request.method,
    )
    return _error_response(exc.status_code, {"detail": exc.detail, "status_code": exc.status_code})


@app.exception_handler(ConfigurationError)
async def configuration_exception_handler(request: Request, exc: ConfigurationError):
    """Configuration problems are fatal for the request and never retried."""
    logger.error(
        "configuration_error",
        error=str(exc),
        field=exc.field,
        path=request.url.path,
    )
    return _error_response(
        500,
        {
            "detail": "Configuration error",
            "kind": "configuration_error",
            "message": str(exc),
            "field": exc.field,
            "status_code": 500,
        },
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle general exceptions."""
    logger.error(
        "unhandled_exception",
        error=str(exc),
        error_type=type(exc).__name__,
        path=request.url.path,
        method=request.method,
        exc_info=True,
    )
    return _error_response(500, {"detail": "Internal server error", "status_code": 500})


app.include_router(health.router, prefix="/health", tags=["Health"])
app.include_router(rank.router, prefix="/rank", tags=["Rank"])
app.include_router(metrics.router, prefix="/metrics", tags=["Metrics"])
