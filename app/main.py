"""
Main Application - FastAPI application setup.
"""

import time
import uuid
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from prometheus_client import generate_latest
from starlette.middleware.base import BaseHTTPMiddleware

from app.api.routes import router
from app.config import settings
from app.db.migration_runner import check_migrations_status, run_migrations
from app.db.session import close_engine, get_engine
from app.exceptions import DesignSystemError
from app.observability import get_logger, metrics, setup_logging, setup_tracing
from app.observability.logging import log_context
from app.observability.tracing import instrument_fastapi, instrument_sqlalchemy

# Setup logging before anything else
setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    Application lifespan manager.

    Handles startup and shutdown events.
    """
    logger.info(
        "application_starting",
        service=settings.api_title,
        version=settings.api_version,
        ai_model=settings.ai_model,
        tracing_enabled=settings.tracing_enabled,
        metrics_enabled=settings.metrics_enabled,
    )

    if settings.auto_migrate:
        run_migrations()
    elif not settings.is_sqlite:
        migration_status = check_migrations_status()
        if migration_status.pending:
            logger.warning(
                "database_migrations_pending",
                current_revision=migration_status.current_revision,
                head_revision=migration_status.head_revision,
            )

    yield

    logger.info("application_shutting_down")
    await close_engine()
    logger.info("database_engine_closed")


app = FastAPI(
    title=settings.api_title,
    version=settings.api_version,
    description=settings.api_description,
    lifespan=lifespan,
)


# ============================================================================
# Exception handlers
# ============================================================================


@app.exception_handler(DesignSystemError)
async def design_system_exception_handler(
    request: Request, exc: DesignSystemError
) -> JSONResponse:
    """Render a domain error as {"error": kind, "message": ..., ...details}."""
    if exc.status_code >= 500:
        logger.error(
            "request_error",
            path=request.url.path,
            kind=exc.kind,
            error=str(exc),
        )
    else:
        logger.info("request_rejected", path=request.url.path, kind=exc.kind, error=str(exc))
    metrics.record_error(exc.kind, request.url.path)

    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.kind, "message": exc.public_message, **exc.public_details()},
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Malformed request bodies become a ValidationError response."""
    sanitized_errors = []
    for error in exc.errors():
        sanitized = {
            "type": error.get("type"),
            "loc": [str(part) for part in error.get("loc", ())],
            "msg": error.get("msg"),
        }
        # ctx may contain non-serializable objects
        if "ctx" in error:
            sanitized["ctx"] = {k: str(v) for k, v in error["ctx"].items()}
        sanitized_errors.append(sanitized)

    logger.warning(
        "validation_error",
        path=request.url.path,
        method=request.method,
        errors=sanitized_errors,
    )
    first = sanitized_errors[0] if sanitized_errors else None
    field = first["loc"][-1] if first and first["loc"] else None
    return JSONResponse(
        status_code=400,
        content={
            "error": "ValidationError",
            "message": first["msg"] if first else "Invalid request",
            "field": field,
            "errors": sanitized_errors,
        },
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last resort: never leak internals to clients."""
    logger.error(
        "unhandled_exception",
        path=request.url.path,
        error_type=type(exc).__name__,
        error=str(exc),
        exc_info=True,
    )
    metrics.record_error(type(exc).__name__, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"error": "InternalError", "message": "An internal error occurred"},
    )


# Setup tracing
setup_tracing()
instrument_fastapi(app)
if settings.tracing_enabled:
    instrument_sqlalchemy(get_engine())


# Proxy headers middleware - trust X-Forwarded-* headers from the gateway
class ProxyHeadersMiddleware(BaseHTTPMiddleware):
    """Middleware to handle X-Forwarded-Proto from a reverse proxy."""

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        forwarded_proto = request.headers.get("X-Forwarded-Proto")
        if forwarded_proto:
            request.scope["scheme"] = forwarded_proto

        return await call_next(request)


app.add_middleware(ProxyHeadersMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def logging_middleware(
    request: Request, call_next: Callable[[Request], Awaitable[Response]]
) -> Response:
    """Log all HTTP requests with timing and a bound request id."""
    start_time = time.time()
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    endpoint = request.url.path
    method = request.method

    with log_context(request_id=request_id):
        logger.info("request_started", method=method, path=endpoint)
        metrics.http_requests_in_progress.labels(endpoint=endpoint, method=method).inc()

        try:
            response = await call_next(request)
        except Exception as e:
            duration = time.time() - start_time
            metrics.record_http_request(endpoint, method, 500, duration)
            metrics.record_error(type(e).__name__, "http_request")
            logger.error(
                "request_failed",
                method=method,
                path=endpoint,
                error=str(e),
                duration_seconds=duration,
                exc_info=True,
            )
            raise
        finally:
            metrics.http_requests_in_progress.labels(endpoint=endpoint, method=method).dec()

        duration = time.time() - start_time
        metrics.record_http_request(endpoint, method, response.status_code, duration)
        logger.info(
            "request_completed",
            method=method,
            path=endpoint,
            status_code=response.status_code,
            duration_seconds=duration,
        )
        response.headers["X-Request-ID"] = request_id
        return response


app.include_router(router)


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint."""
    return {
        "service": settings.api_title,
        "version": settings.api_version,
        "status": "running",
    }


if settings.metrics_enabled:

    @app.get("/metrics")
    async def metrics_endpoint() -> Response:
        """
        Prometheus metrics endpoint.

        Returns metrics in Prometheus text format.
        """
        return PlainTextResponse(generate_latest())


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=False,
        log_level=settings.log_level.lower(),
    )
