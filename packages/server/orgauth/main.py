"""
Org Membership API Server

Entry point for the FastAPI application.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import structlog
import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from orgauth.api import router as api_router
from orgauth.core.config import DEFAULT_SECRET_KEY, get_settings
from orgauth.core.database import close_db, init_db
from orgauth.core.errors import AppError
from orgauth.core.limiter import DEFAULT_LIMIT_MESSAGE, limiter
from orgauth.core.logging import configure_logging
from orgauth.core.middleware import SecurityHeadersMiddleware

settings = get_settings()
log = structlog.get_logger()


def _error_response(status_code: int, message: str, data: dict | None = None) -> JSONResponse:
    content = {"success": False, "message": message}
    if data is not None:
        content["data"] = data
    return JSONResponse(status_code=status_code, content=content)


# ---------------------------------------------------------------------------
# Exception handlers
#
# Every handler returns the same {success: false, message} envelope.
# ---------------------------------------------------------------------------

async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    return _error_response(exc.status_code, exc.message)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Request body/params failed validation: 400 naming the first bad field."""
    errors = [
        {
            "field": ".".join(str(part) for part in err.get("loc", ()) if part != "body"),
            "message": err.get("msg", "Invalid value"),
        }
        for err in exc.errors()
    ]
    first = errors[0] if errors else {"field": "", "message": "Invalid request"}
    message = f"{first['field']}: {first['message']}" if first["field"] else first["message"]
    return _error_response(400, message, {"errors": errors})


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    message = "Route not found" if exc.status_code == 404 else str(exc.detail)
    response = _error_response(exc.status_code, message)
    if exc.headers:
        response.headers.update(exc.headers)
    return response


async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """429 with the limit's own message and a Retry-After of one window."""
    limit = getattr(exc, "limit", None)
    message = getattr(limit, "error_message", None) or DEFAULT_LIMIT_MESSAGE
    response = _error_response(429, message)
    try:
        retry_after = int(limit.limit.get_expiry())
    except AttributeError:
        retry_after = 60
    response.headers["Retry-After"] = str(retry_after)
    return response


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all: log the traceback, never leak details outside development."""
    log.exception("request.unhandled_error", method=request.method, path=request.url.path)
    message = str(exc) if settings.is_development else "Internal server error"
    return _error_response(500, message or "Internal server error")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    log.info("orgauth.starting", environment=settings.environment)
    if settings.secret_key == DEFAULT_SECRET_KEY and not settings.is_development:
        log.warning("orgauth.default_secret_key", environment=settings.environment)
    if settings.create_tables_on_startup:
        await init_db()
    yield
    log.info("orgauth.shutting_down")
    await close_db()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    configure_logging(settings.log_level, settings.log_format)

    app = FastAPI(
        title="Org Membership Service",
        description="Users, organizations and role-based memberships.",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    app.state.limiter = limiter

    # Middleware: the last one added is the outermost
    app.add_middleware(SlowAPIMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=False,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["Content-Type", "Authorization"],
    )
    app.add_middleware(SecurityHeadersMiddleware)

    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RateLimitExceeded, rate_limit_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    app.include_router(api_router, prefix=settings.api_prefix)

    @app.get("/health", tags=["System"])
    @limiter.exempt
    async def health_check():
        """Liveness probe; never rate limited."""
        return {
            "success": True,
            "message": "Server is running",
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    return app


app = create_app()


def run() -> None:
    """CLI entry point: serve the API with uvicorn."""
    uvicorn.run(
        "orgauth.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )


if __name__ == "__main__":
    run()
