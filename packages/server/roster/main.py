"""
Roster API Server

Entry point for the FastAPI application.
"""

import structlog
from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from roster.api import router as api_router
from roster.core.config import get_settings
from roster.core.database import get_session
from roster.core.errors import ErrorKind, RosterError
from roster.core.logging_config import configure_logging
from roster.core.middleware import RequestContextMiddleware, SecurityHeadersMiddleware
from roster.core.sessions import SessionStore, close_redis, get_session_store

settings = get_settings()
log = structlog.get_logger()

# Errors raised by routing itself (unknown path, wrong method) rather than a service.
_HTTP_ERROR_KINDS = {
    401: ErrorKind.UNAUTHORIZED,
    403: ErrorKind.FORBIDDEN,
    404: ErrorKind.NOT_FOUND,
}


def _error_response(
    status_code: int, kind: ErrorKind, message: str, headers: dict | None = None
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": kind.value, "message": message},
        headers=headers,
    )


def _http_error_kind(status_code: int) -> ErrorKind:
    if status_code >= 500:
        return ErrorKind.INTERNAL
    return _HTTP_ERROR_KINDS.get(status_code, ErrorKind.VALIDATION)


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(RosterError)
    async def roster_error_handler(request: Request, exc: RosterError):
        if exc.kind == ErrorKind.INTERNAL:
            log.error("request.internal_error", error=exc.message)
        return _error_response(exc.status_code, exc.kind, exc.message)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        kind = _http_error_kind(exc.status_code)
        if kind == ErrorKind.INTERNAL or not isinstance(exc.detail, str):
            message = "internal error" if kind == ErrorKind.INTERNAL else "request failed"
        else:
            message = exc.detail.lower()
        return _error_response(exc.status_code, kind, message, getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        first = errors[0] if errors else {}
        field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = first.get("msg", "invalid request")
        if field:
            message = f"{field}: {message}"
        return _error_response(400, ErrorKind.VALIDATION, message)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        log.exception("request.unhandled_error", error_type=type(exc).__name__)
        return _error_response(500, ErrorKind.INTERNAL, "internal error")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    configure_logging(settings.environment, settings.log_level)

    app = FastAPI(
        title="Roster",
        description="Organizations, members, roles and invitations.",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    # Middleware (order matters, last added is outermost)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["Content-Type", "Authorization"],
    )
    app.add_middleware(RequestContextMiddleware)

    _register_exception_handlers(app)

    app.include_router(api_router, prefix="/api")

    @app.get("/health", tags=["System"])
    async def health_check():
        """Health check endpoint for liveness probes."""
        return {"status": "ok"}

    @app.get("/ready", tags=["System"])
    async def readiness_check(
        session: AsyncSession = Depends(get_session),
        store: SessionStore = Depends(get_session_store),
    ):
        """Readiness check: database and Redis must both answer."""
        checks = {"database": "ok", "redis": "ok"}
        try:
            await session.execute(text("SELECT 1"))
        except Exception as exc:
            log.warning("ready.database_unavailable", error=str(exc))
            checks["database"] = "unavailable"
        try:
            await store.ping()
        except Exception as exc:
            log.warning("ready.redis_unavailable", error=str(exc))
            checks["redis"] = "unavailable"

        if all(value == "ok" for value in checks.values()):
            return {"status": "ready", "checks": checks}
        return JSONResponse(status_code=503, content={"status": "unavailable", "checks": checks})

    @app.on_event("startup")
    async def on_startup():
        log.info("Roster starting", environment=settings.environment)

    @app.on_event("shutdown")
    async def on_shutdown():
        log.info("Roster shutting down")
        await close_redis()

    return app


app = create_app()
