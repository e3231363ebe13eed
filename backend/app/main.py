"""Migration service HTTP entry point.

Serves the admin migration API under /api/admin/migration plus health
checks. Shutdown runs through uvicorn's lifespan handling, which disposes
the source engine.

Error Logging Requirements:
- One log line per request with method, path, status, timing and request_id
- Return structured error responses: {"error": str, "code": str, "request_id": str}
- Log 4xx errors at WARNING, 5xx at ERROR
"""

import time
import uuid
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from app.api.admin import router as admin_router
from app.core.config import get_settings
from app.core.database import db_manager
from app.core.logging import get_logger, mask_connection_string, setup_logging
from app.services.migration import MigrationService
from app.services.sql_export import SQLExportService

setup_logging()
logger = get_logger(__name__)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Tag each request with an X-Request-ID and log its outcome."""

    async def dispatch(self, request: Request, call_next: Any) -> Any:
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id
        start_time = time.monotonic()

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id

        log_extra = {
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
            "status_code": response.status_code,
            "duration_ms": round((time.monotonic() - start_time) * 1000, 2),
        }
        if response.status_code >= 500:
            logger.error("Request failed", extra=log_extra)
        elif response.status_code >= 400:
            logger.warning("Request error", extra=log_extra)
        else:
            logger.info("Request completed", extra=log_extra)

        return response


@asynccontextmanager
async def lifespan(app: FastAPI) -> Any:
    """Open the source engine and build the shared services."""
    settings = get_settings()
    logger.info(
        "Starting migration service",
        extra={"version": settings.app_version, "environment": settings.environment},
    )

    try:
        db_manager.init_db()
    except Exception as e:
        logger.error(
            "Failed to initialize source database",
            extra={"error_message": mask_connection_string(str(e))},
        )
        raise

    app.state.migration_service = MigrationService(db_manager.engine, settings)
    app.state.sql_export_service = SQLExportService(db_manager.engine, settings)

    yield

    logger.info("Shutting down migration service")
    await db_manager.close()


def _error_response(
    request: Request, status_code: int, error: str, code: str
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "error": error,
            "code": code,
            "request_id": getattr(request.state, "request_id", "unknown"),
        },
    )


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        lifespan=lifespan,
    )
    app.add_middleware(RequestLoggingMiddleware)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        error_msg = "; ".join(
            f"{'.'.join(str(loc) for loc in e['loc'])}: {e['msg']}" for e in exc.errors()
        )
        logger.warning(
            "Validation error",
            extra={
                "request_id": getattr(request.state, "request_id", "unknown"),
                "error_message": error_msg,
            },
        )
        return _error_response(
            request, status.HTTP_422_UNPROCESSABLE_ENTITY, error_msg, "VALIDATION_ERROR"
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "Unhandled exception",
            extra={
                "request_id": getattr(request.state, "request_id", "unknown"),
                "error_type": type(exc).__name__,
                "error_message": mask_connection_string(str(exc)),
            },
            exc_info=True,
        )
        return _error_response(
            request,
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "An internal error occurred. Please try again later.",
            "INTERNAL_ERROR",
        )

    @app.get("/health", tags=["Health"])
    async def health_check() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/health/db", tags=["Health"])
    async def database_health() -> dict[str, str | bool]:
        """Check source database connectivity."""
        is_healthy = await db_manager.check_connection()
        return {"status": "ok" if is_healthy else "error", "database": is_healthy}

    app.include_router(admin_router, prefix="/api")

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run("app.main:app", host=settings.host, port=settings.port)
