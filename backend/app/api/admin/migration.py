"""Database migration API endpoints for administrators.

Provides the operations behind the admin migration page:
- POST /api/admin/migration/test-connection - Check a target database answers
- POST /api/admin/migration/execute - Recreate the schema on a target and copy all data
- GET /api/admin/migration/stats - Row counts of the source tables
- GET /api/admin/migration/export - Download the source database as a SQL script

Error Logging Requirements:
- Log all incoming requests with method, path, request_id
- Never log target connection strings unmasked
- Return structured error responses: {"error": str, "code": str, "request_id": str}
- Log 4xx errors at WARNING, 5xx at ERROR
"""

from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.responses import JSONResponse

from app.core.logging import get_logger, mask_connection_string
from app.schemas.migration import (
    ConnectionTestResponse,
    ExportStatsResponse,
    MigrationResultResponse,
    MigrationTargetRequest,
)
from app.services.migration import MigrationService
from app.services.sql_export import ExportError, SQLExportService

logger = get_logger(__name__)

router = APIRouter()

_EXPORT_FAILED_EXAMPLE = {
    "description": "Source database could not be read",
    "content": {
        "application/json": {
            "example": {
                "error": "Source schema drift detected: ...",
                "code": "EXPORT_FAILED",
                "request_id": "<request_id>",
            }
        }
    },
}


def _get_request_id(request: Request) -> str:
    """Get request_id from request state."""
    return getattr(request.state, "request_id", "unknown")


def get_migration_service(request: Request) -> MigrationService:
    """Return the MigrationService built at application startup."""
    return request.app.state.migration_service


def get_sql_export_service(request: Request) -> SQLExportService:
    """Return the SQLExportService built at application startup."""
    return request.app.state.sql_export_service


@router.post(
    "/test-connection",
    response_model=ConnectionTestResponse,
    response_model_exclude_none=True,
    summary="Test a target database connection",
    description=(
        "Open a connection to the target database and run a trivial query. "
        "Failures are reported as success=false with the driver error message."
    ),
)
async def test_connection(
    request: Request,
    data: MigrationTargetRequest,
    service: MigrationService = Depends(get_migration_service),
) -> ConnectionTestResponse:
    """Check that the target database answers."""
    request_id = _get_request_id(request)
    logger.info(
        "Test connection request",
        extra={
            "request_id": request_id,
            "target": mask_connection_string(data.supabase_url),
        },
    )

    result = await service.test_connection(data.supabase_url)
    return ConnectionTestResponse.model_validate(result)


@router.post(
    "/execute",
    response_model=MigrationResultResponse,
    response_model_exclude_none=True,
    summary="Migrate the database to a target",
    description=(
        "DESTRUCTIVE: drops and recreates users, account_holders, betting_houses, "
        "surebet_sets, bets and session on the target database, then copies every "
        "row from the source. Table failures are reported per table; the run "
        "continues with the next table."
    ),
)
async def execute_migration(
    request: Request,
    data: MigrationTargetRequest,
    service: MigrationService = Depends(get_migration_service),
) -> MigrationResultResponse:
    """Run a full migration into the target database."""
    request_id = _get_request_id(request)
    logger.info(
        "Execute migration request",
        extra={
            "request_id": request_id,
            "target": mask_connection_string(data.supabase_url),
        },
    )

    result = await service.execute_migration(data.supabase_url)
    if not result.success:
        logger.warning(
            "Migration finished with errors",
            extra={
                "request_id": request_id,
                "error": result.error,
                "failed_tables": [t.name for t in result.tables if t.error],
            },
        )
    return MigrationResultResponse.model_validate(result)


@router.get(
    "/stats",
    response_model=ExportStatsResponse,
    summary="Get source table statistics",
    description="Count the rows of every migratable table in the source database.",
    responses={500: _EXPORT_FAILED_EXAMPLE},
)
async def get_stats(
    request: Request,
    service: SQLExportService = Depends(get_sql_export_service),
) -> ExportStatsResponse | JSONResponse:
    """Get row counts of the source tables."""
    request_id = _get_request_id(request)
    logger.debug("Get migration stats request", extra={"request_id": request_id})

    try:
        stats = await service.get_stats()
    except ExportError as e:
        logger.error(
            "Failed to get migration stats",
            extra={"request_id": request_id, "error_message": str(e)},
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": str(e),
                "code": "EXPORT_FAILED",
                "request_id": request_id,
            },
        )

    return ExportStatsResponse.model_validate(stats)


@router.get(
    "/export",
    summary="Export the source database as SQL",
    description=(
        "Download a SQL script that drops and recreates the migratable tables "
        "and inserts every source row. Applying it to a database is destructive."
    ),
    response_class=Response,
    responses={
        200: {"content": {"application/sql": {}}},
        500: _EXPORT_FAILED_EXAMPLE,
    },
)
async def export_sql(
    request: Request,
    service: SQLExportService = Depends(get_sql_export_service),
) -> Response:
    """Export the source database as a SQL file download."""
    request_id = _get_request_id(request)
    logger.info("SQL export request", extra={"request_id": request_id})

    try:
        script = await service.export_sql()
    except ExportError as e:
        logger.error(
            "SQL export failed",
            extra={"request_id": request_id, "error_message": str(e)},
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": str(e),
                "code": "EXPORT_FAILED",
                "request_id": request_id,
            },
        )

    filename = service.export_filename
    return Response(
        content=script,
        media_type="application/sql",
        headers={
            "Content-Disposition": f'attachment; filename="{filename}"',
        },
    )
