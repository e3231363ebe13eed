"""Schemas layer - Pydantic models for API validation.

Schemas define the shape of data for API requests and responses.
They handle validation, serialization, and documentation.
"""

from app.schemas.migration import (
    ConnectionTestResponse,
    ExportStatsResponse,
    MigrationResultResponse,
    MigrationTargetRequest,
    TableResultResponse,
    TableStatsResponse,
)

__all__ = [
    "ConnectionTestResponse",
    "ExportStatsResponse",
    "MigrationResultResponse",
    "MigrationTargetRequest",
    "TableResultResponse",
    "TableStatsResponse",
]
