"""Pydantic schemas for the admin migration API.

Request bodies and response payloads use the camelCase field names the admin
UI sends and reads (supabaseUrl, totalRecords).
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.services.migration import TableStatus


class MigrationTargetRequest(BaseModel):
    """Schema for requests that name a target database."""

    model_config = ConfigDict(populate_by_name=True)

    supabase_url: str = Field(
        ...,
        alias="supabaseUrl",
        min_length=1,
        description="Connection string of the target PostgreSQL database",
    )

    @field_validator("supabase_url")
    @classmethod
    def validate_supabase_url(cls, v: str) -> str:
        """Reject blank connection strings."""
        v = v.strip()
        if not v:
            raise ValueError("supabaseUrl must not be blank")
        return v


class ConnectionTestResponse(BaseModel):
    """Response schema for a target connection check."""

    model_config = ConfigDict(from_attributes=True)

    success: bool = Field(..., description="Whether the target answered a trivial query")
    error: str | None = Field(
        None, description="Driver error message with credentials masked"
    )


class TableResultResponse(BaseModel):
    """Response schema for one copied table."""

    model_config = ConfigDict(from_attributes=True)

    name: str = Field(..., description="Table name")
    count: int = Field(..., ge=0, description="Rows processed (0 on error)")
    status: TableStatus = Field(..., description="'success' or 'error'")
    error: str | None = Field(None, description="Error message when status is 'error'")


class MigrationResultResponse(BaseModel):
    """Response schema for a migration run."""

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    success: bool = Field(
        ...,
        description="True only if no fatal error occurred and every table succeeded",
    )
    tables: list[TableResultResponse] = Field(
        default_factory=list,
        description="Per-table results in copy order",
    )
    total_records: int = Field(
        default=0,
        serialization_alias="totalRecords",
        description="Sum of counts over successful tables",
    )
    error: str | None = Field(None, description="Fatal error that stopped the run")


class TableStatsResponse(BaseModel):
    """Response schema for one table's row count."""

    model_config = ConfigDict(from_attributes=True)

    name: str = Field(..., description="Table name")
    count: int = Field(..., ge=0, description="Rows in the source table")


class ExportStatsResponse(BaseModel):
    """Response schema for source statistics."""

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    tables: list[TableStatsResponse] = Field(default_factory=list)
    total_records: int = Field(
        default=0,
        serialization_alias="totalRecords",
        description="Rows across all known tables",
    )
