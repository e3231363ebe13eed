"""Services layer - Business logic and orchestration.

Services coordinate the source database engine, operator-supplied target
databases, and the static table descriptors to implement the migration
and export use cases.
"""

from app.services.migration import (
    MIGRATION_TABLES,
    ConnectionTestResult,
    MigrationPhase,
    MigrationResult,
    MigrationService,
    MigrationServiceError,
    RowShapeError,
    SchemaDriftError,
    SchemaProvisioner,
    SchemaProvisioningError,
    TableCopier,
    TableDescriptor,
    TableResult,
    TableStatus,
    TargetConnection,
    TargetConnectionError,
    UnknownTableError,
)
from app.services.sql_export import (
    ExportError,
    ExportStats,
    SQLExportService,
    TableStats,
    render_literal,
)

__all__ = [
    # Migration
    "MIGRATION_TABLES",
    "ConnectionTestResult",
    "MigrationPhase",
    "MigrationResult",
    "MigrationService",
    "MigrationServiceError",
    "RowShapeError",
    "SchemaDriftError",
    "SchemaProvisioner",
    "SchemaProvisioningError",
    "TableCopier",
    "TableDescriptor",
    "TableResult",
    "TableStatus",
    "TargetConnection",
    "TargetConnectionError",
    "UnknownTableError",
    # SQL export
    "ExportError",
    "ExportStats",
    "SQLExportService",
    "TableStats",
    "render_literal",
]
