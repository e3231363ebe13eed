"""SQL export service for offline migrations.

Serializes the source database into one SQL script that an operator can
apply to a target by hand, instead of letting the migration service write to
the target directly. Read-only against the source; never opens a target.

Script layout:
- Comment header with generation time and per-table counts
- BEGIN
- DROP TABLE IF EXISTS ... in reverse dependency order
- Per table, in dependency order: CREATE TABLE, CREATE INDEX, INSERTs
- COMMIT
"""

import json
import time
from dataclasses import dataclass, field
from datetime import UTC, date, datetime, time as dt_time
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.dialects import postgresql
from sqlalchemy.engine import Dialect
from sqlalchemy.ext.asyncio import AsyncEngine

from app.core.config import Settings, get_settings
from app.core.logging import db_logger, get_logger
from app.services.migration import (
    MIGRATION_TABLES,
    SchemaDriftError,
    TableDescriptor,
    check_source_schema,
    error_message,
    fetch_table_rows,
    render_create_statements,
    render_drop_statement,
)

logger = get_logger(__name__)


class ExportError(Exception):
    """Raised when the export cannot be produced; no partial script is returned."""

    pass


@dataclass(frozen=True)
class TableStats:
    """Row count of one source table."""

    name: str
    count: int


@dataclass
class ExportStats:
    """Row counts of every known table."""

    tables: list[TableStats] = field(default_factory=list)
    total_records: int = 0


def quote_text(value: str) -> str:
    """Quote a string as a SQL literal, doubling embedded single quotes."""
    return "'" + value.replace("'", "''") + "'"


def render_literal(value: Any) -> str:
    """Render a Python value fetched from the source as a SQL literal.

    >>> render_literal(None)
    'NULL'
    >>> render_literal("O'Brien")
    "'O''Brien'"
    >>> render_literal(Decimal("12.50"))
    '12.50'
    """
    if value is None:
        return "NULL"
    # bool before int: bool is an int subclass
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, Decimal):
        if not value.is_finite():
            return quote_text(str(value))
        return format(value, "f")
    if isinstance(value, float):
        return repr(value)
    if isinstance(value, datetime):
        return quote_text(value.isoformat(sep=" "))
    if isinstance(value, (date, dt_time)):
        return quote_text(value.isoformat())
    if isinstance(value, (dict, list)):
        return quote_text(json.dumps(value, ensure_ascii=False))
    if isinstance(value, (str, UUID)):
        return quote_text(str(value))
    raise TypeError(f"Cannot render {type(value).__name__} as a SQL literal")


def render_insert(
    descriptor: TableDescriptor, row: dict[str, Any], dialect: Dialect
) -> str:
    """Render one literal INSERT that skips rows whose primary key exists."""
    preparer = dialect.identifier_preparer
    columns = ", ".join(preparer.quote(name) for name in descriptor.columns)
    values = ", ".join(render_literal(row[name]) for name in descriptor.columns)
    conflict = ", ".join(preparer.quote(name) for name in descriptor.primary_key)
    return (
        f"INSERT INTO {preparer.format_table(descriptor.table)} ({columns}) "
        f"VALUES ({values}) ON CONFLICT ({conflict}) DO NOTHING;"
    )


class SQLExportService:
    """Builds export statistics and SQL scripts from the source database."""

    def __init__(
        self,
        source: AsyncEngine,
        settings: Settings | None = None,
        descriptors: tuple[TableDescriptor, ...] = MIGRATION_TABLES,
    ) -> None:
        self._source = source
        self._settings = settings or get_settings()
        self._descriptors = descriptors

    @property
    def export_filename(self) -> str:
        """Suggested download name for export scripts."""
        return self._settings.migration_export_filename

    async def get_stats(self) -> ExportStats:
        """Count the rows of every known table.

        Raises:
            ExportError: If the source cannot be read
        """
        stats = ExportStats()
        try:
            async with self._source.connect() as conn:
                for descriptor in self._descriptors:
                    count = await conn.scalar(
                        select(func.count()).select_from(descriptor.table)
                    )
                    stats.tables.append(TableStats(name=descriptor.name, count=int(count or 0)))
        except Exception as e:
            logger.error(
                "Failed to read export statistics",
                extra={"error_type": type(e).__name__, "error_message": error_message(e)},
            )
            raise ExportError(error_message(e)) from e

        stats.total_records = sum(t.count for t in stats.tables)
        return stats

    async def export_sql(self, dialect: Dialect | None = None) -> str:
        """Render the whole source database as a SQL script.

        Args:
            dialect: Dialect to render DDL for; defaults to PostgreSQL

        Raises:
            ExportError: If the source cannot be read or no longer matches
                the known tables
        """
        dialect = dialect or postgresql.dialect()
        start_time = time.monotonic()

        try:
            if self._settings.migration_check_schema_drift:
                await check_source_schema(
                    self._source,
                    self._settings.migration_ignored_tables,
                    self._descriptors,
                )
            rows_by_table = [
                (
                    descriptor,
                    await fetch_table_rows(
                        self._source,
                        descriptor,
                        self._settings.db_slow_query_threshold_ms,
                    ),
                )
                for descriptor in self._descriptors
            ]
            script = self._render_script(rows_by_table, dialect)
        except SchemaDriftError as e:
            raise ExportError(str(e)) from e
        except Exception as e:
            logger.error(
                "SQL export failed",
                extra={"error_type": type(e).__name__, "error_message": error_message(e)},
                exc_info=True,
            )
            raise ExportError(error_message(e)) from e

        total_records = sum(len(rows) for _, rows in rows_by_table)
        db_logger.export_complete(
            table_count=len(rows_by_table),
            total_records=total_records,
            size_bytes=len(script.encode("utf-8")),
        )
        logger.debug(
            "SQL export timing",
            extra={"duration_ms": round((time.monotonic() - start_time) * 1000, 2)},
        )
        return script

    def _render_script(
        self,
        rows_by_table: list[tuple[TableDescriptor, list[dict[str, Any]]]],
        dialect: Dialect,
    ) -> str:
        total_records = sum(len(rows) for _, rows in rows_by_table)
        lines = [
            "-- Surebet tracker database export",
            f"-- Generated: {datetime.now(UTC).isoformat()}",
            f"-- Dialect: {dialect.name}",
        ]
        lines.extend(
            f"-- {descriptor.name}: {len(rows)} records" for descriptor, rows in rows_by_table
        )
        lines.extend([f"-- Total records: {total_records}", "", "BEGIN;", ""])

        for descriptor, _ in reversed(rows_by_table):
            lines.append(render_drop_statement(descriptor.table, dialect) + ";")

        for descriptor, rows in rows_by_table:
            lines.extend(["", f"-- Table: {descriptor.name}"])
            lines.extend(
                statement + ";"
                for statement in render_create_statements(descriptor.table, dialect)
            )
            if rows:
                lines.append(f"-- Data for {descriptor.name} ({len(rows)} records)")
            lines.extend(render_insert(descriptor, row, dialect) for row in rows)

        lines.extend(["", "COMMIT;", ""])
        return "\n".join(lines)
